from __future__ import annotations

from uuid import UUID

from django.db.models import Exists, OuterRef, QuerySet

from cr_core.iam.actor import Actor
from cr_core.iam.models import LinkStatus, ProviderPatientLink
from cr_core.iam.permissions import PROVIDER_TRACK_ROLES
from cr_core.integrations.models import IntegrationError


class IntegrationErrorSelectors:
    @staticmethod
    def visible_to(*, tenant_id: UUID, actor: Actor) -> QuerySet[IntegrationError]:
        qs = IntegrationError.objects.filter(tenant_id=tenant_id)
        if actor.is_admin or actor.is_clerk:
            return qs
        if actor.role in PROVIDER_TRACK_ROLES:
            linked = ProviderPatientLink.objects.filter(
                tenant_id=tenant_id,
                provider_id=actor.user_id,
                patient_id=OuterRef("patient_id"),
                status=LinkStatus.APPROVED,
            )
            return qs.filter(Exists(linked))
        return qs.none()

    @staticmethod
    def list_errors(
        *,
        tenant_id: UUID,
        actor: Actor,
        status: str | None = None,
        patient_id: int | None = None,
    ) -> QuerySet[IntegrationError]:
        qs = IntegrationErrorSelectors.visible_to(tenant_id=tenant_id, actor=actor)
        if status:
            qs = qs.filter(status=status)
        if patient_id:
            qs = qs.filter(patient_id=patient_id)
        return qs.order_by("-created_at")
