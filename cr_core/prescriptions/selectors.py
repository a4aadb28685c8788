from __future__ import annotations

from datetime import date
from uuid import UUID

from django.db.models import QuerySet

from cr_core.iam.actor import Actor
from cr_core.iam.permissions import PROVIDER_TRACK_ROLES
from cr_core.prescriptions.models import Prescription


class PrescriptionSelectors:
    @staticmethod
    def visible_to(*, tenant_id: UUID, actor: Actor) -> QuerySet[Prescription]:
        qs = Prescription.objects.filter(tenant_id=tenant_id)
        if actor.is_admin or actor.is_clerk:
            return qs
        if actor.role in PROVIDER_TRACK_ROLES:
            return qs.filter(provider_id=actor.user_id)
        if actor.is_patient:
            return qs.filter(patient_id=actor.user_id)
        return qs.none()

    @staticmethod
    def list_prescriptions(
        *,
        tenant_id: UUID,
        actor: Actor,
        status: str | None = None,
        patient_id: int | None = None,
        prescribed_from: date | None = None,
        prescribed_to: date | None = None,
    ) -> QuerySet[Prescription]:
        qs = PrescriptionSelectors.visible_to(tenant_id=tenant_id, actor=actor)

        if status:
            qs = qs.filter(status=status)
        if patient_id:
            qs = qs.filter(patient_id=patient_id)
        if prescribed_from:
            qs = qs.filter(prescribed_date__date__gte=prescribed_from)
        if prescribed_to:
            qs = qs.filter(prescribed_date__date__lte=prescribed_to)

        return qs.order_by("-prescribed_date", "-created_at")
