from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from cr_core.iam.actor import Actor
from cr_core.iam.models import ProviderPatientLink
from cr_core.iam.permissions import PROVIDER_TRACK_ROLES


def list_links(*, tenant_id: UUID, actor: Actor, status: str | None = None) -> QuerySet[ProviderPatientLink]:
    """Admins and clerks see the tenant; providers and patients see their own side."""
    qs = ProviderPatientLink.objects.filter(tenant_id=tenant_id)

    if actor.role in PROVIDER_TRACK_ROLES:
        qs = qs.filter(provider_id=actor.user_id)
    elif actor.is_patient:
        qs = qs.filter(patient_id=actor.user_id)
    elif not (actor.is_admin or actor.is_clerk):
        return qs.none()

    if status:
        qs = qs.filter(status=status)

    return qs.order_by("-created_at")
