# backend/cr_core/progress_notes/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Exists, OuterRef, Q, QuerySet

from cr_core.iam.actor import Actor
from cr_core.iam.models import LinkStatus, ProviderPatientLink
from cr_core.iam.permissions import PROVIDER_TRACK_ROLES
from cr_core.progress_notes.models import SOAP_FIELDS, ProgressNote


class ProgressNoteSelectors:
    @staticmethod
    def visible_to(*, tenant_id: UUID, actor: Actor) -> QuerySet[ProgressNote]:
        """
        - admin / clerk: whole tenant
        - providers: notes on their own encounters, for patients they are linked to
        - everyone else (patients included): nothing
        """
        qs = ProgressNote.objects.filter(tenant_id=tenant_id).select_related("encounter")

        if actor.is_admin or actor.is_clerk:
            return qs

        if actor.role in PROVIDER_TRACK_ROLES:
            linked = ProviderPatientLink.objects.filter(
                tenant_id=tenant_id,
                provider_id=actor.user_id,
                patient_id=OuterRef("patient_id"),
                status=LinkStatus.APPROVED,
            )
            return qs.filter(encounter__provider_id=actor.user_id).filter(Exists(linked))

        return qs.none()

    @staticmethod
    def list_notes(
        *,
        tenant_id: UUID,
        actor: Actor,
        patient_id: int | None = None,
        encounter_id: UUID | None = None,
        author_id: int | None = None,
        status: str | None = None,
        keywords: str | None = None,
    ) -> QuerySet[ProgressNote]:
        qs = ProgressNoteSelectors.visible_to(tenant_id=tenant_id, actor=actor)

        if patient_id:
            qs = qs.filter(patient_id=patient_id)
        if encounter_id:
            qs = qs.filter(encounter_id=encounter_id)
        if author_id:
            qs = qs.filter(author_id=author_id)
        if status:
            qs = qs.filter(status=status)

        keywords = (keywords or "").strip()
        if keywords:
            match = Q()
            for name in SOAP_FIELDS:
                match |= Q(**{f"{name}__icontains": keywords})
            qs = qs.filter(match)

        return qs.order_by("-updated_at")
