# backend/cr_core/encounters/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from cr_core.encounters.models import Encounter
from cr_core.iam.actor import Actor
from cr_core.iam.permissions import PROVIDER_TRACK_ROLES


class EncounterSelectors:
    """
    Read-only queries for encounters.
    No .save(), no state mutation here.
    """

    @staticmethod
    def visible_to(*, tenant_id: UUID, actor: Actor) -> QuerySet[Encounter]:
        qs = Encounter.objects.filter(tenant_id=tenant_id)
        if actor.is_admin or actor.is_clerk:
            return qs
        if actor.role in PROVIDER_TRACK_ROLES:
            return qs.filter(provider_id=actor.user_id)
        if actor.is_patient:
            return qs.filter(patient_id=actor.user_id)
        return qs.none()

    @staticmethod
    def list_encounters(
        *,
        tenant_id: UUID,
        actor: Actor,
        patient_id: int | None = None,
        encounter_type: str | None = None,
    ) -> QuerySet[Encounter]:
        qs = EncounterSelectors.visible_to(tenant_id=tenant_id, actor=actor)

        if patient_id:
            qs = qs.filter(patient_id=patient_id)

        if encounter_type:
            qs = qs.filter(encounter_type=encounter_type)

        return qs.order_by("-started_at")

    @staticmethod
    def get_encounter(*, tenant_id: UUID, actor: Actor, encounter_id: UUID) -> Encounter:
        return EncounterSelectors.visible_to(tenant_id=tenant_id, actor=actor).get(id=encounter_id)
