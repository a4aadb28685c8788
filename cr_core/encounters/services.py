# backend/cr_core/encounters/services.py
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from cr_core.audit.models import AuditAction
from cr_core.audit.services import AuditService
from cr_core.encounters.models import Encounter, EncounterType
from cr_core.iam.actor import Actor
from cr_core.iam.guard import ensure_patient_access, require_permission
from cr_core.iam.permissions import Permission

ENTITY_TYPE = "encounter"


class EncounterService:
    @staticmethod
    @transaction.atomic
    def create(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        patient_id: int,
        provider_id: int | None = None,
        encounter_type: str = EncounterType.CONSULTATION,
        started_at: datetime | None = None,
        request=None,
    ) -> Encounter:
        """
        Providers open encounters for themselves with linked patients.
        Admins may open one on behalf of any provider.
        """
        require_permission(actor, Permission.ENCOUNTER_CREATE, require_approved_provider=True)
        ensure_patient_access(actor, patient_id, tenant_id=tenant_id)

        if not actor.is_admin:
            provider_id = actor.user_id
        if provider_id is None:
            raise ValidationError({"provider_id": ["provider_id is required"]})

        enc = Encounter.objects.create(
            tenant_id=tenant_id,
            provider_id=provider_id,
            patient_id=patient_id,
            encounter_type=encounter_type,
            started_at=started_at or timezone.now(),
        )

        AuditService.record(
            action=AuditAction.CREATE,
            entity_type=ENTITY_TYPE,
            entity_id=enc.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata={
                "provider_id": provider_id,
                "patient_id": patient_id,
                "encounter_type": encounter_type,
            },
        )
        return enc
