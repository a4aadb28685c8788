# backend/cr_core/encounters/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone

from cr_core.common.models import ScopedModel


class EncounterType(models.TextChoices):
    CONSULTATION = "consultation", "Consultation"
    FOLLOW_UP = "follow_up", "Follow-up"
    TELEHEALTH = "telehealth", "Telehealth"


class Encounter(ScopedModel):
    """
    One visit between one provider and one patient.
    Progress notes hang off it; ownership checks read provider/patient here.
    """
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="provider_encounters",
    )
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="patient_encounters",
    )

    encounter_type = models.CharField(
        max_length=32,
        choices=EncounterType.choices,
        default=EncounterType.CONSULTATION,
    )
    started_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "encounters_encounter"
        indexes = [
            models.Index(fields=["tenant_id", "provider", "started_at"]),
            models.Index(fields=["tenant_id", "patient"]),
        ]

    def __str__(self) -> str:
        return f"Encounter({self.provider_id}->{self.patient_id} @ {self.started_at:%Y-%m-%d})"
