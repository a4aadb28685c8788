# backend/cr_core/prescriptions/models.py
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from cr_core.common.models import ScopedModel


class PrescriptionStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


TERMINAL_STATUSES = frozenset({PrescriptionStatus.COMPLETED, PrescriptionStatus.CANCELLED, PrescriptionStatus.EXPIRED})


class Prescription(ScopedModel):
    """
    Medication order. draft -> active -> completed | cancelled | expired.
    cancelled and expired are terminal.
    """
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="prescriptions",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="issued_prescriptions",
    )
    # Appointments live outside this service; keep the link loose.
    appointment_id = models.UUIDField(null=True, blank=True, db_index=True)

    medication_name = models.CharField(max_length=255)
    dosage = models.CharField(max_length=32)
    frequency = models.CharField(max_length=128)
    duration = models.CharField(max_length=128)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1), MaxValueValidator(10000)])
    refills = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(12)])
    instructions = models.TextField()

    status = models.CharField(
        max_length=16,
        choices=PrescriptionStatus.choices,
        default=PrescriptionStatus.DRAFT,
        db_index=True,
    )

    prescribed_date = models.DateTimeField(default=timezone.now, db_index=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField(null=True, blank=True, db_index=True)

    notes = models.TextField(blank=True, default="")
    pharmacy = models.CharField(max_length=255, blank=True, default="")
    pharmacy_phone = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        db_table = "prescriptions_prescription"
        indexes = [
            models.Index(fields=["tenant_id", "patient", "status"]),
            models.Index(fields=["tenant_id", "provider", "status"]),
            models.Index(fields=["status", "end_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.medication_name} {self.dosage} ({self.status})"
