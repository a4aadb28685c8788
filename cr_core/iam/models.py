# backend/cr_core/iam/models.py
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from cr_core.common.models import ScopedModel
from cr_core.iam.permissions import Role
from cr_core.tenants.models import Tenant


class ProviderApprovalStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    REVIEWING = "reviewing", "Reviewing"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class UserProfile(models.Model):
    """
    Platform identity anchored to Django's AUTH_USER_MODEL.
    Exactly one role per user; role changes only through admin tooling.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cr_profile")
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="user_profiles")

    role = models.CharField(max_length=32, choices=Role.choices, default=Role.PATIENT, db_index=True)
    provider_approval_status = models.CharField(
        max_length=16,
        choices=ProviderApprovalStatus.choices,
        null=True,
        blank=True,
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_user_profile"
        indexes = [
            models.Index(fields=["tenant", "role"]),
            models.Index(fields=["tenant", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.user.username} ({self.role})"


class LinkStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"


class ProviderPatientLink(ScopedModel):
    """
    Approval-gated relation authorizing a provider to act on a patient's records.
    Never hard-deleted.
    """
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="patient_links",
    )
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="provider_links",
    )
    treatment_type = models.CharField(max_length=64, default="consultation")

    status = models.CharField(max_length=16, choices=LinkStatus.choices, default=LinkStatus.PENDING, db_index=True)
    request_message = models.TextField(blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "iam_provider_patient_link"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "provider", "patient", "treatment_type"],
                name="uq_link_provider_patient_treatment",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "provider", "status"]),
            models.Index(fields=["tenant_id", "patient", "status"]),
        ]

    def __str__(self) -> str:
        return f"Link({self.provider_id}->{self.patient_id}, {self.status})"

    def delete(self, *args, **kwargs):
        raise ValidationError("Provider-patient links are never deleted.")
