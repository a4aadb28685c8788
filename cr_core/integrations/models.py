# backend/cr_core/integrations/models.py
from django.conf import settings
from django.db import models

from cr_core.common.models import ScopedModel


class IntegrationErrorStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    RETRYING = "retrying", "Retrying"
    RESOLVED = "resolved", "Resolved"
    FAILED = "failed", "Failed"


# Rows the retry sweep may pick up.
RETRYABLE_STATUSES = (
    IntegrationErrorStatus.PENDING,
    IntegrationErrorStatus.RETRYING,
    IntegrationErrorStatus.FAILED,
)


class IntegrationError(ScopedModel):
    """
    Durable record of an inbound payload (e.g. a FHIR Observation) that could
    not be ingested. Mutated by the retry sweep, never deleted.
    """
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="integration_errors",
    )
    order_id = models.UUIDField(null=True, blank=True, db_index=True)

    entity_type = models.CharField(max_length=64, default="investigation_result")
    source = models.CharField(max_length=64, blank=True, default="")

    payload = models.JSONField(default=dict)
    error_message = models.TextField(blank=True, default="")

    retry_count = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=16,
        choices=IntegrationErrorStatus.choices,
        default=IntegrationErrorStatus.PENDING,
        db_index=True,
    )
    next_retry_at = models.DateTimeField(null=True, blank=True, db_index=True)
    last_tried_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "integrations_integration_error"
        indexes = [
            models.Index(fields=["tenant_id", "patient", "status"]),
            models.Index(fields=["status", "next_retry_at"]),
        ]

    def __str__(self) -> str:
        return f"IntegrationError({self.entity_type}, {self.status}, retries={self.retry_count})"
