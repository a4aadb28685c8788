# backend/cr_core/audit/models.py
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class AuditAction(models.TextChoices):
    VIEW = "view", "View"
    CREATE = "create", "Create"
    UPDATE = "update", "Update"
    FINALIZE = "finalize", "Finalize"


class AuditSource(models.TextChoices):
    API = "api", "API"
    SYSTEM = "system", "System"
    INTEGRATION = "integration", "Integration"


class AuditEvent(models.Model):
    """
    Immutable provenance record. Append-only: rows are never updated or deleted.

    tenant_id is nullable because system jobs (e.g. the expiry sweep) run
    across tenants.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField(null=True, blank=True, db_index=True)

    action = models.CharField(max_length=16, choices=AuditAction.choices, db_index=True)
    entity_type = models.CharField(max_length=64, db_index=True)  # e.g. "progress_note"
    entity_id = models.CharField(max_length=64, db_index=True)  # UUID or symbolic id ("list")

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )
    actor_role = models.CharField(max_length=32, blank=True, default="")

    source = models.CharField(max_length=16, choices=AuditSource.choices, default=AuditSource.API)
    ip_address = models.CharField(max_length=64, blank=True, default="")

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["tenant_id", "occurred_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["tenant_id", "action"]),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type}:{self.entity_id}"

    def save(self, *args, **kwargs):
        # UUID PK exists before first save, so use _state.adding
        if not self._state.adding:
            raise ValidationError("AuditEvent is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("AuditEvent is immutable and cannot be deleted.")
