# backend/cr_core/progress_notes/models.py
from django.conf import settings
from django.db import models

from cr_core.common.models import ScopedModel
from cr_core.encounters.models import Encounter


class NoteStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    FINALIZED = "finalized", "Finalized"
    AMENDED = "amended", "Amended"


SOAP_FIELDS = ("subjective", "objective", "assessment", "plan", "summary")


class ProgressNote(ScopedModel):
    """
    SOAP progress note for one encounter.

    Lifecycle: draft -> finalized. A finalized row is never written again;
    corrections are new rows with status=amended pointing at `original`.
    """
    encounter = models.ForeignKey(Encounter, on_delete=models.PROTECT, related_name="progress_notes")
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="progress_notes",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="authored_progress_notes",
    )

    status = models.CharField(max_length=16, choices=NoteStatus.choices, default=NoteStatus.DRAFT, db_index=True)

    subjective = models.TextField(blank=True, default="")
    objective = models.TextField(blank=True, default="")
    assessment = models.TextField(blank=True, default="")
    plan = models.TextField(blank=True, default="")
    summary = models.TextField(blank=True, default="")

    # Metadata only: [{"url": ..., "filename": ..., "mime_type": ..., ...}]
    attachments = models.JSONField(default=list, blank=True)

    autosaved_at = models.DateTimeField(null=True, blank=True)
    finalized_at = models.DateTimeField(null=True, blank=True)
    signature_hash = models.CharField(max_length=256, blank=True, default="")

    original = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        related_name="amendments",
        null=True,
        blank=True,
    )
    amendment_reason = models.TextField(blank=True, default="")

    # Optimistic lock counter; bumped on every write.
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "progress_notes_progress_note"
        indexes = [
            models.Index(fields=["tenant_id", "patient", "status"]),
            models.Index(fields=["tenant_id", "encounter"]),
            models.Index(fields=["tenant_id", "updated_at"]),
        ]

    def __str__(self) -> str:
        return f"ProgressNote({self.id}, {self.status})"
