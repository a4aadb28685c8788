# backend/cr_core/progress_notes/services.py
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from cr_core.audit.models import AuditAction
from cr_core.audit.services import AuditService
from cr_core.common.api.exceptions import ConflictError, Forbidden
from cr_core.common.logging import log_domain_event
from cr_core.encounters.models import Encounter
from cr_core.iam.actor import Actor
from cr_core.iam.guard import (
    NOT_OWNER_MSG,
    ensure_document_owner,
    ensure_patient_access,
    require_draft_or_update,
    require_permission,
)
from cr_core.iam.permissions import Permission
from cr_core.progress_notes.models import SOAP_FIELDS, NoteStatus, ProgressNote
from cr_core.progress_notes.selectors import ProgressNoteSelectors
from cr_core.progress_notes.state import NoteEvent, transition

ENTITY_TYPE = "progress_note"
SIGNATURE_MIN_LENGTH = 16


def _soap(fields: dict[str, Any] | None) -> dict[str, str]:
    """Only SOAP keys that were actually supplied."""
    return {k: (fields[k] or "") for k in SOAP_FIELDS if fields and k in fields}


def _provenance(note: ProgressNote, encounter: Encounter, **extra: Any) -> dict[str, Any]:
    return {
        "encounter_id": note.encounter_id,
        "patient_id": note.patient_id,
        "provider_id": encounter.provider_id,
        "status": note.status,
        **extra,
    }


def _check_version(note: ProgressNote, expected_version: int | None) -> None:
    if expected_version is not None and int(expected_version) != note.version:
        raise ConflictError(
            f"Version conflict: expected {expected_version}, current {note.version}. Reload and retry."
        )


def _lock_note(*, tenant_id: UUID, note_id: UUID) -> ProgressNote:
    note = ProgressNote.objects.select_for_update().filter(id=note_id, tenant_id=tenant_id).first()
    if note is None:
        raise NotFound("Progress note not found.")
    return note


def _authorize_note_write(actor: Actor, note: ProgressNote, encounter: Encounter, *, tenant_id: UUID) -> None:
    ensure_document_owner(actor, author_id=note.author_id, encounter_provider_id=encounter.provider_id)
    ensure_patient_access(actor, note.patient_id, tenant_id=tenant_id)


class ProgressNoteService:
    """
    Draft -> finalize -> amend.

    Every write is one transaction: guard, state transition, mutation, audit.
    Draft edits and finalization lock the row and honour `expected_version`.
    """

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------
    @staticmethod
    def list_notes(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        patient_id: int | None = None,
        encounter_id: UUID | None = None,
        author_id: int | None = None,
        status: str | None = None,
        keywords: str | None = None,
        request=None,
    ) -> QuerySet[ProgressNote]:
        require_permission(actor, Permission.PROGRESS_NOTE_READ)

        qs = ProgressNoteSelectors.list_notes(
            tenant_id=tenant_id,
            actor=actor,
            patient_id=patient_id,
            encounter_id=encounter_id,
            author_id=author_id,
            status=status,
            keywords=keywords,
        )

        AuditService.record(
            action=AuditAction.VIEW,
            entity_type=ENTITY_TYPE,
            entity_id="list",
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata={
                "query": {
                    "patient_id": patient_id,
                    "encounter_id": str(encounter_id) if encounter_id else None,
                    "author_id": author_id,
                    "status": status,
                    "has_keywords": bool(keywords),
                }
            },
        )
        return qs

    @staticmethod
    def get_note(*, actor: Actor | None, tenant_id: UUID, note_id: UUID, request=None) -> ProgressNote:
        require_permission(actor, Permission.PROGRESS_NOTE_READ)

        note = ProgressNoteSelectors.visible_to(tenant_id=tenant_id, actor=actor).filter(id=note_id).first()
        if note is None:
            raise NotFound("Progress note not found.")

        AuditService.record(
            action=AuditAction.VIEW,
            entity_type=ENTITY_TYPE,
            entity_id=note.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(note, note.encounter),
        )
        return note

    # ---------------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def create_draft(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        encounter_id: UUID,
        patient_id: int,
        fields: dict[str, Any] | None = None,
        attachments: list[dict] | None = None,
        request=None,
    ) -> ProgressNote:
        require_draft_or_update(actor)
        ensure_patient_access(actor, patient_id, tenant_id=tenant_id)

        encounter = Encounter.objects.filter(id=encounter_id, tenant_id=tenant_id).first()
        if encounter is None:
            raise NotFound("Encounter not found.")
        if not actor.is_admin and encounter.provider_id != actor.user_id:
            raise Forbidden(NOT_OWNER_MSG)
        if encounter.patient_id != int(patient_id):
            raise ConflictError("Patient mismatch for encounter")

        status = transition(None, NoteEvent.CREATE)

        note = ProgressNote.objects.create(
            tenant_id=tenant_id,
            encounter=encounter,
            patient_id=patient_id,
            author_id=actor.user_id,
            status=status,
            attachments=attachments or [],
            autosaved_at=timezone.now(),
            **_soap(fields),
        )

        AuditService.record(
            action=AuditAction.CREATE,
            entity_type=ENTITY_TYPE,
            entity_id=note.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(note, encounter),
        )
        log_domain_event("progress_note.draft_created", entity_type=ENTITY_TYPE, entity_id=note.id)
        return note

    @staticmethod
    @transaction.atomic
    def update_draft(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        note_id: UUID,
        fields: dict[str, Any] | None = None,
        attachments: list[dict] | None = None,
        expected_version: int | None = None,
        request=None,
    ) -> ProgressNote:
        require_draft_or_update(actor)

        note = _lock_note(tenant_id=tenant_id, note_id=note_id)
        encounter = note.encounter
        _authorize_note_write(actor, note, encounter, tenant_id=tenant_id)

        try:
            note.status = transition(note.status, NoteEvent.EDIT)
        except ConflictError:
            log_domain_event("progress_note.update", entity_type=ENTITY_TYPE, entity_id=note.id, result="blocked")
            raise
        _check_version(note, expected_version)

        changed = _soap(fields)
        for name, value in changed.items():
            setattr(note, name, value)
        if attachments is not None:
            note.attachments = attachments
        note.autosaved_at = timezone.now()
        note.version += 1
        note.save()

        AuditService.record(
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id=note.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(
                note,
                encounter,
                changed_fields=sorted(changed) + (["attachments"] if attachments is not None else []),
                version=note.version,
            ),
        )
        return note

    @staticmethod
    @transaction.atomic
    def finalize(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        note_id: UUID,
        signature_hash: str,
        finalized_at: datetime | None = None,
        expected_version: int | None = None,
        request=None,
    ) -> ProgressNote:
        require_permission(actor, Permission.PROGRESS_NOTE_FINALIZE, require_approved_provider=True)
        if len(signature_hash or "") < SIGNATURE_MIN_LENGTH:
            raise ValidationError(
                {"signature_hash": [f"Ensure this field has at least {SIGNATURE_MIN_LENGTH} characters."]}
            )

        note = _lock_note(tenant_id=tenant_id, note_id=note_id)
        encounter = note.encounter
        _authorize_note_write(actor, note, encounter, tenant_id=tenant_id)

        try:
            note.status = transition(note.status, NoteEvent.FINALIZE)
        except ConflictError:
            log_domain_event("progress_note.finalize", entity_type=ENTITY_TYPE, entity_id=note.id, result="blocked")
            raise
        _check_version(note, expected_version)

        note.finalized_at = finalized_at or timezone.now()
        note.signature_hash = signature_hash
        note.version += 1
        note.save(update_fields=["status", "finalized_at", "signature_hash", "version", "updated_at"])

        AuditService.record(
            action=AuditAction.FINALIZE,
            entity_type=ENTITY_TYPE,
            entity_id=note.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(note, encounter, finalized_at=note.finalized_at.isoformat()),
        )
        log_domain_event(
            "progress_note.finalized",
            entity_type=ENTITY_TYPE,
            entity_id=note.id,
            encounter_id=str(note.encounter_id),
            patient_id=note.patient_id,
        )
        return note

    @staticmethod
    @transaction.atomic
    def amend(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        original_id: UUID,
        reason: str,
        fields: dict[str, Any] | None = None,
        attachments: list[dict] | None = None,
        request=None,
    ) -> ProgressNote:
        """
        Create an amendment of a finalized note. The original row is read, never written.
        """
        require_permission(actor, Permission.PROGRESS_NOTE_AMEND, require_approved_provider=True)
        if not (reason or "").strip():
            raise ValidationError({"reason": ["Amendment reason is required."]})

        original = ProgressNote.objects.filter(id=original_id, tenant_id=tenant_id).select_related("encounter").first()
        if original is None:
            raise NotFound("Progress note not found.")
        encounter = original.encounter
        _authorize_note_write(actor, original, encounter, tenant_id=tenant_id)

        transition(original.status, NoteEvent.AMEND)

        content = {k: getattr(original, k) for k in SOAP_FIELDS}
        content.update(_soap(fields))

        amendment = ProgressNote.objects.create(
            tenant_id=tenant_id,
            encounter=encounter,
            patient_id=original.patient_id,
            author_id=actor.user_id,
            status=NoteStatus.AMENDED,
            original=original,
            amendment_reason=reason.strip(),
            attachments=attachments if attachments is not None else list(original.attachments or []),
            **content,
        )

        # Amendments are audited as a create carrying the original id.
        AuditService.record(
            action=AuditAction.CREATE,
            entity_type=ENTITY_TYPE,
            entity_id=amendment.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(amendment, encounter, original_id=original.id),
        )
        log_domain_event(
            "progress_note.amended",
            entity_type=ENTITY_TYPE,
            entity_id=amendment.id,
            original_id=str(original.id),
        )
        return amendment
