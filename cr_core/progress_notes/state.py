"""
Progress-note state machine.

    (none)    --create-->   draft
    draft     --edit-->     draft
    draft     --finalize--> finalized
    finalized --amend-->    finalized   (a new `amended` row is created)

Everything else is illegal and surfaces as 409.
"""
from __future__ import annotations

from django.db import models

from cr_core.common.api.exceptions import ConflictError
from cr_core.progress_notes.models import NoteStatus


class NoteEvent(models.TextChoices):
    CREATE = "create", "Create"
    EDIT = "edit", "Edit"
    FINALIZE = "finalize", "Finalize"
    AMEND = "amend", "Amend"


class IllegalTransition(ConflictError):
    default_detail = "Illegal state transition."


_TRANSITIONS: dict[tuple[str | None, str], str] = {
    (None, NoteEvent.CREATE): NoteStatus.DRAFT,
    (NoteStatus.DRAFT, NoteEvent.EDIT): NoteStatus.DRAFT,
    (NoteStatus.DRAFT, NoteEvent.FINALIZE): NoteStatus.FINALIZED,
    (NoteStatus.FINALIZED, NoteEvent.AMEND): NoteStatus.FINALIZED,
}

_MESSAGES: dict[tuple[str | None, str], str] = {
    (NoteStatus.FINALIZED, NoteEvent.EDIT): "Finalized notes are immutable; use amendment flow",
    (NoteStatus.AMENDED, NoteEvent.EDIT): "Finalized notes are immutable; use amendment flow",
    (NoteStatus.FINALIZED, NoteEvent.FINALIZE): "Note already finalized",
    (NoteStatus.AMENDED, NoteEvent.FINALIZE): "Amended notes cannot be finalized",
    (NoteStatus.DRAFT, NoteEvent.AMEND): "Only finalized notes can be amended",
    (NoteStatus.AMENDED, NoteEvent.AMEND): "Only finalized notes can be amended",
}


def transition(current: str | None, event: str) -> str:
    key = (str(current) if current is not None else None, str(event))
    nxt = _TRANSITIONS.get(key)
    if nxt is None:
        raise IllegalTransition(_MESSAGES.get(key) or f"Cannot {event} a note in status {current}")
    return nxt
