"""
Prescription state machine.

    draft  --activate--> active
    draft  --cancel-->   cancelled
    active --complete--> completed
    active --cancel-->   cancelled
    active --expire-->   expired

Terminal states reject everything except a repeated cancel on a cancelled
prescription, which is an idempotent no-op.
"""
from __future__ import annotations

from django.db import models

from cr_core.common.api.exceptions import ConflictError
from cr_core.prescriptions.models import TERMINAL_STATUSES, PrescriptionStatus


class PrescriptionEvent(models.TextChoices):
    ACTIVATE = "activate", "Activate"
    COMPLETE = "complete", "Complete"
    CANCEL = "cancel", "Cancel"
    EXPIRE = "expire", "Expire"


class IllegalTransition(ConflictError):
    default_detail = "Illegal state transition."


_TRANSITIONS: dict[tuple[str, str], str] = {
    (PrescriptionStatus.DRAFT, PrescriptionEvent.ACTIVATE): PrescriptionStatus.ACTIVE,
    (PrescriptionStatus.DRAFT, PrescriptionEvent.CANCEL): PrescriptionStatus.CANCELLED,
    (PrescriptionStatus.ACTIVE, PrescriptionEvent.COMPLETE): PrescriptionStatus.COMPLETED,
    (PrescriptionStatus.ACTIVE, PrescriptionEvent.CANCEL): PrescriptionStatus.CANCELLED,
    (PrescriptionStatus.ACTIVE, PrescriptionEvent.EXPIRE): PrescriptionStatus.EXPIRED,
    (PrescriptionStatus.CANCELLED, PrescriptionEvent.CANCEL): PrescriptionStatus.CANCELLED,
}

# Target status requested through update_status -> event that reaches it.
STATUS_EVENTS: dict[str, str] = {
    PrescriptionStatus.ACTIVE: PrescriptionEvent.ACTIVATE,
    PrescriptionStatus.COMPLETED: PrescriptionEvent.COMPLETE,
    PrescriptionStatus.EXPIRED: PrescriptionEvent.EXPIRE,
}


def transition(current: str, event: str) -> str:
    nxt = _TRANSITIONS.get((str(current), str(event)))
    if nxt is None:
        raise IllegalTransition(f"Cannot {event} a prescription in status {current}")
    return nxt


def ensure_editable(current: str) -> None:
    if current in TERMINAL_STATUSES:
        raise IllegalTransition(f"Prescription is {current} and can no longer be edited")
