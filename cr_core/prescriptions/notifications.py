"""
Patient notifications for prescription lifecycle changes.

Delivery is best effort: a failure is logged and never undoes the clinical write.
"""
from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from cr_core.notifications.models import NotificationCategory, NotificationPriority
from cr_core.notifications.services import NotificationService
from cr_core.prescriptions.models import Prescription, PrescriptionStatus

logger = logging.getLogger(__name__)

PRESCRIPTIONS_LINK = "/patient/prescriptions"


def _provider_name(rx: Prescription) -> str:
    user = get_user_model().objects.filter(id=rx.provider_id).first()
    name = user.get_full_name().strip() if user is not None else ""
    return name or "Your provider"


def _send(rx: Prescription, **kwargs) -> None:
    try:
        # Own savepoint: a failed insert must not break the caller's transaction.
        with transaction.atomic():
            NotificationService.notify(
                tenant_id=rx.tenant_id,
                patient_id=rx.patient_id,
                link=PRESCRIPTIONS_LINK,
                meta={"prescription_id": str(rx.id)},
                **kwargs,
            )
    except Exception:
        logger.exception(
            "Prescription notification failed",
            extra={"prescription_id": str(rx.id), "title": kwargs.get("title")},
        )


def notify_prescribed(rx: Prescription) -> None:
    _send(
        rx,
        category=NotificationCategory.ALERT,
        title="New Prescription",
        body=f"{_provider_name(rx)} prescribed {rx.medication_name}. Please review your instructions.",
        priority=NotificationPriority.HIGH,
    )


def notify_status(rx: Prescription) -> None:
    if rx.status == PrescriptionStatus.ACTIVE:
        notify_prescribed(rx)
        return
    if rx.status not in (PrescriptionStatus.COMPLETED, PrescriptionStatus.EXPIRED):
        return

    title = "Prescription Completed" if rx.status == PrescriptionStatus.COMPLETED else "Prescription Expired"
    _send(
        rx,
        category=NotificationCategory.INFO,
        title=title,
        body=f"{rx.medication_name} is now {rx.status}.",
        priority=NotificationPriority.MEDIUM,
    )


def notify_cancelled(rx: Prescription, reason: str) -> None:
    _send(
        rx,
        category=NotificationCategory.ALERT,
        title="Prescription Cancelled",
        body=f"{rx.medication_name} was cancelled. Reason: {reason}",
        priority=NotificationPriority.HIGH,
    )
