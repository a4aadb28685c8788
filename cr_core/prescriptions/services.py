# backend/cr_core/prescriptions/services.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from cr_core.audit.models import AuditAction, AuditSource
from cr_core.audit.services import AuditService
from cr_core.common.api.exceptions import Forbidden
from cr_core.common.logging import log_domain_event
from cr_core.iam.actor import Actor
from cr_core.iam.guard import ensure_patient_access, require_patient, require_permission
from cr_core.iam.permissions import Permission
from cr_core.prescriptions import notifications
from cr_core.prescriptions.models import Prescription, PrescriptionStatus
from cr_core.prescriptions.safety import check_interactions, dosage_error
from cr_core.prescriptions.selectors import PrescriptionSelectors
from cr_core.prescriptions.state import STATUS_EVENTS, PrescriptionEvent, ensure_editable, transition

ENTITY_TYPE = "prescription"
EXPIRE_JOB_ENTITY_ID = "prescriptions_expire_job"

CREATE_FIELDS = (
    "appointment_id",
    "medication_name",
    "dosage",
    "frequency",
    "duration",
    "quantity",
    "refills",
    "instructions",
    "prescribed_date",
    "start_date",
    "end_date",
    "notes",
    "pharmacy",
    "pharmacy_phone",
)

UPDATE_FIELDS = (
    "dosage",
    "frequency",
    "duration",
    "quantity",
    "refills",
    "instructions",
    "start_date",
    "end_date",
    "notes",
    "pharmacy",
    "pharmacy_phone",
)

INITIAL_STATUSES = (PrescriptionStatus.DRAFT, PrescriptionStatus.ACTIVE)


def _validate_dosage(medication_name: str, dosage: str) -> None:
    err = dosage_error(medication_name, dosage)
    if err:
        raise ValidationError({"dosage": [err]})


def _validate_dates(start_date: datetime | None, end_date: datetime | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationError({"end_date": ["end_date must be on or after start_date"]})


def _lock(*, tenant_id: UUID, prescription_id: UUID) -> Prescription:
    rx = Prescription.objects.select_for_update().filter(id=prescription_id, tenant_id=tenant_id).first()
    if rx is None:
        raise NotFound("Prescription not found.")
    return rx


def _ensure_owner(actor: Actor, rx: Prescription) -> None:
    """Only the prescribing provider or an admin may change a prescription."""
    if actor.is_admin:
        return
    if rx.provider_id != actor.user_id:
        log_domain_event("prescription.write", entity_type=ENTITY_TYPE, entity_id=rx.id, result="blocked")
        raise Forbidden("Insufficient permissions")


def _provenance(rx: Prescription, **extra: Any) -> dict[str, Any]:
    return {
        "patient_id": rx.patient_id,
        "provider_id": rx.provider_id,
        "status": rx.status,
        **extra,
    }


class PrescriptionService:
    """
    Prescription lifecycle. Every write: guard, transition, mutation, audit,
    then a best-effort patient notification.
    """

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------
    @staticmethod
    def list_prescriptions(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        status: str | None = None,
        patient_id: int | None = None,
        prescribed_from: date | None = None,
        prescribed_to: date | None = None,
        request=None,
    ) -> QuerySet[Prescription]:
        require_permission(actor, Permission.MEDICATION_READ)

        qs = PrescriptionSelectors.list_prescriptions(
            tenant_id=tenant_id,
            actor=actor,
            status=status,
            patient_id=patient_id,
            prescribed_from=prescribed_from,
            prescribed_to=prescribed_to,
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
                    "status": status,
                    "patient_id": patient_id,
                    "prescribed_from": prescribed_from,
                    "prescribed_to": prescribed_to,
                }
            },
        )
        return qs

    @staticmethod
    def get_prescription(*, actor: Actor | None, tenant_id: UUID, prescription_id: UUID, request=None) -> Prescription:
        require_permission(actor, Permission.MEDICATION_READ)

        rx = PrescriptionSelectors.visible_to(tenant_id=tenant_id, actor=actor).filter(id=prescription_id).first()
        if rx is None:
            raise NotFound("Prescription not found.")

        AuditService.record(
            action=AuditAction.VIEW,
            entity_type=ENTITY_TYPE,
            entity_id=rx.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(rx),
        )
        return rx

    @staticmethod
    def list_own(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        status: str | None = None,
        request=None,
    ) -> QuerySet[Prescription]:
        """Patient self-view: the caller's own prescriptions, nothing else."""
        require_patient(actor)

        qs = PrescriptionSelectors.list_prescriptions(tenant_id=tenant_id, actor=actor, status=status)

        AuditService.record(
            action=AuditAction.VIEW,
            entity_type=ENTITY_TYPE,
            entity_id="list",
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata={"query": {"status": status, "patient_id": actor.user_id, "self_service": True}},
        )
        return qs

    @staticmethod
    def get_own(*, actor: Actor | None, tenant_id: UUID, prescription_id: UUID, request=None) -> Prescription:
        require_patient(actor)

        rx = PrescriptionSelectors.visible_to(tenant_id=tenant_id, actor=actor).filter(id=prescription_id).first()
        if rx is None:
            raise NotFound("Prescription not found.")

        AuditService.record(
            action=AuditAction.VIEW,
            entity_type=ENTITY_TYPE,
            entity_id=rx.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(rx, self_service=True),
        )
        return rx

    # ---------------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def create(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        patient_id: int,
        data: dict[str, Any],
        provider_id: int | None = None,
        status: str = PrescriptionStatus.DRAFT,
        request=None,
    ) -> tuple[Prescription, list[str]]:
        """Returns (prescription, interaction warnings)."""
        require_permission(actor, Permission.MEDICATION_CREATE, require_approved_provider=True)
        ensure_patient_access(actor, patient_id, tenant_id=tenant_id)

        if not actor.is_admin:
            provider_id = actor.user_id
        if provider_id is None:
            raise ValidationError({"provider_id": ["provider_id is required"]})

        if status not in INITIAL_STATUSES:
            raise ValidationError({"status": ["New prescriptions must be draft or active"]})

        fields = {k: data[k] for k in CREATE_FIELDS if k in data and data[k] is not None}
        _validate_dosage(fields.get("medication_name", ""), fields.get("dosage", ""))
        _validate_dates(fields.get("start_date"), fields.get("end_date"))

        warnings = check_interactions(
            tenant_id=tenant_id,
            patient_id=patient_id,
            medication_name=fields.get("medication_name", ""),
        )

        rx = Prescription.objects.create(
            tenant_id=tenant_id,
            patient_id=patient_id,
            provider_id=provider_id,
            status=status,
            **fields,
        )

        AuditService.record(
            action=AuditAction.CREATE,
            entity_type=ENTITY_TYPE,
            entity_id=rx.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(rx, appointment_id=rx.appointment_id, warning_count=len(warnings)),
        )
        log_domain_event("prescription.created", entity_type=ENTITY_TYPE, entity_id=rx.id, status=rx.status)

        if rx.status == PrescriptionStatus.ACTIVE:
            notifications.notify_prescribed(rx)

        return rx, warnings

    @staticmethod
    @transaction.atomic
    def update(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        prescription_id: UUID,
        changes: dict[str, Any],
        request=None,
    ) -> Prescription:
        require_permission(actor, Permission.MEDICATION_UPDATE, require_approved_provider=True)

        rx = _lock(tenant_id=tenant_id, prescription_id=prescription_id)
        _ensure_owner(actor, rx)
        ensure_editable(rx.status)

        changes = dict(changes or {})
        new_status = changes.pop("status", None)

        fields = {k: changes[k] for k in UPDATE_FIELDS if k in changes}
        if "dosage" in fields:
            _validate_dosage(rx.medication_name, fields["dosage"])
        _validate_dates(fields.get("start_date", rx.start_date), fields.get("end_date", rx.end_date))

        if fields:
            for name, value in fields.items():
                setattr(rx, name, value)
            rx.save()

            AuditService.record(
                action=AuditAction.UPDATE,
                entity_type=ENTITY_TYPE,
                entity_id=rx.id,
                actor=actor,
                tenant_id=tenant_id,
                request=request,
                metadata=_provenance(rx, changed_fields=sorted(fields)),
            )

        if new_status is not None and new_status != rx.status:
            rx = PrescriptionService._apply_status(actor=actor, rx=rx, status=new_status, request=request)

        return rx

    @staticmethod
    @transaction.atomic
    def update_status(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        prescription_id: UUID,
        status: str,
        request=None,
    ) -> Prescription:
        require_permission(actor, Permission.MEDICATION_UPDATE, require_approved_provider=True)

        rx = _lock(tenant_id=tenant_id, prescription_id=prescription_id)
        _ensure_owner(actor, rx)
        return PrescriptionService._apply_status(actor=actor, rx=rx, status=status, request=request)

    @staticmethod
    def _apply_status(*, actor: Actor, rx: Prescription, status: str, request=None) -> Prescription:
        if status == PrescriptionStatus.CANCELLED:
            raise ValidationError({"status": ["Use cancel to cancel with reason"]})

        event = STATUS_EVENTS.get(status)
        if event is None:
            raise ValidationError({"status": [f"Cannot set status to {status}"]})

        previous = rx.status
        rx.status = transition(previous, event)
        rx.save(update_fields=["status", "updated_at"])

        AuditService.record(
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id=rx.id,
            actor=actor,
            tenant_id=rx.tenant_id,
            request=request,
            metadata=_provenance(rx, from_status=previous, to_status=rx.status),
        )
        log_domain_event(
            "prescription.status_changed",
            entity_type=ENTITY_TYPE,
            entity_id=rx.id,
            from_status=previous,
            to_status=rx.status,
        )

        notifications.notify_status(rx)
        return rx

    @staticmethod
    @transaction.atomic
    def cancel(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        prescription_id: UUID,
        reason: str,
        request=None,
    ) -> tuple[Prescription, bool]:
        """
        Returns (prescription, changed). Cancelling a cancelled prescription is a
        no-op: no write, no audit, no notification.
        """
        require_permission(actor, Permission.MEDICATION_UPDATE, require_approved_provider=True)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": ["Cancellation reason is required."]})

        rx = _lock(tenant_id=tenant_id, prescription_id=prescription_id)
        _ensure_owner(actor, rx)

        if rx.status == PrescriptionStatus.CANCELLED:
            return rx, False

        previous = rx.status
        rx.status = transition(previous, PrescriptionEvent.CANCEL)

        now = timezone.now()
        line = f"[Cancelled {now.isoformat()}] {reason}"
        rx.notes = f"{rx.notes}\n{line}" if rx.notes else line
        rx.end_date = now
        rx.save(update_fields=["status", "notes", "end_date", "updated_at"])

        AuditService.record(
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id=rx.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata=_provenance(rx, from_status=previous, to_status=rx.status),
        )
        log_domain_event("prescription.cancelled", entity_type=ENTITY_TYPE, entity_id=rx.id)

        notifications.notify_cancelled(rx, reason)
        return rx, True

    # ---------------------------------------------------------------------
    # Scheduled jobs
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def expire_prescriptions(
        *,
        now: datetime | None = None,
        tenant_id: UUID | None = None,
        actor: Actor | None = None,
        request=None,
    ) -> int:
        """
        Bulk-expire active prescriptions whose end_date has passed.
        Idempotent: a second run finds nothing to do. Without tenant_id the
        sweep covers every tenant (management command).
        """
        now = now or timezone.now()

        qs = Prescription.objects.filter(status=PrescriptionStatus.ACTIVE, end_date__lt=now)
        if tenant_id is not None:
            qs = qs.filter(tenant_id=tenant_id)

        updated = qs.update(status=PrescriptionStatus.EXPIRED, updated_at=timezone.now())

        AuditService.record(
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id=EXPIRE_JOB_ENTITY_ID,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            source=AuditSource.API if request is not None else AuditSource.SYSTEM,
            metadata={"updated_count": updated, "now": now.isoformat()},
        )
        log_domain_event("prescription.expire_sweep", updated_count=updated)
        return updated
