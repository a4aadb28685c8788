from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from cr_core.audit.models import AuditEvent, AuditSource
from cr_core.common.api.exceptions import ConflictError, Forbidden
from cr_core.notifications.models import Notification, NotificationCategory, NotificationPriority
from cr_core.prescriptions.models import Prescription, PrescriptionStatus
from cr_core.prescriptions.services import PrescriptionService
from cr_core.prescriptions.state import IllegalTransition, PrescriptionEvent, transition

pytestmark = pytest.mark.django_db


def _data(**overrides):
    data = {
        "medication_name": "Varenicline",
        "dosage": "1 mg",
        "frequency": "twice daily",
        "duration": "12 weeks",
        "quantity": 56,
        "refills": 1,
        "instructions": "Take after meals",
        "start_date": timezone.now(),
    }
    data.update(overrides)
    return data


@pytest.fixture
def provider(provider_user, actor_for):
    return actor_for(provider_user)


@pytest.fixture
def active_rx(tenant, provider, patient_user, approved_link):
    rx, _ = PrescriptionService.create(
        actor=provider,
        tenant_id=tenant.id,
        patient_id=patient_user.id,
        data=_data(),
        status=PrescriptionStatus.ACTIVE,
    )
    return rx


def test_state_machine():
    assert transition(PrescriptionStatus.DRAFT, PrescriptionEvent.ACTIVATE) == PrescriptionStatus.ACTIVE
    assert transition(PrescriptionStatus.ACTIVE, PrescriptionEvent.EXPIRE) == PrescriptionStatus.EXPIRED
    assert transition(PrescriptionStatus.CANCELLED, PrescriptionEvent.CANCEL) == PrescriptionStatus.CANCELLED
    with pytest.raises(IllegalTransition):
        transition(PrescriptionStatus.COMPLETED, PrescriptionEvent.ACTIVATE)
    with pytest.raises(IllegalTransition):
        transition(PrescriptionStatus.DRAFT, PrescriptionEvent.COMPLETE)


def test_create_active_notifies_patient(active_rx, patient_user, provider_user):
    assert active_rx.status == PrescriptionStatus.ACTIVE
    assert active_rx.provider_id == provider_user.id

    n = Notification.objects.get(recipient=patient_user)
    assert n.title == "New Prescription"
    assert n.category == NotificationCategory.ALERT
    assert n.priority == NotificationPriority.HIGH
    assert n.link == "/patient/prescriptions"
    assert "prescribed Varenicline" in n.body

    ev = AuditEvent.objects.get(entity_type="prescription", entity_id=str(active_rx.id))
    assert "instructions" not in ev.metadata


def test_create_draft_does_not_notify(tenant, provider, patient_user, approved_link):
    rx, warnings = PrescriptionService.create(
        actor=provider, tenant_id=tenant.id, patient_id=patient_user.id, data=_data()
    )
    assert rx.status == PrescriptionStatus.DRAFT
    assert warnings == []
    assert not Notification.objects.exists()


def test_unsafe_varenicline_dose_is_rejected(tenant, provider, patient_user, approved_link):
    with pytest.raises(ValidationError) as exc:
        PrescriptionService.create(
            actor=provider, tenant_id=tenant.id, patient_id=patient_user.id, data=_data(dosage="2 mg")
        )
    assert exc.value.detail["dosage"] == ["Unsafe dosage for Varenicline: max 1 mg per dose"]
    assert not Prescription.objects.exists()


def test_end_before_start_is_rejected(tenant, provider, patient_user, approved_link):
    start = timezone.now()
    with pytest.raises(ValidationError):
        PrescriptionService.create(
            actor=provider,
            tenant_id=tenant.id,
            patient_id=patient_user.id,
            data=_data(start_date=start, end_date=start - timedelta(days=1)),
        )


def test_duplicate_medication_warns(active_rx, tenant, provider, patient_user):
    _, warnings = PrescriptionService.create(
        actor=provider, tenant_id=tenant.id, patient_id=patient_user.id, data=_data()
    )
    assert len(warnings) == 1
    assert "already has an active prescription for Varenicline" in warnings[0]


def test_create_requires_link(tenant, provider, other_patient_user):
    with pytest.raises(Forbidden):
        PrescriptionService.create(actor=provider, tenant_id=tenant.id, patient_id=other_patient_user.id, data=_data())


def test_complete_notifies_info(active_rx, tenant, provider, patient_user):
    rx = PrescriptionService.update_status(
        actor=provider, tenant_id=tenant.id, prescription_id=active_rx.id, status=PrescriptionStatus.COMPLETED
    )
    assert rx.status == PrescriptionStatus.COMPLETED

    n = Notification.objects.get(recipient=patient_user, title="Prescription Completed")
    assert n.category == NotificationCategory.INFO
    assert n.priority == NotificationPriority.MEDIUM
    assert n.body == "Varenicline is now completed."

    with pytest.raises(ConflictError):
        PrescriptionService.update(
            actor=provider, tenant_id=tenant.id, prescription_id=active_rx.id, changes={"dosage": "0.5 mg"}
        )


def test_status_cannot_cancel(active_rx, tenant, provider):
    with pytest.raises(ValidationError):
        PrescriptionService.update_status(
            actor=provider, tenant_id=tenant.id, prescription_id=active_rx.id, status=PrescriptionStatus.CANCELLED
        )


def test_update_fields_and_status_together(tenant, provider, patient_user, approved_link):
    rx, _ = PrescriptionService.create(actor=provider, tenant_id=tenant.id, patient_id=patient_user.id, data=_data())

    rx = PrescriptionService.update(
        actor=provider,
        tenant_id=tenant.id,
        prescription_id=rx.id,
        changes={"dosage": "0.5 mg", "status": PrescriptionStatus.ACTIVE},
    )
    assert rx.dosage == "0.5 mg"
    assert rx.status == PrescriptionStatus.ACTIVE
    assert Notification.objects.filter(title="New Prescription").count() == 1


def test_cancel_is_idempotent(active_rx, tenant, provider, patient_user):
    rx, changed = PrescriptionService.cancel(
        actor=provider, tenant_id=tenant.id, prescription_id=active_rx.id, reason="Side effects"
    )
    assert changed is True
    assert rx.status == PrescriptionStatus.CANCELLED
    assert rx.end_date is not None
    assert rx.notes.startswith("[Cancelled ")
    assert rx.notes.endswith("] Side effects")

    audits = AuditEvent.objects.filter(entity_id=str(active_rx.id)).count()
    notes = rx.notes

    again, changed_again = PrescriptionService.cancel(
        actor=provider, tenant_id=tenant.id, prescription_id=active_rx.id, reason="Again"
    )
    assert changed_again is False
    assert again.notes == notes
    assert AuditEvent.objects.filter(entity_id=str(active_rx.id)).count() == audits
    assert Notification.objects.filter(title="Prescription Cancelled").count() == 1


def test_cancel_requires_reason(active_rx, tenant, provider):
    with pytest.raises(ValidationError):
        PrescriptionService.cancel(actor=provider, tenant_id=tenant.id, prescription_id=active_rx.id, reason=" ")


def test_only_prescriber_may_write(active_rx, tenant, other_provider_user, actor_for):
    with pytest.raises(Forbidden):
        PrescriptionService.cancel(
            actor=actor_for(other_provider_user), tenant_id=tenant.id, prescription_id=active_rx.id, reason="x"
        )


def test_expire_sweep(tenant, provider_user, patient_user):
    def rx(status, end_date):
        return Prescription.objects.create(
            tenant_id=tenant.id,
            patient=patient_user,
            provider=provider_user,
            medication_name="Bupropion",
            dosage="150 mg",
            frequency="daily",
            duration="7 weeks",
            instructions="morning",
            status=status,
            start_date=datetime(2024, 1, 1, tzinfo=dt_timezone.utc),
            end_date=end_date,
        )

    jan_1 = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)
    past = rx(PrescriptionStatus.ACTIVE, jan_1)
    completed = rx(PrescriptionStatus.COMPLETED, jan_1)
    cancelled = rx(PrescriptionStatus.CANCELLED, jan_1)
    future = rx(PrescriptionStatus.ACTIVE, datetime(2024, 3, 1, tzinfo=dt_timezone.utc))
    open_ended = rx(PrescriptionStatus.ACTIVE, None)
    draft = rx(PrescriptionStatus.DRAFT, datetime(2024, 1, 15, tzinfo=dt_timezone.utc))

    now = datetime(2024, 2, 1, tzinfo=dt_timezone.utc)
    assert PrescriptionService.expire_prescriptions(now=now, tenant_id=tenant.id) == 1

    past.refresh_from_db()
    future.refresh_from_db()
    open_ended.refresh_from_db()
    draft.refresh_from_db()
    completed.refresh_from_db()
    cancelled.refresh_from_db()
    assert past.status == PrescriptionStatus.EXPIRED
    assert future.status == PrescriptionStatus.ACTIVE
    assert open_ended.status == PrescriptionStatus.ACTIVE
    assert draft.status == PrescriptionStatus.DRAFT
    assert completed.status == PrescriptionStatus.COMPLETED
    assert cancelled.status == PrescriptionStatus.CANCELLED

    assert PrescriptionService.expire_prescriptions(now=now, tenant_id=tenant.id) == 0

    first_run = AuditEvent.objects.filter(entity_id="prescriptions_expire_job").order_by("occurred_at").first()
    assert first_run.source == AuditSource.SYSTEM
    assert first_run.metadata["updated_count"] == 1


def test_cancel_without_reason_reports_field_list(active_rx, tenant, provider):
    with pytest.raises(ValidationError) as exc:
        PrescriptionService.cancel(actor=provider, tenant_id=tenant.id, prescription_id=active_rx.id, reason="  ")
    assert exc.value.detail["reason"] == ["Cancellation reason is required."]


def test_patient_self_view_lists_own_rows_with_one_audit(active_rx, tenant, patient_user, other_patient_user, actor_for):
    patient = actor_for(patient_user)

    rows = list(PrescriptionService.list_own(actor=patient, tenant_id=tenant.id))
    assert [r.id for r in rows] == [active_rx.id]
    assert AuditEvent.objects.filter(entity_type="prescription", entity_id="list", action="view").count() == 1

    assert PrescriptionService.get_own(actor=patient, tenant_id=tenant.id, prescription_id=active_rx.id) == active_rx

    other = actor_for(other_patient_user)
    assert list(PrescriptionService.list_own(actor=other, tenant_id=tenant.id)) == []


def test_patient_self_view_rejects_other_roles(tenant, provider):
    with pytest.raises(Forbidden):
        PrescriptionService.list_own(actor=provider, tenant_id=tenant.id)
