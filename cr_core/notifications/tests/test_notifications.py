import pytest

from cr_core.notifications.models import Notification, NotificationCategory, NotificationPriority
from cr_core.notifications.services import NotificationService

pytestmark = pytest.mark.django_db


@pytest.fixture
def inbox(tenant, patient_user, other_patient_user):
    mine = NotificationService.notify(
        tenant_id=tenant.id,
        patient_id=patient_user.id,
        category=NotificationCategory.ALERT,
        title="New Prescription",
        body="Review your instructions.",
        priority=NotificationPriority.HIGH,
        link="/patient/prescriptions",
    )
    NotificationService.notify(tenant_id=tenant.id, patient_id=other_patient_user.id, title="Other")
    return mine


def test_list_own_notifications(client_for, patient_user, inbox):
    r = client_for(patient_user).get("/api/v1/notifications/")
    assert r.status_code == 200, r.data
    assert r.data["count"] == 1
    assert r.data["results"][0]["title"] == "New Prescription"
    assert r.data["results"][0]["priority"] == "high"


def test_mark_read(client_for, patient_user, inbox):
    c = client_for(patient_user)
    r = c.post(f"/api/v1/notifications/{inbox.id}/read/")
    assert r.status_code == 200, r.data
    assert r.data["is_read"] is True
    assert r.data["read_at"] is not None

    unread = c.get("/api/v1/notifications/", {"is_read": "false"})
    assert unread.data["count"] == 0


def test_cannot_read_someone_elses_notification(client_for, other_patient_user, inbox):
    r = client_for(other_patient_user).post(f"/api/v1/notifications/{inbox.id}/read/")
    assert r.status_code == 404
    inbox.refresh_from_db()
    assert inbox.is_read is False


def test_notification_defaults(tenant, patient_user):
    n = NotificationService.notify(tenant_id=tenant.id, patient_id=patient_user.id, title="Hello")
    assert n.category == NotificationCategory.INFO
    assert n.priority == NotificationPriority.MEDIUM
    assert n.link == ""
    assert Notification.objects.filter(recipient=patient_user).count() == 1
