import pytest

from cr_core.audit.models import AuditAction, AuditEvent

pytestmark = pytest.mark.django_db


def _event(tenant, **kw):
    defaults = {"action": AuditAction.VIEW, "entity_type": "progress_note", "entity_id": "list"}
    defaults.update(kw)
    return AuditEvent.objects.create(tenant_id=tenant.id, **defaults)


def test_admin_lists_tenant_events(client_for, admin_user, tenant, other_tenant):
    _event(tenant)
    _event(tenant, action=AuditAction.CREATE, entity_id="abc")
    AuditEvent.objects.create(tenant_id=other_tenant.id, action=AuditAction.VIEW, entity_type="x", entity_id="1")

    r = client_for(admin_user).get("/api/v1/audit/events/")
    assert r.status_code == 200, r.data
    assert len(r.data) == 2

    only_create = client_for(admin_user).get("/api/v1/audit/events/?action=create")
    assert [e["entity_id"] for e in only_create.data] == ["abc"]


def test_limit_is_clamped(client_for, admin_user, tenant):
    for i in range(3):
        _event(tenant, entity_id=str(i))

    r = client_for(admin_user).get("/api/v1/audit/events/?limit=0")
    assert len(r.data) == 1


def test_non_admin_is_forbidden(client_for, provider_user):
    r = client_for(provider_user).get("/api/v1/audit/events/")
    assert r.status_code == 403


def test_invalid_action_filter(client_for, admin_user):
    r = client_for(admin_user).get("/api/v1/audit/events/?action=delete")
    assert r.status_code == 400


@pytest.mark.parametrize("raw,expected", [(None, 200), ("", 200), ("abc", 200), ("0", 1), ("50", 50), ("9999", 500)])
def test_clamp_limit(raw, expected):
    from cr_core.audit.selectors import clamp_limit

    assert clamp_limit(raw) == expected
