import json

import pytest
from django.contrib.auth.models import AnonymousUser, User
from django.test import RequestFactory

from cr_core.common.middleware import TenantScopeMiddleware


@pytest.mark.django_db
def test_middleware_invalid_scope_returns_error_envelope():
    rf = RequestFactory()
    req = rf.get("/api/v1/progress-notes/", HTTP_X_TENANT_ID="not-a-uuid")
    req.user = User.objects.create_user(username="u2", password="pass123")

    mw = TenantScopeMiddleware(get_response=lambda r: None)
    resp = mw.process_request(req)

    assert resp is not None
    assert resp.status_code == 400

    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "validation_error"
    assert "Invalid scope header" in body["error"]["message"]


def test_middleware_invalid_scope_rejected_before_authentication():
    rf = RequestFactory()
    req = rf.get("/api/v1/prescriptions/", HTTP_X_TENANT_ID="nope")
    req.user = AnonymousUser()

    resp = TenantScopeMiddleware(get_response=lambda r: None).process_request(req)
    assert resp is not None
    assert resp.status_code == 400


@pytest.mark.django_db
def test_middleware_non_member_returns_403_envelope(tenant, other_tenant, make_user):
    from cr_core.iam.permissions import Role

    user = make_user("outsider", Role.PROVIDER, tenant_obj=other_tenant)

    rf = RequestFactory()
    req = rf.get("/api/v1/progress-notes/", HTTP_X_TENANT_ID=str(tenant.id))
    req.user = user

    resp = TenantScopeMiddleware(get_response=lambda r: None).process_request(req)

    assert resp is not None
    assert resp.status_code == 403

    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "permission_denied"
    assert "do not have access" in body["error"]["message"].lower()


@pytest.mark.django_db
def test_middleware_member_gets_scope_attached(tenant, provider_user):
    rf = RequestFactory()
    req = rf.get("/api/v1/progress-notes/", HTTP_X_TENANT_ID=str(tenant.id))
    req.user = provider_user

    resp = TenantScopeMiddleware(get_response=lambda r: None).process_request(req)

    assert resp is None
    assert req.tenant_id == tenant.id
    assert req.scope.tenant_id == tenant.id


@pytest.mark.django_db
@pytest.mark.parametrize("path", ["/api/v1/auth/login/", "/api/schema/", "/admin/login/", "/api/v1/me/"])
def test_middleware_skips_unscoped_paths(path):
    rf = RequestFactory()
    req = rf.get(path)
    req.user = User.objects.create_user(username="u4", password="pass123")

    assert TenantScopeMiddleware(get_response=lambda r: None).process_request(req) is None


@pytest.mark.django_db
def test_middleware_rejects_suspended_tenant(tenant, provider_user):
    from cr_core.tenants.models import TenantStatus

    tenant.status = TenantStatus.SUSPENDED
    tenant.save(update_fields=["status"])

    rf = RequestFactory()
    req = rf.get("/api/v1/prescriptions/", HTTP_X_TENANT_ID=str(tenant.id))
    req.user = provider_user

    resp = TenantScopeMiddleware(get_response=lambda r: None).process_request(req)
    assert resp is not None
    assert resp.status_code == 403
