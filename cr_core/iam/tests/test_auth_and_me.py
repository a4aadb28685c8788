# backend/cr_core/iam/tests/test_auth_and_me.py
import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from cr_core.iam.permissions import Permission
from cr_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def test_me_requires_auth():
    # Fresh client: the fixtures hand out authenticated ones.
    res = APIClient().get("/api/me/")
    assert res.status_code in (401, 403)


def test_login_sets_cookies(provider_user, settings):
    provider_user.set_password("Pass@12345")
    provider_user.save(update_fields=["password"])

    res = APIClient().post(
        "/api/auth/login/",
        {"username": provider_user.username, "password": "Pass@12345"},
        format="json",
    )
    assert res.status_code == 200

    assert settings.SIMPLE_JWT["AUTH_COOKIE"] in res.cookies
    assert settings.SIMPLE_JWT["AUTH_COOKIE_REFRESH"] in res.cookies


def test_me_reports_role_and_permissions(client_for, provider_user, tenant):
    res = client_for(provider_user, with_scope=False).get("/api/me/")
    assert res.status_code == 200

    body = res.json()
    assert body["user"]["id"] == provider_user.id
    assert body["role"] == "provider"
    assert body["tenant_id"] == str(tenant.id)
    assert body["is_approved_provider"] is True
    assert Permission.PROGRESS_NOTE_FINALIZE in body["permissions"]


def test_me_for_pending_provider(client_for, pending_provider_user):
    body = client_for(pending_provider_user).get("/api/me/").json()
    assert body["is_approved_provider"] is False
    assert Permission.PROGRESS_NOTE_FINALIZE not in body["permissions"]
    assert Permission.PROGRESS_NOTE_READ in body["permissions"]


def test_scope_header_blocks_non_member(provider_user, other_tenant):
    """
    Must NOT use force_authenticate because it bypasses authentication classes.
    Use a real JWT so CookieOrHeaderJWTAuthentication runs and enforces scope.
    """
    client = APIClient()
    access = str(RefreshToken.for_user(provider_user).access_token)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

    res = client.get("/api/me/", **scoped(other_tenant))
    assert res.status_code == 403
