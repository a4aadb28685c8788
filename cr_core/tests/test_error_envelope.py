import json

import pytest
from django.contrib.auth.models import User
from django.test import RequestFactory
from rest_framework.test import APIClient

from cr_core.common.middleware import TenantScopeMiddleware
from cr_core.tests.helpers import scoped


@pytest.mark.django_db
def test_middleware_missing_scope_returns_error_envelope():
    rf = RequestFactory()
    req = rf.get("/api/v1/progress-notes/")

    # A real User instance is authenticated; no need (and not allowed) to set is_authenticated.
    req.user = User.objects.create_user(username="u1", password="pass123")

    mw = TenantScopeMiddleware(get_response=lambda r: None)
    resp = mw.process_request(req)

    assert resp is not None
    assert resp.status_code == 400

    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "validation_error"
    assert "Missing scope header" in body["error"]["message"]
    assert body["error"]["request_id"]


@pytest.mark.django_db
def test_service_conflict_renders_409_envelope(client_for, provider_user, tenant, encounter):
    from cr_core.progress_notes.models import NoteStatus, ProgressNote

    note = ProgressNote.objects.create(
        tenant_id=tenant.id,
        encounter=encounter,
        patient=encounter.patient,
        author=provider_user,
        status=NoteStatus.FINALIZED,
        signature_hash="x" * 16,
    )

    res = client_for(provider_user).patch(
        f"/api/v1/progress-notes/{note.id}/", {"plan": "changed"}, format="json"
    )
    assert res.status_code == 409, res.data
    assert res.data["error"]["code"] == "conflict"
    assert "immutable" in res.data["error"]["message"]


@pytest.mark.django_db
def test_unknown_notification_is_404_envelope(client_for, patient_user):
    res = client_for(patient_user).post(
        "/api/v1/notifications/00000000-0000-0000-0000-000000000000/read/", format="json"
    )
    assert res.status_code == 404, res.data
    assert res.data["error"]["code"] == "not_found"


@pytest.mark.django_db
def test_validation_error_details_are_field_keyed(client_for, provider_user, approved_link):
    res = client_for(provider_user).post("/api/v1/encounters/", {}, format="json")
    assert res.status_code == 400, res.data
    assert res.data["error"]["code"] == "validation_error"
    assert "patient_id" in res.data["error"]["details"]


def test_unauthenticated_request_is_401_or_403(tenant):
    res = APIClient().get("/api/v1/progress-notes/", **scoped(tenant))
    assert res.status_code in (401, 403)
    assert "error" in res.json()
