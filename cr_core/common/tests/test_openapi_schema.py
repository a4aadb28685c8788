import pytest
from rest_framework.test import APIClient

pytestmark = pytest.mark.django_db


def test_schema_lists_only_v1_paths_with_tenant_header():
    res = APIClient().get("/api/schema/", HTTP_ACCEPT="application/json")
    assert res.status_code == 200

    schema = res.json()
    paths = schema["paths"]
    assert "/api/v1/progress-notes/{id}/finalize/" in paths
    assert not any(p.startswith("/api/") and not p.startswith("/api/v1/") for p in paths)

    params = paths["/api/v1/prescriptions/"]["get"]["parameters"]
    assert any(p["name"] == "X-Tenant-Id" and p["in"] == "header" for p in params)

    me_params = paths["/api/v1/me/"]["get"].get("parameters", [])
    assert not any(p["name"] == "X-Tenant-Id" for p in me_params)
