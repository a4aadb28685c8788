import pytest

from cr_core.iam.models import LinkStatus, ProviderPatientLink

pytestmark = pytest.mark.django_db


def test_provider_requests_then_patient_approves(client_for, provider_user, patient_user):
    r = client_for(provider_user).post("/api/v1/links/", {"patient_id": patient_user.id}, format="json")
    assert r.status_code == 201, r.data
    assert r.data["provider_id"] == provider_user.id
    assert r.data["status"] == LinkStatus.PENDING
    link_id = r.data["id"]

    again = client_for(provider_user).post("/api/v1/links/", {"patient_id": patient_user.id}, format="json")
    assert again.status_code == 200, again.data
    assert again.data["id"] == link_id

    a = client_for(patient_user).post(f"/api/v1/links/{link_id}/approve/", format="json")
    assert a.status_code == 200, a.data
    assert a.data["status"] == LinkStatus.APPROVED


def test_list_links_is_limited_to_own_side(client_for, provider_user, other_provider_user, patient_user, tenant):
    ProviderPatientLink.objects.create(tenant_id=tenant.id, provider=provider_user, patient=patient_user)
    ProviderPatientLink.objects.create(tenant_id=tenant.id, provider=other_provider_user, patient=patient_user)

    mine = client_for(provider_user).get("/api/v1/links/")
    assert mine.status_code == 200, mine.data
    assert mine.data["count"] == 1

    patient_view = client_for(patient_user).get("/api/v1/links/")
    assert patient_view.data["count"] == 2


def test_list_links_rejects_unknown_status(client_for, provider_user):
    r = client_for(provider_user).get("/api/v1/links/?status=bogus")
    assert r.status_code == 400


def test_orphans_endpoint(client_for, provider_user, encounter):
    r = client_for(provider_user).get("/api/v1/links/orphans/?days=7")
    assert r.status_code == 200, r.data
    assert r.data["orphan_count"] == 0
    assert r.data["days"] == 7


def test_orphans_endpoint_is_provider_only(client_for, clerk_user):
    r = client_for(clerk_user).get("/api/v1/links/orphans/")
    assert r.status_code == 403
