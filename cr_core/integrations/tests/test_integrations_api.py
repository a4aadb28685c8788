from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from cr_core.integrations.models import IntegrationError, IntegrationErrorStatus
from cr_core.integrations.services import enqueue_failure

pytestmark = pytest.mark.django_db

PROCESSOR = "cr_core.integrations.tests.processors.resolve_ok"


@pytest.fixture
def due_error(tenant, patient_user):
    return enqueue_failure(
        tenant_id=tenant.id,
        patient_id=patient_user.id,
        payload={"resourceType": "Observation"},
        error_message="unmapped",
        now=timezone.now() - timedelta(hours=1),
    )


def test_list_errors_for_linked_provider(client_for, provider_user, other_provider_user, approved_link, due_error):
    r = client_for(provider_user).get("/api/v1/integrations/errors/")
    assert r.status_code == 200, r.data
    assert r.data["count"] == 1
    assert r.data["results"][0]["status"] == "pending"

    assert client_for(other_provider_user).get("/api/v1/integrations/errors/").data["count"] == 0


def test_retry_endpoint(client_for, provider_user, patient_user, approved_link, due_error, settings):
    settings.INTEGRATION_RETRY_PROCESSOR = PROCESSOR

    r = client_for(provider_user).post(
        "/api/v1/integrations/errors/retry/", {"patient_id": patient_user.id, "limit": 5}, format="json"
    )
    assert r.status_code == 200, r.data
    assert r.data["processed"] == 1
    assert r.data["resolved"] == 1

    due_error.refresh_from_db()
    assert due_error.status == IntegrationErrorStatus.RESOLVED


def test_retry_endpoint_without_processor_is_503(client_for, provider_user, patient_user, approved_link, settings):
    settings.INTEGRATION_RETRY_PROCESSOR = None
    r = client_for(provider_user).post(
        "/api/v1/integrations/errors/retry/", {"patient_id": patient_user.id}, format="json"
    )
    assert r.status_code == 503
    assert r.data["error"]["code"] == "service_unavailable"


def test_retry_endpoint_rejects_big_limit(client_for, provider_user, patient_user, approved_link):
    r = client_for(provider_user).post(
        "/api/v1/integrations/errors/retry/", {"patient_id": patient_user.id, "limit": 51}, format="json"
    )
    assert r.status_code == 400


def test_retry_requires_link(client_for, provider_user, other_patient_user, settings):
    settings.INTEGRATION_RETRY_PROCESSOR = PROCESSOR
    r = client_for(provider_user).post(
        "/api/v1/integrations/errors/retry/", {"patient_id": other_patient_user.id}, format="json"
    )
    assert r.status_code == 403


def test_clerk_can_list_but_not_retry(client_for, clerk_user, patient_user, due_error):
    c = client_for(clerk_user)
    assert c.get("/api/v1/integrations/errors/").data["count"] == 1
    assert c.post("/api/v1/integrations/errors/retry/", {"patient_id": patient_user.id}, format="json").status_code == 403


def test_retry_command(tenant, due_error, settings):
    settings.INTEGRATION_RETRY_PROCESSOR = PROCESSOR
    out = StringIO()
    call_command("retry_integration_errors", "--tenant-id", str(tenant.id), stdout=out)

    assert "1 resolved" in out.getvalue()
    assert IntegrationError.objects.get(id=due_error.id).status == IntegrationErrorStatus.RESOLVED


def test_retry_command_without_processor(settings):
    settings.INTEGRATION_RETRY_PROCESSOR = None
    with pytest.raises(CommandError):
        call_command("retry_integration_errors")
