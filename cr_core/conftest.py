# backend/cr_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from cr_core.iam.actor import resolve_actor
from cr_core.iam.models import LinkStatus, ProviderApprovalStatus, ProviderPatientLink, UserProfile
from cr_core.iam.permissions import Role
from cr_core.tenants.models import Tenant
from cr_core.tests.helpers import scoped


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(code="test-tenant", name="Test Tenant")


@pytest.fixture
def other_tenant(db):
    return Tenant.objects.create(code="other-tenant", name="Other Tenant")


@pytest.fixture
def make_user(db, tenant):
    """
    make_user("dr", Role.PROVIDER, approval=ProviderApprovalStatus.APPROVED)
      auth_user -> UserProfile(tenant, role)
    """
    User = get_user_model()

    def _make(username, role, *, approval=None, tenant_obj=None):
        user = User.objects.create_user(username=username, password="testpass", is_active=True)
        UserProfile.objects.create(
            user=user,
            tenant=tenant_obj or tenant,
            role=role,
            provider_approval_status=approval,
            is_active=True,
        )
        return user

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user("admin", Role.ADMIN)


@pytest.fixture
def clerk_user(make_user):
    return make_user("clerk", Role.CLERK)


@pytest.fixture
def provider_user(make_user):
    return make_user("dr_approved", Role.PROVIDER, approval=ProviderApprovalStatus.APPROVED)


@pytest.fixture
def other_provider_user(make_user):
    return make_user("dr_other", Role.PROVIDER, approval=ProviderApprovalStatus.APPROVED)


@pytest.fixture
def pending_provider_user(make_user):
    return make_user("dr_pending", Role.PROVIDER_PENDING, approval=ProviderApprovalStatus.PENDING)


@pytest.fixture
def patient_user(make_user):
    return make_user("patient", Role.PATIENT)


@pytest.fixture
def other_patient_user(make_user):
    return make_user("patient_other", Role.PATIENT)


@pytest.fixture
def actor_for():
    def _actor(user):
        user.refresh_from_db()
        return resolve_actor(user)

    return _actor


@pytest.fixture
def approved_link(tenant, provider_user, patient_user):
    return ProviderPatientLink.objects.create(
        tenant_id=tenant.id,
        provider=provider_user,
        patient=patient_user,
        status=LinkStatus.APPROVED,
        approved_at=timezone.now(),
    )


@pytest.fixture
def encounter(tenant, provider_user, patient_user, approved_link):
    from cr_core.encounters.models import Encounter

    return Encounter.objects.create(tenant_id=tenant.id, provider=provider_user, patient=patient_user)


@pytest.fixture
def client_for(tenant):
    """APIClient authenticated as `user`, with the tenant scope header preset."""

    def _client(user, *, with_scope=True):
        c = APIClient()
        c.force_authenticate(user=user)
        if with_scope:
            c.credentials(**scoped(tenant))
        return c

    return _client


@pytest.fixture
def api_client(client_for, provider_user):
    return client_for(provider_user)
