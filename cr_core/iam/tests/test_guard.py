import pytest
from rest_framework.exceptions import ValidationError

from cr_core.common.api.exceptions import Forbidden, Unauthorized
from cr_core.iam.actor import Actor
from cr_core.iam.guard import (
    NO_LINK_MSG,
    NOT_APPROVED_MSG,
    NOT_OWNER_MSG,
    PROVIDER_REQUIRED_MSG,
    ensure_document_owner,
    ensure_patient_access,
    ensure_provider_patient_link,
    is_approved_provider,
    require_draft_or_update,
    require_patient,
    require_permission,
)
from cr_core.iam.models import LinkStatus, ProviderPatientLink
from cr_core.iam.permissions import Permission, Role


def _actor(role, approval=None, user_id=1):
    return Actor(user_id=user_id, role=role, tenant_id=None, provider_approval_status=approval)


@pytest.mark.parametrize(
    "role,approval,expected",
    [
        (Role.PROVIDER, "approved", True),
        (Role.PROVIDER, None, True),
        (Role.PROVIDER, "", True),
        (Role.PROVIDER, "pending", False),
        (Role.PROVIDER, "rejected", False),
        (Role.PROVIDER_PENDING, "approved", False),
        (Role.ADMIN, None, False),
    ],
)
def test_is_approved_provider(role, approval, expected):
    assert is_approved_provider(_actor(role, approval)) is expected


def test_require_permission_without_actor_is_401():
    with pytest.raises(Unauthorized):
        require_permission(None, Permission.PROGRESS_NOTE_READ)


def test_require_permission_role_gap_is_403():
    with pytest.raises(Forbidden) as exc:
        require_permission(_actor(Role.CLERK), Permission.PROGRESS_NOTE_FINALIZE)
    assert str(exc.value.detail) == "Insufficient permissions"


def test_approved_gate_blocks_unapproved_provider():
    with pytest.raises(Forbidden) as exc:
        require_permission(
            _actor(Role.PROVIDER, "reviewing"),
            Permission.PROGRESS_NOTE_FINALIZE,
            require_approved_provider=True,
        )
    assert str(exc.value.detail) == NOT_APPROVED_MSG


def test_approved_gate_lets_admin_through():
    actor = _actor(Role.ADMIN)
    assert require_permission(actor, Permission.MEDICATION_CREATE, require_approved_provider=True) is actor


def test_draft_authoring_needs_create_and_update():
    with pytest.raises(Forbidden):
        require_draft_or_update(_actor(Role.PROVIDER_PENDING))
    require_draft_or_update(_actor(Role.PROVIDER, "approved"))


@pytest.mark.django_db
def test_link_check_pending_vs_approved(tenant, provider_user, patient_user, actor_for):
    actor = actor_for(provider_user)
    link = ProviderPatientLink.objects.create(
        tenant_id=tenant.id,
        provider=provider_user,
        patient=patient_user,
        status=LinkStatus.PENDING,
    )

    with pytest.raises(Forbidden) as exc:
        ensure_provider_patient_link(actor, patient_user.id, tenant_id=tenant.id)
    assert str(exc.value.detail) == NO_LINK_MSG

    link.status = LinkStatus.APPROVED
    link.save(update_fields=["status"])
    ensure_provider_patient_link(actor, patient_user.id, tenant_id=tenant.id)


@pytest.mark.django_db
def test_link_in_other_tenant_does_not_count(tenant, other_tenant, provider_user, patient_user, actor_for):
    ProviderPatientLink.objects.create(
        tenant_id=other_tenant.id,
        provider=provider_user,
        patient=patient_user,
        status=LinkStatus.APPROVED,
    )
    with pytest.raises(Forbidden):
        ensure_provider_patient_link(actor_for(provider_user), patient_user.id, tenant_id=tenant.id)


def test_link_check_requires_patient_id():
    with pytest.raises(ValidationError):
        ensure_provider_patient_link(_actor(Role.PROVIDER), None)


def test_link_check_requires_provider_role():
    with pytest.raises(Forbidden) as exc:
        ensure_provider_patient_link(_actor(Role.CLERK), 5)
    assert str(exc.value.detail) == PROVIDER_REQUIRED_MSG


def test_admin_bypasses_link_check():
    ensure_patient_access(_actor(Role.ADMIN), 42)


def test_document_owner_rules():
    provider = _actor(Role.PROVIDER, user_id=7)
    ensure_document_owner(provider, author_id=7, encounter_provider_id=99)
    ensure_document_owner(provider, author_id=99, encounter_provider_id=7)
    ensure_document_owner(_actor(Role.ADMIN, user_id=1), author_id=2, encounter_provider_id=3)

    with pytest.raises(Forbidden) as exc:
        ensure_document_owner(provider, author_id=8, encounter_provider_id=9)
    assert str(exc.value.detail) == NOT_OWNER_MSG


def test_require_patient_admits_only_patients():
    assert require_patient(_actor(Role.PATIENT)).is_patient

    with pytest.raises(Unauthorized):
        require_patient(None)
    for role in (Role.ADMIN, Role.PROVIDER, Role.CLERK):
        with pytest.raises(Forbidden):
            require_patient(_actor(role))
