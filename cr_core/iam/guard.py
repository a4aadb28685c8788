# backend/cr_core/iam/guard.py
"""
Access guard: permission checks + provider/patient ownership checks.

Permission (what a role may do) and ownership (whom a provider may do it to)
are separate checks; provider write paths need both.
"""
from __future__ import annotations

from typing import Any

from rest_framework.exceptions import ValidationError

from cr_core.common.api.exceptions import Forbidden, Unauthorized
from cr_core.iam.actor import Actor
from cr_core.iam.models import LinkStatus, ProviderApprovalStatus, ProviderPatientLink
from cr_core.iam.permissions import Permission, Role, has_permission

FORBIDDEN_MSG = "Insufficient permissions"
NOT_APPROVED_MSG = "Provider not approved for this action"
PROVIDER_REQUIRED_MSG = "Provider role required"
NO_LINK_MSG = "No approved provider-patient link"
NOT_OWNER_MSG = "You do not have access to this document."


def is_approved_provider(actor: Actor | None) -> bool:
    """
    Provider role AND approval is 'approved' or was never set
    (accounts created before the approval workflow).
    """
    if actor is None or actor.role != Role.PROVIDER:
        return False
    return actor.provider_approval_status in (None, "", ProviderApprovalStatus.APPROVED)


def require_permission(
    actor: Actor | None,
    permission: str,
    *,
    require_approved_provider: bool = False,
) -> Actor:
    if actor is None:
        raise Unauthorized()
    if not has_permission(actor.role, permission):
        raise Forbidden(FORBIDDEN_MSG)
    if require_approved_provider and not actor.is_admin and not is_approved_provider(actor):
        raise Forbidden(NOT_APPROVED_MSG)
    return actor


def require_patient(actor: Actor | None) -> Actor:
    """Self-service reads: the patient role only, scoped to the caller's own rows."""
    if actor is None:
        raise Unauthorized()
    if not actor.is_patient:
        raise Forbidden(FORBIDDEN_MSG)
    return actor


def require_draft_or_update(actor: Actor | None) -> Actor:
    """Draft authoring needs both create and update on progress notes."""
    if actor is None:
        raise Unauthorized()
    if not (
        has_permission(actor.role, Permission.PROGRESS_NOTE_CREATE)
        and has_permission(actor.role, Permission.PROGRESS_NOTE_UPDATE)
    ):
        raise Forbidden("Provider permission required for draft/update")
    return actor


def has_provider_patient_link(*, tenant_id, provider_id: int, patient_id: int) -> bool:
    return ProviderPatientLink.objects.filter(
        tenant_id=tenant_id,
        provider_id=provider_id,
        patient_id=patient_id,
        status=LinkStatus.APPROVED,
    ).exists()


def ensure_provider_patient_link(actor: Actor | None, patient_id: Any, *, tenant_id=None) -> None:
    """
    Single chokepoint: a provider may only touch a patient's clinical documents
    when an APPROVED link exists between them.
    """
    if actor is None:
        raise Unauthorized()
    if not patient_id:
        raise ValidationError({"patient_id": ["Patient ID required"]})
    if actor.role != Role.PROVIDER:
        raise Forbidden(PROVIDER_REQUIRED_MSG)

    scope_tenant = tenant_id or actor.tenant_id
    if not has_provider_patient_link(tenant_id=scope_tenant, provider_id=actor.user_id, patient_id=patient_id):
        raise Forbidden(NO_LINK_MSG)


def ensure_patient_access(actor: Actor, patient_id: Any, *, tenant_id=None) -> None:
    """
    Write-path ownership: admins act tenant-wide, providers need an approved link.
    """
    if actor.is_admin:
        return
    ensure_provider_patient_link(actor, patient_id, tenant_id=tenant_id)


def is_author_or_encounter_provider_or_admin(
    actor: Actor | None,
    *,
    author_id: int | None,
    encounter_provider_id: int | None,
) -> bool:
    if actor is None:
        return False
    if actor.is_admin:
        return True
    if author_id is not None and author_id == actor.user_id:
        return True
    return encounter_provider_id is not None and encounter_provider_id == actor.user_id


def ensure_document_owner(actor: Actor | None, *, author_id: int | None, encounter_provider_id: int | None) -> None:
    if actor is None:
        raise Unauthorized()
    if not is_author_or_encounter_provider_or_admin(
        actor, author_id=author_id, encounter_provider_id=encounter_provider_id
    ):
        raise Forbidden(NOT_OWNER_MSG)
