# backend/cr_core/iam/scope.py
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from rest_framework.exceptions import PermissionDenied, ValidationError

HDR_TENANT = "X-Tenant-Id"

MISSING_SCOPE_MSG = "Missing scope header. Provide X-Tenant-Id."
INVALID_SCOPE_MSG = "Invalid scope header. Provide a valid UUID for X-Tenant-Id."
NOT_MEMBER_MSG = "You do not have access to the selected tenant."


@dataclass(frozen=True)
class Scope:
    tenant_id: UUID


def _get_header(request, name: str) -> str | None:
    headers = getattr(request, "headers", None)
    if headers is not None:
        v = headers.get(name)
        if v:
            return v
    # APIRequestFactory / RequestFactory only populate META
    return request.META.get("HTTP_" + name.upper().replace("-", "_"))


def resolve_scope_from_headers(request) -> Scope | None:
    raw = _get_header(request, HDR_TENANT)
    if not raw:
        return None
    try:
        return Scope(tenant_id=UUID(str(raw)))
    except ValueError:
        raise ValidationError({HDR_TENANT: [INVALID_SCOPE_MSG]})


def is_user_member_of_tenant(user, tenant_id: UUID) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False
    if getattr(user, "is_superuser", False):
        return True

    from cr_core.iam.models import UserProfile
    from cr_core.tenants.models import TenantStatus

    return UserProfile.objects.filter(
        user_id=user.id,
        tenant_id=tenant_id,
        tenant__status=TenantStatus.ACTIVE,
        is_active=True,
    ).exists()


def assert_user_membership(user, scope: Scope) -> None:
    if not is_user_member_of_tenant(user, scope.tenant_id):
        raise PermissionDenied(NOT_MEMBER_MSG)


def apply_scope_from_headers(request, user=None) -> Scope | None:
    """
    If the scope header is present: validate it, verify membership and attach
    request.tenant_id / request.scope. Without the header: no-op.
    """
    scope = resolve_scope_from_headers(request)
    if scope is None:
        return None

    assert_user_membership(user or getattr(request, "user", None), scope)
    request.tenant_id = scope.tenant_id
    request.scope = scope
    return scope


def require_scope(request) -> UUID:
    """
    Tenant id for a scoped endpoint. Prefers what middleware/auth already
    attached; falls back to headers so APIRequestFactory tests still work.
    """
    tenant_id = getattr(request, "tenant_id", None)
    if tenant_id:
        return tenant_id

    scope = resolve_scope_from_headers(request)
    if scope is None:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})

    assert_user_membership(getattr(request, "user", None), scope)
    request.tenant_id = scope.tenant_id
    request.scope = scope
    return scope.tenant_id
