# backend/cr_core/iam/actor.py
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from cr_core.iam.permissions import PROVIDER_TRACK_ROLES, Role


@dataclass(frozen=True)
class Actor:
    """
    Authenticated identity as seen by the access guard.
    Resolved once per request; the role does not change while it is handled.
    """
    user_id: int
    role: str
    tenant_id: UUID | None
    provider_approval_status: str | None = None
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_clerk(self) -> bool:
        return self.role == Role.CLERK

    @property
    def is_patient(self) -> bool:
        return self.role == Role.PATIENT

    @property
    def is_provider(self) -> bool:
        return self.role == Role.PROVIDER

    @property
    def is_on_provider_track(self) -> bool:
        return self.role in PROVIDER_TRACK_ROLES


def resolve_actor(user) -> Actor | None:
    """
    Build an Actor from a Django user.

    - anonymous / missing user / deactivated profile -> None
    - superuser -> admin (tenant from profile if any)
    - no profile -> patient without tenant (holds no permissions anyway)
    """
    if not user or not getattr(user, "is_authenticated", False):
        return None

    from cr_core.iam.models import UserProfile

    try:
        profile = user.cr_profile
    except UserProfile.DoesNotExist:
        profile = None

    if profile is not None and not profile.is_active:
        return None

    role = profile.role if profile is not None else Role.PATIENT
    if getattr(user, "is_superuser", False):
        role = Role.ADMIN

    return Actor(
        user_id=user.id,
        role=str(role),
        tenant_id=profile.tenant_id if profile is not None else None,
        provider_approval_status=profile.provider_approval_status if profile is not None else None,
        email=getattr(user, "email", "") or "",
    )
