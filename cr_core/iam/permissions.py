# backend/cr_core/iam/permissions.py
"""
Role -> permission matrix.

The matrix is fixed at deploy time: it is built once at import and exposed
read-only, so every (role, permission) pair can be table-tested.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import FrozenSet, Mapping

from django.db import models


class Role(models.TextChoices):
    PATIENT = "patient", "Patient"
    CLERK = "clerk", "Clerk"
    ADMIN = "admin", "Administrator"
    PROVIDER = "provider", "Provider"
    PROVIDER_PENDING = "provider_pending", "Provider (pending approval)"
    PROVIDER_REVIEWING = "provider_reviewing", "Provider (under review)"


class Permission(models.TextChoices):
    PROGRESS_NOTE_READ = "progress_note.read"
    PROGRESS_NOTE_CREATE = "progress_note.create"
    PROGRESS_NOTE_UPDATE = "progress_note.update"
    PROGRESS_NOTE_FINALIZE = "progress_note.finalize"
    PROGRESS_NOTE_AMEND = "progress_note.amend"

    ENCOUNTER_READ = "encounter.read"
    ENCOUNTER_CREATE = "encounter.create"
    ENCOUNTER_UPDATE = "encounter.update"

    INVESTIGATION_READ = "investigation.read"
    INVESTIGATION_CREATE = "investigation.create"
    INVESTIGATION_UPDATE = "investigation.update"
    INVESTIGATION_REVIEW = "investigation.review"

    CORRESPONDENCE_READ = "correspondence.read"
    CORRESPONDENCE_CREATE = "correspondence.create"
    CORRESPONDENCE_UPDATE = "correspondence.update"
    CORRESPONDENCE_SEND = "correspondence.send"

    MEDICATION_READ = "medication.read"
    MEDICATION_CREATE = "medication.create"
    MEDICATION_UPDATE = "medication.update"


ALL_PERMISSIONS: FrozenSet[str] = frozenset(Permission.values)
READ_PERMISSIONS: FrozenSet[str] = frozenset(p for p in Permission.values if p.endswith(".read"))

ROLE_PERMISSIONS: Mapping[str, FrozenSet[str]] = MappingProxyType(
    {
        Role.ADMIN.value: ALL_PERMISSIONS,
        Role.PROVIDER.value: ALL_PERMISSIONS,
        Role.CLERK.value: READ_PERMISSIONS,
        Role.PROVIDER_PENDING.value: READ_PERMISSIONS,
        Role.PROVIDER_REVIEWING.value: READ_PERMISSIONS,
        Role.PATIENT.value: frozenset(),
    }
)

# Roles that belong to the provider onboarding track (approved or not).
PROVIDER_TRACK_ROLES: FrozenSet[str] = frozenset(
    {Role.PROVIDER.value, Role.PROVIDER_PENDING.value, Role.PROVIDER_REVIEWING.value}
)


def has_permission(role: str | None, permission: str) -> bool:
    if not role:
        return False
    return permission in ROLE_PERMISSIONS.get(str(role), frozenset())


def permissions_for(role: str | None) -> list[str]:
    if not role:
        return []
    return sorted(ROLE_PERMISSIONS.get(str(role), frozenset()))
