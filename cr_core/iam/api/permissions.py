# backend/cr_core/iam/api/permissions.py

from __future__ import annotations

from rest_framework.permissions import BasePermission

from cr_core.iam.actor import Actor, resolve_actor
from cr_core.iam.guard import require_patient, require_permission


def get_actor(request) -> Actor | None:
    """Resolve (once per request) the Actor behind request.user."""
    cached = getattr(request, "_cr_actor", None)
    if cached is not None:
        return cached
    actor = resolve_actor(getattr(request, "user", None))
    if actor is not None:
        request._cr_actor = actor
    return actor


class ClinicalPermission(BasePermission):
    """
    Maps each ViewSet action to one entry of the permission matrix.

    Views declare:
        required_permissions = {"list": Permission.PROGRESS_NOTE_READ, ...}
        approved_provider_actions = {"finalize", ...}

        patient_self_actions = {"mine", ...}

    Patient self-service actions admit only the patient role; the service
    narrows them to the caller's own rows. Unknown actions are denied.
    Ownership checks (links, authorship) run in the service layer, not here.
    """
    message = "Insufficient permissions"

    def has_permission(self, request, view) -> bool:
        action = getattr(view, "action", None)
        if action in (getattr(view, "patient_self_actions", None) or set()):
            require_patient(get_actor(request))
            return True

        required = (getattr(view, "required_permissions", None) or {}).get(action)
        if required is None:
            return False

        approved_only = action in (getattr(view, "approved_provider_actions", None) or set())
        require_permission(get_actor(request), required, require_approved_provider=approved_only)
        return True
