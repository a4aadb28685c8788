# backend/cr_core/audit/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from cr_core.audit.models import AuditEvent

DEFAULT_LIMIT = 200
MAX_LIMIT = 500


def clamp_limit(raw) -> int:
    """Unparseable -> default; otherwise forced into 1..MAX_LIMIT."""
    try:
        n = int(raw) if raw not in (None, "") else DEFAULT_LIMIT
    except (TypeError, ValueError):
        n = DEFAULT_LIMIT
    return max(1, min(n, MAX_LIMIT))


def list_audit_events(
    *,
    tenant_id: UUID,
    entity_type: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    actor_user_id: int | None = None,
    limit: int = DEFAULT_LIMIT,
) -> QuerySet[AuditEvent]:
    """Newest first, at most `limit` rows of one tenant's ledger."""
    filters = {
        "entity_type": entity_type,
        "entity_id": str(entity_id) if entity_id else None,
        "action": action,
    }
    qs = AuditEvent.objects.filter(tenant_id=tenant_id, **{k: v for k, v in filters.items() if v})
    if actor_user_id is not None:
        qs = qs.filter(actor_user_id=actor_user_id)

    return qs.order_by("-occurred_at")[:limit]
