# backend/cr_core/audit/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from cr_core.audit.models import AuditAction, AuditEvent, AuditSource
from cr_core.common.logging import SENSITIVE_FIELDS
from cr_core.iam.actor import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    action: str
    entity_type: str
    entity_id: str
    tenant_id: UUID | None
    actor_user_id: int | None
    actor_role: str
    metadata: Dict[str, Any]


def client_ip(request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket address."""
    if request is None:
        return ""
    meta = getattr(request, "META", {}) or {}
    forwarded = meta.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return meta.get("HTTP_X_REAL_IP") or meta.get("REMOTE_ADDR") or ""


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, date)):
        return value.isoformat() if isinstance(value, date) else str(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def strip_clinical_text(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys that name clinical free text; provenance must stay non-clinical."""
    cleaned: Dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if str(key).lower() in SENSITIVE_FIELDS:
            continue
        cleaned[key] = strip_clinical_text(value) if isinstance(value, dict) else _jsonable(value)
    return cleaned


def build_provenance_metadata(actor: Actor | None, **extra: Any) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "actor_id": actor.user_id if actor else None,
        "actor_role": actor.role if actor else None,
        "timestamp": timezone.now().isoformat(),
    }
    if actor is not None and actor.provider_approval_status:
        meta["provider_approval_status"] = actor.provider_approval_status
    meta.update({k: v for k, v in extra.items() if v is not None})
    return meta


class AuditService:
    """
    Central audit writer (append-only).

    Default is best effort: a failing write is logged and swallowed so the
    clinical action still succeeds. With settings.AUDIT_STRICT the failure
    propagates and rolls back the caller's transaction.
    """

    @staticmethod
    def is_strict() -> bool:
        return bool(getattr(settings, "AUDIT_STRICT", False))

    @staticmethod
    def record(
        *,
        action: str,
        entity_type: str,
        entity_id: Any,
        actor: Actor | None,
        tenant_id: UUID | None = None,
        metadata: Optional[Dict[str, Any]] = None,
        request=None,
        source: str = AuditSource.API,
    ) -> AuditRecord | None:
        if action not in AuditAction.values:
            raise ValueError(f"Unknown audit action: {action}")

        meta = strip_clinical_text(build_provenance_metadata(actor, **(metadata or {})))
        tenant = tenant_id or (actor.tenant_id if actor else None)
        actor_user_id = actor.user_id if actor else None
        actor_role = actor.role if actor else ""

        try:
            # Own savepoint: a failed insert must not poison the caller's transaction.
            with transaction.atomic():
                AuditEvent.objects.create(
                    tenant_id=tenant,
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    actor_user_id=actor_user_id,
                    actor_role=actor_role,
                    source=source,
                    ip_address=client_ip(request),
                    metadata=meta,
                )
        except Exception:
            if AuditService.is_strict():
                raise
            logger.exception(
                "Audit write failed",
                extra={"audit_action": action, "entity_type": entity_type, "entity_id": str(entity_id)},
            )
            return None

        return AuditRecord(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            tenant_id=tenant,
            actor_user_id=actor_user_id,
            actor_role=actor_role,
            metadata=meta,
        )
