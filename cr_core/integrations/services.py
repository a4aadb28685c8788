# backend/cr_core/integrations/services.py
"""
Retry queue for failed inbound integrations.

Backoff: 15 min * 2^min(retry_count, 5) -> 15, 30, 60, 120, 240, 480 minutes.

The mapping itself (FHIR -> investigation result) is a pluggable processor:
a callable taking the IntegrationError row, configured by dotted path in
settings.INTEGRATION_RETRY_PROCESSOR. It may return the id of the entity it
created; any exception counts as a failed attempt.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.module_loading import import_string

from cr_core.audit.models import AuditAction, AuditSource
from cr_core.audit.services import AuditService
from cr_core.common.logging import log_domain_event
from cr_core.iam.actor import Actor
from cr_core.integrations.models import RETRYABLE_STATUSES, IntegrationError, IntegrationErrorStatus

logger = logging.getLogger(__name__)

Processor = Callable[[IntegrationError], Any]

BASE_DELAY = timedelta(minutes=15)
MAX_BACKOFF_EXPONENT = 5
MAX_BATCH_LIMIT = 50
DEFAULT_BATCH_LIMIT = 10


def retry_delay(retry_count: int) -> timedelta:
    return BASE_DELAY * (2 ** min(max(int(retry_count), 0), MAX_BACKOFF_EXPONENT))


def load_processor() -> Processor:
    path = getattr(settings, "INTEGRATION_RETRY_PROCESSOR", None)
    if not path:
        raise ImproperlyConfigured("INTEGRATION_RETRY_PROCESSOR is not configured.")
    return import_string(path)


def default_batch_limit() -> int:
    return int(getattr(settings, "INTEGRATION_RETRY_BATCH_LIMIT", DEFAULT_BATCH_LIMIT) or DEFAULT_BATCH_LIMIT)


@dataclass
class RetryOutcome:
    id: str
    status: str
    retry_count: int
    next_retry_at: str | None = None
    error: str | None = None


@dataclass
class RetrySummary:
    processed: int = 0
    resolved: int = 0
    failed: int = 0
    details: list[RetryOutcome] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def enqueue_failure(
    *,
    tenant_id: UUID,
    patient_id: int,
    payload: dict,
    error_message: str,
    order_id: UUID | None = None,
    source: str | None = None,
    entity_type: str = "investigation_result",
    now: datetime | None = None,
) -> IntegrationError:
    """Entry point for the external ingestion collaborator (e.g. the FHIR mapper) to park a failed payload."""
    now = now or timezone.now()
    row = IntegrationError.objects.create(
        tenant_id=tenant_id,
        patient_id=patient_id,
        order_id=order_id,
        entity_type=entity_type,
        source=source or "",
        payload=payload or {},
        error_message=error_message or "",
        retry_count=0,
        status=IntegrationErrorStatus.PENDING,
        next_retry_at=now + retry_delay(0),
    )
    logger.warning(
        "Integration failure queued",
        extra={"integration_error_id": str(row.id), "entity_type": entity_type, "source": row.source},
    )
    return row


def _eligible(*, now: datetime, tenant_id: UUID | None, patient_id: int | None):
    qs = IntegrationError.objects.filter(status__in=RETRYABLE_STATUSES).filter(
        Q(next_retry_at__isnull=True) | Q(next_retry_at__lte=now)
    )
    if tenant_id is not None:
        qs = qs.filter(tenant_id=tenant_id)
    if patient_id is not None:
        qs = qs.filter(patient_id=patient_id)
    return qs.order_by("next_retry_at", "created_at")


def _claim(row_id: UUID, *, now: datetime) -> IntegrationError | None:
    """Lock the row, re-check it is still due, mark it retrying."""
    with transaction.atomic():
        row = (
            IntegrationError.objects.select_for_update()
            .filter(id=row_id, status__in=RETRYABLE_STATUSES)
            .filter(Q(next_retry_at__isnull=True) | Q(next_retry_at__lte=now))
            .first()
        )
        if row is None:
            return None
        row.status = IntegrationErrorStatus.RETRYING
        row.last_tried_at = now
        row.save(update_fields=["status", "last_tried_at", "updated_at"])
        return row


def _record_failure(row: IntegrationError, exc: Exception, *, now: datetime) -> IntegrationError:
    with transaction.atomic():
        row = IntegrationError.objects.select_for_update().get(id=row.id)
        row.status = IntegrationErrorStatus.FAILED
        row.retry_count += 1
        row.next_retry_at = now + retry_delay(row.retry_count)
        row.error_message = str(exc) or exc.__class__.__name__
        row.save(update_fields=["status", "retry_count", "next_retry_at", "error_message", "updated_at"])
        return row


def run_retry_sweep(
    *,
    processor: Processor,
    tenant_id: UUID | None = None,
    patient_id: int | None = None,
    limit: int | None = None,
    now: datetime | None = None,
    actor: Actor | None = None,
    request=None,
) -> RetrySummary:
    """
    Retry up to `limit` due rows, each in its own transaction so one failure
    never blocks the rest.
    """
    now = now or timezone.now()
    limit = max(1, min(int(limit or default_batch_limit()), MAX_BATCH_LIMIT))

    ids = list(_eligible(now=now, tenant_id=tenant_id, patient_id=patient_id).values_list("id", flat=True)[:limit])
    summary = RetrySummary()

    for row_id in ids:
        row = _claim(row_id, now=now)
        if row is None:
            continue
        summary.processed += 1

        try:
            with transaction.atomic():
                entity_id = processor(row)

                row.status = IntegrationErrorStatus.RESOLVED
                row.next_retry_at = None
                row.error_message = ""
                row.save(update_fields=["status", "next_retry_at", "error_message", "updated_at"])

                AuditService.record(
                    action=AuditAction.CREATE,
                    entity_type=row.entity_type,
                    entity_id=entity_id or row.id,
                    actor=actor,
                    tenant_id=row.tenant_id,
                    request=request,
                    source=AuditSource.INTEGRATION,
                    metadata={
                        "integration_error_id": row.id,
                        "patient_id": row.patient_id,
                        "order_id": row.order_id,
                        "integration_source": row.source,
                        "retry_count": row.retry_count,
                    },
                )
        except Exception as exc:
            logger.exception("Integration retry failed", extra={"integration_error_id": str(row.id)})
            row = _record_failure(row, exc, now=now)
            summary.failed += 1
            summary.details.append(
                RetryOutcome(
                    id=str(row.id),
                    status=row.status,
                    retry_count=row.retry_count,
                    next_retry_at=row.next_retry_at.isoformat() if row.next_retry_at else None,
                    error=row.error_message,
                )
            )
            continue

        summary.resolved += 1
        summary.details.append(RetryOutcome(id=str(row.id), status=row.status, retry_count=row.retry_count))

    log_domain_event(
        "integration.retry_sweep",
        processed=summary.processed,
        resolved=summary.resolved,
        failed=summary.failed,
    )
    return summary
