"""
Structured logging with clinical-text / PII protection.

Every module logs through ``logging.getLogger(__name__)``; the handlers and the
formatter below are wired in ``settings.LOGGING``.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Keys whose values must never reach a log line or an audit row.
SENSITIVE_FIELDS = {
    "password",
    "token",
    "access",
    "refresh",
    "secret",
    "subjective",
    "objective",
    "assessment",
    "plan",
    "summary",
    "instructions",
    "notes",
    "reason",
    "amendment_reason",
    "payload",
    "body",
    "email",
    "phone",
    "pharmacy_phone",
}

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName", "message", "asctime",
}


def sanitize_dict(data: Any) -> Any:
    """Return a copy of ``data`` with sensitive keys redacted (recursively)."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in SENSITIVE_FIELDS else sanitize_dict(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [sanitize_dict(v) for v in data]
    return data


class SanitizedJSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_") or key in log_data:
                continue
            if key.lower() in SENSITIVE_FIELDS:
                log_data[key] = "[REDACTED]"
            else:
                log_data[key] = sanitize_dict(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


_logger = logging.getLogger("cr_core.events")


def log_domain_event(
    event_name: str,
    *,
    entity_type: str | None = None,
    entity_id: Any = None,
    result: str = "success",
    **extra_fields: Any,
) -> None:
    """
    Log a lifecycle transition.

    Example:
        log_domain_event("progress_note.finalized", entity_type="progress_note",
                         entity_id=note.id, patient_id=note.patient_id)
    """
    event_data: dict[str, Any] = {"event": event_name, "result": result}
    if entity_type:
        event_data["entity_type"] = entity_type
    if entity_id is not None:
        event_data["entity_id"] = str(entity_id)
    event_data.update(sanitize_dict(extra_fields))

    if result in ("failure", "error"):
        _logger.error("Domain event: %s", event_name, extra=event_data)
    elif result in ("blocked", "warning"):
        _logger.warning("Domain event: %s", event_name, extra=event_data)
    else:
        _logger.info("Domain event: %s", event_name, extra=event_data)
