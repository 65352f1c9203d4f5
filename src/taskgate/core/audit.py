"""Audit sink interface and in-process sinks.

The engine writes one audit record per approval change.  Delivery is
fire-and-forget: a sink that raises is logged and ignored, and the
authorized patch is still returned to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from taskgate.core.ids import generate_event_id

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Destination for audit records."""

    def record(
        self,
        actor: str,
        task_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        timestamp: str,
    ) -> None:
        """Record a single field change."""
        ...


def create_audit_record(
    actor: str,
    task_id: str,
    field: str,
    old_value: Any,
    new_value: Any,
    timestamp: str,
) -> dict:
    """Build an audit record dict."""
    return {
        "schema_version": 1,
        "id": generate_event_id(),
        "ts": timestamp,
        "actor": actor,
        "task_id": task_id,
        "field": field,
        "from": old_value,
        "to": new_value,
    }


def serialize_audit_record(record: dict) -> str:
    """Serialize an audit record to compact JSONL (one line, trailing newline)."""
    return json.dumps(record, sort_keys=True, separators=(",", ":")) + "\n"


class MemoryAuditSink:
    """Keeps records in a list.  Used by tests and by callers that batch writes."""

    def __init__(self) -> None:
        self.records: list[dict] = []

    def record(
        self,
        actor: str,
        task_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        timestamp: str,
    ) -> None:
        self.records.append(
            create_audit_record(actor, task_id, field, old_value, new_value, timestamp)
        )


class NullAuditSink:
    """Discards every record."""

    def record(
        self,
        actor: str,
        task_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        timestamp: str,
    ) -> None:
        return None


def safe_record(
    sink: AuditSink | None,
    actor: str,
    task_id: str,
    field: str,
    old_value: Any,
    new_value: Any,
    timestamp: str,
) -> bool:
    """Deliver a record to *sink*, never raising.

    Returns ``True`` if the sink accepted the record.
    """
    if sink is None:
        return False
    try:
        sink.record(actor, task_id, field, old_value, new_value, timestamp)
    except Exception:
        logger.warning(
            "Audit sink failed to record %s change on %s", field, task_id, exc_info=True
        )
        return False
    return True
