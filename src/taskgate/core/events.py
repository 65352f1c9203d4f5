"""Event creation, schema, and types."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from taskgate.core.ids import generate_event_id

# ---------------------------------------------------------------------------
# Built-in event types
# ---------------------------------------------------------------------------

BUILTIN_EVENT_TYPES: frozenset[str] = frozenset(
    {
        "task_created",
        "status_changed",
        "approval_changed",
        "assignment_changed",
        "field_updated",
    }
)


# ---------------------------------------------------------------------------
# Event construction
# ---------------------------------------------------------------------------


def create_event(
    type: str,
    task_id: str,
    actor: str,
    data: dict,
    *,
    event_id: str | None = None,
    ts: str | None = None,
    reason: str | None = None,
) -> dict:
    """Build a complete event dict.

    *actor* is the ``role:identifier`` string of whoever made the change.
    ``reason`` is stored only when given; it carries the note the engine
    attached to a degraded request.
    """
    event: dict = {
        "schema_version": 1,
        "id": event_id if event_id is not None else generate_event_id(),
        "ts": ts if ts is not None else utc_now(),
        "type": type,
        "task_id": task_id,
        "actor": actor,
        "data": data,
    }
    if reason is not None:
        event["reason"] = reason
    return event


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_event(event: dict) -> str:
    """Serialize an event to compact JSONL (one line, trailing newline)."""
    return json.dumps(event, sort_keys=True, separators=(",", ":")) + "\n"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def utc_now() -> str:
    """Return the current UTC time as an RFC 3339 string with ``Z`` suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_ts(ts: str) -> datetime:
    """Parse an RFC 3339 ``...Z`` timestamp produced by :func:`utc_now`."""
    return datetime.strptime(ts, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
