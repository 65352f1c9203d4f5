"""Task snapshot materialization and patch-to-event conversion."""

from __future__ import annotations

import copy
import json
import logging
from datetime import date, datetime

from taskgate.core.checklist import checklist_progress
from taskgate.core.events import create_event
from taskgate.core.lifecycle import evaluate_task

logger = logging.getLogger(__name__)

# Fields that cannot be overwritten by field_updated events.  These are
# managed by internal bookkeeping or by dedicated event types.
SNAPSHOT_PROTECTED_FIELDS: frozenset[str] = frozenset(
    {
        "schema_version",
        "id",
        "created_at",
        "created_by",
        "updated_at",
        "last_event_id",
        "status",
        "workflow_status",
        "completed",
        "approval_status",
        "assignee",
    }
)

# Status-related keys carried together by one status_changed event.
_STATUS_KEYS: tuple[str, ...] = ("status", "workflow_status", "completed")


# ---------------------------------------------------------------------------
# Snapshot materialization
# ---------------------------------------------------------------------------


def apply_event_to_snapshot(snapshot: dict | None, event: dict) -> dict:
    """Apply a single *event* to an existing *snapshot* (or ``None``).

    This is the single materialization path used by both incremental writes
    and full rebuild.  All timestamps are sourced from ``event["ts"]``, never
    from the wall clock, so rebuilding from the log is deterministic.

    Returns a new snapshot dict; the input is never mutated.
    """
    etype = event["type"]

    if etype == "task_created":
        snap = _init_snapshot(event)
    else:
        if snapshot is None:
            msg = (
                f"Cannot apply event type '{etype}' without an existing "
                "snapshot (expected 'task_created' first)"
            )
            raise ValueError(msg)
        snap = copy.deepcopy(snapshot)
        _apply_mutation(snap, etype, event)

    snap["last_event_id"] = event["id"]
    snap["updated_at"] = event["ts"]
    return snap


def rebuild_snapshot(events: list[dict]) -> dict | None:
    """Replay a task's event log from scratch."""
    snap: dict | None = None
    for event in events:
        snap = apply_event_to_snapshot(snap, event)
    return snap


# ---------------------------------------------------------------------------
# Patch -> events
# ---------------------------------------------------------------------------


def patch_to_events(
    task: dict,
    changes: dict,
    actor: str,
    *,
    ts: str,
    reason: str | None = None,
) -> list[dict]:
    """Turn an accepted patch into the events that record it.

    One event per changed business field, ``assignment_changed`` for the
    assignee, ``approval_changed`` for approval and a single
    ``status_changed`` covering status, workflow status and completion.
    Values equal to the task's current value produce no event.
    """
    task_id = task["id"]
    events: list[dict] = []

    def _event(etype: str, data: dict, note: str | None = None) -> None:
        events.append(
            create_event(type=etype, task_id=task_id, actor=actor, data=data, ts=ts, reason=note)
        )

    for name, value in changes.items():
        if name in _STATUS_KEYS:
            continue
        old_value = task.get(name)
        if old_value == value:
            continue
        if name == "approval_status":
            _event("approval_changed", {"from": old_value, "to": value})
        elif name == "assignee":
            _event("assignment_changed", {"from": old_value, "to": value})
        else:
            _event("field_updated", {"field": name, "from": old_value, "to": value})

    new_status = changes.get("status", task.get("status"))
    new_workflow = changes.get("workflow_status", task.get("workflow_status"))
    new_completed = changes.get("completed", task.get("completed", False))
    if (
        new_status != task.get("status")
        or new_workflow != task.get("workflow_status")
        or new_completed != task.get("completed", False)
    ):
        _event(
            "status_changed",
            {
                "from": task.get("status"),
                "to": new_status,
                "workflow_status": new_workflow,
                "completed": new_completed,
            },
            reason,
        )

    return events


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def refresh_status(snapshot: dict, now: datetime | date | None = None) -> dict:
    """Return a copy of *snapshot* with its status re-derived for *now*.

    The overdue overlay depends on the current date, so a stored ``status``
    goes stale between writes.  The stored file is not touched.
    """
    decision = evaluate_task(snapshot, now)
    snap = dict(snapshot)
    snap["status"] = decision.status
    snap["workflow_status"] = decision.base_status
    snap["completed"] = decision.completed
    return snap


def serialize_snapshot(snapshot: dict) -> str:
    """Pretty-print a snapshot as sorted JSON with trailing newline."""
    return json.dumps(snapshot, sort_keys=True, indent=2) + "\n"


def compact_snapshot(snapshot: dict) -> dict:
    """Return a compact view suitable for list operations.

    Includes counts and checklist progress instead of full arrays.
    """
    return {
        "id": snapshot.get("id"),
        "title": snapshot.get("title"),
        "status": snapshot.get("status"),
        "priority": snapshot.get("priority"),
        "approval_status": snapshot.get("approval_status"),
        "assignee": snapshot.get("assignee"),
        "due_date": snapshot.get("due_date"),
        "completed": snapshot.get("completed", False),
        "tags": snapshot.get("tags"),
        "progress": checklist_progress(snapshot.get("subtasks")),
        "comment_count": len(snapshot.get("comments") or []),
        "attachment_count": len(snapshot.get("attachments") or []),
    }


# ---------------------------------------------------------------------------
# Internal: snapshot initialization from task_created
# ---------------------------------------------------------------------------


def _init_snapshot(event: dict) -> dict:
    """Build a brand-new snapshot from a ``task_created`` event."""
    data = event["data"]
    return {
        "schema_version": 1,
        "id": event["task_id"],
        "title": data.get("title"),
        "description": data.get("description"),
        "director": data.get("director"),
        "genre": data.get("genre"),
        "priority": data.get("priority"),
        "tags": data.get("tags") or [],
        "due_date": data.get("due_date"),
        "status": data.get("status"),
        "workflow_status": data.get("workflow_status") or data.get("status"),
        "approval_status": data.get("approval_status"),
        "completed": bool(data.get("completed", False)),
        "subtasks": data.get("subtasks") or [],
        "comments": data.get("comments") or [],
        "attachments": data.get("attachments") or [],
        "assignee": data.get("assignee"),
        "created_by": event["actor"],
        "created_at": event["ts"],
        "updated_at": event["ts"],
        "last_event_id": event["id"],
    }


# ---------------------------------------------------------------------------
# Internal: mutation registry
# ---------------------------------------------------------------------------

# Handler registry: maps event type to a function(snap, event) that mutates
# the snapshot in-place.  Handlers are registered via @_register_mutation.
_MUTATION_HANDLERS: dict[str, callable] = {}


def _register_mutation(etype: str):  # noqa: ANN202
    """Decorator that registers a snapshot mutation handler for *etype*."""

    def decorator(fn):  # noqa: ANN001, ANN202
        _MUTATION_HANDLERS[etype] = fn
        return fn

    return decorator


@_register_mutation("status_changed")
def _mut_status_changed(snap: dict, event: dict) -> None:
    data = event["data"]
    snap["status"] = data["to"]
    snap["workflow_status"] = data.get("workflow_status") or data["to"]
    snap["completed"] = bool(data.get("completed", False))


@_register_mutation("approval_changed")
def _mut_approval_changed(snap: dict, event: dict) -> None:
    snap["approval_status"] = event["data"]["to"]


@_register_mutation("assignment_changed")
def _mut_assignment_changed(snap: dict, event: dict) -> None:
    snap["assignee"] = event["data"]["to"]


@_register_mutation("field_updated")
def _mut_field_updated(snap: dict, event: dict) -> None:
    data = event["data"]
    field = data["field"]
    if field in SNAPSHOT_PROTECTED_FIELDS:
        raise ValueError(
            f"Cannot update protected field '{field}' via field_updated. "
            "Use the dedicated event type instead."
        )
    snap[field] = data["to"]


def _apply_mutation(snap: dict, etype: str, event: dict) -> None:
    """Mutate *snap* in-place based on event type.

    ``last_event_id`` and ``updated_at`` are set by the caller for every
    event type.
    """
    handler = _MUTATION_HANDLERS.get(etype)
    if handler is not None:
        handler(snap, event)
    else:
        # Unknown types leave the snapshot unchanged.
        logger.warning("Ignoring unknown event type '%s' during snapshot materialization", etype)
