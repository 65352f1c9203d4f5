"""The write path for task changes.

The engine in ``taskgate.core`` decides what may change; this module is the
persistence collaborator that makes accepted changes durable.  It owns
read-modify-write atomicity: callers pass the ``last_event_id`` of the
snapshot they authorized against, and the write is refused if another writer
got there first.
"""

from __future__ import annotations

import logging
from pathlib import Path

from taskgate.core.events import serialize_event
from taskgate.core.tasks import serialize_snapshot
from taskgate.storage.fs import atomic_write, jsonl_append
from taskgate.storage.locks import multi_lock, task_lock_keys
from taskgate.storage.readers import read_snapshot

logger = logging.getLogger(__name__)

# Sentinel for "no version check".
_UNCHECKED = object()


class ConcurrentModificationError(Exception):
    """Raised when a task changed between the caller's read and its write."""


class TaskNotFoundError(Exception):
    """Raised when deleting a task that does not exist."""


def write_task_event(
    taskgate_dir: Path,
    task_id: str,
    events: list[dict],
    snapshot: dict,
    *,
    expected_last_event_id: str | None | object = _UNCHECKED,
) -> None:
    """Write event(s) and the updated snapshot under the task's locks.

    Steps:
    1. Acquire locks in sorted order
    2. Check the stored snapshot's ``last_event_id`` against
       *expected_last_event_id* (``None`` means "must not exist yet")
    3. Append events to the per-task JSONL log
    4. Atomic-write the snapshot

    Raises:
        ConcurrentModificationError: If the version check fails.
    """
    locks_dir = taskgate_dir / "locks"

    with multi_lock(locks_dir, task_lock_keys(task_id)):
        if expected_last_event_id is not _UNCHECKED:
            stored = read_snapshot(taskgate_dir, task_id)
            actual = stored.get("last_event_id") if stored is not None else None
            if actual != expected_last_event_id:
                logger.warning(
                    "Refusing write to %s: expected version %s, found %s",
                    task_id,
                    expected_last_event_id,
                    actual,
                )
                raise ConcurrentModificationError(
                    f"Task {task_id} was modified by someone else. Reload and try again."
                )

        event_path = taskgate_dir / "events" / f"{task_id}.jsonl"
        for event in events:
            jsonl_append(event_path, serialize_event(event))

        snapshot_path = taskgate_dir / "tasks" / f"{task_id}.json"
        atomic_write(snapshot_path, serialize_snapshot(snapshot))

    logger.debug("Wrote %d event(s) for %s", len(events), task_id)


def delete_task(taskgate_dir: Path, task_id: str) -> None:
    """Remove a task's snapshot and event log.

    Raises:
        TaskNotFoundError: If no snapshot exists for *task_id*.
    """
    locks_dir = taskgate_dir / "locks"
    with multi_lock(locks_dir, task_lock_keys(task_id)):
        snapshot_path = taskgate_dir / "tasks" / f"{task_id}.json"
        if not snapshot_path.exists():
            raise TaskNotFoundError(f"Task {task_id} not found.")
        snapshot_path.unlink()
        event_path = taskgate_dir / "events" / f"{task_id}.jsonl"
        if event_path.exists():
            event_path.unlink()
    logger.debug("Deleted %s", task_id)
