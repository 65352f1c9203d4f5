"""Shared read helpers for task snapshots and events."""

from __future__ import annotations

import json
from pathlib import Path


def read_snapshot(taskgate_dir: Path, task_id: str) -> dict | None:
    """Read a task snapshot, returning None if not found."""
    path = taskgate_dir / "tasks" / f"{task_id}.json"
    if not path.exists():
        return None
    return json.loads(path.read_text())


def read_jsonl(path: Path) -> list[dict]:
    """Read every record of a JSONL file, skipping blank or corrupt lines.

    Returns an empty list if the file does not exist.
    """
    records: list[dict] = []
    if not path.exists():
        return records
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return records


def read_task_events(taskgate_dir: Path, task_id: str) -> list[dict]:
    """Read all events for a task from its JSONL log."""
    return read_jsonl(taskgate_dir / "events" / f"{task_id}.jsonl")


def load_all_snapshots(taskgate_dir: Path) -> list[dict]:
    """Load every task snapshot, ordered by creation time then id."""
    snapshots: list[dict] = []
    tasks_dir = taskgate_dir / "tasks"
    if tasks_dir.is_dir():
        for f in tasks_dir.glob("*.json"):
            try:
                snapshots.append(json.loads(f.read_text()))
            except (json.JSONDecodeError, OSError):
                continue
    snapshots.sort(key=lambda s: (s.get("created_at") or "", s.get("id") or ""))
    return snapshots
