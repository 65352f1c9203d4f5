"""File-backed audit sink: one JSONL log for the whole project."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from taskgate.core.audit import create_audit_record, serialize_audit_record
from taskgate.storage.fs import jsonl_append
from taskgate.storage.locks import AUDIT_LOCK, task_lock
from taskgate.storage.readers import read_jsonl

AUDIT_LOG = "audit.jsonl"


class JsonlAuditSink:
    """Appends audit records to ``.taskgate/audit.jsonl``."""

    def __init__(self, taskgate_dir: Path, *, timeout: float = 10) -> None:
        self.taskgate_dir = taskgate_dir
        self.timeout = timeout

    @property
    def path(self) -> Path:
        return self.taskgate_dir / AUDIT_LOG

    def record(
        self,
        actor: str,
        task_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        timestamp: str,
    ) -> None:
        entry = create_audit_record(actor, task_id, field, old_value, new_value, timestamp)
        with task_lock(self.taskgate_dir / "locks", AUDIT_LOCK, timeout=self.timeout):
            jsonl_append(self.path, serialize_audit_record(entry))


def read_audit_log(taskgate_dir: Path, task_id: str | None = None) -> list[dict]:
    """Return audit records, optionally only those for *task_id*."""
    records = read_jsonl(taskgate_dir / AUDIT_LOG)
    if task_id is None:
        return records
    return [r for r in records if r.get("task_id") == task_id]
