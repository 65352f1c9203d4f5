"""Tests for taskgate.core.audit."""

from __future__ import annotations

import json
import logging

import pytest

from taskgate.core.audit import (
    MemoryAuditSink,
    NullAuditSink,
    create_audit_record,
    safe_record,
    serialize_audit_record,
)
from taskgate.core.ids import validate_id

_ARGS = (
    "manager:alice",
    "task_x",
    "approval_status",
    "pending",
    "approved",
    "2026-03-01T10:00:00Z",
)


class _ExplodingSink:
    def record(self, *args) -> None:  # noqa: ANN002
        raise ConnectionError("audit service down")


class TestCreateAuditRecord:
    def test_shape(self) -> None:
        rec = create_audit_record(*_ARGS)
        assert validate_id(rec["id"], "ev")
        assert rec["schema_version"] == 1
        assert rec["from"] == "pending"
        assert rec["to"] == "approved"

    def test_serialize_is_one_line(self) -> None:
        line = serialize_audit_record(create_audit_record(*_ARGS))
        assert line.endswith("\n")
        assert line.count("\n") == 1
        assert json.loads(line)["task_id"] == "task_x"


class TestSinks:
    def test_memory_sink_collects(self) -> None:
        sink = MemoryAuditSink()
        sink.record(*_ARGS)
        sink.record(*_ARGS)
        assert len(sink.records) == 2

    def test_null_sink_discards(self) -> None:
        assert NullAuditSink().record(*_ARGS) is None


class TestSafeRecord:
    def test_delivers(self) -> None:
        sink = MemoryAuditSink()
        assert safe_record(sink, *_ARGS) is True
        assert len(sink.records) == 1

    def test_failing_sink_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="taskgate.core.audit"):
            assert safe_record(_ExplodingSink(), *_ARGS) is False
        assert "Audit sink failed" in caplog.text

    def test_none_sink(self) -> None:
        assert safe_record(None, *_ARGS) is False
