"""Tests for taskgate.core.tasks."""

from __future__ import annotations

import json
import logging
from datetime import date

import pytest

from taskgate.core.events import create_event
from taskgate.core.tasks import (
    SNAPSHOT_PROTECTED_FIELDS,
    _MUTATION_HANDLERS,
    apply_event_to_snapshot,
    compact_snapshot,
    patch_to_events,
    rebuild_snapshot,
    refresh_status,
    serialize_snapshot,
)

_TASK_ID = "task_01HZY0000000000000000000AA"
_TS_1 = "2026-03-01T09:00:00Z"
_TS_2 = "2026-03-01T10:00:00Z"
_ACTOR = "manager:alice"


def _created(data: dict | None = None) -> dict:
    if data is None:
        data = {
            "title": "Shoot scene 12",
            "priority": "high",
            "status": "todo",
            "workflow_status": "todo",
            "approval_status": "approved",
            "completed": False,
            "tags": ["location"],
            "subtasks": [{"id": "s1", "title": "Permit", "completed": False}],
            "assignee": "bob",
        }
    return create_event(
        type="task_created",
        task_id=_TASK_ID,
        actor=_ACTOR,
        data=data,
        event_id="ev_01HZY0000000000000000000AA",
        ts=_TS_1,
    )


class TestApplyEventToSnapshot:
    def test_task_created_builds_full_snapshot(self) -> None:
        snap = apply_event_to_snapshot(None, _created())
        assert snap["id"] == _TASK_ID
        assert snap["created_by"] == _ACTOR
        assert snap["created_at"] == _TS_1
        assert snap["updated_at"] == _TS_1
        assert snap["last_event_id"] == "ev_01HZY0000000000000000000AA"
        assert snap["comments"] == []
        assert snap["attachments"] == []
        assert snap["approval_status"] == "approved"

    def test_workflow_status_defaults_to_status(self) -> None:
        snap = apply_event_to_snapshot(None, _created({"title": "x", "status": "review"}))
        assert snap["workflow_status"] == "review"

    def test_requires_existing_snapshot(self) -> None:
        event = create_event("field_updated", _TASK_ID, _ACTOR, {"field": "title", "to": "x"})
        with pytest.raises(ValueError, match="task_created"):
            apply_event_to_snapshot(None, event)

    def test_does_not_mutate_input(self) -> None:
        snap = apply_event_to_snapshot(None, _created())
        event = create_event(
            "field_updated", _TASK_ID, _ACTOR, {"field": "title", "from": "a", "to": "b"}, ts=_TS_2
        )
        updated = apply_event_to_snapshot(snap, event)
        assert snap["title"] == "Shoot scene 12"
        assert updated["title"] == "b"
        assert updated["updated_at"] == _TS_2
        assert updated["created_at"] == _TS_1

    def test_field_updated_cannot_touch_protected(self) -> None:
        snap = apply_event_to_snapshot(None, _created())
        event = create_event("field_updated", _TASK_ID, _ACTOR, {"field": "status", "to": "done"})
        with pytest.raises(ValueError, match="protected"):
            apply_event_to_snapshot(snap, event)

    def test_status_changed_sets_all_three(self) -> None:
        snap = apply_event_to_snapshot(None, _created())
        event = create_event(
            "status_changed",
            _TASK_ID,
            _ACTOR,
            {"from": "todo", "to": "overdue", "workflow_status": "inprogress", "completed": False},
        )
        updated = apply_event_to_snapshot(snap, event)
        assert updated["status"] == "overdue"
        assert updated["workflow_status"] == "inprogress"
        assert updated["completed"] is False

    def test_unknown_event_type_is_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        snap = apply_event_to_snapshot(None, _created())
        with caplog.at_level(logging.WARNING, logger="taskgate.core.tasks"):
            updated = apply_event_to_snapshot(
                snap, create_event("x_custom", _TASK_ID, _ACTOR, {})
            )
        assert updated["title"] == snap["title"]
        assert "unknown event type 'x_custom'" in caplog.text

    def test_handlers_cover_built_in_mutations(self) -> None:
        assert set(_MUTATION_HANDLERS) == {
            "status_changed",
            "approval_changed",
            "assignment_changed",
            "field_updated",
        }

    def test_protected_set(self) -> None:
        assert {"status", "approval_status", "assignee", "completed"} <= SNAPSHOT_PROTECTED_FIELDS


class TestPatchToEvents:
    def _snap(self) -> dict:
        return apply_event_to_snapshot(None, _created())

    def test_one_event_per_kind(self) -> None:
        snap = self._snap()
        changes = {
            "title": "Reshoot",
            "assignee": "carol",
            "approval_status": "rejected",
            "status": "inprogress",
            "workflow_status": "inprogress",
            "completed": False,
        }
        events = patch_to_events(snap, changes, _ACTOR, ts=_TS_2)
        types = [e["type"] for e in events]
        assert types == [
            "field_updated",
            "assignment_changed",
            "approval_changed",
            "status_changed",
        ]
        assert all(e["ts"] == _TS_2 for e in events)

    def test_unchanged_values_emit_nothing(self) -> None:
        snap = self._snap()
        events = patch_to_events(
            snap, {"title": snap["title"], "status": "todo", "completed": False}, _ACTOR, ts=_TS_2
        )
        assert events == []

    def test_status_event_carries_reason(self) -> None:
        snap = self._snap()
        events = patch_to_events(
            snap,
            {"status": "review", "workflow_status": "review", "completed": False},
            _ACTOR,
            ts=_TS_2,
            reason="All subtasks are completed; status moved to review.",
        )
        assert events[0]["reason"].startswith("All subtasks")
        assert events[0]["data"] == {
            "from": "todo",
            "to": "review",
            "workflow_status": "review",
            "completed": False,
        }

    def test_replay_matches_incremental(self) -> None:
        snap = self._snap()
        events = patch_to_events(snap, {"title": "B", "priority": "low"}, _ACTOR, ts=_TS_2)
        incremental = snap
        for event in events:
            incremental = apply_event_to_snapshot(incremental, event)
        assert rebuild_snapshot([_created(), *events]) == incremental


class TestRefreshStatus:
    def test_overlay_applied_on_read(self) -> None:
        snap = apply_event_to_snapshot(
            None, _created({"title": "x", "status": "inprogress", "due_date": "2026-03-01"})
        )
        refreshed = refresh_status(snap, date(2026, 3, 5))
        assert refreshed["status"] == "overdue"
        assert refreshed["workflow_status"] == "inprogress"
        assert snap["status"] == "inprogress"

    def test_overlay_lifted_when_not_due(self) -> None:
        snap = apply_event_to_snapshot(
            None,
            _created(
                {
                    "title": "x",
                    "status": "overdue",
                    "workflow_status": "review",
                    "due_date": "2026-03-10",
                }
            ),
        )
        assert refresh_status(snap, date(2026, 3, 5))["status"] == "review"


class TestSerialization:
    def test_serialize_snapshot_is_canonical(self) -> None:
        text = serialize_snapshot({"b": 1, "a": 2})
        assert text == '{\n  "a": 2,\n  "b": 1\n}\n'

    def test_compact_snapshot(self) -> None:
        snap = apply_event_to_snapshot(None, _created())
        compact = compact_snapshot(snap)
        assert compact["progress"] == {"completed": 0, "total": 1, "percent": 0}
        assert compact["comment_count"] == 0
        assert "subtasks" not in compact
        json.dumps(compact)
