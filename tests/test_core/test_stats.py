"""Tests for dashboard statistics and list filtering."""

from __future__ import annotations

from datetime import date

import pytest

from taskgate.core.actors import Actor
from taskgate.core.stats import build_stats, filter_tasks, task_is_overdue, visible_to

_TODAY = date(2026, 3, 10)


@pytest.fixture()
def tasks(make_task) -> list[dict]:
    return [
        make_task(id="t1", title="Permit", assignee="bob", status="done", completed=True),
        make_task(id="t2", title="Casting", assignee="bob", due_date="2026-03-01"),
        make_task(
            id="t3",
            title="Score",
            genre="musical",
            assignee="carol",
            approval_status="pending",
            due_date="2026-03-20",
        ),
        make_task(id="t4", title="Edit", assignee=None, status="review", due_date="2026-03-12"),
    ]


class TestVisibility:
    def test_manager_sees_all(self, make_task) -> None:
        assert visible_to(make_task(assignee=None), Actor(id="alice", role="manager"))

    def test_employee_sees_own(self, make_task) -> None:
        bob = Actor(id="bob", role="employee")
        assert visible_to(make_task(assignee="bob"), bob) is True
        assert visible_to(make_task(assignee="carol"), bob) is False

    def test_employee_matched_by_name(self, make_task) -> None:
        actor = Actor(id="e42", role="employee", name="Bob")
        assert visible_to(make_task(assignee="Bob"), actor) is True

    def test_unassigned_hidden_from_nameless_employee(self, make_task) -> None:
        assert visible_to(make_task(assignee=None), Actor(id="bob", role="employee")) is False


class TestFilterTasks:
    def _ids(self, items: list[dict]) -> list[str]:
        return [t["id"] for t in items]

    def test_all(self, tasks) -> None:
        assert self._ids(filter_tasks(tasks, now=_TODAY)) == ["t1", "t2", "t3", "t4"]

    def test_employee_scope(self, tasks) -> None:
        bob = Actor(id="bob", role="employee")
        assert self._ids(filter_tasks(tasks, actor=bob, now=_TODAY)) == ["t1", "t2"]

    def test_completed(self, tasks) -> None:
        assert self._ids(filter_tasks(tasks, status_filter="completed", now=_TODAY)) == ["t1"]

    def test_overdue(self, tasks) -> None:
        assert self._ids(filter_tasks(tasks, status_filter="overdue", now=_TODAY)) == ["t2"]

    def test_pending(self, tasks) -> None:
        assert self._ids(filter_tasks(tasks, status_filter="pending", now=_TODAY)) == ["t3", "t4"]

    def test_concrete_status(self, tasks) -> None:
        assert self._ids(filter_tasks(tasks, status_filter="review", now=_TODAY)) == ["t4"]

    def test_search_covers_genre(self, tasks) -> None:
        assert self._ids(filter_tasks(tasks, search="MUSICAL", now=_TODAY)) == ["t3"]

    def test_assignee_and_approval(self, tasks) -> None:
        assert self._ids(filter_tasks(tasks, assignee="carol", approval="pending")) == ["t3"]

    def test_overdue_helper_ignores_completed(self, make_task) -> None:
        task = make_task(completed=True, status="done", due_date="2026-01-01")
        assert task_is_overdue(task, _TODAY) is False


class TestBuildStats:
    def test_summary(self, tasks) -> None:
        stats = build_stats(tasks, _TODAY)
        assert stats["summary"] == {
            "total": 4,
            "completed": 1,
            "overdue": 1,
            "pending": 2,
            "completion_rate": 25,
            "pending_approvals": 1,
            "approved": 3,
        }

    def test_by_assignee(self, tasks) -> None:
        rows = {r["assignee"]: r for r in build_stats(tasks, _TODAY)["by_assignee"]}
        assert rows["bob"] == {"assignee": "bob", "total": 2, "completed": 1, "pending": 1}
        assert rows["Unassigned"]["total"] == 1

    def test_upcoming_is_sorted_and_open_only(self, tasks) -> None:
        upcoming = build_stats(tasks, _TODAY)["upcoming"]
        assert [u["id"] for u in upcoming] == ["t2", "t4", "t3"]

    def test_empty(self) -> None:
        stats = build_stats([], _TODAY)
        assert stats["summary"]["total"] == 0
        assert stats["summary"]["completion_rate"] == 0
        assert stats["upcoming"] == []
