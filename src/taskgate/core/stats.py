"""Dashboard statistics and task list filtering."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime

from taskgate.core.actors import Actor
from taskgate.core.lifecycle import is_overdue, parse_due_date

# Status filters understood by filter_tasks() besides concrete statuses.
AGGREGATE_FILTERS: tuple[str, ...] = ("all", "completed", "pending", "overdue")


def task_is_overdue(snapshot: dict, now: datetime | date | None = None) -> bool:
    """Return ``True`` if the task is not completed and its due date has passed."""
    if snapshot.get("completed"):
        return False
    return is_overdue(snapshot.get("due_date"), now)


def visible_to(snapshot: dict, actor: Actor) -> bool:
    """Managers see every task; other actors only the tasks assigned to them."""
    if actor.is_manager:
        return True
    assignee = snapshot.get("assignee")
    return assignee is not None and assignee in (actor.id, actor.name)


def filter_tasks(
    snapshots: list[dict],
    *,
    actor: Actor | None = None,
    status_filter: str = "all",
    assignee: str | None = None,
    approval: str | None = None,
    search: str | None = None,
    now: datetime | date | None = None,
) -> list[dict]:
    """Filter task snapshots the way the task list does.

    *status_filter* is ``all``, ``completed``, ``pending`` (not completed and
    not overdue), ``overdue``, or a concrete status value.  *search* matches
    case-insensitively against title, director and genre.
    """
    query = (search or "").strip().lower()
    result: list[dict] = []
    for snap in snapshots:
        if actor is not None and not visible_to(snap, actor):
            continue
        if assignee is not None and snap.get("assignee") != assignee:
            continue
        if approval is not None and snap.get("approval_status") != approval:
            continue
        overdue = task_is_overdue(snap, now)
        if status_filter == "completed" and not snap.get("completed"):
            continue
        if status_filter == "pending" and (snap.get("completed") or overdue):
            continue
        if status_filter == "overdue" and not overdue:
            continue
        if status_filter not in AGGREGATE_FILTERS and snap.get("status") != status_filter:
            continue
        if query:
            haystack = " ".join(
                str(snap.get(key) or "") for key in ("title", "director", "genre")
            ).lower()
            if query not in haystack:
                continue
        result.append(snap)
    return result


def build_stats(snapshots: list[dict], now: datetime | date | None = None) -> dict:
    """Compute dashboard statistics over *snapshots*.

    Returns a dict with ``summary`` counts, ``by_status``, ``by_approval``,
    a per-assignee breakdown and the five nearest upcoming due dates.
    """
    total = len(snapshots)
    completed = sum(1 for s in snapshots if s.get("completed"))
    overdue = sum(1 for s in snapshots if task_is_overdue(s, now))
    pending = total - completed - overdue

    by_status = Counter(s.get("status") or "unknown" for s in snapshots)
    by_approval = Counter(s.get("approval_status") or "unknown" for s in snapshots)

    assignees: dict[str, dict] = {}
    for snap in snapshots:
        name = snap.get("assignee") or "Unassigned"
        row = assignees.setdefault(
            name, {"assignee": name, "total": 0, "completed": 0, "pending": 0}
        )
        row["total"] += 1
        if snap.get("completed"):
            row["completed"] += 1
        else:
            row["pending"] += 1

    dated = [
        (parse_due_date(s.get("due_date")), s)
        for s in snapshots
        if not s.get("completed") and parse_due_date(s.get("due_date")) is not None
    ]
    dated.sort(key=lambda pair: (pair[0], pair[1].get("id") or ""))
    upcoming = [
        {"id": s.get("id"), "title": s.get("title"), "due_date": s.get("due_date")}
        for _, s in dated[:5]
    ]

    return {
        "summary": {
            "total": total,
            "completed": completed,
            "overdue": overdue,
            "pending": pending,
            "completion_rate": round(completed / total * 100) if total else 0,
            "pending_approvals": by_approval.get("pending", 0),
            "approved": by_approval.get("approved", 0),
        },
        "by_status": dict(sorted(by_status.items())),
        "by_approval": dict(sorted(by_approval.items())),
        "by_assignee": sorted(assignees.values(), key=lambda r: r["assignee"]),
        "upcoming": upcoming,
    }
