"""Priority suggestions, field suggestions and progress warnings for a task."""

from __future__ import annotations

import math
from collections import Counter
from datetime import date, datetime, timedelta

from taskgate.core.checklist import add_subtask, checklist_progress
from taskgate.core.events import parse_ts
from taskgate.core.lifecycle import as_utc, is_overdue, parse_due_date

_DAY = timedelta(days=1)

# Days left before the due date at or under which a priority is suggested.
DEADLINE_PRIORITIES: tuple[tuple[int, str], ...] = ((3, "high"), (7, "medium"))

GENRE_PRIORITIES: dict[str, str] = {
    "development": "high",
    "design": "high",
    "testing": "medium",
    "sci-fi": "medium",
    "drama": "low",
    "crime": "medium",
    "action": "high",
    "historical": "medium",
}

# Days from today suggested as a due date for each priority.
PRIORITY_DUE_DAYS: dict[str, int] = {"low": 8, "medium": 5, "high": 2, "urgent": 1}

TITLE_TAG_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("bug", ("bug", "fix", "error")),
    ("feature", ("feature", "add", "new")),
    ("enhancement", ("enhance", "improve", "update")),
    ("documentation", ("doc",)),
    ("testing", ("test",)),
)

GENRE_SUBTASK_TEMPLATES: dict[str, tuple[str, ...]] = {
    "development": ("Write code", "Write tests", "Code review"),
}

STALE_AFTER_DAYS = 7
SLOW_PROGRESS_RATE = 0.3


def days_until_due(due_date: object, now: datetime | date | None = None) -> int | None:
    """Whole days from *now* until 00:00 UTC on *due_date*, rounded up."""
    due = parse_due_date(due_date)
    if due is None:
        return None
    return math.ceil((as_utc(due) - as_utc(now)) / _DAY)


def days_since_update(snapshot: dict, now: datetime | date | None = None) -> int | None:
    updated_at = snapshot.get("updated_at")
    if not isinstance(updated_at, str):
        return None
    try:
        updated = parse_ts(updated_at)
    except ValueError:
        return None
    return math.floor((as_utc(now) - updated) / _DAY)


def _suggestion(field: str, value: object, source: str, reason: str) -> dict:
    return {"field": field, "value": value, "source": source, "reason": reason}


def _deadline_priority(snapshot: dict, now: datetime | date | None) -> dict | None:
    due_date = snapshot.get("due_date")
    days_left = days_until_due(due_date, now)
    if days_left is None:
        return None
    if is_overdue(due_date, now):
        return _suggestion("priority", "urgent", "deadline", f"Past its due date ({due_date}).")
    for limit, priority in DEADLINE_PRIORITIES:
        if days_left <= limit:
            unit = "day" if days_left == 1 else "days"
            return _suggestion(
                "priority", priority, "deadline", f"{days_left} {unit} until the due date."
            )
    return None


def _genre_priority(snapshot: dict) -> dict | None:
    genre = snapshot.get("genre")
    if not isinstance(genre, str):
        return None
    priority = GENRE_PRIORITIES.get(genre.strip().lower())
    if priority is None:
        return None
    return _suggestion("priority", priority, "genre", f"Usual priority for {genre} tasks.")


def _genre_assignee(snapshot: dict, peers: list[dict]) -> dict | None:
    genre = snapshot.get("genre")
    if not genre:
        return None
    counts = Counter(
        p["assignee"]
        for p in peers
        if p.get("id") != snapshot.get("id") and p.get("genre") == genre and p.get("assignee")
    )
    if not counts:
        return None
    assignee, _ = counts.most_common(1)[0]
    return _suggestion("assignee", assignee, "genre", f"Most common assignee for {genre} tasks.")


def _priority_due_date(snapshot: dict, now: datetime | date | None) -> dict | None:
    priority = snapshot.get("priority")
    if snapshot.get("due_date") or priority not in PRIORITY_DUE_DAYS:
        return None
    days = PRIORITY_DUE_DAYS[priority]
    due = (as_utc(now) + timedelta(days=days)).date().isoformat()
    return _suggestion("due_date", due, "priority", f"{days} days for {priority} priority tasks.")


def _title_tags(snapshot: dict) -> dict | None:
    title = (snapshot.get("title") or "").lower()
    current = list(snapshot.get("tags") or [])
    new_tags = [
        tag
        for tag, words in TITLE_TAG_KEYWORDS
        if tag not in current and any(word in title for word in words)
    ]
    if not new_tags:
        return None
    return _suggestion(
        "tags", current + new_tags, "title", f"Keywords in the title: {', '.join(new_tags)}."
    )


def _genre_subtasks(snapshot: dict) -> dict | None:
    genre = snapshot.get("genre")
    if snapshot.get("subtasks") or not isinstance(genre, str):
        return None
    titles = GENRE_SUBTASK_TEMPLATES.get(genre.strip().lower())
    if titles is None:
        return None
    return _suggestion("subtasks", list(titles), "genre", f"Standard {genre} checklist.")


def _warnings(snapshot: dict, now: datetime | date | None) -> list[dict]:
    warnings: list[dict] = []
    idle = days_since_update(snapshot, now)
    if idle is not None and idle > STALE_AFTER_DAYS:
        warnings.append({"kind": "stale", "message": f"Not updated for {idle} days."})

    progress = checklist_progress(snapshot.get("subtasks"))
    days_left = days_until_due(snapshot.get("due_date"), now)
    if (
        progress["total"]
        and progress["completed"] / progress["total"] < SLOW_PROGRESS_RATE
        and days_left is not None
        and days_left <= DEADLINE_PRIORITIES[-1][0]
    ):
        warnings.append(
            {
                "kind": "slow_progress",
                "message": f"Only {progress['percent']}% of subtasks done, due date close.",
            }
        )
    return warnings


def analyze_task(
    snapshot: dict,
    peers: list[dict] | None = None,
    now: datetime | date | None = None,
) -> dict:
    """Suggest field values for *snapshot* and flag tasks falling behind.

    *peers* are the other tasks of the project, used to suggest an assignee
    by genre.  Returns ``{"suggestions": [...], "warnings": [...]}``.  Each
    suggestion is ``{field, value, source, reason}`` and never repeats the
    task's current value.  Priority suggestions from the deadline come before
    the one from the genre.  Completed tasks get neither.
    """
    if snapshot.get("completed"):
        return {"suggestions": [], "warnings": []}

    candidates = [
        _deadline_priority(snapshot, now),
        _genre_priority(snapshot),
        _genre_assignee(snapshot, peers or []),
        _priority_due_date(snapshot, now),
        _title_tags(snapshot),
        _genre_subtasks(snapshot),
    ]
    suggestions = [
        s for s in candidates if s is not None and s["value"] != snapshot.get(s["field"])
    ]
    return {"suggestions": suggestions, "warnings": _warnings(snapshot, now)}


def suggestion_patch(suggestions: list[dict], fields: tuple[str, ...] = ()) -> dict:
    """Build an edit patch from the first suggestion for each field.

    *fields* limits the patch to those fields when given.  Suggested subtask
    titles become new checklist items.
    """
    patch: dict = {}
    for s in suggestions:
        field = s["field"]
        if field in patch or (fields and field not in fields):
            continue
        if field == "subtasks":
            items: list[dict] = []
            for title in s["value"]:
                items = add_subtask(items, title)
            patch[field] = items
        else:
            patch[field] = s["value"]
    return patch
