"""Subtask checklist: pure functions, no I/O.

Every mutator returns a new list and leaves its input untouched.  Toggling or
removing an id that is not in the list is a no-op rather than an error.
"""

from __future__ import annotations

from taskgate.core.ids import generate_subtask_id


def create_subtask(title: str, *, subtask_id: str | None = None) -> dict:
    """Build a new, incomplete subtask record."""
    return {
        "id": subtask_id if subtask_id is not None else generate_subtask_id(),
        "title": title.strip(),
        "completed": False,
    }


def all_completed(subtasks: list[dict] | None) -> bool:
    """Return ``True`` iff the checklist is non-empty and every item is done.

    An empty checklist never counts as complete, so a task without subtasks
    is never auto-advanced.
    """
    if not subtasks:
        return False
    return all(s.get("completed") is True for s in subtasks)


def add_subtask(
    subtasks: list[dict] | None,
    title: str,
    *,
    subtask_id: str | None = None,
) -> list[dict]:
    """Return a new checklist with a subtask titled *title* appended.

    Blank titles are ignored (the checklist is returned unchanged).
    """
    items = [dict(s) for s in subtasks or []]
    if not isinstance(title, str) or not title.strip():
        return items
    items.append(create_subtask(title, subtask_id=subtask_id))
    return items


def toggle_subtask(subtasks: list[dict] | None, subtask_id: str) -> list[dict]:
    """Return a new checklist with *subtask_id*'s completion flipped."""
    return [
        {**s, "completed": not s.get("completed", False)} if s.get("id") == subtask_id else dict(s)
        for s in subtasks or []
    ]


def remove_subtask(subtasks: list[dict] | None, subtask_id: str) -> list[dict]:
    """Return a new checklist without *subtask_id*."""
    return [dict(s) for s in subtasks or [] if s.get("id") != subtask_id]


def find_subtask(subtasks: list[dict] | None, subtask_id: str) -> dict | None:
    """Return the subtask with *subtask_id*, or ``None``."""
    for s in subtasks or []:
        if s.get("id") == subtask_id:
            return s
    return None


def checklist_progress(subtasks: list[dict] | None) -> dict:
    """Return ``{completed, total, percent}`` for a checklist."""
    items = subtasks or []
    total = len(items)
    done = sum(1 for s in items if s.get("completed") is True)
    percent = round(done / total * 100) if total else 0
    return {"completed": done, "total": total, "percent": percent}


def normalize_subtasks(value: object) -> list[dict] | None:
    """Validate a proposed checklist and return a clean copy.

    Each item must be a dict with a string ``id``, a string ``title`` and a
    boolean ``completed``.  Ids must be unique.  Returns ``None`` if *value*
    is not a well-formed checklist.
    """
    if not isinstance(value, list):
        return None
    seen: set[str] = set()
    result: list[dict] = []
    for item in value:
        if not isinstance(item, dict):
            return None
        sid = item.get("id")
        title = item.get("title")
        completed = item.get("completed", False)
        if not isinstance(sid, str) or not sid or sid in seen:
            return None
        if not isinstance(title, str) or not isinstance(completed, bool):
            return None
        seen.add(sid)
        result.append({"id": sid, "title": title, "completed": completed})
    return result
