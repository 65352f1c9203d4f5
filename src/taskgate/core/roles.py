"""Role capability table: which field groups each role may write."""

from __future__ import annotations

# Field groups and the task fields they cover.  ``status`` is listed under
# ``classification`` for display purposes but has its own gate (the task
# lifecycle), so it is not decided by the group permission.
FIELD_GROUPS: dict[str, tuple[str, ...]] = {
    "basic": ("title", "description", "director", "genre", "due_date"),
    "classification": ("status", "priority", "tags"),
    "assignment": ("assignee",),
    "approval": ("approval_status",),
    "details": ("subtasks", "comments", "attachments"),
}

_FIELD_TO_GROUP: dict[str, str] = {
    field: group for group, fields in FIELD_GROUPS.items() for field in fields
}

# Writable groups per role.
ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "manager": frozenset({"basic", "classification", "assignment", "approval", "details"}),
    "employee": frozenset({"details"}),
}

# Fields writable by a role regardless of the group table.  Status is the
# lifecycle-gated sub-field every role may propose.
_LIFECYCLE_FIELDS: frozenset[str] = frozenset({"status"})


def can_write(role: str, field_group: str) -> bool:
    """Return ``True`` if *role* may write fields in *field_group*.

    Total over any input: unknown roles and unknown groups are never writable.
    """
    return field_group in ROLE_CAPABILITIES.get(role, frozenset())


def field_group(field: str) -> str | None:
    """Return the field group *field* belongs to, or ``None`` if unknown."""
    return _FIELD_TO_GROUP.get(field)


def can_write_field(role: str, field: str) -> bool:
    """Return ``True`` if *role* may propose a value for *field*."""
    if role not in ROLE_CAPABILITIES:
        return False
    if field in _LIFECYCLE_FIELDS:
        return True
    group = field_group(field)
    if group is None:
        return False
    return can_write(role, group)


def editable_fields(role: str) -> list[str]:
    """Return every field *role* may propose, in field-group order."""
    return [
        field
        for fields in FIELD_GROUPS.values()
        for field in fields
        if can_write_field(role, field)
    ]


def read_only_fields(role: str) -> list[str]:
    """Return every known field *role* may not write."""
    return [
        field
        for fields in FIELD_GROUPS.values()
        for field in fields
        if not can_write_field(role, field)
    ]
