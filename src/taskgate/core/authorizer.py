"""Task mutation authorizer: the single entry point for every task edit.

An edit request (actor role, proposed field values) is filtered field by
field against the role capability table and the approval gate.  Fields the
actor may not write are dropped and reported; if nothing survives the request
is rejected outright.  Surviving approval changes go through the approval
gate (which emits an audit record), and the task's status is then settled by
the lifecycle state machine against the post-patch checklist, approval and
due date.

The authorizer works on the task snapshot it is given and never touches
storage.  Read-modify-write atomicity is the storage layer's job (see
``taskgate.storage.operations.write_task_event``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from taskgate.core.approval import (
    approval_decision,
    initial_approval_status,
    is_field_unlocked,
    record_approval_change,
)
from taskgate.core.audit import AuditSink
from taskgate.core.checklist import all_completed, normalize_subtasks
from taskgate.core.config import (
    VALID_APPROVAL_STATUSES,
    VALID_PRIORITIES,
    validate_approval_status,
)
from taskgate.core.details import ATTACHMENT_KEYS, COMMENT_KEYS, normalize_records
from taskgate.core.events import utc_now
from taskgate.core.lifecycle import (
    INVALID_VALUE,
    STATUS_ORDER,
    StatusDecision,
    base_status_of,
    compute_status,
    parse_due_date,
)
from taskgate.core.roles import can_write_field, field_group

logger = logging.getLogger(__name__)

PERMISSION_DENIED = "PERMISSION_DENIED"
PROTECTED_FIELD = "PROTECTED_FIELD"
UNKNOWN_FIELD = "UNKNOWN_FIELD"

NO_PERMITTED_FIELDS = "no permitted fields"

# Fields managed by the engine or set once at creation.
PROTECTED_FIELDS: frozenset[str] = frozenset(
    {
        "schema_version",
        "id",
        "created_by",
        "created_at",
        "updated_at",
        "completed",
        "workflow_status",
        "last_event_id",
    }
)


@dataclass(frozen=True)
class FieldDenial:
    """One proposed field that was dropped, and why."""

    field: str
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class AcceptedPatch:
    """A sanitized patch ready for persistence.

    ``changes`` holds only values that differ from the task (plus ``status``
    and ``completed`` whenever a status was requested).  ``notes`` carries
    the reasons for any auto-correction; ``denials`` lists dropped fields.
    """

    changes: dict
    notes: list[str] = field(default_factory=list)
    denials: list[FieldDenial] = field(default_factory=list)
    status_decision: StatusDecision | None = None

    ok = True

    @property
    def reasons(self) -> list[str]:
        return [d.message for d in self.denials] + list(self.notes)


@dataclass(frozen=True)
class Rejection:
    """Nothing in the request was permitted."""

    reason: str
    denials: list[FieldDenial] = field(default_factory=list)

    ok = False

    @property
    def reasons(self) -> list[str]:
        return [d.message for d in self.denials] or [self.reason]


# ---------------------------------------------------------------------------
# Value normalization
# ---------------------------------------------------------------------------


def _normalize_text(value: object, *, required: bool = False) -> tuple[bool, object]:
    if value is None:
        return (not required, None)
    if not isinstance(value, str):
        return (False, None)
    stripped = value.strip()
    if required and not stripped:
        return (False, None)
    return (True, stripped)


def _normalize_tags(value: object) -> tuple[bool, object]:
    if value is None:
        return (True, [])
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, list) and all(isinstance(t, str) for t in value):
        tags: list[str] = []
        for t in value:
            t = t.strip()
            if t and t not in tags:
                tags.append(t)
        return (True, tags)
    return (False, None)


def _normalize_due_date(value: object) -> tuple[bool, object]:
    if value is None or value == "":
        return (True, None)
    parsed = parse_due_date(value)
    if parsed is None:
        return (False, None)
    return (True, parsed.isoformat())


def normalize_field_value(field_name: str, value: object) -> tuple[bool, object, str | None]:
    """Validate and normalize a proposed value for a business field.

    Returns ``(ok, normalized_value, error_message)``.
    """
    if field_name == "title":
        ok, norm = _normalize_text(value, required=True)
        return (ok, norm, None if ok else "Title must be a non-empty string.")
    if field_name in ("description", "director", "genre", "assignee"):
        ok, norm = _normalize_text(value)
        if ok and norm == "" and field_name == "assignee":
            norm = None
        return (ok, norm, None if ok else f"Field '{field_name}' must be a string.")
    if field_name == "priority":
        if value in VALID_PRIORITIES:
            return (True, value, None)
        valid = ", ".join(VALID_PRIORITIES)
        return (False, None, f"Invalid priority: '{value}'. Valid priorities: {valid}.")
    if field_name == "tags":
        ok, norm = _normalize_tags(value)
        return (ok, norm, None if ok else "Tags must be a list of strings.")
    if field_name == "due_date":
        ok, norm = _normalize_due_date(value)
        return (ok, norm, None if ok else f"Invalid due date: '{value}'. Expected YYYY-MM-DD.")
    if field_name == "subtasks":
        norm = normalize_subtasks(value)
        if norm is None:
            return (False, None, "Subtasks must be a list of {id, title, completed} items.")
        return (True, norm, None)
    if field_name == "comments":
        norm = normalize_records(value, COMMENT_KEYS)
        if norm is None:
            return (False, None, "Comments must be a list of {id, author, text} items.")
        return (True, norm, None)
    if field_name == "attachments":
        norm = normalize_records(value, ATTACHMENT_KEYS)
        if norm is None:
            return (False, None, "Attachments must be a list of {id, filename} items.")
        return (True, norm, None)
    return (False, None, f"Unknown field: '{field_name}'.")


def _timestamp(now: datetime | date | None) -> str:
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%SZ")
    return utc_now()


def _actor_label(actor_role: str, actor_id: str | None) -> str:
    return f"{actor_role}:{actor_id}" if actor_id else actor_role


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------


def authorize(
    actor_role: str,
    task: dict,
    proposed_patch: dict,
    *,
    actor_id: str | None = None,
    now: datetime | date | None = None,
    audit_sink: AuditSink | None = None,
) -> AcceptedPatch | Rejection:
    """Decide which parts of *proposed_patch* *actor_role* may apply to *task*.

    Returns an :class:`AcceptedPatch` whose ``changes`` can be persisted as
    is, or a :class:`Rejection` when every proposed field was dropped.  The
    only side effect is the audit record emitted for an approval change.
    """
    denials: list[FieldDenial] = []
    candidate: dict = {}
    permitted: set[str] = set()
    requested_status: str | None = None
    approval_change = None

    approval_current = task.get("approval_status") or "pending"
    base_current = base_status_of(task)

    for name, value in proposed_patch.items():
        if name in PROTECTED_FIELDS:
            denials.append(
                FieldDenial(name, PROTECTED_FIELD, f"Field '{name}' cannot be changed.")
            )
            continue
        if field_group(name) is None:
            denials.append(FieldDenial(name, UNKNOWN_FIELD, f"Unknown field: '{name}'."))
            continue
        if not can_write_field(actor_role, name):
            denials.append(
                FieldDenial(
                    name,
                    PERMISSION_DENIED,
                    f"Role '{actor_role}' is not allowed to change {name}.",
                )
            )
            continue
        if not is_field_unlocked(actor_role, name, approval_current):
            denials.append(
                FieldDenial(
                    name,
                    PERMISSION_DENIED,
                    f"Task must be approved by a manager before you can change {name}.",
                )
            )
            continue

        if name == "status":
            if not isinstance(value, str):
                denials.append(FieldDenial(name, INVALID_VALUE, "Status must be a string."))
                continue
            requested_status = value
            permitted.add(name)
        elif name == "approval_status":
            decision = approval_decision(
                actor_role,
                approval_current,
                value,
                task_completed=base_current == "done",
            )
            if not decision.accepted:
                denials.append(
                    FieldDenial(name, decision.code or INVALID_VALUE, decision.reason or "")
                )
                continue
            approval_change = decision
            permitted.add(name)
        else:
            ok, normalized, message = normalize_field_value(name, value)
            if not ok:
                denials.append(FieldDenial(name, INVALID_VALUE, message or ""))
                continue
            candidate[name] = normalized
            permitted.add(name)

    for denial in denials:
        logger.debug("Dropped %s for %s: %s", denial.field, actor_role, denial.message)

    if not permitted:
        return Rejection(reason=NO_PERMITTED_FIELDS, denials=denials)

    changes: dict = {k: v for k, v in candidate.items() if task.get(k) != v}

    new_approval = approval_current
    if approval_change is not None and approval_change.changed:
        new_approval = approval_change.approval_status
        changes["approval_status"] = new_approval
        record_approval_change(
            audit_sink,
            actor=_actor_label(actor_role, actor_id),
            task_id=task.get("id", ""),
            old_value=approval_current,
            new_value=new_approval,
            timestamp=_timestamp(now),
        )

    subtasks = changes.get("subtasks", task.get("subtasks") or [])
    due_date = changes["due_date"] if "due_date" in changes else task.get("due_date")
    status_decision = compute_status(
        base_current,
        requested_status,
        all_completed(subtasks),
        new_approval,
        due_date,
        now,
        actor_role,
    )

    notes: list[str] = []
    if status_decision.reason:
        notes.append(status_decision.reason)

    if requested_status is not None or status_decision.status != task.get("status"):
        changes["status"] = status_decision.status
    if status_decision.base_status != task.get("workflow_status"):
        changes["workflow_status"] = status_decision.base_status
    if requested_status is not None or status_decision.completed != bool(task.get("completed")):
        changes["completed"] = status_decision.completed

    return AcceptedPatch(
        changes=changes,
        notes=notes,
        denials=denials,
        status_decision=status_decision,
    )


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

_CREATION_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "director",
    "genre",
    "due_date",
    "priority",
    "tags",
    "assignee",
    "subtasks",
    "comments",
    "attachments",
)


def authorize_creation(
    actor_role: str,
    data: dict,
    *,
    now: datetime | date | None = None,
    default_priority: str = "medium",
    default_status: str = STATUS_ORDER[0],
) -> AcceptedPatch | Rejection:
    """Build the initial field values for a new task created by *actor_role*.

    Managers create pre-approved tasks; other roles start ``pending`` and so
    cannot create a task directly in ``done``.  Only managers may choose a
    different initial approval state.  A missing or invalid title rejects
    the whole request.
    """
    denials: list[FieldDenial] = []
    values: dict = {
        "description": None,
        "director": None,
        "genre": None,
        "due_date": None,
        "priority": default_priority,
        "tags": [],
        "assignee": None,
        "subtasks": [],
        "comments": [],
        "attachments": [],
    }

    for name, value in data.items():
        if name in ("status", "approval_status"):
            continue
        if name in PROTECTED_FIELDS:
            denials.append(
                FieldDenial(name, PROTECTED_FIELD, f"Field '{name}' cannot be changed.")
            )
            continue
        if name not in _CREATION_FIELDS:
            denials.append(FieldDenial(name, UNKNOWN_FIELD, f"Unknown field: '{name}'."))
            continue
        ok, normalized, message = normalize_field_value(name, value)
        if not ok:
            denials.append(FieldDenial(name, INVALID_VALUE, message or ""))
            continue
        values[name] = normalized

    if "title" not in values:
        title_denied = [d for d in denials if d.field == "title"]
        if not title_denied:
            denials.append(FieldDenial("title", INVALID_VALUE, "Title is required."))
        return Rejection(reason="Title is required.", denials=denials)

    approval = initial_approval_status(actor_role)
    requested_approval = data.get("approval_status")
    if requested_approval is not None and requested_approval != approval:
        if actor_role != "manager":
            denials.append(
                FieldDenial(
                    "approval_status",
                    PERMISSION_DENIED,
                    "Only managers can change approval status.",
                )
            )
        elif validate_approval_status(requested_approval):
            approval = requested_approval
        else:
            valid = ", ".join(VALID_APPROVAL_STATUSES)
            denials.append(
                FieldDenial(
                    "approval_status",
                    INVALID_VALUE,
                    f"Invalid approval status: '{requested_approval}'. Valid values: {valid}.",
                )
            )

    requested_status = data.get("status")
    if requested_status is not None and not isinstance(requested_status, str):
        denials.append(FieldDenial("status", INVALID_VALUE, "Status must be a string."))
        requested_status = None

    status_decision = compute_status(
        default_status,
        requested_status,
        all_completed(values["subtasks"]),
        approval,
        values["due_date"],
        now,
        actor_role,
    )

    values["approval_status"] = approval
    values["status"] = status_decision.status
    values["workflow_status"] = status_decision.base_status
    values["completed"] = status_decision.completed

    notes = [status_decision.reason] if status_decision.reason else []
    return AcceptedPatch(
        changes=values,
        notes=notes,
        denials=denials,
        status_decision=status_decision,
    )
