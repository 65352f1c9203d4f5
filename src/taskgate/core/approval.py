"""Approval gate: the manager-controlled accept/reject axis of a task.

Approval is independent of workflow status.  Three states::

    pending  --approve-->  approved
    pending  --reject--->  rejected
    approved --reject--->  rejected
    rejected --resubmit->  pending

Only managers move a task between them.  ``approved`` is required before a
task may reach ``done``, and employees may only work on a task (status,
checklist, comments, attachments) once it has been approved.
"""

from __future__ import annotations

from dataclasses import dataclass

from taskgate.core.audit import AuditSink, safe_record
from taskgate.core.config import VALID_APPROVAL_STATUSES

APPROVAL_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"approved", "rejected"}),
    "approved": frozenset({"rejected"}),
    "rejected": frozenset({"pending"}),
}

# Fields an employee may write only after the task has been approved.
APPROVAL_GATED_FIELDS: frozenset[str] = frozenset(
    {"status", "subtasks", "comments", "attachments"}
)


@dataclass(frozen=True)
class ApprovalDecision:
    """Outcome of a requested approval change."""

    approval_status: str
    accepted: bool
    changed: bool
    code: str | None = None
    reason: str | None = None


def initial_approval_status(role: str) -> str:
    """Managers create pre-approved tasks; everyone else starts pending."""
    return "approved" if role == "manager" else "pending"


def validate_approval_transition(from_status: str, to_status: str) -> bool:
    """Return ``True`` if the approval state may move from *from_status* to *to_status*."""
    return to_status in APPROVAL_TRANSITIONS.get(from_status, frozenset())


def approval_decision(
    actor_role: str,
    current: str,
    requested: str,
    *,
    task_completed: bool = False,
) -> ApprovalDecision:
    """Decide whether *actor_role* may move approval from *current* to *requested*.

    A completed task keeps its approval.  Never raises.  Re-requesting the
    current state is accepted as a no-op.
    """
    if requested not in VALID_APPROVAL_STATUSES:
        valid = ", ".join(VALID_APPROVAL_STATUSES)
        return ApprovalDecision(
            approval_status=current,
            accepted=False,
            changed=False,
            code="INVALID_VALUE",
            reason=f"Invalid approval status: '{requested}'. Valid values: {valid}.",
        )
    if actor_role != "manager":
        return ApprovalDecision(
            approval_status=current,
            accepted=False,
            changed=False,
            code="PERMISSION_DENIED",
            reason="Only managers can change approval status.",
        )
    if requested == current:
        return ApprovalDecision(approval_status=current, accepted=True, changed=False)
    if task_completed:
        return ApprovalDecision(
            approval_status=current,
            accepted=False,
            changed=False,
            code="INVALID_TRANSITION",
            reason="Approval cannot be withdrawn from a completed task.",
        )
    if not validate_approval_transition(current, requested):
        allowed = ", ".join(sorted(APPROVAL_TRANSITIONS.get(current, frozenset()))) or "(none)"
        return ApprovalDecision(
            approval_status=current,
            accepted=False,
            changed=False,
            code="INVALID_TRANSITION",
            reason=(
                f"Cannot change approval from {current} to {requested}. "
                f"Allowed from {current}: {allowed}."
            ),
        )
    return ApprovalDecision(approval_status=requested, accepted=True, changed=True)


def requires_approval(role: str, field: str) -> bool:
    """Return ``True`` if *role* needs an approved task to write *field*."""
    return role != "manager" and field in APPROVAL_GATED_FIELDS


def is_field_unlocked(role: str, field: str, approval_status: str | None) -> bool:
    """Return ``True`` unless *field* is approval-gated for *role* and the task is unapproved."""
    if not requires_approval(role, field):
        return True
    return approval_status == "approved"


def record_approval_change(
    sink: AuditSink | None,
    *,
    actor: str,
    task_id: str,
    old_value: str,
    new_value: str,
    timestamp: str,
) -> bool:
    """Emit an ``approval_status`` audit record.  Never raises."""
    return safe_record(sink, actor, task_id, "approval_status", old_value, new_value, timestamp)
