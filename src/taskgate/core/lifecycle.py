"""Task lifecycle state machine.

Statuses ``todo < inprogress < review < done`` form a ranked workflow that
only moves forward.  ``overdue`` is not part of that ranking: it is an
overlay computed from the due date and laid over the ranked (base) status
when a task is evaluated.  Snapshots keep both, ``workflow_status`` for the
ranked base and ``status`` for the overlaid value.

:func:`compute_status` never raises.  A request that cannot be honoured
degrades to the closest legal status and carries a human-readable reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from taskgate.core.checklist import all_completed
from taskgate.core.config import SELECTABLE_STATUSES

logger = logging.getLogger(__name__)

OVERDUE = "overdue"

STATUS_ORDER: tuple[str, ...] = ("todo", "inprogress", "review", "done")
STATUS_RANK: dict[str, int] = {status: index for index, status in enumerate(STATUS_ORDER)}

# Reason codes
INVALID_TRANSITION = "INVALID_TRANSITION"
APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
INVALID_VALUE = "INVALID_VALUE"
AUTO_REVIEW = "AUTO_REVIEW"


@dataclass(frozen=True)
class StatusDecision:
    """Result of evaluating a status request."""

    status: str  # wire status, overdue overlay applied
    base_status: str  # ranked status underneath the overlay
    accepted: bool  # False when an explicit request was not honoured
    completed: bool
    overdue: bool
    code: str | None = None
    reason: str | None = None


def status_rank(status: str | None) -> int | None:
    """Return the workflow rank of *status*, or ``None`` for unranked values."""
    if not isinstance(status, str):
        return None
    return STATUS_RANK.get(status)


def is_backward_status_transition(from_status: str | None, to_status: str | None) -> bool:
    """Return True when *to_status* is earlier than *from_status* in workflow order.

    Unranked statuses (``overdue``, unknown values) are never backward.
    """
    from_rank = status_rank(from_status)
    to_rank = status_rank(to_status)
    if from_rank is None or to_rank is None:
        return False
    return to_rank < from_rank


# ---------------------------------------------------------------------------
# Due dates
# ---------------------------------------------------------------------------


def parse_due_date(value: object) -> date | None:
    """Coerce *value* into a :class:`date`.

    Accepts ``date``, ``datetime`` and ISO strings (``YYYY-MM-DD``, optionally
    followed by a time part).  Anything else, including unparseable strings,
    yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def as_utc(moment: datetime | date | None) -> datetime:
    """Return *moment* as an aware UTC datetime; a bare date means 00:00 UTC."""
    if moment is None:
        return datetime.now(timezone.utc)
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc)
    return datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)


def is_overdue(due_date: object, now: datetime | date | None = None) -> bool:
    """Return ``True`` once *now* is past 00:00 UTC on *due_date*.

    A task is overdue for the whole of its due day.  Naive datetimes are
    read as UTC.
    """
    due = parse_due_date(due_date)
    if due is None:
        return False
    return as_utc(due) < as_utc(now)


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------


def compute_status(
    current: str,
    requested: str | None,
    subtasks_all_done: bool,
    approval_status: str | None,
    due_date: object = None,
    now: datetime | date | None = None,
    actor_role: str | None = None,
) -> StatusDecision:
    """Compute the status a task ends up in.

    *current* should be the ranked base status (``workflow_status``).
    *requested* is the status proposed by the actor, or ``None`` to simply
    re-evaluate the task (after a checklist change, on read, ...).

    Rules, in order:

    1. A task whose checklist is fully completed goes to ``review`` whatever
       was requested, unless it is already ``done``.
    2. Status never moves backwards through ``todo -> inprogress -> review -> done``.
    3. ``done`` requires ``approval_status == "approved"``; otherwise the task
       falls back to ``review`` if it was already there (or was done) and to
       its current status otherwise.
    4. If the resulting status is not ``done`` and the due date has passed,
       ``overdue`` is overlaid.

    *actor_role* does not change the arithmetic; roles only decide which
    fields may be proposed.
    """
    reasons: list[str] = []
    code: str | None = None
    accepted = True

    if status_rank(current) is None:
        # Unranked input (a legacy ``overdue`` status) with nothing requested
        # has no base to fall back to.
        if requested is None or requested == current:
            overdue = current == OVERDUE
            return StatusDecision(
                status=current,
                base_status=current,
                accepted=True,
                completed=False,
                overdue=overdue,
            )

    target = requested if requested is not None else current

    if target == OVERDUE:
        if requested is not None and requested != current:
            accepted = False
            code = INVALID_TRANSITION
            reasons.append("Status 'overdue' is set from the due date and cannot be chosen.")
        target = current
    elif status_rank(target) is None:
        accepted = False
        code = INVALID_VALUE
        valid = ", ".join(SELECTABLE_STATUSES)
        reasons.append(f"Invalid status: '{target}'. Valid statuses: {valid}.")
        target = current

    base = target if status_rank(target) is not None else STATUS_ORDER[0]

    if is_backward_status_transition(current, base):
        accepted = False
        code = INVALID_TRANSITION
        reasons.append(f"Cannot move status backwards from {current} to {base}.")
        base = current

    if subtasks_all_done and current != "done" and base != "review":
        moved = "moved to" if STATUS_RANK[base] < STATUS_RANK["review"] else "held at"
        base = "review"
        code = code or AUTO_REVIEW
        reasons.append(f"All subtasks are completed; status {moved} review.")

    if base == "done" and approval_status != "approved":
        if current in ("review", "done"):
            fallback = "review"
        elif status_rank(current) is not None:
            fallback = current
        else:
            fallback = STATUS_ORDER[0]
        base = fallback
        code = APPROVAL_REQUIRED
        reasons.append("Manager approval is required before a task can be marked done.")

    if requested is not None and requested != OVERDUE and base != requested:
        accepted = False

    completed = base == "done"
    overdue = not completed and is_overdue(due_date, now)
    final = OVERDUE if overdue else base

    reason = " ".join(reasons) if reasons else None
    if reason:
        logger.debug(
            "Status request %s -> %s by %s settled at %s: %s",
            current,
            requested,
            actor_role or "-",
            final,
            reason,
        )

    return StatusDecision(
        status=final,
        base_status=base,
        accepted=accepted,
        completed=completed,
        overdue=overdue,
        code=code,
        reason=reason,
    )


def legal_next_statuses(
    current: str,
    subtasks_all_done: bool,
    approval_status: str | None,
) -> list[str]:
    """Return the statuses an actor may request from *current*, in workflow order.

    ``overdue`` is never listed; it is derived, not chosen.  A completed
    checklist leaves ``review`` as the only choice until the task is done.
    """
    result: list[str] = []
    for status in SELECTABLE_STATUSES:
        if is_backward_status_transition(current, status):
            continue
        if status == "done" and approval_status != "approved":
            continue
        if subtasks_all_done and current != "done" and status != "review":
            continue
        result.append(status)
    return result


def base_status_of(task: dict) -> str:
    """Return the ranked base status stored on a task snapshot."""
    return task.get("workflow_status") or task.get("status") or STATUS_ORDER[0]


def evaluate_task(task: dict, now: datetime | date | None = None) -> StatusDecision:
    """Re-evaluate a task snapshot without any requested change.

    Applies the checklist rule, the approval requirement and the overdue
    overlay to the stored state.
    """
    return compute_status(
        base_status_of(task),
        None,
        all_completed(task.get("subtasks")),
        task.get("approval_status"),
        task.get("due_date"),
        now,
    )
