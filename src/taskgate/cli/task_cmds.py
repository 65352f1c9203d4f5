"""Task write commands: create, update, status, approval, checklist, details, delete."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import click

from taskgate.cli.helpers import (
    commit_patch,
    common_options,
    echo_feedback,
    exit_on_rejection,
    load_project_config,
    output_error,
    output_result,
    read_snapshot_or_exit,
    require_actor,
    require_root,
    resolve_task_id,
    result_payload,
)
from taskgate.cli.main import cli
from taskgate.core.actors import Actor
from taskgate.core.audit import MemoryAuditSink
from taskgate.core.authorizer import authorize, authorize_creation
from taskgate.core.checklist import add_subtask, find_subtask, remove_subtask, toggle_subtask
from taskgate.core.details import create_attachment, create_comment, remove_record
from taskgate.core.events import create_event, utc_now
from taskgate.core.ids import generate_task_id
from taskgate.core.tasks import apply_event_to_snapshot
from taskgate.storage.locks import LockTimeout
from taskgate.storage.operations import (
    ConcurrentModificationError,
    TaskNotFoundError,
    delete_task,
    write_task_event,
)

# Fields edited through their own commands rather than ``update``.
_REDIRECT_FIELDS: dict[str, str] = {
    "subtasks": "Use 'taskgate subtask add|toggle|remove' to change the checklist.",
    "comments": "Use 'taskgate comment' to add comments.",
    "attachments": "Use 'taskgate attach' to add attachments.",
}


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------


def _load(task_id: str, is_json: bool) -> tuple[Path, Actor, dict]:
    taskgate_dir = require_root(is_json)
    task_id = resolve_task_id(task_id, is_json)
    actor = require_actor(taskgate_dir, is_json)
    snapshot = read_snapshot_or_exit(taskgate_dir, task_id, is_json)
    return taskgate_dir, actor, snapshot


def _submit(
    taskgate_dir: Path,
    actor: Actor,
    snapshot: dict,
    patch: dict,
    *,
    is_json: bool,
    quiet: bool,
    describe: Callable[[dict], str],
) -> None:
    """Authorize *patch*, persist what survives and report the outcome."""
    pending_audit = MemoryAuditSink()
    result = authorize(
        actor.role,
        snapshot,
        patch,
        actor_id=actor.id,
        audit_sink=pending_audit,
    )
    updated, events = commit_patch(
        taskgate_dir, snapshot, result, actor, is_json, pending_audit=pending_audit
    )
    echo_feedback(result, is_json)
    output_result(
        data=result_payload(updated, result, events),
        human_message=describe(updated) if events else f"No changes to {updated['id']}.",
        quiet_value=updated["id"],
        is_json=is_json,
        is_quiet=quiet,
    )


# ---------------------------------------------------------------------------
# taskgate create
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("title")
@click.option("--description", default=None, help="Task description.")
@click.option("--director", default=None, help="Director.")
@click.option("--genre", default=None, help="Genre.")
@click.option("--priority", default=None, help="Priority (low, medium, high, urgent).")
@click.option("--tags", default=None, help="Comma-separated tags.")
@click.option("--due", "due_date", default=None, help="Due date (YYYY-MM-DD).")
@click.option("--assignee", default=None, help="Assignee identifier.")
@click.option("--status", default=None, help="Requested initial status.")
@click.option(
    "--approval",
    "approval_status",
    default=None,
    help="Initial approval status (managers only).",
)
@click.option("--subtask", "subtask_titles", multiple=True, help="Checklist item (repeatable).")
@common_options
def create(
    title: str,
    description: str | None,
    director: str | None,
    genre: str | None,
    priority: str | None,
    tags: str | None,
    due_date: str | None,
    assignee: str | None,
    status: str | None,
    approval_status: str | None,
    subtask_titles: tuple[str, ...],
    output_json: bool,
    quiet: bool,
) -> None:
    """Create a new task."""
    is_json = output_json

    taskgate_dir = require_root(is_json)
    config = load_project_config(taskgate_dir)
    actor = require_actor(taskgate_dir, is_json)

    data: dict = {"title": title}
    optional = {
        "description": description,
        "director": director,
        "genre": genre,
        "priority": priority,
        "tags": tags,
        "due_date": due_date,
        "assignee": assignee,
        "status": status,
        "approval_status": approval_status,
    }
    data.update({k: v for k, v in optional.items() if v is not None})

    subtasks: list[dict] = []
    for subtask_title in subtask_titles:
        subtasks = add_subtask(subtasks, subtask_title)
    if subtasks:
        data["subtasks"] = subtasks

    result = authorize_creation(
        actor.role,
        data,
        default_priority=config.get("default_priority", "medium"),
        default_status=config.get("default_status", "todo"),
    )
    accepted = exit_on_rejection(result, is_json)

    task_id = generate_task_id()
    event = create_event(
        type="task_created",
        task_id=task_id,
        actor=actor.to_actor_string(),
        data=accepted.changes,
        reason=" ".join(accepted.notes) or None,
    )
    snapshot = apply_event_to_snapshot(None, event)

    try:
        write_task_event(taskgate_dir, task_id, [event], snapshot, expected_last_event_id=None)
    except (ConcurrentModificationError, LockTimeout) as e:
        output_error(str(e), "CONFLICT", is_json)

    echo_feedback(accepted, is_json)
    output_result(
        data=result_payload(snapshot, accepted, [event]),
        human_message=(
            f'Created task {task_id} "{snapshot["title"]}"\n'
            f"  status: {snapshot['status']}  priority: {snapshot['priority']}  "
            f"approval: {snapshot['approval_status']}"
        ),
        quiet_value=task_id,
        is_json=is_json,
        is_quiet=quiet,
    )


# ---------------------------------------------------------------------------
# taskgate update
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("task_id")
@click.argument("pairs", nargs=-1)
@common_options
def update(task_id: str, pairs: tuple[str, ...], output_json: bool, quiet: bool) -> None:
    """Update task fields.  Pass field=value pairs."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    if not pairs:
        output_error("No field=value pairs provided.", "VALIDATION_ERROR", is_json)

    # Split on first '=' only
    patch: dict = {}
    for pair in pairs:
        if "=" not in pair:
            output_error(
                f"Invalid field=value pair: '{pair}'. Expected format: field=value.",
                "VALIDATION_ERROR",
                is_json,
            )
        field, value = pair.split("=", 1)
        if field in _REDIRECT_FIELDS:
            output_error(_REDIRECT_FIELDS[field], "VALIDATION_ERROR", is_json)
        patch[field] = value

    def describe(updated: dict) -> str:
        changed = [k for k in patch if updated.get(k) != snapshot.get(k)]
        if updated.get("status") != snapshot.get("status") and "status" not in changed:
            changed.append("status")
        return f"Updated task {updated['id']}: {', '.join(changed)}"

    _submit(taskgate_dir, actor, snapshot, patch, is_json=is_json, quiet=quiet, describe=describe)


# ---------------------------------------------------------------------------
# taskgate status
# ---------------------------------------------------------------------------


@cli.command("status")
@click.argument("task_id")
@click.argument("new_status")
@common_options
def status_cmd(task_id: str, new_status: str, output_json: bool, quiet: bool) -> None:
    """Request a status change (todo, inprogress, review, done)."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"status": new_status},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: f"Status: {snapshot.get('status')} -> {u['status']} ({u['id']})",
    )


# ---------------------------------------------------------------------------
# taskgate approve / reject / resubmit
# ---------------------------------------------------------------------------


def _set_approval(task_id: str, value: str, output_json: bool, quiet: bool) -> None:
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"approval_status": value},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: (
            f"Approval: {snapshot.get('approval_status')} -> {u['approval_status']} ({u['id']})"
        ),
    )


@cli.command()
@click.argument("task_id")
@common_options
def approve(task_id: str, output_json: bool, quiet: bool) -> None:
    """Approve a task (managers only)."""
    _set_approval(task_id, "approved", output_json, quiet)


@cli.command()
@click.argument("task_id")
@common_options
def reject(task_id: str, output_json: bool, quiet: bool) -> None:
    """Reject a task (managers only)."""
    _set_approval(task_id, "rejected", output_json, quiet)


@cli.command()
@click.argument("task_id")
@common_options
def resubmit(task_id: str, output_json: bool, quiet: bool) -> None:
    """Send a rejected task back to pending review (managers only)."""
    _set_approval(task_id, "pending", output_json, quiet)


# ---------------------------------------------------------------------------
# taskgate subtask add|toggle|remove
# ---------------------------------------------------------------------------


@cli.group()
def subtask() -> None:
    """Manage a task's checklist."""


@subtask.command("add")
@click.argument("task_id")
@click.argument("title")
@common_options
def subtask_add(task_id: str, title: str, output_json: bool, quiet: bool) -> None:
    """Append a checklist item."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    subtasks = add_subtask(snapshot.get("subtasks"), title)
    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"subtasks": subtasks},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: f'Added subtask "{title.strip()}" to {u["id"]}',
    )


def _require_subtask(snapshot: dict, subtask_id: str, is_json: bool) -> dict:
    item = find_subtask(snapshot.get("subtasks"), subtask_id)
    if item is None:
        output_error(
            f"Subtask {subtask_id} not found on {snapshot['id']}.", "NOT_FOUND", is_json
        )
    return item


@subtask.command("toggle")
@click.argument("task_id")
@click.argument("subtask_id")
@common_options
def subtask_toggle(task_id: str, subtask_id: str, output_json: bool, quiet: bool) -> None:
    """Flip a checklist item between done and not done."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)
    item = _require_subtask(snapshot, subtask_id, is_json)

    def describe(updated: dict) -> str:
        state = "done" if not item.get("completed") else "not done"
        return f'Subtask "{item["title"]}" marked {state} (status: {updated["status"]})'

    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"subtasks": toggle_subtask(snapshot.get("subtasks"), subtask_id)},
        is_json=is_json,
        quiet=quiet,
        describe=describe,
    )


@subtask.command("remove")
@click.argument("task_id")
@click.argument("subtask_id")
@common_options
def subtask_remove(task_id: str, subtask_id: str, output_json: bool, quiet: bool) -> None:
    """Delete a checklist item."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)
    item = _require_subtask(snapshot, subtask_id, is_json)

    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"subtasks": remove_subtask(snapshot.get("subtasks"), subtask_id)},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: f'Removed subtask "{item["title"]}" from {u["id"]}',
    )


# ---------------------------------------------------------------------------
# taskgate comment / comment-delete
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("task_id")
@click.argument("text")
@common_options
def comment(task_id: str, text: str, output_json: bool, quiet: bool) -> None:
    """Add a comment to a task."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    try:
        record = create_comment(actor.to_actor_string(), text, created_at=utc_now())
    except ValueError as e:
        output_error(str(e), "VALIDATION_ERROR", is_json)

    comments = [dict(c) for c in snapshot.get("comments") or []] + [record]
    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"comments": comments},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: f"Comment {record['id']} added to {u['id']}",
    )


@cli.command("comment-delete")
@click.argument("task_id")
@click.argument("comment_id")
@common_options
def comment_delete(task_id: str, comment_id: str, output_json: bool, quiet: bool) -> None:
    """Delete a comment from a task."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    comments = snapshot.get("comments") or []
    if not any(c.get("id") == comment_id for c in comments):
        output_error(f"Comment {comment_id} not found on {snapshot['id']}.", "NOT_FOUND", is_json)

    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"comments": remove_record(comments, comment_id)},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: f"Comment {comment_id} deleted from {u['id']}",
    )


# ---------------------------------------------------------------------------
# taskgate attach / detach
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("task_id")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--content-type", default=None, help="MIME type (guessed from the name if omitted).")
@common_options
def attach(
    task_id: str,
    path: str,
    content_type: str | None,
    output_json: bool,
    quiet: bool,
) -> None:
    """Record a file's metadata as a task attachment."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    source = Path(path)
    try:
        record = create_attachment(
            source.name,
            source.stat().st_size,
            uploaded_by=actor.to_actor_string(),
            uploaded_at=utc_now(),
            content_type=content_type,
        )
    except (OSError, ValueError) as e:
        output_error(str(e), "VALIDATION_ERROR", is_json)

    attachments = [dict(a) for a in snapshot.get("attachments") or []] + [record]
    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"attachments": attachments},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: f"Attached {record['filename']} ({record['id']}) to {u['id']}",
    )


@cli.command()
@click.argument("task_id")
@click.argument("attachment_id")
@common_options
def detach(task_id: str, attachment_id: str, output_json: bool, quiet: bool) -> None:
    """Remove an attachment record from a task."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    attachments = snapshot.get("attachments") or []
    if not any(a.get("id") == attachment_id for a in attachments):
        output_error(
            f"Attachment {attachment_id} not found on {snapshot['id']}.", "NOT_FOUND", is_json
        )

    _submit(
        taskgate_dir,
        actor,
        snapshot,
        {"attachments": remove_record(attachments, attachment_id)},
        is_json=is_json,
        quiet=quiet,
        describe=lambda u: f"Attachment {attachment_id} removed from {u['id']}",
    )


# ---------------------------------------------------------------------------
# taskgate delete
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("task_id")
@common_options
def delete(task_id: str, output_json: bool, quiet: bool) -> None:
    """Delete a task and its event log (managers only)."""
    is_json = output_json
    taskgate_dir, actor, snapshot = _load(task_id, is_json)

    if not actor.is_manager:
        output_error("Only managers can delete tasks.", "PERMISSION_DENIED", is_json)

    try:
        delete_task(taskgate_dir, snapshot["id"])
    except TaskNotFoundError as e:
        output_error(str(e), "NOT_FOUND", is_json)
    except LockTimeout as e:
        output_error(str(e), "CONFLICT", is_json)

    output_result(
        data={"id": snapshot["id"], "deleted": True},
        human_message=f'Deleted task {snapshot["id"]} "{snapshot.get("title")}"',
        quiet_value=snapshot["id"],
        is_json=is_json,
        is_quiet=quiet,
    )
