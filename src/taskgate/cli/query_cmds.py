"""Query commands: show, list, transitions, stats, suggest, audit."""

from __future__ import annotations

from pathlib import Path

import click

from taskgate.cli.helpers import (
    actor_option,
    commit_patch,
    echo_feedback,
    json_envelope,
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
from taskgate.core.approval import is_field_unlocked
from taskgate.core.authorizer import authorize
from taskgate.core.checklist import all_completed, checklist_progress
from taskgate.core.config import SELECTABLE_STATUSES, VALID_APPROVAL_STATUSES
from taskgate.core.lifecycle import base_status_of, legal_next_statuses
from taskgate.core.roles import editable_fields
from taskgate.core.stats import AGGREGATE_FILTERS, build_stats, filter_tasks, visible_to
from taskgate.core.suggestions import analyze_task, suggestion_patch
from taskgate.core.tasks import compact_snapshot, refresh_status
from taskgate.storage.audit import read_audit_log
from taskgate.storage.readers import load_all_snapshots, read_task_events


def _visible_snapshot(taskgate_dir: Path, task_id: str, is_json: bool) -> dict:
    """Read a task, refresh its status and apply the actor's visibility."""
    snapshot = refresh_status(read_snapshot_or_exit(taskgate_dir, task_id, is_json))
    actor = require_actor(taskgate_dir, is_json, optional=True)
    if actor is not None and not visible_to(snapshot, actor):
        output_error(f"Task {task_id} is not assigned to you.", "PERMISSION_DENIED", is_json)
    return snapshot


# ---------------------------------------------------------------------------
# taskgate show
# ---------------------------------------------------------------------------


@cli.command("show")
@click.argument("task_id")
@click.option("--events", "with_events", is_flag=True, help="Include the task's event log.")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@actor_option
def show_cmd(task_id: str, with_events: bool, output_json: bool) -> None:
    """Show full details of a task."""
    is_json = output_json

    taskgate_dir = require_root(is_json)
    task_id = resolve_task_id(task_id, is_json)
    snapshot = _visible_snapshot(taskgate_dir, task_id, is_json)
    events = read_task_events(taskgate_dir, task_id) if with_events else []

    if is_json:
        data = dict(snapshot)
        data["progress"] = checklist_progress(snapshot.get("subtasks"))
        if with_events:
            data["events"] = events
        click.echo(json_envelope(True, data=data))
        return

    progress = checklist_progress(snapshot.get("subtasks"))
    click.echo(f'{snapshot["id"]}  "{snapshot.get("title")}"')
    status_line = f"Status: {snapshot.get('status')}"
    if snapshot.get("status") != snapshot.get("workflow_status"):
        status_line += f" (workflow: {snapshot.get('workflow_status')})"
    click.echo(
        f"{status_line}  Priority: {snapshot.get('priority')}  "
        f"Approval: {snapshot.get('approval_status')}"
    )
    click.echo(f"Assignee: {snapshot.get('assignee') or 'unassigned'}")
    if snapshot.get("due_date"):
        click.echo(f"Due: {snapshot['due_date']}")
    for label, key in (("Director", "director"), ("Genre", "genre")):
        if snapshot.get(key):
            click.echo(f"{label}: {snapshot[key]}")
    if snapshot.get("tags"):
        click.echo(f"Tags: {', '.join(snapshot['tags'])}")
    click.echo(f"Created by: {snapshot.get('created_by')} at {snapshot.get('created_at')}")

    if snapshot.get("description"):
        click.echo("")
        click.echo(snapshot["description"])

    if snapshot.get("subtasks"):
        click.echo("")
        click.echo(
            f"Checklist ({progress['completed']}/{progress['total']}, {progress['percent']}%):"
        )
        for item in snapshot["subtasks"]:
            mark = "x" if item.get("completed") else " "
            click.echo(f"  [{mark}] {item['title']}  ({item['id']})")

    if snapshot.get("comments"):
        click.echo("")
        click.echo("Comments:")
        for c in snapshot["comments"]:
            click.echo(f"  {c.get('author')} ({c.get('created_at')}): {c.get('text')}")

    if snapshot.get("attachments"):
        click.echo("")
        click.echo("Attachments:")
        for a in snapshot["attachments"]:
            click.echo(f"  {a.get('filename')}  {a.get('filesize')} bytes  ({a.get('id')})")

    if with_events:
        click.echo("")
        click.echo("Events:")
        for ev in events:
            click.echo(f"  {ev.get('ts')}  {ev.get('type')}  {ev.get('actor')}")


# ---------------------------------------------------------------------------
# taskgate list
# ---------------------------------------------------------------------------


@cli.command("list")
@click.option(
    "--status",
    default="all",
    help="all, completed, pending, overdue, or a concrete status.",
)
@click.option("--assignee", default=None, help="Filter by assignee.")
@click.option(
    "--approval",
    type=click.Choice(VALID_APPROVAL_STATUSES),
    default=None,
    help="Filter by approval status.",
)
@click.option("--search", default=None, help="Search title, director and genre.")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.option("--quiet", is_flag=True, help="Print one task ID per line.")
@actor_option
def list_cmd(
    status: str,
    assignee: str | None,
    approval: str | None,
    search: str | None,
    output_json: bool,
    quiet: bool,
) -> None:
    """List tasks visible to the actor, with optional filters."""
    is_json = output_json

    taskgate_dir = require_root(is_json)
    known = AGGREGATE_FILTERS + SELECTABLE_STATUSES
    if status not in known:
        output_error(
            f"Invalid status filter: '{status}'. Valid filters: {', '.join(known)}.",
            "VALIDATION_ERROR",
            is_json,
        )
    actor = require_actor(taskgate_dir, is_json, optional=True)

    snapshots = [refresh_status(s) for s in load_all_snapshots(taskgate_dir)]
    filtered = filter_tasks(
        snapshots,
        actor=actor,
        status_filter=status,
        assignee=assignee,
        approval=approval,
        search=search,
    )

    if is_json:
        click.echo(json_envelope(True, data=[compact_snapshot(s) for s in filtered]))
    elif quiet:
        for snap in filtered:
            click.echo(snap.get("id", ""))
    else:
        if not filtered:
            click.echo("No tasks.")
        for snap in filtered:
            progress = checklist_progress(snap.get("subtasks"))
            checklist = f"{progress['completed']}/{progress['total']}" if progress["total"] else "-"
            click.echo(
                f"{snap.get('id')}  {snap.get('status')}  {snap.get('priority')}  "
                f"{snap.get('approval_status')}  {checklist}  "
                f'"{snap.get("title")}"  {snap.get("assignee") or "unassigned"}'
            )


# ---------------------------------------------------------------------------
# taskgate transitions
# ---------------------------------------------------------------------------


@cli.command("transitions")
@click.argument("task_id")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@actor_option
def transitions_cmd(task_id: str, output_json: bool) -> None:
    """Show the statuses a task can move to and the fields the actor may edit."""
    is_json = output_json

    taskgate_dir = require_root(is_json)
    task_id = resolve_task_id(task_id, is_json)
    snapshot = _visible_snapshot(taskgate_dir, task_id, is_json)
    actor = require_actor(taskgate_dir, is_json, optional=True)

    approval = snapshot.get("approval_status")
    statuses = legal_next_statuses(
        base_status_of(snapshot),
        all_completed(snapshot.get("subtasks")),
        approval,
    )
    fields = None
    if actor is not None:
        fields = [
            f for f in editable_fields(actor.role) if is_field_unlocked(actor.role, f, approval)
        ]

    if is_json:
        data: dict = {"id": task_id, "status": snapshot.get("status"), "next": statuses}
        if fields is not None:
            data["editable_fields"] = fields
        click.echo(json_envelope(True, data=data))
        return

    click.echo(f"{task_id}  current: {snapshot.get('status')}")
    click.echo(f"Next statuses: {', '.join(statuses) if statuses else 'none'}")
    if fields is not None:
        click.echo(f"Editable by {actor.to_actor_string()}: {', '.join(fields) or 'nothing'}")


# ---------------------------------------------------------------------------
# taskgate stats
# ---------------------------------------------------------------------------


def _print_human_stats(stats: dict, config: dict) -> None:
    s = stats["summary"]
    header = config.get("project_name") or "Taskgate"

    click.echo(f"=== {header} Stats ===")
    click.echo("")
    click.echo(
        f"Tasks: {s['total']} total, {s['completed']} completed, "
        f"{s['pending']} pending, {s['overdue']} overdue ({s['completion_rate']}% done)"
    )
    click.echo(f"Approvals: {s['pending_approvals']} pending, {s['approved']} approved")
    click.echo("")

    if stats["by_status"]:
        click.echo("Status:")
        for status, count in stats["by_status"].items():
            click.echo(f"  {status:<12s} {count:>3d}")
        click.echo("")

    if stats["by_assignee"]:
        click.echo("Assignees:")
        for row in stats["by_assignee"]:
            click.echo(
                f"  {row['assignee']:<20s} {row['completed']:>3d} done  {row['pending']:>3d} open"
            )
        click.echo("")

    if stats["upcoming"]:
        click.echo("Upcoming:")
        for t in stats["upcoming"]:
            click.echo(f"  {t['due_date']}  {t['id']}  \"{t['title']}\"")


@cli.command("stats")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@actor_option
def stats_cmd(output_json: bool) -> None:
    """Show dashboard statistics over the tasks visible to the actor."""
    is_json = output_json

    taskgate_dir = require_root(is_json)
    config = load_project_config(taskgate_dir)
    actor = require_actor(taskgate_dir, is_json, optional=True)

    snapshots = [refresh_status(s) for s in load_all_snapshots(taskgate_dir)]
    stats = build_stats(filter_tasks(snapshots, actor=actor))

    if is_json:
        click.echo(json_envelope(True, data=stats))
    else:
        _print_human_stats(stats, config)


# ---------------------------------------------------------------------------
# taskgate suggest
# ---------------------------------------------------------------------------


def _format_value(value: object) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


@cli.command("suggest")
@click.argument("task_id")
@click.option("--apply", "apply_changes", is_flag=True, help="Apply the suggestions as an edit.")
@click.option(
    "--field",
    "fields",
    multiple=True,
    help="Only apply suggestions for this field (repeatable).",
)
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@actor_option
def suggest_cmd(
    task_id: str,
    apply_changes: bool,
    fields: tuple[str, ...],
    output_json: bool,
) -> None:
    """Suggest a priority and other field values, and flag stalled tasks.

    With --apply the suggestions go through the same permission checks as
    'taskgate update'.
    """
    is_json = output_json

    taskgate_dir = require_root(is_json)
    task_id = resolve_task_id(task_id, is_json)
    stored = read_snapshot_or_exit(taskgate_dir, task_id, is_json)
    actor = require_actor(taskgate_dir, is_json, optional=not apply_changes)
    snapshot = refresh_status(stored)
    if actor is not None and not visible_to(snapshot, actor):
        output_error(f"Task {task_id} is not assigned to you.", "PERMISSION_DENIED", is_json)

    peers = load_all_snapshots(taskgate_dir)
    if actor is not None:
        peers = filter_tasks(peers, actor=actor)
    analysis = analyze_task(snapshot, peers)

    if not apply_changes:
        if is_json:
            click.echo(json_envelope(True, data={"id": task_id, **analysis}))
            return
        click.echo(f'{task_id}  "{snapshot.get("title")}"')
        if not analysis["suggestions"] and not analysis["warnings"]:
            click.echo("No suggestions.")
        for s in analysis["suggestions"]:
            click.echo(f"  {s['field']} -> {_format_value(s['value'])}: {s['reason']}")
        for w in analysis["warnings"]:
            click.echo(f"  Warning: {w['message']}")
        return

    patch = suggestion_patch(analysis["suggestions"], fields)
    if not patch:
        output_result(
            data={"task": snapshot, "changed": False, "notes": [], "denials": []},
            human_message=f"No suggestions to apply to {task_id}.",
            quiet_value=task_id,
            is_json=is_json,
            is_quiet=False,
        )
        return

    result = authorize(actor.role, stored, patch, actor_id=actor.id)
    updated, events = commit_patch(taskgate_dir, stored, result, actor, is_json)
    echo_feedback(result, is_json)
    applied = [k for k in patch if updated.get(k) != stored.get(k)]
    output_result(
        data=result_payload(updated, result, events),
        human_message=(
            f"Applied suggestions to {task_id}: {', '.join(applied)}"
            if events
            else f"No changes to {task_id}."
        ),
        quiet_value=task_id,
        is_json=is_json,
        is_quiet=False,
    )


# ---------------------------------------------------------------------------
# taskgate audit
# ---------------------------------------------------------------------------


@cli.command("audit")
@click.argument("task_id", required=False, default=None)
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def audit_cmd(task_id: str | None, output_json: bool) -> None:
    """Show the approval audit log, optionally for one task."""
    is_json = output_json

    taskgate_dir = require_root(is_json)
    if task_id is not None:
        task_id = resolve_task_id(task_id, is_json)

    records = read_audit_log(taskgate_dir, task_id)

    if is_json:
        click.echo(json_envelope(True, data=records))
        return

    if not records:
        click.echo("No audit records.")
    for rec in records:
        click.echo(
            f"{rec.get('ts')}  {rec.get('task_id')}  {rec.get('field')}: "
            f"{rec.get('from')} -> {rec.get('to')}  by {rec.get('actor')}"
        )
