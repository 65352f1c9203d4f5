"""Shared CLI helpers, decorators, and output utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn

import click

from taskgate.core.actors import Actor, parse_actor
from taskgate.core.audit import MemoryAuditSink, safe_record
from taskgate.core.authorizer import AcceptedPatch, Rejection
from taskgate.core.events import utc_now
from taskgate.core.ids import validate_id
from taskgate.core.tasks import apply_event_to_snapshot, patch_to_events
from taskgate.storage.audit import JsonlAuditSink
from taskgate.storage.fs import TASKGATE_DIR, TaskgateRootError, find_root
from taskgate.storage.locks import LockTimeout
from taskgate.storage.operations import ConcurrentModificationError, write_task_event
from taskgate.storage.readers import read_snapshot


# ---------------------------------------------------------------------------
# Root & config
# ---------------------------------------------------------------------------


def require_root(is_json: bool = False) -> Path:
    """Find .taskgate/ directory or exit with error."""
    try:
        root = find_root()
    except TaskgateRootError as e:
        output_error(str(e), "NOT_INITIALIZED", is_json)
    if root is None:
        output_error(
            "Not a Taskgate project (no .taskgate/ found). Run 'taskgate init' first.",
            "NOT_INITIALIZED",
            is_json,
        )
    return root / TASKGATE_DIR


def load_project_config(taskgate_dir: Path) -> dict:
    """Load and return config.json from the taskgate directory."""
    return json.loads((taskgate_dir / "config.json").read_text())


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str, *, denials: list[dict] | None = None) -> dict:
    """Build an error object for the JSON envelope."""
    obj: dict = {"code": code, "message": message}
    if denials:
        obj["denials"] = denials
    return obj


def output_error(
    message: str,
    code: str,
    is_json: bool,
    exit_code: int = 1,
    *,
    denials: list[dict] | None = None,
) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message, denials=denials)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(
    *,
    data: object,
    human_message: str,
    quiet_value: str,
    is_json: bool,
    is_quiet: bool,
) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    elif is_quiet:
        click.echo(quiet_value)
    else:
        click.echo(human_message)


# ---------------------------------------------------------------------------
# Task ID resolution
# ---------------------------------------------------------------------------


def resolve_task_id(raw_id: str, is_json: bool) -> str:
    """Return *raw_id* if it is a well-formed task ID, else exit with INVALID_ID."""
    if validate_id(raw_id, "task"):
        return raw_id
    output_error(f"Invalid task ID format: '{raw_id}'.", "INVALID_ID", is_json)


def read_snapshot_or_exit(taskgate_dir: Path, task_id: str, is_json: bool) -> dict:
    """Read a task snapshot or exit with NOT_FOUND error."""
    snapshot = read_snapshot(taskgate_dir, task_id)
    if snapshot is None:
        output_error(f"Task {task_id} not found.", "NOT_FOUND", is_json)
    return snapshot


# ---------------------------------------------------------------------------
# Actor resolution
# ---------------------------------------------------------------------------


def require_actor(
    taskgate_dir: Path,
    is_json: bool,
    *,
    optional: bool = False,
) -> Actor | None:
    """Resolve the acting identity.  Caches the result on the Click context.

    ``--actor`` wins; otherwise ``default_actor`` from config.json is used.
    Set *optional* for read commands that work without an identity; they
    get ``None`` back when neither source is set.
    """
    ctx = click.get_current_context()
    ctx.ensure_object(dict)

    if "_resolved_actor" in ctx.obj:
        return ctx.obj["_resolved_actor"]

    actor_str = ctx.obj.get("_actor")
    if actor_str is None:
        actor_str = load_project_config(taskgate_dir).get("default_actor")

    if actor_str is None:
        if optional:
            return None
        output_error(
            "An actor is required. Pass --actor role:identifier "
            "or set default_actor with 'taskgate init --actor'.",
            "MISSING_ACTOR",
            is_json,
        )

    try:
        actor = parse_actor(actor_str)
    except ValueError as e:
        output_error(str(e), "INVALID_ACTOR", is_json)

    ctx.obj["_resolved_actor"] = actor
    return actor


# ---------------------------------------------------------------------------
# Click decorator
# ---------------------------------------------------------------------------


def _store_actor(ctx: click.Context, _param: click.Parameter, value: str | None) -> None:
    """Store --actor value on Click context for later resolution."""
    ctx.ensure_object(dict)
    ctx.obj["_actor"] = value


def actor_option(f):  # noqa: ANN001, ANN201
    """Decorator adding ``--actor``, resolved lazily via ``require_actor()``."""
    return click.option(
        "--actor",
        default=None,
        expose_value=False,
        callback=_store_actor,
        help="Acting identity (e.g., manager:alice, employee:bob).",
    )(f)


def common_options(f):  # noqa: ANN001, ANN201
    """Decorator adding common write-command options.

    The ``--actor`` flag is stored on the Click context; commands call
    ``require_actor()`` instead of reading an ``actor`` parameter.
    """
    f = click.option("--quiet", is_flag=True, help="Print only the task ID.")(f)
    f = click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")(f)
    f = actor_option(f)
    return f


# ---------------------------------------------------------------------------
# Authorization -> persistence
# ---------------------------------------------------------------------------


def exit_on_rejection(result: AcceptedPatch | Rejection, is_json: bool) -> AcceptedPatch:
    """Return *result* if accepted; otherwise exit with REJECTED."""
    if isinstance(result, Rejection):
        message = f"Request rejected ({result.reason}): " + " ".join(result.reasons)
        output_error(
            message,
            "REJECTED",
            is_json,
            denials=[d.to_dict() for d in result.denials],
        )
    return result


def commit_patch(
    taskgate_dir: Path,
    snapshot: dict,
    result: AcceptedPatch | Rejection,
    actor: Actor,
    is_json: bool,
    *,
    pending_audit: MemoryAuditSink | None = None,
) -> tuple[dict, list[dict]]:
    """Persist an authorization result against *snapshot*.

    Exits with REJECTED on a :class:`Rejection` and with CONFLICT when the
    task changed since *snapshot* was read.  Audit records collected in
    *pending_audit* are written to the project audit log only after the
    change itself is on disk.

    Returns ``(updated_snapshot, events)``; ``events`` is empty when the
    accepted patch changed nothing.
    """
    accepted = exit_on_rejection(result, is_json)

    events = patch_to_events(
        snapshot,
        accepted.changes,
        actor.to_actor_string(),
        ts=utc_now(),
        reason=" ".join(accepted.notes) or None,
    )
    if not events:
        return snapshot, events

    updated = snapshot
    for event in events:
        updated = apply_event_to_snapshot(updated, event)

    try:
        write_task_event(
            taskgate_dir,
            snapshot["id"],
            events,
            updated,
            expected_last_event_id=snapshot.get("last_event_id"),
        )
    except ConcurrentModificationError as e:
        output_error(str(e), "CONFLICT", is_json)
    except LockTimeout as e:
        output_error(str(e), "CONFLICT", is_json)

    if pending_audit is not None and pending_audit.records:
        sink = JsonlAuditSink(taskgate_dir)
        for rec in pending_audit.records:
            safe_record(
                sink, rec["actor"], rec["task_id"], rec["field"], rec["from"], rec["to"], rec["ts"]
            )

    return updated, events


def echo_feedback(result: AcceptedPatch, is_json: bool) -> None:
    """Print denials and auto-correction notes for a human reader."""
    if is_json:
        return
    for denial in result.denials:
        click.echo(f"Skipped {denial.field}: {denial.message}", err=True)
    for note in result.notes:
        click.echo(f"Note: {note}", err=True)


def result_payload(snapshot: dict, result: AcceptedPatch, events: list[dict]) -> dict:
    """Build the ``data`` object for a write command's JSON envelope."""
    return {
        "task": snapshot,
        "changed": bool(events),
        "notes": list(result.notes),
        "denials": [d.to_dict() for d in result.denials],
    }
