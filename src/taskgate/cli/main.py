"""CLI entry point and commands."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from taskgate.core.config import default_config, serialize_config
from taskgate.core.ids import validate_actor
from taskgate.storage.fs import TASKGATE_DIR, atomic_write, ensure_taskgate_dirs


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine decisions to stderr.")
def cli(verbose: bool) -> None:
    """Taskgate: role-gated task tracking with manager approval."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


@cli.command()
@click.option(
    "--path",
    "target_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Directory to initialize Taskgate in (defaults to current directory).",
)
@click.option(
    "--actor",
    default=None,
    help="Default actor identity (e.g., manager:alice). Saved to config.",
)
@click.option("--project-name", default=None, help="Human-readable project name.")
def init(target_path: str, actor: str | None, project_name: str | None) -> None:
    """Initialize a new Taskgate project."""
    root = Path(target_path)
    taskgate_dir = root / TASKGATE_DIR

    if taskgate_dir.is_dir():
        click.echo(f"Taskgate already initialized in {TASKGATE_DIR}/")
        return

    if taskgate_dir.exists():
        raise click.ClickException(
            f"Cannot initialize: '{TASKGATE_DIR}' exists but is not a directory. "
            "Remove it and try again."
        )

    if actor and not validate_actor(actor):
        raise click.ClickException(
            f"Invalid actor format: '{actor}'. "
            "Expected role:identifier (e.g., manager:alice, employee:bob)."
        )

    try:
        ensure_taskgate_dirs(root)

        config: dict = dict(default_config())
        if actor:
            config["default_actor"] = actor
        if project_name:
            config["project_name"] = project_name
        atomic_write(taskgate_dir / "config.json", serialize_config(config))
    except PermissionError:
        raise click.ClickException(f"Permission denied: cannot create {TASKGATE_DIR}/ in {root}")
    except OSError as e:
        raise click.ClickException(f"Failed to initialize Taskgate: {e}")

    click.echo(f"Taskgate initialized in {TASKGATE_DIR}/")
    if actor:
        click.echo(f"Default actor: {actor}")
    if project_name:
        click.echo(f"Project: {project_name}")


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from taskgate.cli import task_cmds as _task_cmds  # noqa: E402, F401
from taskgate.cli import query_cmds as _query_cmds  # noqa: E402, F401

if __name__ == "__main__":
    cli()
