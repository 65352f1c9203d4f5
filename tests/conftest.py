"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

MANAGER = "manager:alice"
EMPLOYEE = "employee:bob"


@pytest.fixture()
def taskgate_root(tmp_path: Path) -> Path:
    """Return a temporary directory suitable for initializing .taskgate/ in."""
    return tmp_path


@pytest.fixture()
def initialized_root(taskgate_root: Path) -> Path:
    """Return a temporary directory with .taskgate/ already initialized."""
    from taskgate.core.config import default_config, serialize_config
    from taskgate.storage.fs import TASKGATE_DIR, atomic_write, ensure_taskgate_dirs

    ensure_taskgate_dirs(taskgate_root)
    taskgate_dir = taskgate_root / TASKGATE_DIR
    atomic_write(taskgate_dir / "config.json", serialize_config(default_config()))
    return taskgate_root


@pytest.fixture()
def taskgate_dir(initialized_root: Path) -> Path:
    """Return the initialized ``.taskgate`` directory itself."""
    return initialized_root / ".taskgate"


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def cli_env(initialized_root: Path) -> dict[str, str]:
    """Return env dict with TASKGATE_ROOT pointing to initialized_root."""
    return {"TASKGATE_ROOT": str(initialized_root)}


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("create", "My task", "--actor", "manager:alice")
    """
    from taskgate.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.output)
        return parsed, result.exit_code

    return _invoke_json


@pytest.fixture()
def create_task(invoke):
    """Factory fixture: create a task and return its snapshot dict.

    Usage::

        task = create_task("My task", "--priority", "high")
    """

    def _create(title: str = "Test task", *extra_args: str, actor: str = MANAGER) -> dict:
        result = invoke("create", title, "--actor", actor, "--json", *extra_args)
        assert result.exit_code == 0, f"create failed: {result.output}"
        return json.loads(result.output)["data"]["task"]

    return _create


@pytest.fixture()
def make_task():
    """Factory fixture: build an in-memory task snapshot for engine tests."""

    def _make(**overrides) -> dict:
        task = {
            "schema_version": 1,
            "id": "task_01HZY0000000000000000000AA",
            "title": "Shoot scene 12",
            "description": None,
            "director": "Varda",
            "genre": "drama",
            "priority": "medium",
            "tags": [],
            "due_date": None,
            "status": "todo",
            "workflow_status": "todo",
            "approval_status": "approved",
            "completed": False,
            "subtasks": [],
            "comments": [],
            "attachments": [],
            "assignee": "bob",
            "created_by": MANAGER,
            "created_at": "2026-03-01T09:00:00Z",
            "updated_at": "2026-03-01T09:00:00Z",
            "last_event_id": "ev_01HZY0000000000000000000AA",
        }
        task.update(overrides)
        if "status" in overrides and "workflow_status" not in overrides:
            if overrides["status"] != "overdue":
                task["workflow_status"] = overrides["status"]
        return task

    return _make
