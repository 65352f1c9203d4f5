"""Value enumerations, default config generation and validation."""

from __future__ import annotations

import json
from typing import TypedDict

# ---------------------------------------------------------------------------
# Fixed enumerations (the wire shape shared by the engine and its callers)
# ---------------------------------------------------------------------------

VALID_STATUSES: tuple[str, ...] = ("todo", "inprogress", "review", "done", "overdue")
VALID_PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")
VALID_APPROVAL_STATUSES: tuple[str, ...] = ("pending", "approved", "rejected")
VALID_ROLES: tuple[str, ...] = ("manager", "employee")

# Statuses an actor may pick.  ``overdue`` is derived from the due date.
SELECTABLE_STATUSES: tuple[str, ...] = ("todo", "inprogress", "review", "done")


class TaskgateConfig(TypedDict, total=False):
    schema_version: int
    default_status: str
    default_priority: str
    default_actor: str
    project_name: str


def default_config() -> TaskgateConfig:
    """Return the default Taskgate configuration.

    The status graph and the role table are fixed in code; the config only
    carries defaults applied when a task is created.
    """
    return {
        "schema_version": 1,
        "default_status": "todo",
        "default_priority": "medium",
    }


def serialize_config(config: TaskgateConfig | dict[str, object]) -> str:
    """Serialize a config dict to the canonical JSON format."""
    return json.dumps(config, sort_keys=True, indent=2) + "\n"


def load_config(raw: str) -> dict:
    """Parse a JSON config string and return the config dict.

    This is a pure function (no I/O).  The CLI layer reads the file
    and passes the raw string here.
    """
    return json.loads(raw)


def validate_status(status: str) -> bool:
    """Return ``True`` if *status* is one of the known statuses."""
    return status in VALID_STATUSES


def validate_priority(priority: str) -> bool:
    """Return ``True`` if *priority* is one of the known priorities."""
    return priority in VALID_PRIORITIES


def validate_approval_status(value: str) -> bool:
    """Return ``True`` if *value* is one of the known approval states."""
    return value in VALID_APPROVAL_STATUSES


def validate_role(role: str) -> bool:
    """Return ``True`` if *role* is a known actor role."""
    return role in VALID_ROLES
