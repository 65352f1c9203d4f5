"""Tests for taskgate.core.roles: the role capability table."""

from __future__ import annotations

import pytest

from taskgate.core.roles import (
    FIELD_GROUPS,
    can_write,
    can_write_field,
    editable_fields,
    field_group,
    read_only_fields,
)

_EXPECTED = {
    ("manager", "basic"): True,
    ("manager", "classification"): True,
    ("manager", "assignment"): True,
    ("manager", "approval"): True,
    ("manager", "details"): True,
    ("employee", "basic"): False,
    ("employee", "classification"): False,
    ("employee", "assignment"): False,
    ("employee", "approval"): False,
    ("employee", "details"): True,
}


class TestCanWrite:
    @pytest.mark.parametrize(("role", "group"), sorted(_EXPECTED))
    def test_truth_table(self, role: str, group: str) -> None:
        assert can_write(role, group) is _EXPECTED[(role, group)]

    def test_unknown_role_writes_nothing(self) -> None:
        assert not any(can_write("contractor", g) for g in FIELD_GROUPS)

    def test_unknown_group_is_not_writable(self) -> None:
        assert can_write("manager", "secrets") is False

    def test_same_answer_every_time(self) -> None:
        assert [can_write("employee", "details") for _ in range(3)] == [True, True, True]


class TestFieldGroup:
    def test_known_fields(self) -> None:
        assert field_group("title") == "basic"
        assert field_group("due_date") == "basic"
        assert field_group("priority") == "classification"
        assert field_group("assignee") == "assignment"
        assert field_group("approval_status") == "approval"
        assert field_group("attachments") == "details"

    def test_unknown_field(self) -> None:
        assert field_group("budget") is None


class TestCanWriteField:
    def test_employee_may_propose_status(self) -> None:
        assert can_write_field("employee", "status") is True

    def test_employee_may_not_touch_priority_or_tags(self) -> None:
        assert can_write_field("employee", "priority") is False
        assert can_write_field("employee", "tags") is False

    def test_employee_may_not_change_approval(self) -> None:
        assert can_write_field("employee", "approval_status") is False

    def test_unknown_role_may_not_propose_status(self) -> None:
        assert can_write_field("guest", "status") is False


class TestFieldLists:
    def test_employee_editable(self) -> None:
        assert editable_fields("employee") == ["status", "subtasks", "comments", "attachments"]

    def test_manager_has_no_read_only_fields(self) -> None:
        assert read_only_fields("manager") == []

    def test_lists_partition_known_fields(self) -> None:
        every = [f for fields in FIELD_GROUPS.values() for f in fields]
        for role in ("manager", "employee"):
            assert sorted(editable_fields(role) + read_only_fields(role)) == sorted(every)
