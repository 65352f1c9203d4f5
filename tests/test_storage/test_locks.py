"""Tests for file locking and deterministic lock ordering."""

from __future__ import annotations

from pathlib import Path

import pytest
from filelock import FileLock

from taskgate.storage.locks import LockTimeout, multi_lock, task_lock, task_lock_keys


class TestTaskLock:
    """task_lock() acquires and releases a single file lock."""

    def test_creates_lock_file(self, tmp_path: Path) -> None:
        with task_lock(tmp_path, "alpha"):
            assert (tmp_path / "alpha.lock").exists()

    def test_releases_on_exception(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            with task_lock(tmp_path, "exc"):
                raise RuntimeError("boom")

        with task_lock(tmp_path, "exc", timeout=0.1):
            pass

    def test_timeout_raises_lock_timeout(self, tmp_path: Path) -> None:
        blocker = FileLock(tmp_path / "busy.lock")
        blocker.acquire()
        try:
            with pytest.raises(LockTimeout, match="busy"):
                with task_lock(tmp_path, "busy", timeout=0.05):
                    pass
        finally:
            blocker.release()


class TestMultiLock:
    def test_acquires_all(self, tmp_path: Path) -> None:
        with multi_lock(tmp_path, ["tasks_b", "events_b"]):
            assert (tmp_path / "tasks_b.lock").exists()
            assert (tmp_path / "events_b.lock").exists()

    def test_duplicate_keys(self, tmp_path: Path) -> None:
        with multi_lock(tmp_path, ["k", "k"], timeout=0.1):
            pass

    def test_releases_partial_on_timeout(self, tmp_path: Path) -> None:
        blocker = FileLock(tmp_path / "z.lock")
        blocker.acquire()
        try:
            with pytest.raises(LockTimeout):
                with multi_lock(tmp_path, ["z", "a"], timeout=0.05):
                    pass
        finally:
            blocker.release()

        # "a" was taken first and must have been released again
        with task_lock(tmp_path, "a", timeout=0.1):
            pass


class TestTaskLockKeys:
    def test_event_log_and_snapshot(self) -> None:
        assert task_lock_keys("task_a") == ["events_task_a", "tasks_task_a"]

    def test_held_key_blocks_multi_lock(self, tmp_path: Path) -> None:
        with task_lock(tmp_path, "tasks_task_a"):
            with pytest.raises(LockTimeout, match="tasks_task_a"):
                with multi_lock(tmp_path, task_lock_keys("task_a"), timeout=0.05):
                    pass
