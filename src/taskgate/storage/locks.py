"""File locking with deterministic lock ordering."""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from pathlib import Path

from filelock import FileLock, Timeout


class LockTimeout(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""


# Key guarding the project-wide audit log.
AUDIT_LOCK = "audit"


def task_lock_keys(task_id: str) -> list[str]:
    """Return the keys guarding one task's event log and snapshot."""
    return [f"events_{task_id}", f"tasks_{task_id}"]


def _acquire(locks_dir: Path, key: str, timeout: float) -> FileLock:
    lock = FileLock(locks_dir / f"{key}.lock", timeout=timeout)
    try:
        lock.acquire()
    except Timeout:
        raise LockTimeout(f"Could not acquire lock '{key}' within {timeout}s") from None
    return lock


@contextlib.contextmanager
def task_lock(
    locks_dir: Path,
    key: str,
    timeout: float = 10,
) -> Generator[None, None, None]:
    """Hold the file lock ``locks_dir/<key>.lock`` for the duration of the block.

    Raises:
        LockTimeout: If the lock cannot be acquired within *timeout* seconds.
    """
    lock = _acquire(locks_dir, key, timeout)
    try:
        yield
    finally:
        lock.release()


@contextlib.contextmanager
def multi_lock(
    locks_dir: Path,
    keys: list[str],
    timeout: float = 10,
) -> Generator[None, None, None]:
    """Acquire several locks in sorted order; release them in reverse.

    Keys are deduplicated and sorted; every writer acquires in that order.

    Raises:
        LockTimeout: If any lock cannot be acquired within *timeout* seconds.
    """
    acquired: list[FileLock] = []
    try:
        for key in sorted(set(keys)):
            acquired.append(_acquire(locks_dir, key, timeout))
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()
