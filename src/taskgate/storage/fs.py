"""Atomic file writes, directory management, and root discovery."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

TASKGATE_DIR = ".taskgate"
TASKGATE_ROOT_ENV = "TASKGATE_ROOT"

_SUBDIRS: tuple[str, ...] = ("tasks", "events", "locks")


class TaskgateRootError(Exception):
    """Raised when TASKGATE_ROOT env var is set but invalid."""


def _fsync_directory(path: Path) -> None:
    """Fsync a directory so renames and appends inside it are durable.

    Platforms that cannot fsync a directory descriptor raise ``OSError``;
    that is ignored.
    """
    try:
        fd = os.open(str(path), os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        pass


def atomic_write(path: Path, content: str | bytes) -> None:
    """Write *content* to *path* via temp file + fsync + rename.

    The temp file lives in the target's directory so ``os.replace`` stays on
    one filesystem.

    Raises:
        FileNotFoundError: If the parent directory does not exist.
    """
    parent = path.parent
    if not parent.is_dir():
        raise FileNotFoundError(f"Parent directory does not exist: {parent}")

    data = content.encode("utf-8") if isinstance(content, str) else content

    fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=".tmp.")
    closed = False
    try:
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            view = view[written:]
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp_path, path)
        _fsync_directory(parent)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def jsonl_append(path: Path, line: str) -> None:
    """Append one record (already ending in ``\\n``) to a JSONL file.

    The caller must already hold the lock for *path*.  The file is created
    if missing and fsynced after the write.
    """
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(line)
        fh.flush()
        os.fsync(fh.fileno())
    _fsync_directory(path.parent)


def ensure_taskgate_dirs(root: Path) -> Path:
    """Create the ``.taskgate/`` directory structure under *root*.

    Returns the ``.taskgate`` directory.
    """
    taskgate_dir = root / TASKGATE_DIR
    for subdir in _SUBDIRS:
        (taskgate_dir / subdir).mkdir(parents=True, exist_ok=True)
    audit_log = taskgate_dir / "audit.jsonl"
    if not audit_log.exists():
        audit_log.touch()
    return taskgate_dir


def find_root(start: Path | None = None) -> Path | None:
    """Find the project root containing ``.taskgate/``.

    ``TASKGATE_ROOT`` wins when set: it must point at a directory that holds
    ``.taskgate/`` or :class:`TaskgateRootError` is raised (no walk-up
    fallback).  Otherwise walks up from *start* (default: cwd).

    Returns:
        The directory containing ``.taskgate/``, or ``None`` if not found.
    """
    env_root = os.environ.get(TASKGATE_ROOT_ENV)
    if env_root is not None:
        if not env_root:
            raise TaskgateRootError(f"{TASKGATE_ROOT_ENV} is set but empty")
        env_path = Path(env_root)
        if not env_path.is_dir():
            raise TaskgateRootError(
                f"{TASKGATE_ROOT_ENV} points to a path that does not exist: {env_root}"
            )
        if not (env_path / TASKGATE_DIR).is_dir():
            raise TaskgateRootError(
                f"{TASKGATE_ROOT_ENV} points to a directory with no {TASKGATE_DIR}/ inside: "
                f"{env_root}"
            )
        return env_path

    current = (start or Path.cwd()).resolve()
    while True:
        if (current / TASKGATE_DIR).is_dir():
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent
