"""File locking utilities for the JSON cache and result logs."""
from __future__ import annotations

import fcntl
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator

log = logging.getLogger("tweetsniper.file_lock")


@contextmanager
def exclusive_file_lock(path: Path) -> Generator[None, None, None]:
    """Context manager for exclusive file locking.

    Usage:
        with exclusive_file_lock(Path("data/user_id.json")):
            # Read, modify, write
            pass
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    with open(lock_path, "w") as lock_file:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


def _read_unlocked(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError:
        log.warning("Corrupted JSON at %s, starting fresh", path)
        return default


def _write_unlocked(path: Path, data: Any, indent: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w") as f:
        json.dump(data, f, indent=indent)
    tmp_path.rename(path)


def safe_read_json(path: Path, default: Any = None) -> Any:
    """Read JSON under the file lock. Corrupt or missing files yield ``default``."""
    with exclusive_file_lock(path):
        return _read_unlocked(path, {} if default is None else default)


def safe_update_json(
    path: Path,
    update_fn: Callable[[Any], Any],
    default: Any = None,
    indent: int = 2,
) -> Any:
    """Atomically read-modify-write JSON.

    Args:
        path: Path to JSON file
        update_fn: Function that takes current content and returns updated content
        default: Content to start from when the file is missing or corrupt
        indent: JSON indent level

    Returns:
        Updated content
    """
    with exclusive_file_lock(path):
        current = _read_unlocked(path, {} if default is None else default)
        updated = update_fn(current)
        _write_unlocked(path, updated, indent)
        return updated
