"""
Run lock for gauntlet.

A single lock file in the log directory, created with O_CREAT|O_EXCL and
holding the owner's PID. A second run fails immediately instead of waiting.
A lock left behind by a crashed run is reported, never removed automatically;
`gauntlet clean` removes it.
"""

import os
from pathlib import Path

LOCK_FILENAME = ".gauntlet-run.lock"


class LockHeld(Exception):
    """Another run holds the lock."""

    def __init__(self, lock_path: Path, owner: str | None = None):
        self.lock_path = lock_path
        self.owner = owner
        detail = f" (pid {owner})" if owner else ""
        super().__init__(f"Another gauntlet run is already in progress{detail}: {lock_path}")


def lock_path(log_dir: Path) -> Path:
    return log_dir / LOCK_FILENAME


def _read_owner(path: Path) -> str | None:
    try:
        return path.read_text().strip() or None
    except OSError:
        return None


def acquire_lock(log_dir: Path) -> Path:
    """
    Create the lock file.

    Raises:
        LockHeld: if the lock file already exists
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    path = lock_path(log_dir)
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        raise LockHeld(path, _read_owner(path)) from None
    with os.fdopen(fd, "w") as f:
        f.write(f"{os.getpid()}\n")
    return path


def release_lock(log_dir: Path) -> None:
    lock_path(log_dir).unlink(missing_ok=True)
