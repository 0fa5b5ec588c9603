"""
Per-job log files.

Layout inside the log directory:

    <job>.<N>.log                   check gate output
    <job>_<adapter>@<slot>.<N>.log  one review slot
    <job>_<adapter>@<slot>.<N>.json persisted review result for that slot
    previous/                       logs archived by `gauntlet clean`

<job> is the job id with anything outside [A-Za-z0-9._-] replaced by "_".
<N> is the run number: one more than the highest number already present, so
every file written by one run carries the same number.
"""

import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

PREVIOUS_DIR = "previous"

_UNSAFE = re.compile(r'[^a-zA-Z0-9._-]')
_RUN_SUFFIX = re.compile(r'\.(\d+)\.log$')


def sanitize_job_id(job_id: str) -> str:
    return _UNSAFE.sub("_", job_id)


def timestamp() -> str:
    """UTC ISO-8601 timestamp with milliseconds, e.g. 2024-01-01T12:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def json_path_for(log_path: Path) -> Path:
    return log_path.with_suffix(".json")


def latest_run_number(log_dir: Path) -> int:
    """Highest run number among the log files in log_dir (0 if none)."""
    if not log_dir.is_dir():
        return 0
    highest = 0
    for path in log_dir.iterdir():
        match = _RUN_SUFFIX.search(path.name)
        if match and path.is_file():
            highest = max(highest, int(match.group(1)))
    return highest


def has_existing_logs(log_dir: Path) -> bool:
    """True if a previous run left logs behind (i.e. this is a rerun)."""
    if not log_dir.is_dir():
        return False
    return any(p.is_file() and p.suffix == ".log" for p in log_dir.iterdir())


def clean_logs(log_dir: Path) -> int:
    """
    Archive the current logs into previous/, replacing what was archived before.

    Returns:
        Number of files moved
    """
    if not log_dir.is_dir():
        return 0

    previous = log_dir / PREVIOUS_DIR
    if previous.is_dir():
        shutil.rmtree(previous)
    previous.mkdir(parents=True)

    moved = 0
    for path in sorted(log_dir.iterdir()):
        if path.is_file() and path.suffix in (".log", ".json"):
            path.rename(previous / path.name)
            moved += 1
    logger.debug(f"Archived {moved} log files to {previous}")
    return moved


class LogWriter:
    """Appends timestamped text to one log file."""

    def __init__(self, path: Path):
        self.path = path

    def __call__(self, text: str) -> None:
        lines = text.split("\n")
        lines[0] = f"[{timestamp()}] {lines[0]}"
        body = "\n".join(lines)
        if not body.endswith("\n"):
            body += "\n"
        with open(self.path, "a") as f:
            f.write(body)


class RunLogger:
    """Hands out log paths and writers for one run."""

    def __init__(self, log_dir: Path):
        self.log_dir = log_dir
        self.run_number = latest_run_number(log_dir) + 1
        self._initialized: set[Path] = set()

    def init(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def log_path(self, job_id: str, adapter: str | None = None, slot: int | None = None) -> Path:
        prefix = sanitize_job_id(job_id)
        if adapter:
            prefix = f"{prefix}_{adapter}@{slot}" if slot is not None else f"{prefix}_{adapter}"
        return self.log_dir / f"{prefix}.{self.run_number}.log"

    def _open(self, path: Path) -> LogWriter:
        if path not in self._initialized:
            self._initialized.add(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("")
        return LogWriter(path)

    def job_writer(self, job_id: str) -> LogWriter:
        return self._open(self.log_path(job_id))

    def slot_writer(self, job_id: str, adapter: str, slot: int) -> LogWriter:
        return self._open(self.log_path(job_id, adapter, slot))
