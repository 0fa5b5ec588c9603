"""
gauntlet clean - Archive logs so the next run starts fresh.

Moves the current logs into previous/, forgets the execution state and
removes a leftover run lock.
"""

from pathlib import Path

from gauntlet.lib.execution_state import delete_execution_state
from gauntlet.lib.locking import lock_path, release_lock
from gauntlet.output.logger import clean_logs


def cmd_clean(args, root: Path, config) -> int:
    log_dir = config.log_dir
    if not log_dir.exists():
        print(f"Nothing to clean: {log_dir} does not exist")
        return 0

    moved = clean_logs(log_dir)
    delete_execution_state(log_dir)
    if lock_path(log_dir).exists():
        release_lock(log_dir)
        print("Removed stale run lock")

    print(f"Archived {moved} log file(s) to {log_dir / 'previous'}")
    return 0
