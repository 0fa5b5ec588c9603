"""
Execution state: where the last completed run left the working tree.

Written to <log_dir>/.execution_state after every run that executed gates,
and read back to scope the next run's diff to what changed since then.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from gauntlet.git import (
    create_working_tree_ref,
    get_commit_sha,
    get_current_branch,
    is_ancestor,
    list_untracked_files,
    object_exists,
)
from gauntlet.output.logger import timestamp

logger = logging.getLogger(__name__)

STATE_FILENAME = ".execution_state"

GC_WARNING = "Session stash was garbage collected, using commit as fallback"


@dataclass
class ExecutionState:
    last_run_completed_at: str
    branch: str
    commit: str
    working_tree_ref: Optional[str] = None
    # Untracked files at snapshot time; the snapshot itself only covers tracked files
    untracked_files: Optional[list[str]] = None


@dataclass
class FixBase:
    ref: Optional[str]
    warning: Optional[str] = None


def read_execution_state(log_dir: Path) -> Optional[ExecutionState]:
    """Load the state file; None if missing or malformed."""
    path = log_dir / STATE_FILENAME
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable {path}: {e}")
        return None
    if not isinstance(data, dict):
        return None
    if not all(isinstance(data.get(key), str) for key in ("last_run_completed_at", "branch", "commit")):
        return None
    ref = data.get("working_tree_ref")
    untracked = data.get("untracked_files")
    if not (isinstance(untracked, list) and all(isinstance(f, str) for f in untracked)):
        untracked = None
    return ExecutionState(
        last_run_completed_at=data["last_run_completed_at"],
        branch=data["branch"],
        commit=data["commit"],
        working_tree_ref=ref if isinstance(ref, str) else None,
        untracked_files=untracked,
    )


def _repo_relative(path: Path, repo: Path) -> Optional[str]:
    try:
        return path.resolve().relative_to(repo.resolve()).as_posix()
    except ValueError:
        return None


def write_execution_state(log_dir: Path, repo: Path) -> ExecutionState:
    """Record branch, HEAD, a working-tree snapshot and the untracked files for the next run."""
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / STATE_FILENAME

    untracked = list_untracked_files(repo)
    own_path = _repo_relative(path, repo)
    # The state file is about to exist; it is not a change under review
    if untracked is not None and own_path and own_path not in untracked:
        untracked = untracked + [own_path]

    state = ExecutionState(
        last_run_completed_at=timestamp(),
        branch=get_current_branch(repo) or "HEAD",
        commit=get_commit_sha(repo) or "",
        working_tree_ref=create_working_tree_ref(repo),
        untracked_files=untracked,
    )
    path.write_text(json.dumps(asdict(state), indent=2))
    return state


def delete_execution_state(log_dir: Path) -> None:
    (log_dir / STATE_FILENAME).unlink(missing_ok=True)


def resolve_fix_base(state: ExecutionState, base_branch: str, repo: Path) -> FixBase:
    """
    Pick the ref the next diff should start from.

    - commit already merged into base_branch: None (state is stale)
    - working_tree_ref still exists: that ref
    - otherwise the recorded commit, with a warning
    - nothing usable: None
    """
    if is_ancestor(repo, state.commit, base_branch):
        return FixBase(ref=None)
    if state.working_tree_ref and object_exists(repo, state.working_tree_ref):
        return FixBase(ref=state.working_tree_ref)
    if state.commit and object_exists(repo, state.commit):
        return FixBase(ref=state.commit, warning=GC_WARNING)
    return FixBase(ref=None)
