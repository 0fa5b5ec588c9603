"""Ref lookups used to record and resume from a run's execution state."""

from pathlib import Path

from gauntlet.git.runner import run_git


def _output(args: list[str], worktree: Path) -> str | None:
    """Stripped stdout of a successful command; None on failure or no output."""
    result = run_git(args, worktree)
    if not result.success:
        return None
    return result.stdout.strip() or None


def get_current_branch(worktree: Path) -> str | None:
    """Branch name, or None on a detached HEAD."""
    branch = _output(["rev-parse", "--abbrev-ref", "HEAD"], worktree)
    return None if branch == "HEAD" else branch


def get_commit_sha(worktree: Path, ref: str = "HEAD") -> str | None:
    return _output(["rev-parse", ref], worktree)


def object_exists(worktree: Path, sha: str) -> bool:
    """True while git still has the object; stash commits can be garbage-collected."""
    return run_git(["cat-file", "-t", sha], worktree).success


def is_ancestor(worktree: Path, ancestor: str, descendant: str) -> bool:
    return run_git(["merge-base", "--is-ancestor", ancestor, descendant], worktree).success


def create_working_tree_ref(worktree: Path) -> str | None:
    """
    Snapshot the working tree as a commit SHA.

    `git stash create` builds the commit without touching the working tree or
    the stash list. It only covers tracked files, and a clean tree produces
    nothing, so HEAD stands in.
    """
    return _output(["stash", "create"], worktree) or get_commit_sha(worktree)


def list_untracked_files(worktree: Path) -> list[str] | None:
    """Untracked, non-ignored paths; None if git failed.

    `git stash create` leaves untracked files out of its snapshot, so callers
    record this list next to the snapshot ref.
    """
    result = run_git(["ls-files", "--others", "--exclude-standard"], worktree)
    if not result.success:
        return None
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]
