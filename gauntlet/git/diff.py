"""Git diff operations used for change detection.

All functions are async; they run inside the gate event loop.
"""

from pathlib import Path

from gauntlet.git.runner import GitError, GitResult, git_lines, run_git_async

DIFF_TIMEOUT = 120

# Messages git prints when an untracked file vanished between listing and diffing
_VANISHED_MARKERS = ("Could not access", "No such file", "ENOENT")


def _path_args(scope: str | None) -> list[str]:
    if scope is None:
        return []
    return ["--", scope]


def _diff_output(args: list[str], result: GitResult) -> str:
    """Return diff stdout, treating exit 1 with output as success.

    `git diff --no-index` exits 1 whenever the inputs differ.
    """
    if result.success:
        return result.stdout
    if result.returncode == 1 and result.stdout and not result.timed_out:
        return result.stdout
    raise GitError(args, result)


async def get_diff(cwd: Path, revs: list[str], scope: str | None = None) -> str:
    """Get unified diff text for a revision spec (e.g. ["origin/main...HEAD"])."""
    args = ["diff", *revs, *_path_args(scope)]
    result = await run_git_async(args, cwd, timeout=DIFF_TIMEOUT)
    return _diff_output(args, result)


async def get_diff_names(cwd: Path, revs: list[str], scope: str | None = None) -> list[str]:
    """Get list of changed file names for a revision spec."""
    return await git_lines(["diff", "--name-only", *revs, *_path_args(scope)], cwd, timeout=DIFF_TIMEOUT)


async def get_untracked_files(cwd: Path, scope: str | None = None) -> list[str]:
    """Get untracked files, honoring .gitignore and other exclude rules."""
    return await git_lines(["ls-files", "--others", "--exclude-standard", *_path_args(scope)], cwd)


async def get_tree_files(cwd: Path, ref: str, scope: str | None = None) -> list[str]:
    """List every file recorded in the tree of a ref."""
    return await git_lines(["ls-tree", "-r", "--name-only", ref, *_path_args(scope)], cwd)


async def get_untracked_file_diff(cwd: Path, file: str) -> str:
    """Synthesize an all-added diff for an untracked file.

    Returns an empty string if the file disappeared before it could be read.
    """
    args = ["diff", "--no-index", "--", "/dev/null", file]
    result = await run_git_async(args, cwd, timeout=DIFF_TIMEOUT)
    try:
        return _diff_output(args, result)
    except GitError:
        if any(marker in result.stderr for marker in _VANISHED_MARKERS):
            return ""
        raise


def is_unknown_revision(error: GitError) -> bool:
    """True if git rejected a revision (e.g. `<root>^` of an initial commit)."""
    stderr = error.result.stderr
    return "unknown revision" in stderr or "bad revision" in stderr
