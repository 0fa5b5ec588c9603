"""Git operations for gauntlet.

Return type conventions:
- Sync helpers (branch.py) return parsed values and None/False on failure.
  Examples: get_current_branch(), get_commit_sha(), object_exists()
- Async diff helpers (diff.py) raise GitError on failure, since a silently
  empty diff would let every review gate pass.
"""

from gauntlet.git.runner import (
    GitError,
    GitResult,
    run_git,
    run_git_async,
)
from gauntlet.git.diff import (
    get_diff,
    get_diff_names,
    get_tree_files,
    get_untracked_file_diff,
    get_untracked_files,
    is_unknown_revision,
)
from gauntlet.git.branch import (
    create_working_tree_ref,
    get_commit_sha,
    get_current_branch,
    is_ancestor,
    list_untracked_files,
    object_exists,
)

__all__ = [
    # runner
    "GitError",
    "GitResult",
    "run_git",
    "run_git_async",
    # diff
    "get_diff",
    "get_diff_names",
    "get_tree_files",
    "get_untracked_file_diff",
    "get_untracked_files",
    "is_unknown_revision",
    # branch
    "create_working_tree_ref",
    "get_commit_sha",
    "get_current_branch",
    "is_ancestor",
    "list_untracked_files",
    "object_exists",
]
