"""
Change-set resolution.

Decides which changes a run looks at and produces both the changed-file list
and per-scope diff text for that choice. Modes, highest precedence first:

    commit       one commit against its parent
    fix_base     working tree against a snapshot from an earlier run
    uncommitted  staged + unstaged + untracked
    ci           merge base of the PR target against the built SHA
    local        base branch...HEAD plus everything uncommitted
"""

import logging
import os
import re
from pathlib import Path
from typing import Mapping, Optional

from gauntlet.git import (
    GitError,
    get_diff,
    get_diff_names,
    get_tree_files,
    get_untracked_file_diff,
    get_untracked_files,
    is_unknown_revision,
)

logger = logging.getLogger(__name__)

COMMIT = "commit"
FIX_BASE = "fix_base"
UNCOMMITTED = "uncommitted"
CI = "ci"
LOCAL = "local"

# Hash of the empty tree; diffing against it shows a root commit as all-added
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_SHA = re.compile(r'^[a-f0-9]+$')


def is_ci(env: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if env is None else env
    return env.get("CI") == "true" or env.get("GITHUB_ACTIONS") == "true"


def _unique(*groups: list[str]) -> list[str]:
    seen = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return list(seen)


def _join(*parts: str) -> str:
    return "\n".join(part for part in parts if part)


class ChangeSetResolver:
    def __init__(
        self,
        cwd: Path,
        base_branch: str = "origin/main",
        commit: Optional[str] = None,
        fix_base: Optional[str] = None,
        uncommitted: bool = False,
        env: Optional[Mapping[str, str]] = None,
        fix_base_untracked: Optional[list[str]] = None,
    ):
        self.cwd = cwd
        self.base_branch = base_branch
        self.commit = commit
        self.fix_base = fix_base
        # Untracked files recorded with the fix base; None when unknown
        self.fix_base_untracked = fix_base_untracked
        self.uncommitted = uncommitted
        self.env = os.environ if env is None else env
        self._fix_base_failed = False

    @property
    def mode(self) -> str:
        if self.commit:
            return COMMIT
        if self.fix_base and not self._fix_base_failed:
            return FIX_BASE
        if self.uncommitted or self.fix_base:
            return UNCOMMITTED
        if is_ci(self.env):
            return CI
        return LOCAL

    def _degrade_fix_base(self, error: Exception) -> None:
        logger.warning(
            f"Failed to compute changes against fix base {self.fix_base}, "
            f"falling back to uncommitted changes: {error}"
        )
        self._fix_base_failed = True

    def _check_fix_base(self) -> None:
        if not _SHA.match(self.fix_base):
            raise ValueError(f"Invalid session ref: {self.fix_base}")

    # --- changed files -------------------------------------------------

    async def changed_files(self) -> list[str]:
        """Changed paths for the active mode, de-duplicated, in git order."""
        mode = self.mode
        logger.debug(f"Detecting changed files (mode: {mode})")

        if mode == COMMIT:
            try:
                return await get_diff_names(self.cwd, [f"{self.commit}^..{self.commit}"])
            except GitError as e:
                if not is_unknown_revision(e):
                    raise
                return await get_diff_names(self.cwd, [EMPTY_TREE, self.commit])

        if mode == FIX_BASE:
            try:
                self._check_fix_base()
                tracked = await get_diff_names(self.cwd, [self.fix_base])
                untracked = await self._new_untracked(None)
                return _unique(tracked, untracked)
            except (GitError, ValueError) as e:
                self._degrade_fix_base(e)
                return await self.changed_files()

        if mode == UNCOMMITTED:
            return _unique(
                await get_diff_names(self.cwd, ["--cached"]),
                await get_diff_names(self.cwd, []),
                await get_untracked_files(self.cwd),
            )

        if mode == CI:
            base = self.env.get("GITHUB_BASE_REF") or self.base_branch
            head = self.env.get("GITHUB_SHA") or "HEAD"
            try:
                return await get_diff_names(self.cwd, [f"{base}...{head}"])
            except GitError as e:
                logger.warning(f"Failed to diff {base}...{head} in CI, falling back to HEAD^...HEAD: {e}")
                return await get_diff_names(self.cwd, ["HEAD^...HEAD"])

        return _unique(
            await get_diff_names(self.cwd, [f"{self.base_branch}...HEAD"]),
            await get_diff_names(self.cwd, ["HEAD"]),
            await get_untracked_files(self.cwd),
        )

    # --- diff text -----------------------------------------------------

    async def _untracked_diff(self, files: list[str]) -> str:
        diffs = []
        for file in files:
            diff = await get_untracked_file_diff(self.cwd, file)
            if diff.strip():
                diffs.append(diff)
        return "\n".join(diffs)

    async def _new_untracked(self, scope: Optional[str]) -> list[str]:
        """Untracked files that didn't exist, tracked or untracked, at the fix base."""
        current = await get_untracked_files(self.cwd, scope)
        known = set(await get_tree_files(self.cwd, self.fix_base, scope))
        known.update(self.fix_base_untracked or ())
        return [f for f in current if f not in known]

    async def diff(self, scope: str) -> str:
        """Unified diff text for the active mode, limited to scope."""
        mode = self.mode
        logger.debug(f"Computing diff for {scope} (mode: {mode})")

        if mode == COMMIT:
            try:
                return await get_diff(self.cwd, [f"{self.commit}^..{self.commit}"], scope)
            except GitError as e:
                if not is_unknown_revision(e):
                    raise
                return await get_diff(self.cwd, [EMPTY_TREE, self.commit], scope)

        if mode == FIX_BASE:
            try:
                self._check_fix_base()
                tracked = await get_diff(self.cwd, [self.fix_base], scope)
                untracked = await self._untracked_diff(await self._new_untracked(scope))
                return _join(tracked, untracked)
            except (GitError, ValueError) as e:
                self._degrade_fix_base(e)
                return await self.diff(scope)

        if mode == UNCOMMITTED:
            staged = await get_diff(self.cwd, ["--cached"], scope)
            unstaged = await get_diff(self.cwd, [], scope)
            untracked = await self._untracked_diff(await get_untracked_files(self.cwd, scope))
            return _join(staged, unstaged, untracked)

        if mode == CI:
            base = self.env.get("GITHUB_BASE_REF") or self.base_branch
            head = self.env.get("GITHUB_SHA") or "HEAD"
            try:
                return await get_diff(self.cwd, [f"{base}...{head}"], scope)
            except GitError:
                return await get_diff(self.cwd, ["HEAD^...HEAD"], scope)

        committed = await get_diff(self.cwd, [f"{self.base_branch}...HEAD"], scope)
        uncommitted = await get_diff(self.cwd, ["HEAD"], scope)
        untracked = await self._untracked_diff(await get_untracked_files(self.cwd, scope))
        return _join(committed, uncommitted, untracked)
