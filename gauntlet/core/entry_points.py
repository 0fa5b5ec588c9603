"""
Entry point expansion.

Turns configured entry points into the concrete scopes that have changes:

    "."              always active when anything (not excluded) changed
    "engines/*"      one scope per first-level subdirectory with changes
    "docs/**/*.md"   active (kept as the pattern) when any changed file matches
    "apps/api"       active when a changed file is the path or under it

Glob matching uses fnmatch, so "*" also crosses "/".
"""

import logging
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Optional

from gauntlet.lib.config import EntryPointConfig

logger = logging.getLogger(__name__)

ROOT = "."

_GLOB_CHARS = set("*?[{")


@dataclass
class ExpandedEntryPoint:
    path: str  # concrete scope, e.g. "engines/billing"
    config: EntryPointConfig  # the entry point that produced it, e.g. "engines/*"


def is_glob(pattern: str) -> bool:
    return any(c in _GLOB_CHARS for c in pattern)


def _is_subdir_wildcard(pattern: str) -> bool:
    return pattern.endswith("/*") and "**" not in pattern


def _under(file: str, directory: str) -> bool:
    prefix = directory if directory.endswith("/") else f"{directory}/"
    return file == directory.rstrip("/") or file.startswith(prefix)


def filter_excluded(files: list[str], patterns: list[str]) -> list[str]:
    """Drop files matching any exclude pattern (path prefix or glob)."""
    if not patterns:
        return files
    globs = [p for p in patterns if is_glob(p)]
    prefixes = [p for p in patterns if not is_glob(p)]
    return [
        f for f in files
        if not any(_under(f, p) for p in prefixes)
        and not any(fnmatchcase(f, g) for g in globs)
    ]


def changed_subdirs(parent: str, files: list[str]) -> list[str]:
    """First-level subdirectories of parent that contain changed files, in first-seen order."""
    found = {}
    prefix = f"{parent}/"
    for f in files:
        if not f.startswith(prefix):
            continue
        rest = f[len(prefix):]
        if "/" not in rest:
            continue  # a file directly in parent, not in a subdirectory
        found.setdefault(f"{parent}/{rest.split('/', 1)[0]}", None)
    return list(found)


class EntryPointExpander:
    def expand(self, entry_points: list[EntryPointConfig], changed_files: list[str]) -> list[ExpandedEntryPoint]:
        """Active scopes for a set of changed files, root first."""
        results = []

        if changed_files:
            root = next((ep for ep in entry_points if ep.path == ROOT), None)
            root = root or EntryPointConfig(path=ROOT)
            if filter_excluded(changed_files, root.exclude):
                results.append(ExpandedEntryPoint(ROOT, root))

        for ep in entry_points:
            if ep.path == ROOT:
                continue
            files = filter_excluded(changed_files, ep.exclude)
            if not files:
                continue

            if _is_subdir_wildcard(ep.path):
                for subdir in changed_subdirs(ep.path[:-2], files):
                    results.append(ExpandedEntryPoint(subdir, ep))
            elif is_glob(ep.path):
                if any(fnmatchcase(f, ep.path) for f in files):
                    results.append(ExpandedEntryPoint(ep.path, ep))
            elif any(_under(f, ep.path) for f in files):
                results.append(ExpandedEntryPoint(ep.path, ep))

        logger.debug(f"Active entry points: {[r.path for r in results]}")
        return results

    def expand_all(self, entry_points: list[EntryPointConfig], root: Optional[Path] = None) -> list[ExpandedEntryPoint]:
        """Every scope regardless of changes; wildcards are listed from disk."""
        root = root or Path.cwd()
        results = []
        for ep in entry_points:
            if _is_subdir_wildcard(ep.path):
                parent = ep.path[:-2]
                directory = root / parent
                if directory.is_dir():
                    for child in sorted(directory.iterdir()):
                        if child.is_dir():
                            results.append(ExpandedEntryPoint(f"{parent}/{child.name}", ep))
            else:
                results.append(ExpandedEntryPoint(ep.path, ep))
        return results
