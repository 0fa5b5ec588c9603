"""
Changed-line bookkeeping for unified diffs.

Used to reject review findings that point at lines the diff never touched.
This is validation only; nothing here tries to locate code.
"""

import re

__all__ = ["DiffRanges", "parse_diff", "coerce_line", "is_valid_violation_location"]

# file -> set of new-file line numbers that were added in the diff
DiffRanges = dict[str, set[int]]

_HUNK_HEADER = re.compile(r'^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@')


def parse_diff(diff: str) -> DiffRanges:
    """
    Parse unified diff text into added line numbers per file.

    Added lines are recorded and advance the new-file counter, context lines
    only advance it, and removed lines do neither. Paths under .git/ are ignored.
    """
    ranges: DiffRanges = {}
    current: set[int] | None = None
    line_number = 0

    for line in diff.split("\n"):
        if line.startswith("diff --git"):
            parts = line.split(" ")
            current = None
            if len(parts) >= 4:
                target = parts[3]
                if target.startswith("b/"):
                    target = target[2:]
                if not target.startswith(".git/"):
                    current = ranges.setdefault(target, set())
            continue

        if current is None:
            continue

        if line.startswith("@@"):
            match = _HUNK_HEADER.match(line)
            if match:
                line_number = int(match.group(1))
            continue

        if line.startswith("+") and not line.startswith("+++"):
            current.add(line_number)
            line_number += 1
        elif line.startswith(" "):
            line_number += 1

    return ranges


def coerce_line(line) -> int | None:
    """Normalize a reported line number; whole numbers and digit strings count."""
    if isinstance(line, bool):
        return None
    if isinstance(line, int):
        return line
    # JSON has one number type; 12.0 is line 12
    if isinstance(line, float) and line.is_integer():
        return int(line)
    if isinstance(line, str) and line.strip().isdigit():
        return int(line.strip())
    return None


def is_valid_violation_location(file: str, line, ranges: DiffRanges | None) -> bool:
    """Check whether a reported location falls on a changed line.

    With no ranges (full-file review) everything is valid. Without a usable
    line number nothing is.
    """
    if ranges is None:
        return True
    line_number = coerce_line(line)
    if line_number is None:
        return False
    valid_lines = ranges.get(file)
    if valid_lines is None:
        return False
    return line_number in valid_lines
