"""
Review output evaluation.

Agents are asked for a bare JSON object but routinely wrap it in prose or a
fenced block. Extraction tries, in order:

1. the first ```json fenced block
2. balanced-looking `{...}` spans ending at the last `}`, scanning backward
   for the nearest start that parses and carries a "status"
3. the span from the first `{` to the last `}`

The first candidate that parses decides the verdict. Violations on a "fail"
are then dropped unless they point at a changed line of the diff.
"""

import json
import logging
import re

from gauntlet.gates.result import (
    ReviewEvaluation,
    ReviewFail,
    ReviewMalformed,
    ReviewPass,
)
from gauntlet.lib.config import PRIORITIES
from gauntlet.lib.diff_ranges import DiffRanges, is_valid_violation_location, parse_diff

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r'```json\s*([\s\S]*?)\s*```')

NO_JSON_MESSAGE = "No valid JSON object found in output"
INVALID_STATUS_MESSAGE = 'Invalid JSON: missing or invalid "status" field'


def _try_parse(candidate: str):
    try:
        return json.loads(candidate)
    except ValueError:
        return None


def extract_payload(output: str):
    """Find the JSON verdict object in free-form agent output.

    Returns the parsed value, or None if nothing parses.
    """
    fenced = _FENCED_JSON.search(output)
    if fenced:
        parsed = _try_parse(fenced.group(1))
        if parsed is not None:
            return parsed

    end = output.rfind("}")
    if end != -1:
        start = output.rfind("{", 0, end + 1)
        while start != -1:
            parsed = _try_parse(output[start:end + 1])
            if isinstance(parsed, dict) and parsed.get("status"):
                return parsed
            start = output.rfind("{", 0, start)

    first = output.find("{")
    if first != -1 and end > first:
        parsed = _try_parse(output[first:end + 1])
        if parsed is not None:
            return parsed

    return None


def classify(payload, ranges: DiffRanges | None) -> ReviewEvaluation:
    """Turn a parsed payload into Pass / Fail / Malformed, filtering by diff."""
    if not isinstance(payload, dict) or payload.get("status") not in ("pass", "fail"):
        return ReviewMalformed(
            reason=INVALID_STATUS_MESSAGE,
            payload=payload if isinstance(payload, dict) else None,
        )

    if payload["status"] == "pass":
        return ReviewPass(message=payload.get("message") or "Passed", payload=payload)

    violations = payload.get("violations")
    if not isinstance(violations, list):
        return ReviewFail(message="Found some violations", payload=payload, violations=[])

    filtered_count = 0
    if ranges:
        kept = [
            v for v in violations
            if isinstance(v, dict)
            and is_valid_violation_location(str(v.get("file", "")), v.get("line"), ranges)
        ]
        filtered_count = len(violations) - len(kept)
        violations = kept
        payload["violations"] = kept
        if not kept:
            return ReviewPass(
                message=f"Passed ({filtered_count} out-of-scope violations filtered)",
                payload={"status": "pass"},
                filtered_count=filtered_count,
            )

    return ReviewFail(
        message=f"Found {len(violations)} violations",
        payload=payload,
        violations=violations,
        filtered_count=filtered_count,
    )


def evaluate_output(output: str, diff: str | None = None) -> ReviewEvaluation:
    """Evaluate raw agent output against the diff it reviewed."""
    ranges = parse_diff(diff) if diff else None
    payload = extract_payload(output)
    if payload is None:
        return ReviewMalformed(reason=NO_JSON_MESSAGE)
    return classify(payload, ranges)


def apply_threshold(evaluation: ReviewEvaluation, threshold: str) -> tuple[ReviewEvaluation, int]:
    """Drop violations ranked below the rerun threshold.

    Only failing evaluations are touched. Unknown priorities are kept and a
    missing priority counts as "low". Returns (evaluation, dropped_count).
    """
    if not isinstance(evaluation, ReviewFail) or not evaluation.violations:
        return evaluation, 0

    limit = PRIORITIES.index(threshold)

    def keep(violation: dict) -> bool:
        priority = violation.get("priority") or "low"
        if priority not in PRIORITIES:
            return True
        return PRIORITIES.index(priority) <= limit

    kept = [v for v in evaluation.violations if keep(v)]
    dropped = len(evaluation.violations) - len(kept)
    if dropped == 0:
        return evaluation, 0

    total_filtered = evaluation.filtered_count + dropped
    if not kept:
        payload = dict(evaluation.payload, status="pass", violations=[])
        return ReviewPass(
            message=f"Passed ({dropped} below-threshold violations filtered)",
            payload=payload,
            filtered_count=total_filtered,
        ), dropped

    payload = dict(evaluation.payload, violations=kept)
    return ReviewFail(
        message=f"Found {len(kept)} violations",
        payload=payload,
        violations=kept,
        filtered_count=total_filtered,
    ), dropped
