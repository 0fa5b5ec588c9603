"""
Recovery of earlier findings from the log directory.

A rerun needs two things from the previous run: which violations each review
slot reported (so the agent can verify fixes) and which slots already passed
(so they can be skipped). Both come from the files RunLogger wrote:

    <job>_<adapter>@<slot>.<run>.json   preferred, schema-validated
    <job>_<adapter>@<slot>.<run>.log    fallback, parsed from text sections
    <job>.<run>.log                     check gates

For every (job, slot) only the highest run number counts.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from gauntlet.gates.result import (
    FAIL,
    NEW,
    PASS,
    SKIPPED,
    SKIPPED_PRIOR_PASS,
    VIOLATION_STATUSES,
    PersistedReviewResult,
    PreviousSlotState,
    Violation,
)
from gauntlet.lib.validate import ValidationError, validate_file

logger = logging.getLogger(__name__)

_REVIEW_FILENAME = re.compile(r'^(.+)_([^@]+)@(\d+)\.(\d+)\.(log|json)$')
_NUMBERED_FILENAME = re.compile(r'^(.+)\.(\d+)\.(log|json)$')
_REVIEW_SECTION = re.compile(r'--- Review Output \(([^)]+)\) ---')
_PARSED_SECTION = re.compile(r'---\s*Parsed Result(?:\s+\(([^)]+)\))?\s*---([\s\S]*?)(?:\Z|---)')
_VIOLATION_LINE = re.compile(r'^\d+\.\s+(.+?):(\d+|NaN|\?)\s+-\s+(.+)$')
_FIX_LINE = re.compile(r'^\s+Fix:\s+(.+)$')
_TIMESTAMP_PREFIX = re.compile(r'^\[[^\]]*\]\s?')

PLACEHOLDER_NO_VIOLATIONS = "Previous run failed but no violations found in JSON"
PLACEHOLDER_UNPARSED = "Previous run failed but specific violations could not be parsed"


@dataclass
class ReviewFilename:
    job_id: str
    adapter: str
    slot_index: int
    run_number: int
    ext: str


@dataclass
class SlotFailure:
    """Violations one adapter reported (slot_index is None for checks)."""
    adapter: str
    slot_index: Optional[int]
    violations: list[Violation]


@dataclass
class GateFailures:
    job_id: str  # sanitized job id, as it appears in file names
    failures: list[SlotFailure]
    log_path: Path


@dataclass
class PreviousFailures:
    gates: list[GateFailures] = field(default_factory=list)
    passed_slots: dict[str, dict[int, PreviousSlotState]] = field(default_factory=dict)

    def slot_violations(self, job_id: str) -> dict[int, list[Violation]]:
        """Slot index -> violations for one (sanitized) job id."""
        by_slot = {}
        for gate in self.gates:
            if gate.job_id != job_id:
                continue
            for failure in gate.failures:
                if failure.slot_index is not None:
                    by_slot[failure.slot_index] = failure.violations
        return by_slot

    @property
    def violation_count(self) -> int:
        return sum(len(f.violations) for g in self.gates for f in g.failures)


@dataclass
class FixedEntry:
    job_id: str
    details: str
    adapter: Optional[str] = None


@dataclass
class SkippedEntry:
    job_id: str
    adapter: str
    file: str
    line: Union[int, str, None]
    issue: str
    result: Optional[str] = None


@dataclass
class RunIteration:
    iteration: int
    fixed: list[FixedEntry] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)


def parse_review_filename(filename: str) -> Optional[ReviewFilename]:
    match = _REVIEW_FILENAME.match(filename)
    if not match:
        return None
    return ReviewFilename(
        job_id=match.group(1),
        adapter=match.group(2),
        slot_index=int(match.group(3)),
        run_number=int(match.group(4)),
        ext=match.group(5),
    )


def extract_prefix(filename: str) -> str:
    """Strip the `.<run>.(log|json)` suffix from a log file name."""
    match = _NUMBERED_FILENAME.match(filename)
    if match:
        return match.group(1)
    return re.sub(r'\.(log|json)$', '', filename)


def load_review_result(json_path: Path) -> Optional[PersistedReviewResult]:
    try:
        return PersistedReviewResult.from_dict(validate_file(json_path, "review_result"))
    except ValidationError as e:
        logger.warning(f"Failed to parse JSON review file {json_path}: {e}")
        return None


def parse_json_review_file(json_path: Path) -> Optional[GateFailures]:
    """Violations from a persisted review result, or None if it passed."""
    data = load_review_result(json_path)
    if data is None or data.status in (PASS, SKIPPED_PRIOR_PASS):
        return None

    parsed = parse_review_filename(json_path.name)
    job_id = parsed.job_id if parsed else extract_prefix(json_path.name)

    violations = data.violations
    for v in violations:
        v.status = v.status or NEW
    if not violations and data.status == FAIL:
        violations = [Violation(file="unknown", line="?", issue=PLACEHOLDER_NO_VIOLATIONS, status=NEW)]
    if not violations:
        return None

    return GateFailures(
        job_id=job_id,
        failures=[SlotFailure(data.adapter, parsed.slot_index if parsed else None, violations)],
        log_path=json_path.with_suffix(".log"),
    )


def _strip_timestamps(text: str) -> str:
    return "\n".join(_TIMESTAMP_PREFIX.sub("", line) for line in text.split("\n"))


def _parse_parsed_section(body: str) -> list[Violation]:
    violations = []
    for line in body.split("\n"):
        match = _VIOLATION_LINE.match(line)
        if match:
            raw_line = match.group(2)
            violations.append(Violation(
                file=match.group(1).strip(),
                line=int(raw_line) if raw_line.isdigit() else raw_line,
                issue=match.group(3).strip(),
            ))
            continue
        fix = _FIX_LINE.match(line)
        if fix and violations and violations[-1].fix is None:
            violations[-1].fix = fix.group(1).strip()
    return violations


def _parse_embedded_json(section: str) -> list[Violation]:
    first, last = section.find("{"), section.rfind("}")
    if first == -1 or last <= first:
        return []
    try:
        data = json.loads(section[first:last + 1])
    except ValueError:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("violations"), list):
        return []
    return [
        Violation.from_dict(dict(v, line=v.get("line") or 0))
        for v in data["violations"]
        if isinstance(v, dict) and v.get("file") and v.get("issue")
    ]


def parse_log_file(log_path: Path) -> Optional[GateFailures]:
    """Failures from a text log (review slot or check), or None if it passed."""
    try:
        content = _strip_timestamps(log_path.read_text())
    except OSError as e:
        logger.warning(f"Failed to read {log_path}: {e}")
        return None

    parsed = parse_review_filename(log_path.name)
    job_id = parsed.job_id if parsed else extract_prefix(log_path.name)
    slot_index = parsed.slot_index if parsed else None

    if "--- Review Output" not in content:
        if "Result: pass" in content:
            return None
        if not any(marker in content for marker in ("Result: fail", "Result: error", "Command failed:")):
            return None
        return GateFailures(
            job_id=job_id,
            failures=[SlotFailure("check", None, [Violation(file="check", line=0, issue="Check failed")])],
            log_path=log_path,
        )

    sections = list(_REVIEW_SECTION.finditer(content))
    failures = []
    for i, section in enumerate(sections):
        end = sections[i + 1].start() if i + 1 < len(sections) else len(content)
        text = content[section.start():end]
        adapter = section.group(1)

        parsed_result = _PARSED_SECTION.search(text)
        if parsed_result:
            body = parsed_result.group(2)
            if "Status: PASS" in body:
                continue
            violations = _parse_parsed_section(body)
        else:
            violations = _parse_embedded_json(text)

        if violations:
            failures.append(SlotFailure(adapter, slot_index, violations))
        elif parsed_result and "Status: FAIL" in parsed_result.group(2):
            failures.append(SlotFailure(adapter, slot_index, [
                Violation(file="unknown", line="?", issue=PLACEHOLDER_UNPARSED),
            ]))

    if not failures:
        return None
    return GateFailures(job_id=job_id, failures=failures, log_path=log_path)


def _drop_skipped(gate: GateFailures) -> None:
    """Drop skipped violations; anything with an unknown status becomes new."""
    for failure in gate.failures:
        kept = []
        for v in failure.violations:
            status = v.status or NEW
            if status == SKIPPED:
                continue
            if status not in VIOLATION_STATUSES:
                logger.warning(
                    f'Unexpected status "{status}" for violation in {gate.job_id}. Treating as "new".'
                )
                status = NEW
            v.status = status
            kept.append(v)
        failure.violations = kept


def find_previous_failures(log_dir: Path, gate_filter: Optional[str] = None) -> PreviousFailures:
    """
    Collect the latest failures and passed slots from log_dir.

    Args:
        log_dir: Directory RunLogger writes to
        gate_filter: Only consider files whose name contains this string
    """
    result = PreviousFailures()
    if not log_dir.is_dir():
        return result

    # (job, slot) -> (run, ext, path); json wins over log for the same run
    latest_slots: dict[tuple[str, int], tuple[int, str, Path]] = {}
    # check prefix -> run -> {ext: path}
    check_runs: dict[str, dict[int, dict[str, Path]]] = {}

    for path in sorted(log_dir.iterdir()):
        if not path.is_file() or path.suffix not in (".log", ".json"):
            continue
        if gate_filter and gate_filter not in path.name:
            continue

        parsed = parse_review_filename(path.name)
        if parsed:
            key = (parsed.job_id, parsed.slot_index)
            existing = latest_slots.get(key)
            if (
                existing is None
                or parsed.run_number > existing[0]
                or (parsed.run_number == existing[0] and parsed.ext == "json")
            ):
                latest_slots[key] = (parsed.run_number, parsed.ext, path)
            continue

        match = _NUMBERED_FILENAME.match(path.name)
        if match:
            prefix, run, ext = match.group(1), int(match.group(2)), match.group(3)
            check_runs.setdefault(prefix, {}).setdefault(run, {})[ext] = path

    review_failures: dict[str, list[SlotFailure]] = {}
    for (job_id, slot_index), (run, ext, path) in sorted(latest_slots.items()):
        if ext == "json":
            data = load_review_result(path)
            if data is not None and data.status == PASS:
                result.passed_slots.setdefault(job_id, {})[slot_index] = PreviousSlotState(
                    slot_index=slot_index, adapter=data.adapter, pass_iteration=run,
                )
            elif data is not None and data.status == SKIPPED_PRIOR_PASS:
                result.passed_slots.setdefault(job_id, {})[slot_index] = PreviousSlotState(
                    slot_index=slot_index, adapter=data.adapter, pass_iteration=data.pass_iteration or run,
                )
            gate = parse_json_review_file(path)
        else:
            gate = parse_log_file(path)

        if gate is None:
            continue
        _drop_skipped(gate)
        for failure in gate.failures:
            failure.slot_index = slot_index
            if failure.violations:
                review_failures.setdefault(job_id, []).append(failure)

    for job_id, failures in review_failures.items():
        result.gates.append(GateFailures(job_id=job_id, failures=failures, log_path=log_dir / f"{job_id}.log"))

    for prefix, runs in sorted(check_runs.items()):
        run = max(runs)
        files = runs[run]
        if "json" in files:
            gate = parse_json_review_file(files["json"])
        else:
            gate = parse_log_file(files["log"])
        if gate is None:
            continue
        _drop_skipped(gate)
        if any(f.violations for f in gate.failures):
            result.gates.append(gate)

    logger.debug(
        f"Previous failures: {len(result.gates)} gates, {result.violation_count} violations, "
        f"{sum(len(s) for s in result.passed_slots.values())} passed slots"
    )
    return result


def _failures_for_file(path: Path) -> Optional[GateFailures]:
    if path.suffix == ".json":
        return parse_json_review_file(path)
    return parse_log_file(path)


def reconstruct_history(log_dir: Path) -> list[RunIteration]:
    """Per-run summary of what got fixed and what the fixer skipped."""
    if not log_dir.is_dir():
        return []

    by_run: dict[int, dict[str, dict[str, Path]]] = {}
    for path in log_dir.iterdir():
        match = _NUMBERED_FILENAME.match(path.name)
        if match and path.is_file():
            prefix, run, ext = match.group(1), int(match.group(2)), match.group(3)
            by_run.setdefault(run, {}).setdefault(prefix, {})[ext] = path

    iterations = []
    previous: dict[tuple[str, str], list[Violation]] = {}
    for run in sorted(by_run):
        iteration = RunIteration(iteration=run)
        current: dict[tuple[str, str], list[Violation]] = {}

        for prefix, files in sorted(by_run[run].items()):
            gate = _failures_for_file(files.get("json") or files["log"])
            if gate is None:
                continue
            for failure in gate.failures:
                slot = str(failure.slot_index) if failure.slot_index is not None else failure.adapter
                current[(gate.job_id, slot)] = failure.violations
                for v in failure.violations:
                    if v.status == SKIPPED:
                        iteration.skipped.append(SkippedEntry(
                            job_id=gate.job_id, adapter=failure.adapter,
                            file=v.file, line=v.line, issue=v.issue, result=v.result,
                        ))

        for (job_id, slot), prior in previous.items():
            still_open = current.get((job_id, slot), [])
            fixed = [
                pv for pv in prior
                if pv.status != SKIPPED
                and not any(
                    cv.file == pv.file and cv.line == pv.line and cv.issue == pv.issue
                    for cv in still_open
                )
            ]
            if not fixed:
                continue
            if job_id.startswith("check_"):
                iteration.fixed.append(FixedEntry(job_id=job_id, details=f"{len(fixed)} violations resolved"))
            else:
                iteration.fixed.extend(
                    FixedEntry(job_id=job_id, adapter=slot, details=f"{f.file}:{f.line} {f.issue}")
                    for f in fixed
                )

        iterations.append(iteration)
        previous = current
    return iterations
