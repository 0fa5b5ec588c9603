"""
Result types shared by the gate executors, the scheduler and the log parser.

This module only holds dataclasses so the executors can import it without
pulling in each other.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

# Gate and slot statuses
PASS = "pass"
FAIL = "fail"
ERROR = "error"
NOT_RUN = "not_run"
SKIPPED_PRIOR_PASS = "skipped_prior_pass"

GATE_STATUSES = (PASS, FAIL, ERROR)

# Violation statuses
NEW = "new"
FIXED = "fixed"
SKIPPED = "skipped"

VIOLATION_STATUSES = (NEW, FIXED, SKIPPED)


def _optional_str(value) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class Violation:
    """A single finding reported by a review agent."""
    file: str
    line: Union[int, str, None]  # Agents sometimes send "12" or "?"
    issue: str
    fix: Optional[str] = None
    priority: Optional[str] = None  # critical | high | medium | low
    status: Optional[str] = None  # new | fixed | skipped
    result: Optional[str] = None  # Fixer's note on what it did

    @classmethod
    def from_dict(cls, data: dict) -> "Violation":
        line = data.get("line")
        if isinstance(line, float) and line.is_integer():
            line = int(line)
        elif isinstance(line, bool) or not isinstance(line, (int, str, type(None))):
            line = str(line)
        return cls(
            file=str(data.get("file", "")),
            line=line,
            issue=str(data.get("issue", "")),
            fix=_optional_str(data.get("fix")),
            priority=_optional_str(data.get("priority")),
            status=_optional_str(data.get("status")),
            result=_optional_str(data.get("result")),
        )

    def to_dict(self) -> dict:
        data = {"file": self.file, "line": self.line, "issue": self.issue}
        for key in ("fix", "priority", "status", "result"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @property
    def is_active(self) -> bool:
        """True if the violation still counts as an open failure."""
        return not self.status or self.status == NEW


@dataclass
class SkippedItem:
    """A violation the fixer chose to skip, surfaced in the run summary."""
    file: str
    line: Union[int, str, None]
    issue: str
    result: Optional[str] = None


@dataclass
class SubResult:
    """Outcome of one review slot, e.g. "(claude@2)"."""
    name_suffix: str
    status: str
    message: str
    log_path: Optional[str] = None
    error_count: int = 0
    skipped: list[SkippedItem] = field(default_factory=list)


@dataclass
class GateResult:
    """Outcome of one job."""
    job_id: str
    status: str  # pass | fail | error | not_run
    duration_ms: int = 0
    message: str = ""
    log_paths: list[str] = field(default_factory=list)
    sub_results: list[SubResult] = field(default_factory=list)
    error_count: Optional[int] = None
    skipped: list[SkippedItem] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.status == PASS


@dataclass
class PersistedReviewResult:
    """The JSON document written next to each review slot log."""
    adapter: str
    timestamp: str
    status: str  # pass | fail | error | skipped_prior_pass
    raw_output: str = ""
    violations: list[Violation] = field(default_factory=list)
    pass_iteration: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            "adapter": self.adapter,
            "timestamp": self.timestamp,
            "status": self.status,
            "rawOutput": self.raw_output,
            "violations": [v.to_dict() for v in self.violations],
        }
        if self.pass_iteration is not None:
            data["passIteration"] = self.pass_iteration
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PersistedReviewResult":
        return cls(
            adapter=data["adapter"],
            timestamp=data["timestamp"],
            status=data["status"],
            raw_output=data.get("rawOutput", ""),
            violations=[Violation.from_dict(v) for v in data.get("violations", [])],
            pass_iteration=data.get("passIteration"),
        )


@dataclass
class PreviousSlotState:
    """A slot that passed (or was skipped after passing) in an earlier run."""
    slot_index: int
    adapter: str
    pass_iteration: int


@dataclass
class SlotAssignment:
    """Which adapter serves a review slot, and whether it runs this time."""
    adapter: str
    slot_index: int  # 1-based
    skip: bool = False
    skip_reason: Optional[str] = None
    pass_iteration: Optional[int] = None


# Review output evaluation: exactly one of these comes back per slot.

@dataclass
class ReviewPass:
    message: str
    payload: dict
    filtered_count: int = 0


@dataclass
class ReviewFail:
    message: str
    payload: dict
    violations: list[dict]
    filtered_count: int = 0


@dataclass
class ReviewMalformed:
    reason: str
    payload: Optional[dict] = None


ReviewEvaluation = Union[ReviewPass, ReviewFail, ReviewMalformed]


def evaluation_status(evaluation: ReviewEvaluation) -> str:
    if isinstance(evaluation, ReviewPass):
        return PASS
    if isinstance(evaluation, ReviewFail):
        return FAIL
    return ERROR


def evaluation_message(evaluation: ReviewEvaluation) -> str:
    if isinstance(evaluation, ReviewMalformed):
        return evaluation.reason
    return evaluation.message
