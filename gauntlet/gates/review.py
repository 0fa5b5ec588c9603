"""
Review gate: dispatch a prompt plus the entry point's diff to one or more
agent CLIs and turn their JSON verdicts into a gate result.

One execution goes through these steps:

1. Compute the diff for the entry point; an empty diff passes immediately.
2. Check the health of the preferred adapters (cached per run by the registry).
3. Assign slots 1..num_reviews round-robin over the healthy adapters.
4. On reruns, skip slots that already passed with the same adapter. If
   every slot passed before, slot 1 still runs (safety latch).
5. Run the remaining slots, in parallel if the gate allows it.
6. Evaluate each output, filter by diff and by rerun threshold, persist a
   JSON result per slot and aggregate.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from gauntlet.agents import AdapterRegistry
from gauntlet.gates.log_mux import LogMultiplexer
from gauntlet.gates.result import (
    ERROR,
    FAIL,
    PASS,
    SKIPPED,
    SKIPPED_PRIOR_PASS,
    GateResult,
    PersistedReviewResult,
    PreviousSlotState,
    ReviewFail,
    ReviewMalformed,
    ReviewPass,
    SkippedItem,
    SlotAssignment,
    SubResult,
    Violation,
    evaluation_message,
    evaluation_status,
)
from gauntlet.gates.review_output import apply_threshold, evaluate_output
from gauntlet.lib.config import DEFAULT_RERUN_THRESHOLD, ReviewGateConfig
from gauntlet.lib.prompts import review_prompt
from gauntlet.lib.validate import write_validated
from gauntlet.output.logger import LogWriter, RunLogger, json_path_for, timestamp

logger = logging.getLogger(__name__)

_REQUIRED_VIOLATION_FIELDS = ("file", "line", "issue", "priority", "status")


@dataclass
class SlotOutcome:
    adapter: str
    slot_index: int
    status: str
    message: str
    log_path: Path
    payload: Optional[dict] = None
    skipped: list[SkippedItem] = field(default_factory=list)


def assign_slots(pool: list[str], num_reviews: int) -> list[SlotAssignment]:
    """Round-robin: slot i (1-based) goes to pool[(i - 1) % len(pool)]."""
    return [
        SlotAssignment(adapter=pool[i % len(pool)], slot_index=i + 1)
        for i in range(num_reviews)
    ]


def apply_prior_passes(
    assignments: list[SlotAssignment],
    passed_slots: Optional[dict[int, PreviousSlotState]],
) -> bool:
    """
    Mark slots that passed in an earlier run as skipped.

    Only applies with more than one slot. A slot counts as passed only if
    the earlier pass came from the adapter now assigned to it. If every slot
    passed, slot 1 runs anyway.

    Returns:
        True if the safety latch kicked in
    """
    if len(assignments) <= 1 or not passed_slots:
        return False

    any_failed = False
    for assignment in assignments:
        prior = passed_slots.get(assignment.slot_index)
        if prior is not None and prior.adapter == assignment.adapter:
            assignment.pass_iteration = prior.pass_iteration
        else:
            any_failed = True

    latched = not any_failed
    for assignment in assignments:
        if assignment.pass_iteration is None:
            continue
        if latched and assignment.slot_index == 1:
            continue
        assignment.skip = True
        assignment.skip_reason = (
            f"previously passed in iteration {assignment.pass_iteration} (num_reviews > 1)"
        )
    return latched


def _count_active(payload: Optional[dict], status: str) -> int:
    violations = payload.get("violations") if payload else None
    if isinstance(violations, list):
        return sum(
            1 for v in violations
            if isinstance(v, dict) and (not v.get("status") or v.get("status") == "new")
        )
    return 1 if status in (FAIL, ERROR) else 0


def _persist(log_path: Path, result: PersistedReviewResult) -> Path:
    return write_validated(result.to_dict(), "review_result", json_path_for(log_path))


class ReviewGateExecutor:
    def __init__(self, registry: AdapterRegistry, rerun_threshold: str = DEFAULT_RERUN_THRESHOLD):
        self.registry = registry
        self.rerun_threshold = rerun_threshold

    async def healthy_pool(self, preferences: list[str], log: Callable[[str], None]) -> list[str]:
        """Preferred adapters that are healthy, in preference order."""
        pool = []
        reported = set()
        for name in preferences:
            health = await self.registry.health(name)
            if health.healthy:
                pool.append(name)
            elif name not in reported:
                reported.add(name)
                log(f"Skipping {name}: {health.message or 'Unhealthy'}\n")
        return pool

    async def execute(
        self,
        job_id: str,
        config: ReviewGateConfig,
        entry_point: str,
        changes,
        run_logger: RunLogger,
        previous_violations: Optional[dict[int, list[Violation]]] = None,
        passed_slots: Optional[dict[int, PreviousSlotState]] = None,
    ) -> GateResult:
        """
        Run one review gate for one entry point.

        Args:
            changes: object with `async diff(scope) -> str` (a ChangeSetResolver)
            previous_violations: slot index -> violations from the prior run
            passed_slots: slot index -> slot state for slots that passed before
        """
        start = time.monotonic()
        mux = LogMultiplexer()
        log_paths: list[str] = []

        def track(path: Path) -> None:
            if str(path) not in log_paths:
                log_paths.append(str(path))

        def attach(adapter: str, slot: int) -> LogWriter:
            writer = run_logger.slot_writer(job_id, adapter, slot)
            track(writer.path)
            mux.attach(writer)
            return writer

        def result(status: str, message: str, **kwargs) -> GateResult:
            return GateResult(
                job_id=job_id,
                status=status,
                duration_ms=int((time.monotonic() - start) * 1000),
                message=message,
                log_paths=log_paths,
                **kwargs,
            )

        try:
            mux.log(f"Starting review: {config.name}\n")
            mux.log(f"Entry point: {entry_point}\n")

            diff = await changes.diff(entry_point)
            if not diff.strip():
                mux.log("No changes found in entry point, skipping review.\n")
                mux.log("Result: pass - No changes to review\n")
                return result(PASS, "No changes to review")

            pool = await self.healthy_pool(config.cli_preference, mux.log)
            if not pool:
                message = "Review dispatch failed: no healthy adapters available"
                mux.log(f"Result: error - {message}\n")
                return result(ERROR, message)

            assignments = assign_slots(pool, config.num_reviews)
            if apply_prior_passes(assignments, passed_slots):
                mux.log("Running @1: safety latch (all slots previously passed)\n")
            for assignment in assignments:
                if assignment.skip:
                    mux.log(f"Skipping @{assignment.slot_index}: {assignment.skip_reason}\n")

            plan = ", ".join(f"{a.adapter}@{a.slot_index}" for a in assignments)
            mux.log(f"Dispatching {config.num_reviews} review(s) via round-robin: {plan}\n")

            running = [a for a in assignments if not a.skip]
            skipped_slots = [a for a in assignments if a.skip]

            skipped_subs = []
            for assignment in skipped_slots:
                writer = run_logger.slot_writer(job_id, assignment.adapter, assignment.slot_index)
                track(writer.path)
                skipped_subs.append(self._record_skip(assignment, writer))

            previous_violations = previous_violations or {}

            def run(assignment: SlotAssignment):
                return self._run_slot(
                    assignment,
                    config,
                    diff,
                    attach(assignment.adapter, assignment.slot_index),
                    mux.log,
                    previous_violations.get(assignment.slot_index, []),
                )

            if config.parallel and len(running) > 1:
                outcomes = await asyncio.gather(*(run(a) for a in running))
            else:
                outcomes = [await run(a) for a in running]

            return self._aggregate(list(outcomes), skipped_subs, mux, result)

        except Exception as e:
            logger.exception(f"Review gate {job_id} crashed")
            mux.log(f"Critical Error: {e}\n")
            mux.log("Result: error\n")
            return result(ERROR, str(e))

    def _record_skip(self, assignment: SlotAssignment, writer: LogWriter) -> SubResult:
        writer(f"Review skipped: previously passed in iteration {assignment.pass_iteration}\n")
        writer(f"Adapter: {assignment.adapter}\n")
        writer(f"Review index: @{assignment.slot_index}\n")
        writer(f"Status: {SKIPPED_PRIOR_PASS}\n")
        json_path = _persist(writer.path, PersistedReviewResult(
            adapter=assignment.adapter,
            timestamp=timestamp(),
            status=SKIPPED_PRIOR_PASS,
            pass_iteration=assignment.pass_iteration,
        ))
        return SubResult(
            name_suffix=f"({assignment.adapter}@{assignment.slot_index})",
            status=PASS,
            message=f"Skipped: previously passed in iteration {assignment.pass_iteration}",
            log_path=str(json_path),
        )

    async def _run_slot(
        self,
        assignment: SlotAssignment,
        config: ReviewGateConfig,
        diff: str,
        writer: LogWriter,
        main_log: Callable[[str], None],
        previous: list[Violation],
    ) -> SlotOutcome:
        """Run one slot. A slot that can't run at all comes back as an error outcome."""
        adapter = self.registry.get(assignment.adapter)
        label = f"{assignment.adapter}@{assignment.slot_index}"

        def errored(message: str) -> SlotOutcome:
            writer(f"{message}\n")
            main_log(f"{message}\n")
            writer(f"Review result ({label}): {ERROR} - {message}\n")
            return SlotOutcome(
                adapter=assignment.adapter,
                slot_index=assignment.slot_index,
                status=ERROR,
                message=message,
                log_path=writer.path,
            )

        if adapter is None:
            return errored(f"Error: unknown adapter {assignment.adapter}")

        try:
            writer(f"[START] review:{config.name} ({label})\n")
            output = await adapter.execute(
                review_prompt(config.prompt, previous),
                diff,
                model=config.model,
                timeout_ms=int(config.timeout * 1000) if config.timeout else None,
            )
            writer(f"\n--- Review Output ({adapter.name}) ---\n{output}\n")

            evaluation = evaluate_output(output, diff)
            if previous:
                evaluation, dropped = apply_threshold(evaluation, self.rerun_threshold)
                if dropped:
                    writer(
                        f"Note: {dropped} new violations filtered due to rerun threshold "
                        f"({self.rerun_threshold})\n"
                    )

            if isinstance(evaluation, ReviewMalformed):
                writer(f"Error: {evaluation.reason}\n")
                main_log(f"Error parsing review from {adapter.name}: {evaluation.reason}\n")
            elif evaluation.filtered_count:
                writer(f"Note: {evaluation.filtered_count} violations filtered\n")

            status = evaluation_status(evaluation)
            message = evaluation_message(evaluation)
            payload = evaluation.payload
            skipped = []

            if payload is not None:
                if isinstance(evaluation, ReviewFail):
                    self._warn_incomplete(evaluation, writer)
                violations = payload.get("violations")
                violations = [v for v in violations if isinstance(v, dict)] if isinstance(violations, list) else []
                json_path = _persist(writer.path, PersistedReviewResult(
                    adapter=adapter.name,
                    timestamp=timestamp(),
                    status=status,
                    raw_output=output,
                    violations=[Violation.from_dict(v) for v in violations],
                ))
                skipped = [
                    SkippedItem(file=v.get("file", ""), line=v.get("line"), issue=v.get("issue", ""), result=v.get("result"))
                    for v in violations if v.get("status") == SKIPPED
                ]
                self._log_parsed(adapter.name, evaluation, json_path, writer)

            writer(f"Review result ({label}): {status} - {message}\n")
            return SlotOutcome(
                adapter=adapter.name,
                slot_index=assignment.slot_index,
                status=status,
                message=message,
                log_path=writer.path,
                payload=payload,
                skipped=skipped,
            )
        except Exception as e:
            error = f"Error running {label}: {e}"
            logger.warning(error)
            return errored(error)

    def _warn_incomplete(self, evaluation: ReviewFail, writer: LogWriter) -> None:
        if not isinstance(evaluation.payload.get("violations"), list):
            writer("Warning: Missing 'violations' array in failure response\n")
            return
        for v in evaluation.violations:
            if any(v.get(key) in (None, "") for key in _REQUIRED_VIOLATION_FIELDS):
                writer(f"Warning: Violation missing required fields: {json.dumps(v)}\n")

    def _log_parsed(self, name: str, evaluation, json_path: Path, writer: LogWriter) -> None:
        writer(f"\n--- Parsed Result ({name}) ---\n")
        if isinstance(evaluation, ReviewFail):
            writer("Status: FAIL\n")
            writer(f"Review: {json_path}\n")
            writer("Violations:\n")
            for i, v in enumerate(evaluation.violations, 1):
                writer(f"{i}. {v.get('file')}:{v.get('line') or '?'} - {v.get('issue')}\n")
                if v.get("fix"):
                    writer(f"   Fix: {v['fix']}\n")
        elif isinstance(evaluation, ReviewPass):
            writer("Status: PASS\n")
            if evaluation.payload.get("message"):
                writer(f"Message: {evaluation.payload['message']}\n")
        else:
            writer(f"Status: {evaluation.payload.get('status')}\n")
            writer(f"Raw: {json.dumps(evaluation.payload, indent=2)}\n")
        writer("---------------------\n")

    def _aggregate(self, outcomes: list[SlotOutcome], skipped_subs: list[SubResult], mux, result) -> GateResult:
        failed = [o for o in outcomes if o.status == FAIL]
        errored = [o for o in outcomes if o.status == ERROR]

        status, message = PASS, "Passed"
        if errored:
            status, message = ERROR, f"Error in {len(errored)} adapter(s)"
        elif failed:
            status, message = FAIL, f"Failed by {len(failed)} adapter(s)"
        if skipped_subs:
            message += f" ({len(skipped_subs)} skipped due to prior pass)"

        subs = []
        for outcome in outcomes:
            log_path = outcome.log_path
            if outcome.payload is not None and outcome.status == FAIL:
                log_path = json_path_for(log_path)
            subs.append(SubResult(
                name_suffix=f"({outcome.adapter}@{outcome.slot_index})",
                status=outcome.status,
                message=outcome.message,
                log_path=str(log_path),
                error_count=_count_active(outcome.payload, outcome.status),
                skipped=outcome.skipped,
            ))
        subs.extend(skipped_subs)
        subs.sort(key=lambda s: int(s.name_suffix.rsplit("@", 1)[1].rstrip(")")))

        mux.log(f"Result: {status} - {message}\n")
        return result(
            status,
            message,
            sub_results=subs,
            error_count=sum(s.error_count for s in subs),
            skipped=[item for o in outcomes for item in o.skipped],
        )
