"""
Top-level run: everything `gauntlet run` does between loading config and
choosing an exit code.

A run is a *rerun* (verification mode) when the log directory still holds
logs from an earlier run and no explicit commit was requested. Reruns review
only what changed since the last run's working-tree snapshot and hand every
slot its previous violations. Logs are archived only on a clean pass, so a
failing run always leads to a rerun next time.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from gauntlet.agents import AdapterRegistry, default_registry
from gauntlet.core.changes import ChangeSetResolver, is_ci
from gauntlet.core.entry_points import EntryPointExpander
from gauntlet.core.jobs import JobGenerator
from gauntlet.core.runner import Runner, RunOutcome
from gauntlet.gates.result import PASS
from gauntlet.lib.config import LoadedConfig, load_config
from gauntlet.lib.execution_state import read_execution_state, resolve_fix_base, write_execution_state
from gauntlet.lib.locking import LockHeld, acquire_lock, release_lock
from gauntlet.lib.log_parser import PreviousFailures, find_previous_failures
from gauntlet.output.console import ConsoleReporter
from gauntlet.output.logger import RunLogger, clean_logs, has_existing_logs

logger = logging.getLogger(__name__)

PASSED = "passed"
PASSED_WITH_WARNINGS = "passed_with_warnings"
FAILED = "failed"
NO_CHANGES = "no_changes"
NO_APPLICABLE_GATES = "no_applicable_gates"
RETRY_LIMIT_EXCEEDED = "retry_limit_exceeded"
LOCK_CONFLICT = "lock_conflict"
ERROR = "error"

STATUS_MESSAGES = {
    PASSED: "All gates passed.",
    PASSED_WITH_WARNINGS: "Passed with warnings: some issues were skipped.",
    FAILED: "Gates failed: issues must be fixed.",
    NO_CHANGES: "No changes detected.",
    NO_APPLICABLE_GATES: "No applicable gates for these changes.",
    RETRY_LIMIT_EXCEEDED: "Retry limit exceeded: run `gauntlet clean` to archive logs and continue.",
    LOCK_CONFLICT: "Another gauntlet run is already in progress.",
    ERROR: "Unexpected error occurred.",
}

SUCCESS_STATUSES = {PASSED, PASSED_WITH_WARNINGS, NO_CHANGES, NO_APPLICABLE_GATES}


@dataclass
class RunOptions:
    base_branch: Optional[str] = None
    gate: Optional[str] = None  # only run jobs for this gate name
    gate_type: Optional[str] = None  # only run check or review jobs
    commit: Optional[str] = None
    uncommitted: bool = False


@dataclass
class RunResult:
    status: str
    message: str
    gates_run: int = 0
    gates_failed: int = 0
    error_message: Optional[str] = None
    outcome: Optional[RunOutcome] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.status in SUCCESS_STATUSES else 1


def _result(status: str, **kwargs) -> RunResult:
    return RunResult(status=status, message=STATUS_MESSAGES[status], **kwargs)


def effective_base_branch(config: LoadedConfig, options: RunOptions, env: Mapping[str, str]) -> str:
    if options.base_branch:
        return options.base_branch
    if is_ci(env) and env.get("GITHUB_BASE_REF"):
        return env["GITHUB_BASE_REF"]
    return config.project.base_branch


def final_status(outcome: RunOutcome) -> str:
    if outcome.retry_limit_exceeded:
        return RETRY_LIMIT_EXCEEDED
    if outcome.all_passed:
        return PASSED_WITH_WARNINGS if outcome.any_skipped else PASSED
    return FAILED


async def execute_run(
    root: Path,
    options: Optional[RunOptions] = None,
    registry: Optional[AdapterRegistry] = None,
    reporter: Optional[ConsoleReporter] = None,
    env: Optional[Mapping[str, str]] = None,
    config: Optional[LoadedConfig] = None,
) -> RunResult:
    """
    Execute one gauntlet run under the run lock.

    Raises:
        ConfigError: if the project configuration can't be loaded
    """
    options = options or RunOptions()
    env = os.environ if env is None else env
    reporter = reporter or ConsoleReporter()
    config = config or load_config(root)
    log_dir = config.log_dir
    base_branch = effective_base_branch(config, options, env)
    registry = registry or default_registry(root, config.project.cli.check_usage_limit)

    logs_exist = has_existing_logs(log_dir)
    is_rerun = logs_exist and not options.commit

    try:
        acquire_lock(log_dir)
    except LockHeld as e:
        logger.warning(str(e))
        return _result(LOCK_CONFLICT)

    try:
        run_logger = RunLogger(log_dir)
        run_logger.init()

        previous = PreviousFailures()
        fix_base = None
        fix_base_untracked = None
        uncommitted = options.uncommitted

        if is_rerun:
            reporter.out("Existing logs detected, running in verification mode...")
            previous = find_previous_failures(log_dir, options.gate)
            if previous.gates:
                reporter.out(
                    f"Found {len(previous.gates)} gate(s) with "
                    f"{previous.violation_count} previous violation(s)"
                )
            uncommitted = True
            state = read_execution_state(log_dir)
            if state and state.working_tree_ref:
                fix_base = state.working_tree_ref
                fix_base_untracked = state.untracked_files
        elif not logs_exist:
            state = read_execution_state(log_dir)
            if state:
                resolved = resolve_fix_base(state, base_branch, root)
                if resolved.warning:
                    logger.warning(resolved.warning)
                    reporter.out(f"Warning: {resolved.warning}")
                fix_base = resolved.ref
                fix_base_untracked = state.untracked_files

        changes = ChangeSetResolver(
            root,
            base_branch,
            commit=options.commit,
            fix_base=fix_base,
            uncommitted=uncommitted,
            env=env,
            fix_base_untracked=fix_base_untracked,
        )

        reporter.out("Detecting changes...")
        changed = await changes.changed_files()
        if not changed:
            reporter.out("No changes detected.")
            return _result(NO_CHANGES)
        reporter.out(f"Found {len(changed)} changed files.")

        entry_points = EntryPointExpander().expand(config.project.entry_points, changed)
        jobs = JobGenerator(config, env).generate(entry_points)
        if options.gate_type:
            jobs = [job for job in jobs if job.type == options.gate_type]
        if options.gate:
            jobs = [job for job in jobs if job.gate_name == options.gate]
        if not jobs:
            reporter.out("No applicable gates for these changes.")
            return _result(NO_APPLICABLE_GATES)

        reporter.out(f"Running {len(jobs)} gates...")
        runner = Runner(config, run_logger, registry, changes, reporter, previous)
        outcome = await runner.run(jobs)

        write_execution_state(log_dir, root)

        status = final_status(outcome)
        if status == PASSED:
            clean_logs(log_dir)

        return _result(
            status,
            gates_run=len(jobs),
            gates_failed=sum(1 for r in outcome.results if r.status != PASS),
            outcome=outcome,
        )
    except Exception as e:
        logger.exception("Run failed")
        return _result(ERROR, error_message=str(e) or type(e).__name__)
    finally:
        release_lock(log_dir)
