"""
Job scheduler.

Runs a list of jobs once:

1. Refuse to run past the retry limit (run number > max_retries + 1).
2. Preflight: checks need a resolvable command, reviews at least one healthy
   adapter. Failures become error results without executing anything.
3. Parallel gates start together; everything else runs in order on one lane.
4. A failing fail_fast job stops jobs that haven't started yet; jobs already
   running finish. Jobs that never started are reported as not_run.
"""

import asyncio
import logging
import os
import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from gauntlet.agents import AdapterRegistry
from gauntlet.core.job_state import JobState, PENDING
from gauntlet.core.jobs import CHECK, Job
from gauntlet.gates.check import CheckGateExecutor
from gauntlet.gates.result import ERROR, NOT_RUN, PASS, GateResult
from gauntlet.gates.review import ReviewGateExecutor
from gauntlet.lib.config import LoadedConfig
from gauntlet.lib.log_parser import PreviousFailures
from gauntlet.output.console import ConsoleReporter
from gauntlet.output.logger import RunLogger, sanitize_job_id

logger = logging.getLogger(__name__)

RETRY_LIMIT_HEADLINE = "Retry limit exceeded"


@dataclass
class RunOutcome:
    results: list[GateResult] = field(default_factory=list)
    not_run: list[str] = field(default_factory=list)
    retry_limit_exceeded: bool = False

    @property
    def all_passed(self) -> bool:
        if self.retry_limit_exceeded or self.not_run:
            return False
        return all(r.status == PASS for r in self.results)

    @property
    def any_skipped(self) -> bool:
        return any(
            r.skipped or any(sub.skipped for sub in r.sub_results)
            for r in self.results
        )


def command_name(command: str) -> Optional[str]:
    """The program a shell command line starts, skipping `env` and VAR=value."""
    try:
        tokens = shlex.split(command)
    except ValueError:
        return None
    for token in tokens:
        if token == "env":
            continue
        name, sep, _ = token.partition("=")
        if sep and name.replace("_", "a").isalnum() and not name[0].isdigit():
            continue
        return token
    return None


async def command_exists(command: str, cwd: Path) -> bool:
    """True if `command` resolves in the shell (builtins included) or is an executable path."""
    if "/" in command or command.startswith("."):
        path = Path(command)
        if not path.is_absolute():
            path = cwd / path
        return path.is_file() and os.access(path, os.X_OK)

    proc = await asyncio.create_subprocess_exec(
        "sh", "-c", 'command -v "$1"', "sh", command,
        cwd=str(cwd) if cwd.is_dir() else None,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    return await proc.wait() == 0


class Runner:
    def __init__(
        self,
        config: LoadedConfig,
        run_logger: RunLogger,
        registry: AdapterRegistry,
        changes,
        reporter: Optional[ConsoleReporter] = None,
        previous: Optional[PreviousFailures] = None,
    ):
        self.config = config
        self.run_logger = run_logger
        self.registry = registry
        self.changes = changes
        self.reporter = reporter or ConsoleReporter()
        self.previous = previous or PreviousFailures()
        self.check_executor = CheckGateExecutor()
        self.review_executor = ReviewGateExecutor(registry, config.project.rerun_new_issue_threshold)
        self.results: list[GateResult] = []
        self.states: dict[str, JobState] = {}
        self.should_stop = False

    def _workdir(self, job: Job) -> Path:
        return self.config.root / job.working_directory

    def _record(self, job: Job, result: GateResult) -> None:
        self.results.append(result)
        if result.status != PASS and job.fail_fast:
            logger.info(f"{job.id} failed with fail_fast set, not starting remaining jobs")
            self.should_stop = True

    async def run(self, jobs: list[Job]) -> RunOutcome:
        self.run_logger.init()
        self.states = {job.id: JobState(job.id) for job in jobs}

        max_retries = self.config.project.max_retries
        run_number = self.run_logger.run_number
        max_runs = max_retries + 1
        if run_number > max_runs:
            logger.error(
                f"Retry limit exceeded: run {run_number} exceeds max allowed {max_runs} "
                f"(max_retries: {max_retries})"
            )
            return RunOutcome(not_run=[job.id for job in jobs], retry_limit_exceeded=True)

        runnable = await self.preflight(jobs)

        if self.config.project.allow_parallel:
            parallel = [job for job in runnable if job.parallel]
            sequential = [job for job in runnable if not job.parallel]
        else:
            parallel, sequential = [], runnable

        async def sequential_lane():
            for job in sequential:
                if self.should_stop:
                    break
                await self.execute_job(job)

        await asyncio.gather(*(self.execute_job(job) for job in parallel), sequential_lane())

        not_run = []
        for job in jobs:
            state = self.states[job.id]
            if state.state == PENDING:
                state.skip()
                not_run.append(job.id)
                self.results.append(GateResult(job_id=job.id, status=NOT_RUN, message="Not run (fail-fast)"))

        outcome = RunOutcome(results=self.results, not_run=not_run)
        headline = RETRY_LIMIT_HEADLINE if not outcome.all_passed and run_number == max_runs else None
        self.reporter.print_summary(self.results, self.run_logger.log_dir, headline)
        return outcome

    async def preflight(self, jobs: list[Job]) -> list[Job]:
        """Weed out jobs that can't possibly run; returns the runnable ones."""
        runnable = []
        for job in jobs:
            if self.should_stop:
                break

            if job.type == CHECK:
                name = command_name(job.gate.command)
                if name is None:
                    message = "Unable to parse command"
                elif not await command_exists(name, self._workdir(job)):
                    message = f"Missing command: {name}"
                else:
                    message = None
            else:
                message = None
                for tool in job.gate.cli_preference:
                    if (await self.registry.health(tool)).healthy:
                        break
                else:
                    message = "Preflight failed: no healthy adapters available"

            if message is None:
                runnable.append(job)
                continue

            logger.error(f"[PREFLIGHT] {job.id}: {message}")
            log_paths = []
            if job.type == CHECK:
                writer = self.run_logger.job_writer(job.id)
                writer(f"Health check failed\n{message}\n")
                writer(f"Result: error - {message}\n")
                log_paths.append(str(writer.path))
            self.states[job.id].errored()
            self._record(job, GateResult(job_id=job.id, status=ERROR, message=message, log_paths=log_paths))
        return runnable

    async def execute_job(self, job: Job) -> None:
        if self.should_stop:
            return

        state = self.states[job.id]
        state.start()
        self.reporter.on_job_start(job)
        start = time.monotonic()

        try:
            if job.type == CHECK:
                writer = self.run_logger.job_writer(job.id)
                result = await self.check_executor.execute(job.id, job.gate, self._workdir(job), writer)
                result.log_paths = [str(writer.path)]
            else:
                safe_id = sanitize_job_id(job.id)
                result = await self.review_executor.execute(
                    job.id,
                    job.gate,
                    job.entry_point,
                    self.changes,
                    self.run_logger,
                    previous_violations=self.previous.slot_violations(safe_id),
                    passed_slots=self.previous.passed_slots.get(safe_id),
                )
        except Exception as e:
            logger.exception(f"Execution failed for {job.id}")
            result = GateResult(
                job_id=job.id,
                status=ERROR,
                duration_ms=int((time.monotonic() - start) * 1000),
                message=str(e) or type(e).__name__,
            )

        state.finish(result.status)
        self._record(job, result)
        self.reporter.on_job_complete(job, result)
        logger.debug(f"{job.id} finished: {result.status}")
