"""Check gate: run a shell command and judge it by exit code."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable

from gauntlet.gates.result import ERROR, FAIL, PASS, GateResult
from gauntlet.lib.config import CheckGateConfig
from gauntlet.lib.process import kill_process_group

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class CheckGateExecutor:
    async def execute(
        self,
        job_id: str,
        config: CheckGateConfig,
        working_directory: Path,
        log: Callable[[str], None],
    ) -> GateResult:
        """
        Run config.command through the shell inside working_directory.

        Exit 0 passes, any other exit code fails, a timeout kills the child
        and fails, and a command that can't be spawned is an error.
        """
        start = time.monotonic()
        log(f"Starting check: {config.name}\n")
        log(f"Executing command: {config.command}\n")
        log(f"Working directory: {working_directory}\n\n")

        def finish(status: str, message: str) -> GateResult:
            log(f"Result: {status} - {message}\n")
            return GateResult(job_id=job_id, status=status, duration_ms=_elapsed_ms(start), message=message)

        try:
            proc = await asyncio.create_subprocess_shell(
                config.command,
                cwd=str(working_directory),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            log(f"\nCommand failed: {e}\n")
            return finish(ERROR, str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=config.timeout)
        except asyncio.TimeoutError:
            await kill_process_group(proc)
            log(f"\nCommand failed: timed out after {config.timeout:g}s\n")
            return finish(FAIL, f"Timed out after {config.timeout:g}s")

        if stdout:
            log(stdout.decode(errors="replace"))
        if stderr:
            log(f"\nSTDERR:\n{stderr.decode(errors='replace')}")

        if proc.returncode == 0:
            return finish(PASS, "Command exited with code 0")

        log(f"\nCommand failed: exit code {proc.returncode}\n")
        logger.debug(f"{job_id} exited with code {proc.returncode}")
        return finish(FAIL, f"Exited with code {proc.returncode}")
