"""
Common plumbing for review-agent CLIs.

Each adapter wraps one agent CLI. The prompt and the diff are written to the
CLI's stdin so neither hits argument length limits or shell quoting.
"""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from gauntlet.lib.process import kill_process_group

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
MISSING = "missing"
UNHEALTHY = "unhealthy"

# Phrases agent CLIs print when the account is out of quota
_USAGE_LIMIT_MARKERS = (
    "usage limit",
    "quota exceeded",
    "quota will reset",
    "credit balance is too low",
    "out of extra usage",
    "out of usage",
)

USAGE_CHECK_PROMPT = "Reply with the single word OK."
USAGE_CHECK_TIMEOUT = 60


class AdapterError(Exception):
    """An agent CLI could not produce output."""
    pass


@dataclass
class AdapterHealth:
    status: str  # healthy | missing | unhealthy
    message: str = ""

    @property
    def healthy(self) -> bool:
        return self.status == HEALTHY


def is_usage_limit(output: str) -> bool:
    lower = output.lower()
    return any(marker in lower for marker in _USAGE_LIMIT_MARKERS)


def compose_input(prompt: str, diff: str) -> str:
    """Full text sent to the agent: instructions, then the diff under review."""
    return f"{prompt}\n\n--- DIFF ---\n{diff}"


class CliAdapter:
    """Base class for agent CLIs driven over stdin."""

    name: str = ""
    binary: str = ""

    def __init__(self, cwd: Optional[Path] = None):
        self.cwd = cwd or Path.cwd()

    def build_command(self, model: Optional[str] = None) -> list[str]:
        raise NotImplementedError

    def child_env(self) -> dict:
        return dict(os.environ)

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    async def check_health(self, check_usage_limit: bool = False) -> AdapterHealth:
        if not self.is_available():
            return AdapterHealth(MISSING, "Command not found")
        if not check_usage_limit:
            return AdapterHealth(HEALTHY, "Installed")

        try:
            output = await self.execute(USAGE_CHECK_PROMPT, "", timeout_ms=USAGE_CHECK_TIMEOUT * 1000)
        except AdapterError as e:
            if is_usage_limit(str(e)):
                return AdapterHealth(UNHEALTHY, "Usage limit exceeded")
            return AdapterHealth(UNHEALTHY, str(e))
        if is_usage_limit(output):
            return AdapterHealth(UNHEALTHY, "Usage limit exceeded")
        return AdapterHealth(HEALTHY, "Installed")

    async def execute(
        self,
        prompt: str,
        diff: str,
        model: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> str:
        """
        Run the agent once and return its stdout.

        Raises:
            AdapterError: on spawn failure, non-zero exit or timeout
        """
        cmd = self.build_command(model)
        logger.debug(f"Running {self.name}: {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self.cwd),
                env=self.child_env(),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise AdapterError(f"Failed to start {self.binary}: {e}") from e

        timeout = timeout_ms / 1000 if timeout_ms else None
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(compose_input(prompt, diff).encode()),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await kill_process_group(proc)
            raise AdapterError(f"{self.name} timed out after {timeout:g}s") from None

        out = stdout.decode(errors="replace")
        if proc.returncode != 0:
            err = stderr.decode(errors="replace").strip()
            raise AdapterError(f"{self.name} exited with code {proc.returncode}: {err or out.strip()}")
        return out
