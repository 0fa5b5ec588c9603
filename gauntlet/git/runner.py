"""Run git with a timeout, sync for one-off queries and async inside the gate loop."""

import asyncio
import subprocess
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TIMEOUT = 30


@dataclass
class GitResult:
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @classmethod
    def timeout(cls, seconds: float) -> "GitResult":
        return cls(returncode=-1, stdout="", stderr=f"Command timed out after {seconds}s", timed_out=True)


class GitError(Exception):
    """A git command needed for change detection failed."""

    def __init__(self, args: list[str], result: GitResult):
        self.git_args = args
        self.result = result
        detail = result.stderr.strip() or f"exit code {result.returncode}"
        super().__init__(f"git {' '.join(args)} failed: {detail}")


def _argv(args: list[str], cwd: Path) -> list[str]:
    return ["git", "-C", str(cwd), *args]


def run_git(args: list[str], cwd: Path, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Run git in `cwd`; a timeout comes back as a failed result, never an exception."""
    try:
        proc = subprocess.run(_argv(args, cwd), capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        return GitResult.timeout(timeout)
    return GitResult(proc.returncode, proc.stdout, proc.stderr)


async def run_git_async(args: list[str], cwd: Path, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Same as run_git, but awaitable. The child is killed if it outlives the timeout."""
    proc = await asyncio.create_subprocess_exec(
        *_argv(args, cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return GitResult.timeout(timeout)
    return GitResult(proc.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace"))


async def git_lines(args: list[str], cwd: Path, timeout: int = DEFAULT_TIMEOUT) -> list[str]:
    """Non-blank stdout lines of a git command that must succeed.

    Raises:
        GitError: on a non-zero exit or timeout
    """
    result = await run_git_async(args, cwd, timeout=timeout)
    if not result.success:
        raise GitError(args, result)
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]
