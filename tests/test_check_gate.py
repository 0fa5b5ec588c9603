"""Tests for the check gate executor (runs real shell commands)."""

import asyncio
import time

from gauntlet.gates.check import CheckGateExecutor
from gauntlet.gates.result import ERROR, FAIL, PASS
from gauntlet.lib.config import CheckGateConfig


def _run(command, tmp_path, timeout=None):
    lines = []
    config = CheckGateConfig(name="lint", command=command, timeout=timeout)
    result = asyncio.run(CheckGateExecutor().execute("check:.:lint", config, tmp_path, lines.append))
    return result, "".join(lines)


class TestCheckGateExecutor:
    """Tests for CheckGateExecutor.execute."""

    def test_exit_zero_passes(self, tmp_path):
        result, log = _run("echo hello", tmp_path)
        assert result.status == PASS
        assert result.message == "Command exited with code 0"
        assert "hello" in log
        assert "Result: pass - Command exited with code 0" in log

    def test_nonzero_exit_fails(self, tmp_path):
        result, log = _run("echo oops >&2; exit 3", tmp_path)
        assert result.status == FAIL
        assert result.message == "Exited with code 3"
        assert "STDERR:" in log
        assert "oops" in log

    def test_timeout_kills_and_fails(self, tmp_path):
        result, log = _run("sleep 5", tmp_path, timeout=0.2)
        assert result.status == FAIL
        assert result.message == "Timed out after 0.2s"
        assert result.duration_ms < 5000

    def test_timeout_kills_commands_the_shell_started(self, tmp_path):
        """The whole process group dies, so the timeout fires on time."""
        start = time.monotonic()
        result, log = _run("sleep 30 && echo finished", tmp_path, timeout=1)
        assert time.monotonic() - start < 10
        assert result.status == FAIL
        assert result.message == "Timed out after 1s"
        assert "finished" not in log

    def test_spawn_failure_is_error(self, tmp_path):
        result, log = _run("true", tmp_path / "missing")
        assert result.status == ERROR
        assert "Command failed:" in log

    def test_runs_in_working_directory(self, tmp_path):
        (tmp_path / "marker.txt").write_text("here")
        result, _ = _run("test -f marker.txt", tmp_path)
        assert result.status == PASS

    def test_logs_header(self, tmp_path):
        _, log = _run("true", tmp_path)
        assert "Starting check: lint" in log
        assert "Executing command: true" in log
        assert f"Working directory: {tmp_path}" in log
