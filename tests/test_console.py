"""Tests for console output."""

from gauntlet.core.jobs import CHECK, Job
from gauntlet.gates.result import FAIL, PASS, GateResult, SkippedItem, SubResult
from gauntlet.lib.config import CheckGateConfig
from gauntlet.output.console import ConsoleReporter

JOB = Job(
    id="check:.:lint", type=CHECK, gate_name="lint", entry_point=".", working_directory=".",
    gate=CheckGateConfig(name="lint", command="true"),
)


class TestConsoleReporter:
    """Tests for ConsoleReporter."""

    def test_job_lines(self):
        lines = []
        reporter = ConsoleReporter(lines.append)
        reporter.on_job_start(JOB)
        reporter.on_job_complete(JOB, GateResult(job_id=JOB.id, status=FAIL, duration_ms=1500, message="Exited with code 1"))
        assert lines == ["[START] check:.:lint", "[FAIL] check:.:lint (1.5s) - Exited with code 1"]

    def test_pass_line_has_no_message(self):
        lines = []
        ConsoleReporter(lines.append).on_job_complete(JOB, GateResult(job_id=JOB.id, status=PASS, duration_ms=200, message="ok"))
        assert lines == ["[PASS] check:.:lint (0.2s)"]

    def test_summary(self):
        lines = []
        results = [
            GateResult(job_id="check:.:lint", status=PASS, message="Command exited with code 0"),
            GateResult(
                job_id="review:.:quality",
                status=FAIL,
                message="Failed by 1 adapter(s)",
                sub_results=[SubResult(name_suffix="(claude@1)", status=FAIL, message="Found 2 violations",
                                       log_path="logs/r.json", error_count=2)],
                skipped=[SkippedItem(file="a.py", line=3, issue="style", result="intentional")],
            ),
        ]

        ConsoleReporter(lines.append).print_summary(results, "logs", headline="Retry limit exceeded")
        text = "\n".join(lines)

        assert "(claude@1) fail: Found 2 violations [2 open]" in text
        assert "see logs/r.json" in text
        assert "a.py:3 - style (intentional)" in text
        assert lines[-2] == "Retry limit exceeded"
        assert lines[-1] == "1/2 gates passed. Logs: logs"
