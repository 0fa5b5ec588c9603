"""Tests for the review gate executor."""

import asyncio
import json
from unittest.mock import patch

from conftest import FakeAdapter, FakeChanges, fail_output

from gauntlet.agents import MISSING
from gauntlet.gates.result import ERROR, FAIL, FIXED, PASS, PreviousSlotState, Violation
from gauntlet.gates.review import (
    ReviewGateExecutor,
    apply_prior_passes,
    assign_slots,
)
from gauntlet.lib.config import ReviewGateConfig
from gauntlet.output.logger import RunLogger

JOB_ID = "review:.:quality"


def _config(**overrides):
    values = dict(name="quality", prompt="Review for bugs.", cli_preference=["claude", "codex"])
    values.update(overrides)
    return ReviewGateConfig(**values)


def _execute(registry, tmp_path, config=None, changes=None, **kwargs):
    executor = ReviewGateExecutor(registry, "high")
    run_logger = RunLogger(tmp_path / "logs")
    run_logger.init()
    return asyncio.run(executor.execute(
        JOB_ID,
        config or _config(),
        ".",
        changes or FakeChanges(),
        run_logger,
        **kwargs,
    ))


class TestAssignSlots:
    """Tests for assign_slots."""

    def test_round_robin(self):
        slots = assign_slots(["claude", "codex"], 3)
        assert [(s.adapter, s.slot_index) for s in slots] == [
            ("claude", 1), ("codex", 2), ("claude", 3),
        ]

    def test_single_adapter_serves_every_slot(self):
        assert [s.adapter for s in assign_slots(["gemini"], 2)] == ["gemini", "gemini"]


class TestApplyPriorPasses:
    """Tests for apply_prior_passes."""

    def test_single_slot_never_skips(self):
        slots = assign_slots(["claude"], 1)
        latched = apply_prior_passes(slots, {1: PreviousSlotState(1, "claude", 1)})
        assert not latched
        assert not slots[0].skip

    def test_skips_passed_slot_with_same_adapter(self):
        slots = assign_slots(["claude", "codex"], 2)
        latched = apply_prior_passes(slots, {2: PreviousSlotState(2, "codex", 1)})
        assert not latched
        assert not slots[0].skip
        assert slots[1].skip
        assert "iteration 1" in slots[1].skip_reason

    def test_adapter_change_means_rerun(self):
        """A pass from a different adapter doesn't count."""
        slots = assign_slots(["claude", "codex"], 2)
        apply_prior_passes(slots, {2: PreviousSlotState(2, "gemini", 1)})
        assert not slots[1].skip

    def test_safety_latch_runs_slot_one(self):
        """When every slot passed before, slot 1 still runs."""
        slots = assign_slots(["claude", "codex"], 2)
        latched = apply_prior_passes(slots, {
            1: PreviousSlotState(1, "claude", 2),
            2: PreviousSlotState(2, "codex", 1),
        })
        assert latched
        assert not slots[0].skip
        assert slots[1].skip


class TestReviewGateExecutor:
    """Tests for ReviewGateExecutor.execute."""

    def test_empty_diff_passes(self, tmp_path, make_registry):
        claude = FakeAdapter("claude")
        result = _execute(make_registry(claude), tmp_path, changes=FakeChanges(diff="  \n"))
        assert result.status == PASS
        assert result.message == "No changes to review"
        assert claude.prompts == []

    def test_no_healthy_adapter(self, tmp_path, make_registry):
        registry = make_registry(FakeAdapter("claude", status=MISSING), FakeAdapter("codex", status=MISSING))
        result = _execute(registry, tmp_path)
        assert result.status == ERROR
        assert result.message == "Review dispatch failed: no healthy adapters available"

    def test_single_pass_persists_json(self, tmp_path, make_registry):
        result = _execute(make_registry(FakeAdapter("claude")), tmp_path, config=_config(cli_preference=["claude"]))
        assert result.status == PASS
        assert result.message == "Passed"

        json_file = tmp_path / "logs" / "review_._quality_claude@1.1.json"
        data = json.loads(json_file.read_text())
        assert data["status"] == "pass"
        assert data["adapter"] == "claude"

    def test_fail_counts_violations(self, tmp_path, make_registry):
        output = fail_output({"file": "src/a.py", "line": 2, "issue": "y unused", "priority": "high", "status": "new"})
        registry = make_registry(FakeAdapter("claude", [output]))
        result = _execute(registry, tmp_path, config=_config(cli_preference=["claude"]))

        assert result.status == FAIL
        assert result.message == "Failed by 1 adapter(s)"
        assert result.error_count == 1
        assert result.sub_results[0].log_path.endswith(".json")

    def test_out_of_scope_failure_passes(self, tmp_path, make_registry):
        output = fail_output({"file": "src/other.py", "line": 40, "issue": "unrelated"})
        registry = make_registry(FakeAdapter("claude", [output]))
        result = _execute(registry, tmp_path, config=_config(cli_preference=["claude"]))
        assert result.status == PASS

    def test_malformed_output_is_error(self, tmp_path, make_registry):
        registry = make_registry(FakeAdapter("claude"), FakeAdapter("codex", ["no json at all"]))
        result = _execute(registry, tmp_path, config=_config(num_reviews=2))

        assert result.status == ERROR
        assert result.message == "Error in 1 adapter(s)"
        assert [s.name_suffix for s in result.sub_results] == ["(claude@1)", "(codex@2)"]

    def test_adapter_crash_keeps_sibling_results(self, tmp_path, make_registry):
        """A slot that raises is an error sub-result; the other slot's findings survive."""
        output = fail_output({"file": "src/a.py", "line": 2, "issue": "y unused", "priority": "high", "status": "new"})
        registry = make_registry(FakeAdapter("claude", [output]), FakeAdapter("codex", error="boom"))
        result = _execute(registry, tmp_path, config=_config(num_reviews=2, parallel=True))

        assert result.status == ERROR
        assert result.message == "Error in 1 adapter(s)"
        claude_sub, codex_sub = result.sub_results
        assert (claude_sub.name_suffix, claude_sub.status, claude_sub.error_count) == ("(claude@1)", FAIL, 1)
        assert (codex_sub.name_suffix, codex_sub.status) == ("(codex@2)", ERROR)
        assert "boom" in codex_sub.message
        assert result.error_count == 2

        persisted = json.loads((tmp_path / "logs" / "review_._quality_claude@1.1.json").read_text())
        assert persisted["violations"][0]["issue"] == "y unused"

    def test_unknown_adapter_is_error_sub_result(self, tmp_path, make_registry):
        claude = FakeAdapter("claude")
        registry = make_registry(claude)
        # Healthy at the health check, gone by dispatch
        with patch.object(registry, "get", side_effect=[claude, None]):
            result = _execute(registry, tmp_path, config=_config(cli_preference=["claude"]))
        assert result.status == ERROR
        assert result.sub_results[0].message == "Error: unknown adapter claude"

    def test_unhealthy_adapter_skipped_in_log(self, tmp_path, make_registry):
        registry = make_registry(FakeAdapter("claude", status=MISSING), FakeAdapter("codex"))
        result = _execute(registry, tmp_path)
        assert result.status == PASS
        log = (tmp_path / "logs" / "review_._quality_codex@1.1.log").read_text()
        assert "Skipping claude: not installed" in log

    def test_prior_pass_skips_slot(self, tmp_path, make_registry):
        claude, codex = FakeAdapter("claude"), FakeAdapter("codex")
        result = _execute(
            make_registry(claude, codex),
            tmp_path,
            config=_config(num_reviews=2),
            passed_slots={2: PreviousSlotState(2, "codex", 1)},
        )
        assert result.status == PASS
        assert result.message == "Passed (1 skipped due to prior pass)"
        assert codex.prompts == []

        skipped = json.loads((tmp_path / "logs" / "review_._quality_codex@2.1.json").read_text())
        assert skipped["status"] == "skipped_prior_pass"
        assert skipped["passIteration"] == 1

    def test_rerun_sends_previous_violations(self, tmp_path, make_registry):
        claude = FakeAdapter("claude")
        previous = {1: [Violation(file="src/a.py", line=2, issue="Old issue", status=FIXED)]}
        _execute(make_registry(claude), tmp_path, config=_config(cli_preference=["claude"]), previous_violations=previous)
        assert "src/a.py:2 - Old issue" in claude.prompts[0]

    def test_rerun_threshold_filters_new_low_issues(self, tmp_path, make_registry):
        output = fail_output({"file": "src/a.py", "line": 2, "issue": "nit", "priority": "low", "status": "new"})
        claude = FakeAdapter("claude", [output])
        previous = {1: [Violation(file="src/a.py", line=2, issue="Old issue", status=FIXED)]}
        result = _execute(make_registry(claude), tmp_path, config=_config(cli_preference=["claude"]), previous_violations=previous)
        assert result.status == PASS

    def test_skipped_violations_reported(self, tmp_path, make_registry):
        output = fail_output(
            {"file": "src/a.py", "line": 2, "issue": "wontfix", "priority": "high", "status": "skipped", "result": "by design"},
            {"file": "src/a.py", "line": 2, "issue": "real", "priority": "high", "status": "new"},
        )
        registry = make_registry(FakeAdapter("claude", [output]))
        result = _execute(registry, tmp_path, config=_config(cli_preference=["claude"]))
        assert result.status == FAIL
        assert result.error_count == 1
        assert [item.issue for item in result.skipped] == ["wontfix"]

    def test_rerun_only_revisits_the_failed_slot(self, tmp_path, make_registry):
        """Three slots over two adapters: the passed slots 1 and 3 skip, slot 2 reruns."""
        claude, codex = FakeAdapter("claude"), FakeAdapter("codex")
        previous = {2: [Violation(file="src/a.py", line=2, issue="Old issue", status=FIXED)]}

        result = _execute(
            make_registry(claude, codex),
            tmp_path,
            config=_config(num_reviews=3),
            previous_violations=previous,
            passed_slots={1: PreviousSlotState(1, "claude", 1), 3: PreviousSlotState(3, "claude", 1)},
        )

        assert result.status == PASS
        assert result.message == "Passed (2 skipped due to prior pass)"
        assert claude.prompts == []
        assert len(codex.prompts) == 1
        assert "src/a.py:2 - Old issue" in codex.prompts[0]
        assert [s.name_suffix for s in result.sub_results] == ["(claude@1)", "(codex@2)", "(claude@3)"]
        for slot in (1, 3):
            skipped = json.loads((tmp_path / "logs" / f"review_._quality_claude@{slot}.1.json").read_text())
            assert skipped["status"] == "skipped_prior_pass"

    def test_whole_float_line_persisted_as_integer(self, tmp_path, make_registry):
        output = fail_output({"file": "src/a.py", "line": 2.0, "issue": "y unused", "priority": "high"})
        registry = make_registry(FakeAdapter("claude", [output]))
        result = _execute(registry, tmp_path, config=_config(cli_preference=["claude"]))

        assert result.status == FAIL
        persisted = json.loads((tmp_path / "logs" / "review_._quality_claude@1.1.json").read_text())
        assert persisted["violations"][0]["line"] == 2
