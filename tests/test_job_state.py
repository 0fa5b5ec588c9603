"""Tests for the job lifecycle state machine."""

import pytest
from transitions import MachineError

from gauntlet.core.job_state import PENDING, RUNNING, JobState
from gauntlet.gates.result import ERROR, FAIL, NOT_RUN, PASS


class TestJobState:
    """Tests for JobState transitions."""

    def test_starts_pending(self):
        state = JobState("check:.:lint")
        assert state.state == PENDING
        assert not state.done

    @pytest.mark.parametrize("status", [PASS, FAIL, ERROR])
    def test_finish_from_running(self, status):
        state = JobState("check:.:lint")
        state.start()
        assert state.state == RUNNING
        state.finish(status)
        assert state.state == status
        assert state.done

    def test_preflight_error_without_start(self):
        state = JobState("review:.:quality")
        state.errored()
        assert state.state == ERROR

    def test_skip_pending(self):
        state = JobState("check:.:lint")
        state.skip()
        assert state.state == NOT_RUN
        assert state.done

    def test_cannot_pass_without_running(self):
        state = JobState("check:.:lint")
        with pytest.raises(MachineError):
            state.passed()

    def test_cannot_skip_running_job(self):
        state = JobState("check:.:lint")
        state.start()
        with pytest.raises(MachineError):
            state.skip()

    def test_logs_transitions(self, caplog):
        caplog.set_level("DEBUG", logger="gauntlet.core.job_state")
        state = JobState("check:.:lint")
        state.start()
        assert "check:.:lint: pending -> running" in caplog.text
