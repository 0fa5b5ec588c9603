"""Per-job lifecycle state machine using the transitions library.

    pending -> running -> pass | fail | error
    pending -> not_run            (fail-fast stopped the run first)

Usage:
    state = JobState("check:.:lint")
    state.start()
    state.finish("fail")
"""

import logging

from transitions import Machine

from gauntlet.gates.result import ERROR, FAIL, NOT_RUN, PASS

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"

STATES = [PENDING, RUNNING, PASS, FAIL, ERROR, NOT_RUN]

TRANSITIONS = [
    {"trigger": "start", "source": PENDING, "dest": RUNNING},
    {"trigger": "passed", "source": RUNNING, "dest": PASS},
    {"trigger": "failed", "source": RUNNING, "dest": FAIL},
    {"trigger": "errored", "source": RUNNING, "dest": ERROR},
    # Preflight failures never start the job
    {"trigger": "errored", "source": PENDING, "dest": ERROR},
    {"trigger": "skip", "source": PENDING, "dest": NOT_RUN},
]

_FINISH_TRIGGER = {PASS: "passed", FAIL: "failed", ERROR: "errored"}

TERMINAL = {PASS, FAIL, ERROR, NOT_RUN}


class JobState:
    """Lifecycle of one job within a run."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=PENDING,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        logger.debug(f"[job] {self.job_id}: {event.transition.source} -> {event.transition.dest}")

    def finish(self, status: str) -> None:
        """Move a running (or, for errors, pending) job to its result status."""
        self.trigger(_FINISH_TRIGGER[status])

    @property
    def done(self) -> bool:
        return self.state in TERMINAL
