"""Job generation: active entry points x configured gates."""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from gauntlet.core.changes import is_ci
from gauntlet.core.entry_points import ExpandedEntryPoint
from gauntlet.lib.config import CheckGateConfig, LoadedConfig, ReviewGateConfig

logger = logging.getLogger(__name__)

CHECK = "check"
REVIEW = "review"

# working_directory value meaning "the entry point itself"
ENTRYPOINT_DIR = "entrypoint"


@dataclass(frozen=True)
class Job:
    id: str  # "{type}:{scope}:{gate}"
    type: str  # check | review
    gate_name: str
    entry_point: str
    working_directory: str
    gate: Union[CheckGateConfig, ReviewGateConfig] = field(compare=False)

    @property
    def parallel(self) -> bool:
        return self.gate.parallel

    @property
    def fail_fast(self) -> bool:
        return self.gate.fail_fast

    @property
    def timeout(self) -> Optional[float]:
        return self.gate.timeout


def _runs_here(gate, ci: bool) -> bool:
    return gate.run_in_ci if ci else gate.run_locally


class JobGenerator:
    def __init__(self, config: LoadedConfig, env: Optional[Mapping[str, str]] = None):
        self.config = config
        self.env = os.environ if env is None else env

    def generate(self, entry_points: list[ExpandedEntryPoint]) -> list[Job]:
        """Checks then reviews per entry point, de-duplicated by job id."""
        ci = is_ci(self.env)
        jobs = []
        seen = set()

        def add(job: Job) -> None:
            if job.id in seen:
                return
            seen.add(job.id)
            jobs.append(job)

        for ep in entry_points:
            for name in ep.config.checks:
                check = self.config.checks.get(name)
                if check is None:
                    logger.warning(
                        f"Check gate '{name}' configured in entry point '{ep.path}' "
                        f"but not found in checks definitions"
                    )
                    continue
                if not _runs_here(check, ci):
                    continue
                workdir = check.working_directory
                if not workdir or workdir == ENTRYPOINT_DIR:
                    workdir = ep.path
                add(Job(
                    id=f"{CHECK}:{workdir}:{name}",
                    type=CHECK,
                    gate_name=name,
                    entry_point=ep.path,
                    working_directory=workdir,
                    gate=check,
                ))

            for name in ep.config.reviews:
                review = self.config.reviews.get(name)
                if review is None:
                    logger.warning(
                        f"Review gate '{name}' configured in entry point '{ep.path}' "
                        f"but not found in reviews definitions"
                    )
                    continue
                if not _runs_here(review, ci):
                    continue
                add(Job(
                    id=f"{REVIEW}:{ep.path}:{name}",
                    type=REVIEW,
                    gate_name=name,
                    entry_point=ep.path,
                    working_directory=ep.path,
                    gate=review,
                ))

        return jobs
