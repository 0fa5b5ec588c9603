"""
gauntlet detect - Show which gates a run would start, without running them.
"""

import asyncio
import logging
import os
from pathlib import Path

from gauntlet.core.changes import ChangeSetResolver
from gauntlet.core.entry_points import EntryPointExpander
from gauntlet.core.jobs import JobGenerator
from gauntlet.core.run_executor import RunOptions, effective_base_branch
from gauntlet.git import GitError

logger = logging.getLogger(__name__)


def cmd_detect(args, root: Path, config) -> int:
    options = RunOptions(base_branch=args.base_branch, commit=args.commit, uncommitted=args.uncommitted)
    env = os.environ
    changes = ChangeSetResolver(
        root,
        effective_base_branch(config, options, env),
        commit=options.commit,
        uncommitted=options.uncommitted,
        env=env,
    )

    print("Detecting changes...")
    try:
        changed = asyncio.run(changes.changed_files())
    except GitError as e:
        logger.debug(f"Change detection failed: {e}")
        print(f"ERROR: {e}")
        return 1

    if not changed:
        print("No changes detected.")
        return 0

    print(f"Found {len(changed)} changed files:")
    for path in changed:
        print(f"  - {path}")
    print()

    entry_points = EntryPointExpander().expand(config.project.entry_points, changed)
    jobs = JobGenerator(config, env).generate(entry_points)
    if not jobs:
        print("No applicable gates for these changes.")
        return 0

    print(f"Would run {len(jobs)} gate(s):")
    print()
    by_workdir = {}
    for job in jobs:
        by_workdir.setdefault(job.working_directory, []).append(job)
    for workdir, workdir_jobs in by_workdir.items():
        print(f"Working directory: {workdir}")
        for job in workdir_jobs:
            print(f"  {job.type:<7} {job.gate_name}")
        print()
    return 0
