"""
gauntlet history - What each run in the current log directory fixed or skipped.
"""

from pathlib import Path

from gauntlet.lib.log_parser import reconstruct_history


def cmd_history(args, root: Path, config) -> int:
    iterations = reconstruct_history(config.log_dir)
    if not iterations:
        print(f"No runs recorded in {config.log_dir}")
        return 0

    for iteration in iterations:
        print(f"Iteration {iteration.iteration}")
        print("-" * 60)
        if not iteration.fixed and not iteration.skipped:
            print("  (nothing fixed or skipped)")
        for entry in iteration.fixed:
            who = f" [{entry.adapter}]" if entry.adapter else ""
            print(f"  FIXED   {entry.job_id}{who}: {entry.details}")
        for entry in iteration.skipped:
            note = f" ({entry.result})" if entry.result else ""
            print(f"  SKIPPED {entry.job_id} [{entry.adapter}]: {entry.file}:{entry.line} {entry.issue}{note}")
        print()
    return 0
