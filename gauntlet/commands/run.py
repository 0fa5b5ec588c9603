"""
gauntlet run / check / review - Run applicable gates against the current changes.

`check` and `review` are `run` limited to one gate type.
"""

import asyncio
from pathlib import Path

from gauntlet.core.run_executor import ERROR, RunOptions, execute_run


def cmd_run(args, root: Path, config, gate_type: str = None) -> int:
    """Run the gauntlet once and report the outcome."""
    options = RunOptions(
        base_branch=args.base_branch,
        gate=args.gate,
        gate_type=gate_type,
        commit=args.commit,
        uncommitted=args.uncommitted,
    )
    result = asyncio.run(execute_run(root, options, config=config))

    print()
    print(result.message)
    if result.status == ERROR and result.error_message:
        print(f"ERROR: {result.error_message}")
    return result.exit_code
