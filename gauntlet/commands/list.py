"""
gauntlet list - Show configured gates and entry points.
"""

from pathlib import Path

from gauntlet.core.entry_points import EntryPointExpander


def cmd_list(args, root: Path, config) -> int:
    if config.checks:
        print("Check gates")
        print("-" * 60)
        for name, check in sorted(config.checks.items()):
            print(f"  {name:<20} {check.command}")
        print()
    else:
        print("Check gates: none")
        print()

    if config.reviews:
        print("Review gates")
        print("-" * 60)
        for name, review in sorted(config.reviews.items()):
            tools = ", ".join(review.cli_preference)
            print(f"  {name:<20} x{review.num_reviews}  [{tools}]")
        print()
    else:
        print("Review gates: none")
        print()

    print("Entry points")
    print("-" * 60)
    for ep in EntryPointExpander().expand_all(config.project.entry_points, root):
        gates = ep.config.checks + ep.config.reviews
        print(f"  {ep.path:<30} {', '.join(gates) or '-'}")
    return 0
