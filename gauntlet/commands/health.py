"""
gauntlet health - Check every review adapter the project can use.
"""

import asyncio
from pathlib import Path

from gauntlet.agents import default_registry


def _preferred_adapters(config) -> list[str]:
    names = list(config.project.cli.default_preference)
    for review in config.reviews.values():
        for name in review.cli_preference:
            if name not in names:
                names.append(name)
    return names


async def _check_all(registry, names: list[str]) -> list[tuple[str, object]]:
    results = await asyncio.gather(*(registry.health(name) for name in names))
    return list(zip(names, results))


def cmd_health(args, root: Path, config) -> int:
    """Print one line per adapter. Non-zero exit if none is healthy."""
    registry = default_registry(root, config.project.cli.check_usage_limit)
    names = _preferred_adapters(config) or registry.names()

    print("Adapters")
    print("-" * 60)
    healthy = 0
    for name, health in asyncio.run(_check_all(registry, names)):
        if health.healthy:
            healthy += 1
        print(f"  {name:<16} {health.status:<10} {health.message}")

    if not healthy:
        print()
        print("No healthy adapters: review gates will fail preflight.")
        return 1
    return 0
