"""
Adapter registry.

One registry is built per process and handed to whoever needs adapters.
Health results are cached here so every review gate in a run sees the same
answer for a tool and each CLI is checked at most once.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from gauntlet.agents.base import MISSING, AdapterHealth, CliAdapter
from gauntlet.agents.claude import ClaudeAdapter
from gauntlet.agents.codex import CodexAdapter
from gauntlet.agents.copilot import CopilotAdapter
from gauntlet.agents.cursor import CursorAdapter
from gauntlet.agents.gemini import GeminiAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:
    def __init__(self, adapters: list[CliAdapter], check_usage_limit: bool = False):
        self._adapters = {adapter.name: adapter for adapter in adapters}
        self.check_usage_limit = check_usage_limit
        self._health: dict[str, AdapterHealth] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, name: str) -> Optional[CliAdapter]:
        return self._adapters.get(name)

    def names(self) -> list[str]:
        return list(self._adapters)

    async def health(self, name: str) -> AdapterHealth:
        """Health of a named adapter, checked once and then cached."""
        if name in self._health:
            return self._health[name]
        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            if name not in self._health:
                adapter = self.get(name)
                if adapter is None:
                    result = AdapterHealth(MISSING, f"Unknown adapter '{name}'")
                else:
                    result = await adapter.check_health(self.check_usage_limit)
                logger.debug(f"Health of {name}: {result.status} ({result.message})")
                self._health[name] = result
        return self._health[name]


def default_registry(cwd: Optional[Path] = None, check_usage_limit: bool = False) -> AdapterRegistry:
    """Registry with every built-in adapter."""
    return AdapterRegistry(
        [
            ClaudeAdapter(cwd),
            CodexAdapter(cwd),
            GeminiAdapter(cwd),
            CursorAdapter(cwd),
            CopilotAdapter(cwd),
        ],
        check_usage_limit=check_usage_limit,
    )
