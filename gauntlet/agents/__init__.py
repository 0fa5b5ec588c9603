"""Review agent adapters."""

from gauntlet.agents.base import (
    HEALTHY,
    MISSING,
    UNHEALTHY,
    AdapterError,
    AdapterHealth,
    CliAdapter,
)
from gauntlet.agents.registry import AdapterRegistry, default_registry

__all__ = [
    "HEALTHY",
    "MISSING",
    "UNHEALTHY",
    "AdapterError",
    "AdapterHealth",
    "CliAdapter",
    "AdapterRegistry",
    "default_registry",
]
