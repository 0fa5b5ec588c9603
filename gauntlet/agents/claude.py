"""
Claude Code CLI adapter.

Runs `claude -p` in print mode with read-only tools allowed.
"""

import os
from typing import Optional

from gauntlet.agents.base import CliAdapter

READ_ONLY_TOOLS = "Read,Glob,Grep"


class ClaudeAdapter(CliAdapter):
    name = "claude"
    binary = "claude"

    def build_command(self, model: Optional[str] = None) -> list[str]:
        cmd = ["claude", "-p", "--allowedTools", READ_ONLY_TOOLS]
        if model:
            cmd += ["--model", model]
        return cmd

    def child_env(self) -> dict:
        # Remove ANTHROPIC_API_KEY so Claude uses OAuth credentials instead
        return {k: v for k, v in os.environ.items() if k != "ANTHROPIC_API_KEY"}
