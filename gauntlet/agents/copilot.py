"""GitHub Copilot CLI adapter."""

from typing import Optional

from gauntlet.agents.base import CliAdapter

# Shell tools copilot may run while reading code; git stays off the list so
# the review only sees the diff it was given
READ_ONLY_TOOLS = ("cat", "grep", "ls", "find", "head", "tail")


class CopilotAdapter(CliAdapter):
    name = "github-copilot"
    binary = "copilot"

    def build_command(self, model: Optional[str] = None) -> list[str]:
        cmd = ["copilot"]
        for tool in READ_ONLY_TOOLS:
            cmd += ["--allow-tool", f"shell({tool})"]
        if model:
            cmd += ["--model", model]
        return cmd
