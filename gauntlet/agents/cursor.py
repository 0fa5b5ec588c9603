"""Cursor agent CLI adapter. The binary is called `agent`, not `cursor`."""

from typing import Optional

from gauntlet.agents.base import CliAdapter


class CursorAdapter(CliAdapter):
    name = "cursor"
    binary = "agent"

    # The agent CLI has no read-only or tool-restriction flags; it reads the
    # prompt from stdin and stays scoped to the working directory.
    def build_command(self, model: Optional[str] = None) -> list[str]:
        cmd = ["agent"]
        if model:
            cmd += ["--model", model]
        return cmd
