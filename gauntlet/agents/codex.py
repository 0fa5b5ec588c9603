"""Codex CLI adapter: `codex exec` in a read-only sandbox, prompt on stdin."""

from typing import Optional

from gauntlet.agents.base import CliAdapter


class CodexAdapter(CliAdapter):
    name = "codex"
    binary = "codex"

    def build_command(self, model: Optional[str] = None) -> list[str]:
        cmd = [
            "codex", "exec",
            "--cd", str(self.cwd),
            "--sandbox", "read-only",
            "-c", 'ask_for_approval="never"',
        ]
        if model:
            cmd += ["--model", model]
        cmd.append("-")  # read prompt from stdin
        return cmd
