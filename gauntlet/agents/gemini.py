"""Gemini CLI adapter."""

from typing import Optional

from gauntlet.agents.base import CliAdapter

# Tools gemini may use without prompting in non-interactive mode
READ_ONLY_TOOLS = "read_file,list_directory,glob,search_file_content"


class GeminiAdapter(CliAdapter):
    name = "gemini"
    binary = "gemini"

    def build_command(self, model: Optional[str] = None) -> list[str]:
        cmd = [
            "gemini",
            "--sandbox",
            "--allowed-tools", READ_ONLY_TOOLS,
            "--output-format", "text",
        ]
        if model:
            cmd += ["--model", model]
        return cmd
