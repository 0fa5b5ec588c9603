"""
Review prompt assembly.

Every review slot gets the gate's own prompt, then (on reruns with earlier
findings for that slot) the rerun instructions, then the JSON output
contract. The fixed parts come from Markdown templates in gauntlet/prompts/:

    review_contract.md   output format the agent must follow
    rerun.md             verify-previous-fixes instructions

Templates are str.format() strings, so literal braces in JSON examples are
doubled. <!-- HTML comments --> document a template and never reach the agent.
"""

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Optional

from gauntlet.gates.result import FIXED, Violation

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

_COMMENT_RE = re.compile(r"<!--.*?-->\s*", re.DOTALL)


class PromptError(Exception):
    """A template is missing or was rendered without a variable it needs."""


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Template text for `name` with documentation comments removed."""
    path = PROMPTS_DIR / f"{name}.md"
    try:
        text = path.read_text()
    except FileNotFoundError:
        raise PromptError(f"Prompt template '{name}' not found at {path}") from None
    logger.debug(f"Loaded prompt template {name}")
    return _COMMENT_RE.sub("", text).lstrip()


def clear_cache():
    load_prompt.cache_clear()


def render_prompt(name: str, **variables) -> str:
    try:
        return load_prompt(name).format(**variables)
    except KeyError as e:
        raise PromptError(
            f"Prompt '{name}' needs variable {e}; got {sorted(variables)}"
        ) from None


def _numbered(violations: list[Violation], details: bool) -> list[str]:
    lines = []
    for i, v in enumerate(violations, 1):
        lines.append(f"{i}. {v.file}:{v.line} - {v.issue}")
        if not details:
            continue
        if v.fix:
            lines.append(f"   Suggested fix: {v.fix}")
        if v.result:
            lines.append(f"   Agent result: {v.result}")
        lines.append("")
    return lines


def rerun_section(violations: list[Violation]) -> str:
    """Instructions limiting a rerun to verifying the slot's earlier findings."""
    to_verify = [v for v in violations if v.status == FIXED]
    unaddressed = [v for v in violations if v.is_active]

    if to_verify:
        verify_items = "\n".join(_numbered(to_verify, details=True))
    else:
        verify_items = "(No violations were marked as FIXED for verification)\n"

    unaddressed_section = ""
    if unaddressed:
        header = [
            "UNADDRESSED VIOLATIONS (STILL FAILING):",
            "The following violations were NOT marked as fixed or skipped and are still active failures:",
            "",
        ]
        unaddressed_section = "\n".join(header + _numbered(unaddressed, details=False)) + "\n\n"

    return render_prompt(
        "rerun",
        verify_items=verify_items,
        unaddressed_section=unaddressed_section,
        affected_files=", ".join(dict.fromkeys(v.file for v in violations)),
    ).rstrip("\n")


def review_prompt(gate_prompt: str, previous: Optional[list[Violation]] = None) -> str:
    """Full prompt for one review slot."""
    contract = render_prompt("review_contract")
    if previous:
        return f"{gate_prompt}\n\n{rerun_section(previous)}\n{contract}"
    return f"{gate_prompt}\n{contract}"
