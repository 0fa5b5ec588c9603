"""Tests for prompt templates and review prompt assembly."""

import json
import re

import pytest

from gauntlet.gates.result import FIXED, NEW, SKIPPED, Violation
from gauntlet.lib.prompts import (
    PROMPTS_DIR,
    PromptError,
    clear_cache,
    load_prompt,
    render_prompt,
    rerun_section,
    review_prompt,
)


class TestLoadPrompt:
    """Tests for load_prompt."""

    def test_every_template_loads_without_comments(self):
        clear_cache()
        for path in PROMPTS_DIR.glob("*.md"):
            content = load_prompt(path.stem)
            assert "<!--" not in content
            assert content == content.lstrip()

    def test_missing_template(self):
        with pytest.raises(PromptError, match="not found"):
            load_prompt("no_such_prompt")

    def test_cached(self):
        clear_cache()
        assert load_prompt("review_contract") is load_prompt("review_contract")


class TestRenderPrompt:
    """Tests for render_prompt."""

    def test_contract_examples_are_valid_json(self):
        """Doubled braces render as literal JSON the agent can copy."""
        contract = render_prompt("review_contract")
        assert "{{" not in contract
        blocks = re.findall(r"^\{\n.*?\n\}$", contract, re.MULTILINE | re.DOTALL)
        assert [json.loads(block)["status"] for block in blocks] == ["fail", "pass"]

    def test_rerun_variables(self):
        text = render_prompt("rerun", verify_items="1. a.py:3 - Bug\n", unaddressed_section="", affected_files="a.py")
        assert "RERUN MODE" in text
        assert "1. a.py:3 - Bug" in text
        assert "modified to fix the above violations: a.py" in text

    def test_missing_variable(self):
        with pytest.raises(PromptError, match="verify_items"):
            render_prompt("rerun", unaddressed_section="", affected_files="")


class TestRerunSection:
    """Tests for rerun_section."""

    def test_nothing_marked_fixed(self):
        text = rerun_section([Violation(file="a.py", line=1, issue="Bug", status=NEW)])
        assert "(No violations were marked as FIXED for verification)" in text
        assert "UNADDRESSED VIOLATIONS" in text

    def test_skipped_violations_are_neither_verified_nor_unaddressed(self):
        text = rerun_section([
            Violation(file="a.py", line=1, issue="Bug", status=FIXED),
            Violation(file="b.py", line=4, issue="Style", status=SKIPPED),
        ])
        assert "1. a.py:1 - Bug" in text
        assert "b.py:4 - Style" not in text
        assert "UNADDRESSED" not in text
        assert "a.py, b.py" in text


class TestReviewPrompt:
    """Tests for review_prompt."""

    def test_first_run_appends_contract(self):
        prompt = review_prompt("Check naming.")
        assert prompt.startswith("Check naming.\n")
        assert "read-only mode" in prompt
        assert "RERUN MODE" not in prompt

    def test_rerun_lists_previous_violations(self):
        previous = [
            Violation(file="src/a.py", line=2, issue="Bad name", fix="Rename", status=FIXED),
            Violation(file="src/b.py", line=9, issue="Leak", status=NEW),
        ]
        prompt = review_prompt("Check naming.", previous)
        assert "RERUN MODE" in prompt
        assert "1. src/a.py:2 - Bad name" in prompt
        assert "Suggested fix: Rename" in prompt
        assert "UNADDRESSED VIOLATIONS" in prompt
        assert "src/a.py, src/b.py" in prompt
        assert prompt.index("RERUN MODE") < prompt.index("read-only mode")
