"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from conftest import FakeChanges

from gauntlet.cli import find_project_root, main
from gauntlet.core.run_executor import FAILED, PASSED, RunResult
from gauntlet.lib.locking import acquire_lock, lock_path


@pytest.fixture
def project(tmp_path):
    config_dir = tmp_path / ".gauntlet"
    (config_dir / "checks").mkdir(parents=True)
    (config_dir / "reviews").mkdir()
    (config_dir / "config.yml").write_text(
        "entry_points:\n"
        "  - path: .\n"
        "    checks: [lint]\n"
        "  - path: services/*\n"
        "    reviews: [quality]\n"
    )
    (config_dir / "checks" / "lint.yml").write_text("command: ruff check .\n")
    (config_dir / "reviews" / "quality.md").write_text("---\ncli_preference: [claude]\n---\nReview it.\n")
    (tmp_path / "services" / "billing").mkdir(parents=True)
    return tmp_path


class TestFindProjectRoot:
    def test_walks_up(self, project):
        nested = project / "services" / "billing"
        assert find_project_root(nested) == project

    def test_none_outside_project(self, tmp_path):
        assert find_project_root(tmp_path) is None


class TestMain:
    """Tests for main()."""

    def test_missing_config_exits_2(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--root", str(tmp_path), "list"])
        assert exc_info.value.code == 2
        assert "No .gauntlet/config.yml found" in capsys.readouterr().out

    def test_invalid_config_exits_2(self, project, capsys):
        (project / ".gauntlet" / "config.yml").write_text("entry_points: 3\n")
        with pytest.raises(SystemExit) as exc_info:
            main(["--root", str(project), "list"])
        assert exc_info.value.code == 2

    def test_list(self, project, capsys):
        assert main(["--root", str(project), "list"]) == 0
        out = capsys.readouterr().out
        assert "lint" in out
        assert "ruff check ." in out
        assert "quality" in out
        assert "services/billing" in out

    def test_run_exit_codes(self, project, capsys):
        with patch("gauntlet.commands.run.execute_run", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = RunResult(status=PASSED, message="All gates passed.")
            assert main(["--root", str(project), "run"]) == 0

            mock_run.return_value = RunResult(status=FAILED, message="Gates failed: issues must be fixed.")
            assert main(["--root", str(project), "run", "--gate", "lint", "--uncommitted"]) == 1

        options = mock_run.call_args[0][1]
        assert options.gate == "lint"
        assert options.uncommitted
        assert "Gates failed" in capsys.readouterr().out

    def test_clean(self, project, capsys):
        log_dir = project / "gauntlet_logs"
        log_dir.mkdir()
        (log_dir / "check_._lint.1.log").write_text("x")
        (log_dir / ".execution_state").write_text("{}")
        acquire_lock(log_dir)

        assert main(["--root", str(project), "clean"]) == 0

        assert (log_dir / "previous" / "check_._lint.1.log").exists()
        assert not (log_dir / ".execution_state").exists()
        assert not lock_path(log_dir).exists()
        assert "Archived 1 log file(s)" in capsys.readouterr().out

    def test_history(self, project, capsys):
        log_dir = project / "gauntlet_logs"
        log_dir.mkdir()
        for run, violations in ((1, [{"file": "a.py", "line": 1, "issue": "Bug"}]), (2, [])):
            (log_dir / f"review_._quality_claude@1.{run}.json").write_text(json.dumps({
                "adapter": "claude",
                "timestamp": "2024-01-01T00:00:00.000Z",
                "status": "fail" if violations else "pass",
                "rawOutput": "",
                "violations": violations,
            }))

        assert main(["--root", str(project), "history"]) == 0

        out = capsys.readouterr().out
        assert "Iteration 2" in out
        assert "FIXED   review_._quality [1]: a.py:1 Bug" in out

    def test_health(self, project, capsys):
        with patch("gauntlet.agents.base.shutil.which", return_value=None):
            assert main(["--root", str(project), "health"]) == 1
        out = capsys.readouterr().out
        assert "claude" in out
        assert "missing" in out

    def test_check_and_review_limit_gate_type(self, project, capsys):
        with patch("gauntlet.commands.run.execute_run", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = RunResult(status=PASSED, message="All gates passed.")
            assert main(["--root", str(project), "check"]) == 0
            assert mock_run.call_args[0][1].gate_type == "check"

            assert main(["--root", str(project), "review", "--gate", "quality"]) == 0
            options = mock_run.call_args[0][1]
        assert options.gate_type == "review"
        assert options.gate == "quality"

    def test_detect_lists_gates_without_running(self, project, capsys):
        changes = FakeChanges(files=["services/billing/app.py", "README.md"])
        with patch("gauntlet.commands.detect.ChangeSetResolver", return_value=changes), \
                patch("gauntlet.commands.run.execute_run", new_callable=AsyncMock) as mock_run:
            assert main(["--root", str(project), "detect"]) == 0

        mock_run.assert_not_called()
        out = capsys.readouterr().out
        assert "Found 2 changed files:" in out
        assert "  - services/billing/app.py" in out
        assert "Would run 2 gate(s):" in out
        assert "check   lint" in out
        assert "Working directory: services/billing" in out
        assert "review  quality" in out

    def test_detect_no_changes(self, project, capsys):
        with patch("gauntlet.commands.detect.ChangeSetResolver", return_value=FakeChanges(files=[])):
            assert main(["--root", str(project), "detect", "--uncommitted"]) == 0
        assert "No changes detected." in capsys.readouterr().out

    def test_validate(self, project, capsys):
        assert main(["--root", str(project), "validate"]) == 0
        assert "All config files are valid." in capsys.readouterr().out

        (project / ".gauntlet" / "checks" / "lint.yml").write_text("timeout: 5\n")
        assert main(["--root", str(project), "validate"]) == 2
        assert "Validation failed:" in capsys.readouterr().out
