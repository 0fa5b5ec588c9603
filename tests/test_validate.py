"""Tests for schema validation."""

import json

import pytest

from gauntlet.lib.validate import ValidationError, validate, validate_file, write_validated


def _result(**overrides):
    data = {"adapter": "claude", "timestamp": "t", "status": "pass", "rawOutput": "", "violations": []}
    data.update(overrides)
    return data


class TestValidate:
    """Tests for validate / validate_file / write_validated."""

    def test_valid_review_result(self):
        validate(_result(), "review_result")

    def test_reports_path(self):
        with pytest.raises(ValidationError) as exc_info:
            validate(_result(violations=[{"file": "a.py"}]), "review_result")
        assert exc_info.value.schema_name == "review_result"
        assert exc_info.value.path == "violations.0"

    def test_unknown_schema(self):
        with pytest.raises(ValidationError, match="Schema file not found"):
            validate({}, "nope")

    def test_validate_file(self, tmp_path):
        path = tmp_path / "r.json"
        path.write_text(json.dumps(_result(status="fail")))
        assert validate_file(path, "review_result")["status"] == "fail"

    def test_validate_file_bad_json(self, tmp_path):
        path = tmp_path / "r.json"
        path.write_text("{")
        with pytest.raises(ValidationError, match="Invalid JSON"):
            validate_file(path, "review_result")

    def test_validate_file_missing(self, tmp_path):
        with pytest.raises(ValidationError, match="File not found"):
            validate_file(tmp_path / "absent.json", "review_result")

    def test_write_validated(self, tmp_path):
        path = write_validated(_result(), "review_result", tmp_path / "r.json")
        assert json.loads(path.read_text())["adapter"] == "claude"

    def test_refuses_to_write_invalid(self, tmp_path):
        target = tmp_path / "r.json"
        with pytest.raises(ValidationError, match="Refusing to write"):
            write_validated(_result(status="maybe"), "review_result", target)
        assert not target.exists()
