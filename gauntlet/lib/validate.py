"""
JSON Schema checks for everything gauntlet reads from or writes to disk.

Schemas live in gauntlet/schemas/<name>.schema.json:
    config             .gauntlet/config.yml
    check              .gauntlet/checks/<name>.yml
    review_frontmatter .gauntlet/reviews/<name>.md frontmatter
    review_result      <job>_<adapter>@<slot>.<run>.json
"""

import functools
import json
from pathlib import Path

import jsonschema
from jsonschema.exceptions import best_match

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"


class ValidationError(Exception):
    """Data didn't match its schema, or couldn't be read at all."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        where = f" at {path}" if path else ""
        super().__init__(f"[{schema_name}] {message}{where}")


@functools.lru_cache(maxsize=None)
def _validator(schema_name: str) -> jsonschema.Draft7Validator:
    schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
    if not schema_path.is_file():
        raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
    schema = json.loads(schema_path.read_text())
    jsonschema.Draft7Validator.check_schema(schema)
    return jsonschema.Draft7Validator(schema)


def validate(data, schema_name: str) -> None:
    """
    Raise ValidationError for the most relevant schema violation in `data`.

    The error path is dotted (``violations.0``) or ``(root)``.
    """
    error = best_match(_validator(schema_name).iter_errors(data))
    if error is None:
        return
    path = ".".join(str(p) for p in error.absolute_path) or "(root)"
    raise ValidationError(schema_name, error.message, path)


def validate_file(filepath: Path, schema_name: str) -> dict:
    """Read a JSON file and return its contents once they pass `schema_name`."""
    try:
        data = json.loads(filepath.read_text())
    except FileNotFoundError:
        raise ValidationError(schema_name, f"File not found: {filepath}") from None
    except json.JSONDecodeError as e:
        raise ValidationError(schema_name, f"Invalid JSON in {filepath}: {e}") from None
    validate(data, schema_name)
    return data


def write_validated(data: dict, schema_name: str, filepath: Path) -> Path:
    """Write `data` as indented JSON, refusing anything the schema rejects."""
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ValidationError(schema_name, f"Refusing to write invalid data to {filepath}: {e}") from None
    filepath.write_text(json.dumps(data, indent=2))
    return filepath
