"""
Configuration loaders for gauntlet.

Layout (relative to the project root):

    .gauntlet/config.yml          project settings and entry points
    .gauntlet/checks/<name>.yml   check gate definitions
    .gauntlet/reviews/<name>.md   review gates: YAML frontmatter + prompt body

Every document is validated against its JSON schema before it becomes a
dataclass, so the rest of the code can trust field types.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from gauntlet.lib import validate

logger = logging.getLogger(__name__)

CONFIG_DIR = ".gauntlet"
CONFIG_FILE = "config.yml"

PRIORITIES = ("critical", "high", "medium", "low")

DEFAULT_BASE_BRANCH = "origin/main"
DEFAULT_LOG_DIR = "gauntlet_logs"
DEFAULT_MAX_RETRIES = 3
DEFAULT_RERUN_THRESHOLD = "high"
DEFAULT_CLI_PREFERENCE = ["claude", "codex", "gemini"]
DEFAULT_PASS_PATTERN = "PASS|No violations|None found"

_FRONTMATTER = re.compile(r'^---\s*\n(.*?)\n---\s*\n?(.*)$', re.DOTALL)


class ConfigError(Exception):
    """Configuration missing or invalid."""
    pass


@dataclass
class CheckGateConfig:
    """Deterministic check gate from checks/<name>.yml"""
    name: str
    command: str
    working_directory: Optional[str] = None  # "entrypoint" or a path; None = entry point
    parallel: bool = False
    run_in_ci: bool = True
    run_locally: bool = True
    timeout: Optional[float] = None  # seconds
    fail_fast: bool = False


@dataclass
class ReviewGateConfig:
    """Agent review gate from reviews/<name>.md"""
    name: str
    prompt: str  # Prompt body (frontmatter stripped)
    cli_preference: list[str] = field(default_factory=list)
    num_reviews: int = 1
    parallel: bool = True
    run_in_ci: bool = True
    run_locally: bool = True
    timeout: Optional[float] = None  # seconds
    fail_fast: bool = False
    model: Optional[str] = None
    # Free-text verdict patterns; only meaningful for non-JSON adapters
    pass_pattern: str = DEFAULT_PASS_PATTERN
    fail_pattern: Optional[str] = None
    ignore_pattern: Optional[str] = None


@dataclass
class EntryPointConfig:
    """A path or pattern scoping which gates apply to which changes."""
    path: str
    checks: list[str] = field(default_factory=list)
    reviews: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


@dataclass
class CliConfig:
    default_preference: list[str] = field(default_factory=lambda: list(DEFAULT_CLI_PREFERENCE))
    check_usage_limit: bool = False


@dataclass
class ProjectConfig:
    """Project-level configuration from config.yml"""
    entry_points: list[EntryPointConfig]
    base_branch: str = DEFAULT_BASE_BRANCH
    log_dir: str = DEFAULT_LOG_DIR
    allow_parallel: bool = True
    max_retries: int = DEFAULT_MAX_RETRIES
    rerun_new_issue_threshold: str = DEFAULT_RERUN_THRESHOLD
    cli: CliConfig = field(default_factory=CliConfig)


@dataclass
class LoadedConfig:
    """Project config plus every gate definition it can reference."""
    root: Path
    project: ProjectConfig
    checks: dict[str, CheckGateConfig] = field(default_factory=dict)
    reviews: dict[str, ReviewGateConfig] = field(default_factory=dict)

    @property
    def log_dir(self) -> Path:
        log_dir = Path(self.project.log_dir)
        return log_dir if log_dir.is_absolute() else self.root / log_dir


def _read_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def _checked(data: dict, schema_name: str, path: Path) -> dict:
    try:
        validate.validate(data, schema_name)
    except validate.ValidationError as e:
        raise ConfigError(f"{path}: {e}") from None
    return data


def split_frontmatter(content: str) -> tuple[dict, str]:
    """Split a Markdown document into (frontmatter dict, body)."""
    match = _FRONTMATTER.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid frontmatter: {e}") from None
    if not isinstance(meta, dict):
        raise ConfigError("Frontmatter must be a mapping")
    return meta, match.group(2)


def load_project_config(config_path: Path) -> ProjectConfig:
    """Load config.yml and return ProjectConfig."""
    data = _checked(_read_yaml(config_path), "config", config_path)
    cli_data = data.get("cli", {})
    return ProjectConfig(
        entry_points=[
            EntryPointConfig(
                path=ep["path"],
                checks=list(ep.get("checks", [])),
                reviews=list(ep.get("reviews", [])),
                exclude=list(ep.get("exclude", [])),
            )
            for ep in data["entry_points"]
        ],
        base_branch=data.get("base_branch", DEFAULT_BASE_BRANCH),
        log_dir=data.get("log_dir", DEFAULT_LOG_DIR),
        allow_parallel=data.get("allow_parallel", True),
        max_retries=data.get("max_retries", DEFAULT_MAX_RETRIES),
        rerun_new_issue_threshold=data.get("rerun_new_issue_threshold", DEFAULT_RERUN_THRESHOLD),
        cli=CliConfig(
            default_preference=list(cli_data.get("default_preference", DEFAULT_CLI_PREFERENCE)),
            check_usage_limit=cli_data.get("check_usage_limit", False),
        ),
    )


def load_check(path: Path) -> CheckGateConfig:
    """Load a checks/<name>.yml gate definition."""
    data = _checked(_read_yaml(path), "check", path)
    return CheckGateConfig(
        name=data.get("name", path.stem),
        command=data["command"],
        working_directory=data.get("working_directory"),
        parallel=data.get("parallel", False),
        run_in_ci=data.get("run_in_ci", True),
        run_locally=data.get("run_locally", True),
        timeout=data.get("timeout"),
        fail_fast=data.get("fail_fast", False),
    )


def load_review(path: Path, default_preference: list[str]) -> ReviewGateConfig:
    """Load a reviews/<name>.md gate (frontmatter + prompt)."""
    try:
        meta, body = split_frontmatter(path.read_text())
    except ConfigError as e:
        raise ConfigError(f"{path}: {e}") from None
    meta = _checked(meta, "review_frontmatter", path)
    return ReviewGateConfig(
        name=path.stem,
        prompt=body.strip(),
        cli_preference=list(meta.get("cli_preference", default_preference)),
        num_reviews=meta.get("num_reviews", 1),
        parallel=meta.get("parallel", True),
        run_in_ci=meta.get("run_in_ci", True),
        run_locally=meta.get("run_locally", True),
        timeout=meta.get("timeout"),
        fail_fast=meta.get("fail_fast", False),
        model=meta.get("model"),
        pass_pattern=meta.get("pass_pattern", DEFAULT_PASS_PATTERN),
        fail_pattern=meta.get("fail_pattern"),
        ignore_pattern=meta.get("ignore_pattern"),
    )


def load_config(root: Path) -> LoadedConfig:
    """Load the whole .gauntlet directory under root.

    Raises:
        ConfigError: if config.yml is missing or any document is invalid
    """
    config_dir = root / CONFIG_DIR
    config_path = config_dir / CONFIG_FILE
    if not config_path.exists():
        raise ConfigError(f"No {CONFIG_DIR}/{CONFIG_FILE} found in {root}")

    project = load_project_config(config_path)

    checks = {}
    checks_dir = config_dir / "checks"
    if checks_dir.is_dir():
        for path in sorted(checks_dir.glob("*.yml")) + sorted(checks_dir.glob("*.yaml")):
            check = load_check(path)
            checks[check.name] = check

    reviews = {}
    reviews_dir = config_dir / "reviews"
    if reviews_dir.is_dir():
        for path in sorted(reviews_dir.glob("*.md")):
            review = load_review(path, project.cli.default_preference)
            reviews[review.name] = review

    logger.debug(f"Loaded config: {len(checks)} checks, {len(reviews)} reviews")
    return LoadedConfig(root=root, project=project, checks=checks, reviews=reviews)
