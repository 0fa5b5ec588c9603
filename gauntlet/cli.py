#!/usr/bin/env python3
"""Gauntlet CLI entrypoint."""

import argparse
import logging
import sys
from pathlib import Path

from gauntlet.commands import clean as cmd_clean_module
from gauntlet.commands import detect as cmd_detect_module
from gauntlet.commands import health as cmd_health_module
from gauntlet.commands import history as cmd_history_module
from gauntlet.commands import list as cmd_list_module
from gauntlet.commands import run as cmd_run_module
from gauntlet.commands import validate as cmd_validate_module
from gauntlet.core.jobs import CHECK, REVIEW
from gauntlet.lib.config import CONFIG_DIR, CONFIG_FILE, ConfigError, load_config


def find_project_root(start: Path) -> Path | None:
    """Nearest directory at or above `start` holding .gauntlet/config.yml."""
    for directory in [start, *start.parents]:
        if (directory / CONFIG_DIR / CONFIG_FILE).is_file():
            return directory
    return None


def get_project_root(args) -> Path:
    start = Path(args.root).resolve() if args.root else Path.cwd()
    root = find_project_root(start)
    if root is None:
        print(f"ERROR: No {CONFIG_DIR}/{CONFIG_FILE} found.")
        sys.exit(2)
    return root


def get_project_config(args):
    """Locate and load the project config, exiting with 2 on failure."""
    root = get_project_root(args)
    try:
        return root, load_config(root)
    except ConfigError as e:
        print(f"ERROR: {e}")
        sys.exit(2)


def cmd_run(args):
    root, config = get_project_config(args)
    return cmd_run_module.cmd_run(args, root, config)


def cmd_check(args):
    root, config = get_project_config(args)
    return cmd_run_module.cmd_run(args, root, config, gate_type=CHECK)


def cmd_review(args):
    root, config = get_project_config(args)
    return cmd_run_module.cmd_run(args, root, config, gate_type=REVIEW)


def cmd_detect(args):
    root, config = get_project_config(args)
    return cmd_detect_module.cmd_detect(args, root, config)


def cmd_validate(args):
    return cmd_validate_module.cmd_validate(args, get_project_root(args))


def cmd_health(args):
    root, config = get_project_config(args)
    return cmd_health_module.cmd_health(args, root, config)


def cmd_list(args):
    root, config = get_project_config(args)
    return cmd_list_module.cmd_list(args, root, config)


def cmd_clean(args):
    root, config = get_project_config(args)
    return cmd_clean_module.cmd_clean(args, root, config)


def cmd_history(args):
    root, config = get_project_config(args)
    return cmd_history_module.cmd_history(args, root, config)


def main(argv=None):
    parser = argparse.ArgumentParser(prog='gauntlet', description='Quality gates for AI-assisted changes')
    parser.add_argument('--root', help='Project directory (default: search upward from cwd)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # gauntlet run / check / review
    gate_commands = (
        ('run', 'Run applicable gates against current changes', cmd_run),
        ('check', 'Run only applicable check gates', cmd_check),
        ('review', 'Run only applicable review gates', cmd_review),
    )
    for name, help_text, func in gate_commands:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument('--base-branch', '-b', help='Compare against this ref instead of base_branch')
        p.add_argument('--gate', '-g', help='Only run gates with this name')
        p.add_argument('--commit', '-c', help='Review the changes of a single commit')
        p.add_argument('--uncommitted', '-u', action='store_true', help='Only staged and unstaged changes')
        p.set_defaults(func=func)

    # gauntlet detect
    p_detect = subparsers.add_parser('detect', help='Show which gates would run, without running them')
    p_detect.add_argument('--base-branch', '-b', help='Compare against this ref instead of base_branch')
    p_detect.add_argument('--commit', '-c', help='Use the changes of a single commit')
    p_detect.add_argument('--uncommitted', '-u', action='store_true', help='Only staged and unstaged changes')
    p_detect.set_defaults(func=cmd_detect)

    # gauntlet validate
    p_validate = subparsers.add_parser('validate', help='Validate .gauntlet/ config files')
    p_validate.set_defaults(func=cmd_validate)

    # gauntlet health
    p_health = subparsers.add_parser('health', help='Check review adapter availability')
    p_health.set_defaults(func=cmd_health)

    # gauntlet list
    p_list = subparsers.add_parser('list', help='List gates and entry points')
    p_list.set_defaults(func=cmd_list)

    # gauntlet clean
    p_clean = subparsers.add_parser('clean', help='Archive logs and reset run state')
    p_clean.set_defaults(func=cmd_clean)

    # gauntlet history
    p_history = subparsers.add_parser('history', help='Show what each run fixed or skipped')
    p_history.set_defaults(func=cmd_history)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        return args.func(args)
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 2


if __name__ == '__main__':
    sys.exit(main())
