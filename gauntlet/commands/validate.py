"""
gauntlet validate - Check the .gauntlet/ config files without running anything.
"""

from pathlib import Path

from gauntlet.lib.config import ConfigError, load_config


def cmd_validate(args, root: Path) -> int:
    """Exit 0 when every config file loads, 2 otherwise."""
    try:
        load_config(root)
    except ConfigError as e:
        print(f"Validation failed: {e}")
        return 2
    print("All config files are valid.")
    return 0
