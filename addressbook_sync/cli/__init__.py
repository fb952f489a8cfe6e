"""CLI package for addressbook_sync."""

from addressbook_sync.cli.main import DEFAULT_CONFIG_FILE, cli, get_config_dir
from addressbook_sync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_CONFIG_FILE",
    "cli",
    "get_config_dir",
]
