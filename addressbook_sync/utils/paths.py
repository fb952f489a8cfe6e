"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the addressbook-sync configuration
directory across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".addressbook-sync"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "ADDRESSBOOK_SYNC_CONFIG_DIR"

# Default local address book file name (inside the config directory)
DEFAULT_ADDRESS_BOOK_FILE = "addressbook.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. ADDRESSBOOK_SYNC_CONFIG_DIR environment variable
        3. Default directory (~/.addressbook-sync)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_address_book_path(
    config_dir: Path, address_book_path: Path | str | None = None
) -> Path:
    """
    Resolve the location of the local address book database.

    Relative paths are interpreted inside the configuration directory.

    Args:
        config_dir: Resolved configuration directory
        address_book_path: Optional configured path (absolute or relative)

    Returns:
        Path to the SQLite address book file
    """
    if not address_book_path:
        return config_dir / DEFAULT_ADDRESS_BOOK_FILE

    path = Path(address_book_path).expanduser()
    if not path.is_absolute():
        path = config_dir / path
    return path
