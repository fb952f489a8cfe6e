"""
addressbook_sync.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from addressbook_sync.config.loader import ConfigError, ConfigLoader
from addressbook_sync.config.sync_config import (
    SyncConfig,
    SyncConfigError,
    load_config,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "SyncConfig",
    "SyncConfigError",
    "load_config",
]
