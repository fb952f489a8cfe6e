"""
Synchronization settings consumed by the sync engine.

Configuration file format (config.yaml):

    use_fake_email_addresses: false
    read_only_mode: false
    verbose_logging: false
    include_system_contact_groups: false
    address_book_path: addressbook.db

Notes:
    - Every key is optional; missing keys take the defaults above
    - address_book_path may be relative to the configuration directory
    - CLI flags override file values
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from addressbook_sync.config.loader import ConfigError, ConfigLoader

logger = logging.getLogger(__name__)

_BOOL_FIELDS = (
    "use_fake_email_addresses",
    "read_only_mode",
    "verbose_logging",
    "include_system_contact_groups",
)


class SyncConfigError(Exception):
    """Raised when sync configuration loading or validation fails."""

    pass


@dataclass
class SyncConfig:
    """
    Settings of one synchronization run.

    Attributes:
        use_fake_email_addresses: Create placeholder addresses for remote
            contacts without email, and never upload them
        read_only_mode: Never modify the remote account; local data is
            refreshed from it instead
        verbose_logging: Log every reconciliation decision (DEBUG level)
        include_system_contact_groups: Synchronize Google's system groups
            (myContacts, starred, ...) as local lists
        address_book_path: Local address book database, None for the default

    Usage:
        config = SyncConfig.from_dict({"read_only_mode": True})
        config = load_config(config_dir).with_overrides(read_only_mode=True)
    """

    use_fake_email_addresses: bool = False
    read_only_mode: bool = False
    verbose_logging: bool = False
    include_system_contact_groups: bool = False
    address_book_path: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SyncConfig:
        """
        Create SyncConfig from a dictionary.

        Keys that are not sync settings are ignored, so the whole
        config.yaml dictionary can be passed.

        Raises:
            SyncConfigError: If a setting has the wrong type
        """
        if data is None:
            return cls()

        if not isinstance(data, dict):
            raise SyncConfigError(
                f"Configuration must be a dictionary, got {type(data).__name__}"
            )

        values: dict[str, Any] = {}
        for name in _BOOL_FIELDS:
            if name in data:
                value = data[name]
                if not isinstance(value, bool):
                    raise SyncConfigError(
                        f"{name} must be a boolean, got {type(value).__name__}"
                    )
                values[name] = value

        # The generic "verbose" option also turns on verbose sync logging
        if "verbose_logging" not in values and data.get("verbose") is True:
            values["verbose_logging"] = True

        address_book_path = data.get("address_book_path")
        if address_book_path is not None:
            if not isinstance(address_book_path, str):
                raise SyncConfigError(
                    f"address_book_path must be a string, "
                    f"got {type(address_book_path).__name__}"
                )
            if not address_book_path.strip():
                raise SyncConfigError("address_book_path cannot be empty")
            values["address_book_path"] = address_book_path

        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format, omitting an unset address book path."""
        result = asdict(self)
        if self.address_book_path is None:
            del result["address_book_path"]
        return result

    def with_overrides(self, **overrides: Any) -> SyncConfig:
        """
        Return a copy with the given settings replaced.

        None values are ignored, so unset CLI flags keep file values.
        """
        names = {f.name for f in fields(self)}
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - names
        if unknown:
            raise SyncConfigError(f"Unknown sync settings: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def __repr__(self) -> str:
        return (
            f"SyncConfig(read_only_mode={self.read_only_mode}, "
            f"use_fake_email_addresses={self.use_fake_email_addresses}, "
            f"include_system_contact_groups={self.include_system_contact_groups})"
        )


def load_config(config_dir: Path | str | None = None) -> SyncConfig:
    """
    Load sync settings from config.yaml in the configuration directory.

    Returns default settings when the file doesn't exist.

    Raises:
        SyncConfigError: If the file cannot be parsed or is invalid
    """
    loader = ConfigLoader(config_dir=Path(config_dir) if config_dir else None)
    try:
        data = loader.load_and_validate()
    except ConfigError as e:
        raise SyncConfigError(str(e)) from e

    config = SyncConfig.from_dict(data)
    logger.debug(f"Loaded sync config: {config!r}")
    return config
