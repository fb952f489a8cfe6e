"""
Configuration file generator for address book synchronization.

Provides functionality to generate a default configuration file with
documentation for all available options.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Every option is commented out, so the generated file loads as an
    empty configuration and all defaults apply.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Address Book Sync Configuration
# ===============================
#
# This file sets default options for addressbook-sync.
# CLI arguments will always override these values.
#
# To use this configuration:
#   1. Save as ~/.addressbook-sync/config.yaml (or custom location)
#   2. Uncomment and modify options as needed
#   3. Run addressbook-sync commands normally


# Sync Behavior
# -------------

# Never modify the Google account. Local additions, changes and deletions
# are discarded and every local item is refreshed from Google.
# Default: false
# read_only_mode: false

# Give Google contacts without an email address a placeholder address,
# for local address books that require one. Placeholder addresses are
# never uploaded while this option is enabled.
# Default: false
# use_fake_email_addresses: false

# Synchronize Google's system groups (My Contacts, Starred, ...)
# as local lists.
# Default: false
# include_system_contact_groups: false

# Location of the local address book database.
# Relative paths are resolved inside the configuration directory.
# Default: addressbook.db
# address_book_path: addressbook.db


# Logging Options
# ---------------

# Log every synchronization decision
# Default: false
# verbose_logging: false

# Directory for log files
# Default: logs/ inside the project directory
# log_dir: /path/to/logs

# Number of daily log files to keep
# Default: 10
# log_retention_count: 10


# API Options
# -----------

# Number of contacts or groups requested per page (max 1000)
# Default: 100
# api_page_size: 100

# Retry attempts for rate limited or failed requests
# Default: 5
# api_max_retries: 5

# Initial and maximum backoff delay in seconds
# Default: 1.0 and 60.0
# api_initial_retry_delay: 1.0
# api_max_retry_delay: 60.0

# Timeout in seconds for authentication requests
# Default: 10
# auth_timeout: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves
    the configuration with owner-only permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
