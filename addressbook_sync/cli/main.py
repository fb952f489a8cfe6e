"""
Command-line interface for addressbook_sync.

Provides CLI commands for authentication, synchronization, and status checking
of a local address book against a Google account.

Usage:
    # Show help
    addressbook-sync --help

    # Authenticate the Google account
    addressbook-sync auth

    # Check status
    addressbook-sync status

    # Run synchronization
    addressbook-sync sync
    addressbook-sync sync --read-only --verbose
"""

import sys
from pathlib import Path

import click

from addressbook_sync import __version__
from addressbook_sync.auth.google_auth import AuthenticationError, GoogleAuth
from addressbook_sync.config.generator import save_config_file
from addressbook_sync.config.loader import DEFAULT_CONFIG_FILE as CONFIG_FILE_NAME
from addressbook_sync.config.loader import ConfigError, ConfigLoader
from addressbook_sync.config.sync_config import SyncConfig, SyncConfigError
from addressbook_sync.storage.addressbook import AddressBook
from addressbook_sync.utils import DEFAULT_CONFIG_DIR, resolve_config_dir
from addressbook_sync.utils.logging import (
    cleanup_old_logs,
    get_logger,
    get_sync_logger,
    setup_logging,
)
from addressbook_sync.utils.paths import resolve_address_book_path

# Default configuration file
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / CONFIG_FILE_NAME


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path) -> Path:
    """Get the configuration file path (defaults to config.yaml in config_dir)."""
    if config_file:
        return Path(config_file)
    return config_dir / CONFIG_FILE_NAME


def get_address_book_path(ctx: click.Context) -> Path:
    """Get the local address book path from the loaded configuration."""
    return resolve_address_book_path(
        ctx.obj["config_dir"], ctx.obj["config"].get("address_book_path")
    )


@click.group()
@click.version_option(version=__version__, prog_name="addressbook-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="ADDRESSBOOK_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.addressbook-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="ADDRESSBOOK_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Google Contacts to local address book sync.

    Keeps a local address book and the contacts and contact groups of a
    Google account in sync. Changes made on either side since the last
    run are applied to the other.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Show error but don't fail - allow CLI to work without config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    ctx.obj["config"] = config

    # CLI flag takes precedence over config file
    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = None
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()

    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Auth Command
# =============================================================================


@cli.command("auth")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Force re-authentication even if already authenticated.",
)
@click.pass_context
def auth_command(ctx: click.Context, force: bool) -> None:
    """
    Authenticate the Google account.

    Opens a browser window to complete the OAuth flow and stores
    the credentials for future use.

    Examples:

        addressbook-sync auth

        # Force re-authentication
        addressbook-sync auth --force
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]
    config = ctx.obj["config"]

    click.echo("Authenticating Google account...")

    try:
        auth = GoogleAuth(
            config_dir=config_dir, auth_timeout=config.get("auth_timeout", 10)
        )

        if not force and auth.is_authenticated():
            click.echo(click.style("Already authenticated.", fg="green"))
            click.echo("Use --force to re-authenticate.")
            return

        auth.authenticate(force_reauth=force)

        email = auth.get_account_email()
        if email:
            click.echo(click.style(f"Successfully authenticated ({email})!", fg="green"))
        else:
            click.echo(click.style("Successfully authenticated!", fg="green"))

        logger.info("Authentication completed")

    except FileNotFoundError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        click.echo("\nTo get started:", err=True)
        click.echo("1. Go to https://console.cloud.google.com/", err=True)
        click.echo("2. Create a project and enable the People API", err=True)
        click.echo("3. Create OAuth 2.0 credentials (Desktop application)", err=True)
        click.echo(
            f"4. Download and save as: {config_dir / 'credentials.json'}", err=True
        )
        sys.exit(1)

    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        click.echo(click.style(f"Authentication failed: {e}", fg="red"), err=True)
        sys.exit(1)

    except Exception as e:
        logger.exception(f"Unexpected error during authentication: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show authentication and address book status.

    Example:

        addressbook-sync status
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]

    try:
        auth = GoogleAuth(config_dir=config_dir)
        auth_status = auth.get_auth_status()

        click.echo("=== Address Book Sync Status ===\n")

        click.echo(f"Configuration directory: {auth_status['config_dir']}")
        creds_status = (
            "Found"
            if auth_status["credentials_exist"]
            else click.style("Not found", fg="red")
        )
        click.echo(f"OAuth credentials: {creds_status}")

        if auth_status["authenticated"]:
            account_label = auth.get_account_email() or "Google account"
            status_text = click.style("Authenticated", fg="green")
        elif auth_status["token_exists"]:
            account_label = "Google account"
            status_text = click.style("Token expired or invalid", fg="yellow")
        else:
            account_label = "Google account"
            status_text = click.style("Not authenticated", fg="red")
        click.echo(f"{account_label}: {status_text}")
        click.echo()

        address_book_path = get_address_book_path(ctx)
        if address_book_path.exists():
            address_book = AddressBook(str(address_book_path))
            address_book.initialize()

            click.echo("=== Local Address Book ===\n")
            click.echo(f"Location: {address_book_path}")

            counts = address_book.get_item_count()
            click.echo(f"Contacts: {counts['contacts']}")
            click.echo(f"Lists: {counts['lists']}")

            pending = address_book.get_change_log_counts()
            click.echo(
                f"Pending local changes: {pending['added']} added, "
                f"{pending['modified']} modified, {pending['deleted']} deleted"
            )
        else:
            click.echo("Local address book: Not initialized (no syncs performed yet)")

        click.echo()

        if auth_status["authenticated"]:
            click.echo(click.style("Ready to sync!", fg="green"))
            click.echo("Run 'addressbook-sync sync' to synchronize.")
        elif not auth_status["credentials_exist"]:
            click.echo(
                click.style("Setup required: OAuth credentials not found.", fg="yellow")
            )
            click.echo("Please download credentials from Google Cloud Console")
            click.echo(f"and save to: {auth_status['credentials_path']}")
        else:
            click.echo(click.style("Authentication required.", fg="yellow"))
            click.echo("  Run: addressbook-sync auth")

    except Exception as e:
        logger.exception(f"Error getting status: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        addressbook-sync init-config

        # Overwrite existing config file
        addressbook-sync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Edit the file to uncomment and configure desired options")
        click.echo("2. Run 'addressbook-sync --help' to see available commands")
        logger.info(f"Created configuration file: {config_file}")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--read-only/--read-write",
    default=None,
    help="Never modify the Google account; refresh local data from it.",
)
@click.option(
    "--fake-emails/--no-fake-emails",
    default=None,
    help="Give contacts without email a placeholder address locally.",
)
@click.option(
    "--include-system-groups/--exclude-system-groups",
    default=None,
    help="Synchronize Google's system groups (My Contacts, Starred, ...).",
)
@click.pass_context
def sync_command(
    ctx: click.Context,
    read_only: bool | None,
    fake_emails: bool | None,
    include_system_groups: bool | None,
) -> None:
    """
    Synchronize the local address book with the Google account.

    Contact groups are synchronized first, then contacts, then the
    members of each local list. Items changed on Google since the last
    run overwrite their local copies; local additions, changes and
    deletions are then sent to Google.

    Examples:

        addressbook-sync sync

        # Inspect without modifying the Google account
        addressbook-sync sync --read-only
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]
    config = ctx.obj["config"]
    verbose = ctx.obj["verbose"]

    try:
        sync_config = SyncConfig.from_dict(config).with_overrides(
            read_only_mode=read_only,
            use_fake_email_addresses=fake_emails,
            include_system_contact_groups=include_system_groups,
            verbose_logging=True if verbose else None,
        )
    except SyncConfigError as e:
        click.echo(click.style(f"Error: Sync config error: {e}", fg="red"), err=True)
        sys.exit(1)

    try:
        auth = GoogleAuth(
            config_dir=config_dir, auth_timeout=config.get("auth_timeout", 10)
        )

        click.echo("Checking authentication...")
        creds = auth.get_credentials()
        if not creds:
            click.echo(
                click.style("Error: Google account is not authenticated.", fg="red"),
                err=True,
            )
            click.echo("Run: addressbook-sync auth", err=True)
            sys.exit(1)

        account_label = auth.get_account_email() or "Google account"
        click.echo(click.style(f"  {account_label}", fg="green"))

        from addressbook_sync.api.people_api import (
            DEFAULT_INITIAL_RETRY_DELAY,
            DEFAULT_MAX_RETRIES,
            DEFAULT_MAX_RETRY_DELAY,
            DEFAULT_PAGE_SIZE,
            PeopleAPI,
        )
        from addressbook_sync.sync.engine import SyncEngine

        address_book_path = resolve_address_book_path(
            config_dir, sync_config.address_book_path
        )
        address_book_path.parent.mkdir(parents=True, exist_ok=True)
        address_book = AddressBook(str(address_book_path))
        address_book.initialize()

        api = PeopleAPI(
            credentials=creds,
            include_system_contact_groups=sync_config.include_system_contact_groups,
            page_size=config.get("api_page_size", DEFAULT_PAGE_SIZE),
            max_retries=config.get("api_max_retries", DEFAULT_MAX_RETRIES),
            initial_retry_delay=config.get(
                "api_initial_retry_delay", DEFAULT_INITIAL_RETRY_DELAY
            ),
            max_retry_delay=config.get("api_max_retry_delay", DEFAULT_MAX_RETRY_DELAY),
        )

        engine = SyncEngine(
            api=api,
            address_book=address_book,
            config=sync_config,
            logger=get_sync_logger(sync_config.verbose_logging),
        )

        if verbose:
            click.echo("\nSync configuration:")
            click.echo(f"  Address book: {address_book_path}")
            click.echo(f"  Read-only: {sync_config.read_only_mode}")
            click.echo(f"  Fake emails: {sync_config.use_fake_email_addresses}")
            click.echo(
                f"  System groups: {sync_config.include_system_contact_groups}"
            )
            click.echo()

        mode = " (read-only)" if sync_config.read_only_mode else ""
        click.echo(f"\nSynchronizing contacts and groups{mode}...")

        stats = engine.synchronize()

        click.echo("\n" + "=" * 50)
        click.echo(stats.summary())
        click.echo("=" * 50)

        click.echo(click.style("\nSync completed successfully!", fg="green"))
        logger.info(
            f"Sync completed: {stats.total_local_changes} local changes, "
            f"{stats.total_remote_changes} remote changes"
        )

    except Exception as e:
        logger.exception(f"Sync failed: {e}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Reset Command
# =============================================================================


@cli.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def reset_command(ctx: click.Context, yes: bool) -> None:
    """
    Discard pending local changes.

    Clears the change log of the local address book, so local additions,
    changes and deletions are not sent to Google. On the next sync,
    locally added items are removed and deleted items are restored.
    This does NOT delete contacts from the Google account.

    Example:

        addressbook-sync reset
    """
    logger = get_logger(__name__)
    address_book_path = get_address_book_path(ctx)

    if not address_book_path.exists():
        click.echo("No local address book found. Nothing to reset.")
        return

    if not yes:
        click.confirm(
            "This will discard all pending local changes.\nContinue?",
            abort=True,
        )

    try:
        address_book = AddressBook(str(address_book_path))
        address_book.initialize()
        cleared = address_book.clear_changelog()
        address_book.vacuum()

        click.echo(click.style(f"Discarded {cleared} pending changes.", fg="green"))
        logger.info(f"Change log reset: {cleared} entries removed")

    except Exception as e:
        logger.exception(f"Reset failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Clear-Auth Command
# =============================================================================


@cli.command("clear-auth")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def clear_auth_command(ctx: click.Context, yes: bool) -> None:
    """
    Clear stored authentication credentials.

    You will need to re-authenticate before syncing again.

    Example:

        addressbook-sync clear-auth
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]

    if not yes:
        click.confirm("Clear stored Google credentials?", abort=True)

    try:
        auth = GoogleAuth(config_dir=config_dir)

        if auth.clear_credentials():
            click.echo(click.style("Credentials cleared.", fg="green"))
            logger.info("Cleared stored credentials")
        else:
            click.echo("No credentials found.")

    except Exception as e:
        logger.exception(f"Clear auth failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
