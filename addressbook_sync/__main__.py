"""
Entry point for running addressbook_sync as a module.

Usage:
    python -m addressbook_sync --help
    python -m addressbook_sync auth
    python -m addressbook_sync sync --read-only
"""

from addressbook_sync.cli import cli

if __name__ == "__main__":
    cli()
