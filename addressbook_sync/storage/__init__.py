"""
addressbook_sync.storage - Local address book

Contains the SQLite-backed address book, its item models and change log.
"""

from addressbook_sync.storage.addressbook import AddressBook, ChangeLogEntry
from addressbook_sync.storage.items import (
    ETAG_PROPERTY,
    RESOURCE_NAME_PROPERTY,
    LocalContact,
    LocalContactGroup,
)

__all__ = [
    "AddressBook",
    "ChangeLogEntry",
    "LocalContact",
    "LocalContactGroup",
    "RESOURCE_NAME_PROPERTY",
    "ETAG_PROPERTY",
]
