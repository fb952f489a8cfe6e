"""
SQLite-backed local address book.

Provides persistent storage for local contacts and mailing lists
(contact groups), list membership, and the change log recording local
mutations since the last synchronization.
"""

import json
import sqlite3
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Optional, Union

from addressbook_sync.storage.items import (
    RESOURCE_NAME_PROPERTY,
    LocalContact,
    LocalContactGroup,
)

# Change log status values
STATUS_ADDED = "added"
STATUS_MODIFIED = "modified"
STATUS_DELETED = "deleted"

# Prefix for resource names of items created locally and not yet uploaded
LOCAL_RESOURCE_NAME_PREFIX = "local:"

# SQL Schema for items, list members and the change log
SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    uid TEXT PRIMARY KEY,
    is_list INTEGER NOT NULL DEFAULT 0,
    properties TEXT NOT NULL DEFAULT '{}',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_items_is_list ON items(is_list);

CREATE TABLE IF NOT EXISTS list_members (
    list_uid TEXT NOT NULL,
    card_uid TEXT NOT NULL,
    position INTEGER NOT NULL,
    PRIMARY KEY (list_uid, card_uid)
);

CREATE INDEX IF NOT EXISTS idx_list_members_card ON list_members(card_uid);

CREATE TABLE IF NOT EXISTS changelog (
    item_id TEXT PRIMARY KEY,
    status TEXT NOT NULL CHECK (status IN ('added', 'modified', 'deleted')),
    changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

LocalItemType = Union[LocalContact, LocalContactGroup]


@dataclass(frozen=True)
class ChangeLogEntry:
    """One local mutation recorded since the last synchronization."""

    item_id: str
    status: str


class AddressBook:
    """
    SQLite address book with change tracking.

    Provides methods for:
    - Creating, modifying, deleting and looking up contacts and lists
    - Maintaining list (group) membership
    - Recording and pruning the change log

    Writes made with suppress_notification=True (the synchronizer's own
    writes) are not recorded in the change log.

    Usage:
        book = AddressBook('/path/to/addressbook.db')
        book.initialize()

        # Or use in-memory for testing:
        book = AddressBook(':memory:')
        book.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the address book.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        data persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the schema if it doesn't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # =========================================================================
    # Item Construction
    # =========================================================================

    def create_new_card(self) -> LocalContact:
        """Create a new, unsaved contact card."""
        return LocalContact(uid=str(uuid.uuid4()))

    def create_new_list(self) -> LocalContactGroup:
        """Create a new, unsaved mailing list."""
        return LocalContactGroup(uid=str(uuid.uuid4()))

    def _row_to_item(self, row: sqlite3.Row) -> LocalItemType:
        properties = json.loads(row["properties"])
        item_class = LocalContactGroup if row["is_list"] else LocalContact
        item = item_class.from_properties(row["uid"], properties)
        return item  # type: ignore[return-value]

    # =========================================================================
    # Item Operations
    # =========================================================================

    def add_item(
        self, item: LocalItemType, suppress_notification: bool = False
    ) -> LocalItemType:
        """
        Add a new item.

        Items without a resource name receive a local placeholder so that
        they can be tracked in the change log until they are uploaded.

        Args:
            item: Contact or list to store
            suppress_notification: If True, do not record a change log entry

        Returns:
            The stored item
        """
        if not item.uid:
            item.uid = str(uuid.uuid4())
        if not item.resource_name:
            item.resource_name = f"{LOCAL_RESOURCE_NAME_PREFIX}{uuid.uuid4()}"

        with self.connection() as conn:
            conn.execute(
                "INSERT INTO items (uid, is_list, properties) VALUES (?, ?, ?)",
                (item.uid, int(item.is_list), json.dumps(item.to_properties())),
            )
            if not suppress_notification:
                self._record_change(conn, item.resource_name, STATUS_ADDED)

        return item

    def modify_item(
        self, item: LocalItemType, suppress_notification: bool = False
    ) -> LocalItemType:
        """
        Persist changes to an existing item.

        Args:
            item: Contact or list to update
            suppress_notification: If True, do not record a change log entry

        Returns:
            The stored item

        Raises:
            KeyError: If the item does not exist
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE items
                SET properties = ?, updated_at = CURRENT_TIMESTAMP
                WHERE uid = ?
                """,
                (json.dumps(item.to_properties()), item.uid),
            )
            if cursor.rowcount == 0:
                raise KeyError(f"Item not found: {item.uid}")
            if not suppress_notification and item.resource_name:
                self._record_change(conn, item.resource_name, STATUS_MODIFIED)

        return item

    def delete_item(
        self, item: LocalItemType, suppress_notification: bool = False
    ) -> bool:
        """
        Delete an item and its list memberships.

        Args:
            item: Contact or list to delete
            suppress_notification: If True, do not record a change log entry

        Returns:
            True if the item existed
        """
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM items WHERE uid = ?", (item.uid,))
            conn.execute(
                "DELETE FROM list_members WHERE list_uid = ? OR card_uid = ?",
                (item.uid, item.uid),
            )
            if not suppress_notification and item.resource_name:
                self._record_change(conn, item.resource_name, STATUS_DELETED)
            return cursor.rowcount > 0

    def get_item(self, uid: str) -> Optional[LocalItemType]:
        """Get an item by its store uid."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT uid, is_list, properties FROM items WHERE uid = ?", (uid,)
            ).fetchone()
            return self._row_to_item(row) if row else None

    def get_item_from_property(
        self, name: str, value: Optional[str]
    ) -> Optional[LocalItemType]:
        """
        Find the first item whose property equals the given value.

        Args:
            name: Local property name (e.g., "X-GOOGLE-RESOURCENAME")
            value: Value to match

        Returns:
            The matching contact or list, or None
        """
        if not value:
            return None

        with self.connection() as conn:
            row = conn.execute(
                """
                SELECT uid, is_list, properties FROM items
                WHERE json_extract(properties, ?) = ?
                ORDER BY rowid
                LIMIT 1
                """,
                (f'$."{name}"', value),
            ).fetchone()
            return self._row_to_item(row) if row else None

    def get_item_by_resource_name(
        self, resource_name: Optional[str]
    ) -> Optional[LocalItemType]:
        """Convenience lookup on the resource name property."""
        return self.get_item_from_property(RESOURCE_NAME_PROPERTY, resource_name)

    def get_all_items(self) -> list[LocalItemType]:
        """Get every contact and list in insertion order."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT uid, is_list, properties FROM items ORDER BY rowid"
            ).fetchall()
            return [self._row_to_item(row) for row in rows]

    def get_item_count(self) -> dict[str, int]:
        """Count contacts and lists."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT is_list, COUNT(*) AS total FROM items GROUP BY is_list"
            ).fetchall()
        counts = {"contacts": 0, "lists": 0}
        for row in rows:
            counts["lists" if row["is_list"] else "contacts"] = row["total"]
        return counts

    # =========================================================================
    # List Membership Operations
    # =========================================================================

    def get_list_members(self, group: LocalContactGroup) -> list[LocalContact]:
        """Get the contacts of a list in insertion order."""
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT items.uid, items.is_list, items.properties
                FROM list_members
                JOIN items ON items.uid = list_members.card_uid
                WHERE list_members.list_uid = ?
                ORDER BY list_members.position
                """,
                (group.uid,),
            ).fetchall()
            return [self._row_to_item(row) for row in rows]  # type: ignore[misc]

    def add_list_member(self, group: LocalContactGroup, contact: LocalContact) -> bool:
        """
        Append a contact to a list.

        Returns:
            True if the contact was added, False if it was already a member
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO list_members (list_uid, card_uid, position)
                SELECT ?, ?, COALESCE(MAX(position), -1) + 1
                FROM list_members WHERE list_uid = ?
                """,
                (group.uid, contact.uid, group.uid),
            )
            return cursor.rowcount > 0

    def clear_list_members(self, group: LocalContactGroup) -> int:
        """Remove every contact from a list, returning how many were removed."""
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM list_members WHERE list_uid = ?", (group.uid,)
            )
            return cursor.rowcount

    # =========================================================================
    # Change Log Operations
    # =========================================================================

    def _record_change(
        self, conn: sqlite3.Connection, item_id: str, status: str
    ) -> None:
        """
        Record a local mutation.

        An item added since the last synchronization stays "added" when it
        is modified, and is forgotten entirely when it is deleted.
        """
        row = conn.execute(
            "SELECT status FROM changelog WHERE item_id = ?", (item_id,)
        ).fetchone()
        previous = row["status"] if row else None

        if previous == STATUS_ADDED:
            if status == STATUS_DELETED:
                conn.execute("DELETE FROM changelog WHERE item_id = ?", (item_id,))
            return

        conn.execute(
            """
            INSERT INTO changelog (item_id, status) VALUES (?, ?)
            ON CONFLICT(item_id) DO UPDATE SET
                status = excluded.status,
                changed_at = CURRENT_TIMESTAMP
            """,
            (item_id, status),
        )

    def _get_change_log_ids(self, status: str) -> list[str]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT item_id FROM changelog WHERE status = ? ORDER BY rowid",
                (status,),
            ).fetchall()
            return [row["item_id"] for row in rows]

    def get_added_items_from_change_log(self) -> list[str]:
        """Resource names of items added locally since the last sync."""
        return self._get_change_log_ids(STATUS_ADDED)

    def get_modified_items_from_change_log(self) -> list[str]:
        """Resource names of items modified locally since the last sync."""
        return self._get_change_log_ids(STATUS_MODIFIED)

    def get_deleted_items_from_change_log(self) -> list[str]:
        """Resource names of items deleted locally since the last sync."""
        return self._get_change_log_ids(STATUS_DELETED)

    def get_items_from_change_log(self) -> list[ChangeLogEntry]:
        """Every change log entry, oldest first."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT item_id, status FROM changelog ORDER BY rowid"
            ).fetchall()
            return [ChangeLogEntry(row["item_id"], row["status"]) for row in rows]

    def remove_item_from_change_log(self, item_id: Optional[str]) -> bool:
        """
        Remove the change log entry for an item.

        Returns:
            True if an entry was removed
        """
        if not item_id:
            return False
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM changelog WHERE item_id = ?", (item_id,)
            )
            return cursor.rowcount > 0

    def clear_changelog(self) -> int:
        """Remove every change log entry, returning how many were removed."""
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM changelog")
            return cursor.rowcount

    def get_change_log_counts(self) -> dict[str, Any]:
        """Count change log entries per status."""
        counts = {STATUS_ADDED: 0, STATUS_MODIFIED: 0, STATUS_DELETED: 0}
        for entry in self.get_items_from_change_log():
            counts[entry.status] += 1
        return counts

    def vacuum(self) -> None:
        """Optimize the database by running VACUUM."""
        with self.connection() as conn:
            conn.execute("VACUUM")
