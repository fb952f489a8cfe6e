"""
Sync engine for Google address book synchronization.

Reconciles the remote Google account with the local address book. One
run performs, in order:

1. Contact group reconciliation
2. Contact reconciliation, collecting group memberships
3. Local list membership materialization
4. Change log repair

Each reconciliation pass has four phases: the remote pass (remote state
wins whenever the etag changed), the push of locally added items, the
push of locally modified items, and the tombstone sweep that deletes
local items which no longer exist remotely.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from addressbook_sync.api.people_api import NotFoundError, PeopleAPI
from addressbook_sync.config.sync_config import SyncConfig
from addressbook_sync.storage.addressbook import AddressBook
from addressbook_sync.storage.items import (
    RESOURCE_NAME_PROPERTY,
    LocalContact,
    LocalContactGroup,
)
from addressbook_sync.sync.contact import Contact
from addressbook_sync.sync.group import ContactGroup
from addressbook_sync.sync.mapping import (
    fill_local_contact,
    fill_local_contact_group,
    fill_remote_contact,
    fill_remote_contact_group,
)
from addressbook_sync.sync.membership import MembershipIndex


@dataclass
class SyncStats:
    """
    Statistics from a sync operation.

    "Locally" counts changes to the local address book, "remotely"
    counts changes sent to Google.
    """

    # Group statistics
    groups_fetched: int = 0
    groups_created_locally: int = 0
    groups_updated_locally: int = 0
    groups_deleted_locally: int = 0
    groups_created_remotely: int = 0
    groups_updated_remotely: int = 0
    groups_deleted_remotely: int = 0
    groups_skipped: int = 0

    # Contact statistics
    contacts_fetched: int = 0
    contacts_created_locally: int = 0
    contacts_updated_locally: int = 0
    contacts_deleted_locally: int = 0
    contacts_created_remotely: int = 0
    contacts_updated_remotely: int = 0
    contacts_deleted_remotely: int = 0

    # Membership and change log statistics
    memberships_written: int = 0
    change_log_entries_repaired: int = 0

    @property
    def total_local_changes(self) -> int:
        """Total items created, updated or deleted in the local address book."""
        return (
            self.groups_created_locally
            + self.groups_updated_locally
            + self.groups_deleted_locally
            + self.contacts_created_locally
            + self.contacts_updated_locally
            + self.contacts_deleted_locally
        )

    @property
    def total_remote_changes(self) -> int:
        """Total items created, updated or deleted in the Google account."""
        return (
            self.groups_created_remotely
            + self.groups_updated_remotely
            + self.groups_deleted_remotely
            + self.contacts_created_remotely
            + self.contacts_updated_remotely
            + self.contacts_deleted_remotely
        )

    def has_changes(self) -> bool:
        return bool(self.total_local_changes or self.total_remote_changes)

    def summary(self) -> str:
        """
        Generate a human-readable summary of the sync run.

        Returns:
            Formatted string summary of sync operations
        """
        lines = [
            "Sync Summary:",
            f"  Google: {self.contacts_fetched} contacts, {self.groups_fetched} groups",
            "",
            "Local address book:",
            f"  Groups created/updated/deleted: {self.groups_created_locally}/"
            f"{self.groups_updated_locally}/{self.groups_deleted_locally}",
            f"  Contacts created/updated/deleted: {self.contacts_created_locally}/"
            f"{self.contacts_updated_locally}/{self.contacts_deleted_locally}",
            f"  Memberships written: {self.memberships_written}",
            "",
            "Google account:",
            f"  Groups created/updated/deleted: {self.groups_created_remotely}/"
            f"{self.groups_updated_remotely}/{self.groups_deleted_remotely}",
            f"  Contacts created/updated/deleted: {self.contacts_created_remotely}/"
            f"{self.contacts_updated_remotely}/{self.contacts_deleted_remotely}",
        ]

        if self.groups_skipped:
            lines.append(f"  Groups skipped (no etag): {self.groups_skipped}")
        if self.change_log_entries_repaired:
            lines.append("")
            lines.append(
                f"Orphaned change log entries removed: "
                f"{self.change_log_entries_repaired}"
            )
        if not self.has_changes():
            lines.append("")
            lines.append("Everything is in sync.")

        return "\n".join(lines)


class SyncEngine:
    """
    Synchronization engine between a Google account and a local address book.

    Remote calls are made one at a time; callers must not run two engines
    on the same address book concurrently. A failed remote call aborts the
    run without rolling back what was already applied; running again is
    safe.

    Attributes:
        api: People API client for the Google account
        address_book: Local address book
        config: Sync settings
        logger: Logger receiving reconciliation diagnostics
        stats: Statistics of the current or last run

    Usage:
        engine = SyncEngine(api, address_book, config)
        stats = engine.synchronize()
        print(stats.summary())
    """

    def __init__(
        self,
        api: PeopleAPI,
        address_book: AddressBook,
        config: Optional[SyncConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the sync engine.

        Args:
            api: People API client
            address_book: Initialized local address book
            config: Sync settings (defaults to SyncConfig())
            logger: Logger to use (defaults to this module's logger)
        """
        self.api = api
        self.address_book = address_book
        self.config = config if config is not None else SyncConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.stats = SyncStats()

    # =========================================================================
    # Orchestration
    # =========================================================================

    def synchronize(self) -> SyncStats:
        """
        Run one full synchronization.

        Returns:
            SyncStats of the run

        Raises:
            PeopleAPIError: If a remote call fails (other than a recovered 404)
        """
        self.stats = SyncStats()
        mode = " (read-only)" if self.config.read_only_mode else ""
        self.logger.info(f"Starting synchronization{mode}")

        try:
            remote_group_ids = self.synchronize_contact_groups()
            index = self.synchronize_contacts()
            # Membership is only known once every contact has been processed
            self.synchronize_contact_group_members(remote_group_ids, index)
            self.repair_change_log()
        except Exception as e:
            self.logger.error(f"Synchronization failed: {e}")
            raise

        self.logger.info(
            f"Synchronization complete: {self.stats.total_local_changes} local "
            f"and {self.stats.total_remote_changes} remote changes"
        )
        return self.stats

    # =========================================================================
    # Lookups
    # =========================================================================

    def _find_local_group(self, resource_name: str) -> Optional[LocalContactGroup]:
        item = self.address_book.get_item_from_property(
            RESOURCE_NAME_PROPERTY, resource_name
        )
        return item if isinstance(item, LocalContactGroup) else None

    def _find_local_contact(self, resource_name: str) -> Optional[LocalContact]:
        item = self.address_book.get_item_from_property(
            RESOURCE_NAME_PROPERTY, resource_name
        )
        return item if isinstance(item, LocalContact) else None

    # =========================================================================
    # Contact Groups
    # =========================================================================

    def synchronize_contact_groups(self) -> set[str]:
        """
        Reconcile contact groups with local lists.

        Returns:
            Resource names of the remote groups known after the pass
            (fetched and just created)
        """
        read_only = self.config.read_only_mode
        include_system = self.api.get_include_system_contact_groups()

        # Remote pass
        deleted_ids = set(self.address_book.get_deleted_items_from_change_log())
        remote_ids: set[str] = set()

        for remote_group in self.api.get_contact_groups():
            if remote_group.is_system_group() and not include_system:
                self.logger.debug(f"Skipping system group: {remote_group.name}")
                continue

            self.stats.groups_fetched += 1
            resource_name = remote_group.resource_name
            local_group = self._find_local_group(resource_name)

            if local_group is None:
                if resource_name in deleted_ids:
                    if not read_only:
                        self.logger.debug(
                            f"Deleting group removed locally: {remote_group.name}"
                        )
                        self.api.delete_contact_group(resource_name)
                        self.stats.groups_deleted_remotely += 1
                    self.address_book.remove_item_from_change_log(resource_name)
                    continue

                self.logger.debug(f"Creating local list: {remote_group.name}")
                local_group = fill_local_contact_group(
                    self.address_book.create_new_list(), remote_group
                )
                self.address_book.add_item(local_group, suppress_notification=True)
                self.address_book.remove_item_from_change_log(resource_name)
                self.stats.groups_created_locally += 1

            elif read_only or local_group.etag != remote_group.etag:
                self.logger.debug(f"Updating local list: {remote_group.name}")
                fill_local_contact_group(local_group, remote_group)
                self.address_book.modify_item(local_group, suppress_notification=True)
                self.address_book.remove_item_from_change_log(resource_name)
                self.stats.groups_updated_locally += 1

            remote_ids.add(resource_name)

        # Locally added lists
        just_added: set[str] = set()
        for item_id in self.address_book.get_added_items_from_change_log():
            local_group = self._find_local_group(item_id)
            if local_group is None:
                continue

            if not read_only:
                self.logger.debug(f"Creating group: {local_group.list_name}")
                created = self.api.create_contact_group(
                    fill_remote_contact_group(local_group, ContactGroup())
                )
                local_group.resource_name = created.resource_name
                local_group.etag = created.etag
                self.address_book.modify_item(local_group, suppress_notification=True)
                just_added.add(created.resource_name)
                self.stats.groups_created_remotely += 1

            self.address_book.remove_item_from_change_log(item_id)

        # Locally modified lists
        for item_id in self.address_book.get_modified_items_from_change_log():
            local_group = self._find_local_group(item_id)
            if local_group is None:
                continue

            if not read_only:
                if not local_group.etag:
                    self.logger.warning(
                        f"Skipping modified list without etag "
                        f"(not a synchronizable group): {local_group.list_name}"
                    )
                    self.stats.groups_skipped += 1
                else:
                    self._push_modified_group(local_group)

            self.address_book.remove_item_from_change_log(item_id)

        # Tombstone sweep
        for item in self.address_book.get_all_items():
            if not isinstance(item, LocalContactGroup):
                continue
            if item.resource_name in just_added or item.resource_name in remote_ids:
                continue
            self.logger.debug(f"Deleting local list removed remotely: {item.list_name}")
            self.address_book.delete_item(item, suppress_notification=True)
            self.stats.groups_deleted_locally += 1

        return remote_ids | just_added

    def _push_modified_group(self, local_group: LocalContactGroup) -> None:
        remote_group = fill_remote_contact_group(
            local_group,
            ContactGroup(
                resource_name=local_group.resource_name or "",
                etag=local_group.etag or "",
            ),
        )

        try:
            updated = self.api.update_contact_group(remote_group)
        except NotFoundError:
            self.logger.info(
                f"Group no longer exists remotely, deleting local list: "
                f"{local_group.list_name}"
            )
            self.address_book.delete_item(local_group, suppress_notification=True)
            self.stats.groups_deleted_locally += 1
            return

        self.logger.debug(f"Updated group: {local_group.list_name}")
        local_group.etag = updated.etag
        self.address_book.modify_item(local_group, suppress_notification=True)
        self.stats.groups_updated_remotely += 1

    # =========================================================================
    # Contacts
    # =========================================================================

    def synchronize_contacts(self) -> MembershipIndex:
        """
        Reconcile contacts with local cards.

        Returns:
            Group memberships of every remote contact processed
        """
        read_only = self.config.read_only_mode
        use_fake_emails = self.config.use_fake_email_addresses
        index = MembershipIndex()

        # Remote pass
        deleted_ids = set(self.address_book.get_deleted_items_from_change_log())
        remote_ids: set[str] = set()

        for remote_contact in self.api.get_contacts():
            self.stats.contacts_fetched += 1
            resource_name = remote_contact.resource_name
            local_contact = self._find_local_contact(resource_name)

            if local_contact is None:
                if resource_name in deleted_ids:
                    if not read_only:
                        self.logger.debug(
                            f"Deleting contact removed locally: "
                            f"{remote_contact.display_name}"
                        )
                        self.api.delete_contact(resource_name)
                        self.stats.contacts_deleted_remotely += 1
                    self.address_book.remove_item_from_change_log(resource_name)
                    continue

                self.logger.debug(
                    f"Creating local card: {remote_contact.display_name}"
                )
                local_contact = fill_local_contact(
                    self.address_book.create_new_card(),
                    remote_contact,
                    use_fake_emails,
                )
                self.address_book.add_item(local_contact, suppress_notification=True)
                self.address_book.remove_item_from_change_log(resource_name)
                self.stats.contacts_created_locally += 1

            elif read_only or local_contact.etag != remote_contact.etag:
                self.logger.debug(
                    f"Updating local card: {remote_contact.display_name}"
                )
                fill_local_contact(local_contact, remote_contact, use_fake_emails)
                self.address_book.modify_item(
                    local_contact, suppress_notification=True
                )
                self.address_book.remove_item_from_change_log(resource_name)
                self.stats.contacts_updated_locally += 1

            remote_ids.add(resource_name)
            index.fold_contact(remote_contact)

        # Locally added cards
        just_added: set[str] = set()
        for item_id in self.address_book.get_added_items_from_change_log():
            item = self.address_book.get_item_from_property(
                RESOURCE_NAME_PROPERTY, item_id
            )
            if item is None:
                self.logger.debug(f"Added item no longer exists locally: {item_id}")
                continue
            if item.is_list or not isinstance(item, LocalContact):
                self.logger.debug(f"Ignoring list in contact changes: {item_id}")
                continue

            if not read_only:
                self.logger.debug(f"Creating contact: {item.display_name}")
                created = self.api.create_contact(
                    fill_remote_contact(item, Contact(), use_fake_emails)
                )
                item.resource_name = created.resource_name
                item.etag = created.etag
                self.address_book.modify_item(item, suppress_notification=True)
                just_added.add(created.resource_name)
                index.fold_contact(created)
                self.stats.contacts_created_remotely += 1

            self.address_book.remove_item_from_change_log(item_id)

        # Locally modified cards
        for item_id in self.address_book.get_modified_items_from_change_log():
            item = self.address_book.get_item_from_property(
                RESOURCE_NAME_PROPERTY, item_id
            )
            if item is None:
                self.logger.debug(f"Modified item no longer exists locally: {item_id}")
                continue
            if item.is_list or not isinstance(item, LocalContact):
                self.logger.debug(f"Ignoring list in contact changes: {item_id}")
                continue

            if not read_only:
                self._push_modified_contact(item, index)

            self.address_book.remove_item_from_change_log(item_id)

        # Tombstone sweep
        for item in self.address_book.get_all_items():
            if not isinstance(item, LocalContact):
                continue
            if item.resource_name in just_added or item.resource_name in remote_ids:
                continue
            self.logger.debug(
                f"Deleting local card removed remotely: {item.display_name}"
            )
            self.address_book.delete_item(item, suppress_notification=True)
            self.stats.contacts_deleted_locally += 1

        return index

    def _push_modified_contact(
        self, local_contact: LocalContact, index: MembershipIndex
    ) -> None:
        remote_contact = fill_remote_contact(
            local_contact,
            Contact(
                resource_name=local_contact.resource_name or "",
                etag=local_contact.etag or "",
            ),
            self.config.use_fake_email_addresses,
        )

        try:
            updated = self.api.update_contact(remote_contact)
        except NotFoundError:
            self.logger.info(
                f"Contact no longer exists remotely, deleting local card: "
                f"{local_contact.display_name}"
            )
            self.address_book.delete_item(local_contact, suppress_notification=True)
            self.stats.contacts_deleted_locally += 1
            return

        self.logger.debug(f"Updated contact: {local_contact.display_name}")
        local_contact.etag = updated.etag
        self.address_book.modify_item(local_contact, suppress_notification=True)
        index.fold_contact(updated)
        self.stats.contacts_updated_remotely += 1

    # =========================================================================
    # Memberships
    # =========================================================================

    def synchronize_contact_group_members(
        self, remote_group_ids: set[str], index: MembershipIndex
    ) -> None:
        """
        Rebuild the member list of every local list bound to a remote group.

        Args:
            remote_group_ids: Resource names of the known remote groups
            index: Memberships collected by synchronize_contacts
        """
        for item in self.address_book.get_all_items():
            if not isinstance(item, LocalContactGroup):
                continue
            if item.resource_name not in remote_group_ids:
                continue

            self.address_book.clear_list_members(item)
            if item.resource_name not in index:
                continue

            for contact_id in index.members_of(item.resource_name):
                contact = self._find_local_contact(contact_id)
                if contact is None:
                    self.logger.debug(
                        f"Member {contact_id} of {item.list_name} not found locally"
                    )
                    continue
                if self.address_book.add_list_member(item, contact):
                    self.stats.memberships_written += 1

    # =========================================================================
    # Change Log
    # =========================================================================

    def repair_change_log(self) -> int:
        """
        Remove change log entries whose item no longer exists locally.

        Returns:
            Number of entries removed
        """
        removed = 0
        for entry in self.address_book.get_items_from_change_log():
            item = self.address_book.get_item_from_property(
                RESOURCE_NAME_PROPERTY, entry.item_id
            )
            if item is None:
                self.logger.debug(
                    f"Removing orphaned change log entry: {entry.item_id} "
                    f"({entry.status})"
                )
                self.address_book.remove_item_from_change_log(entry.item_id)
                removed += 1

        self.stats.change_log_entries_repaired += removed
        return removed
