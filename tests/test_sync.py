"""
Tests for the sync engine module.

Runs the SyncEngine against a real in-memory AddressBook and a mocked
PeopleAPI, covering the remote pass, the push of local changes, the
tombstone sweep, membership materialization and change log repair.
"""

from unittest.mock import MagicMock

import pytest

from addressbook_sync.api.people_api import NotFoundError, PeopleAPI, PeopleAPIError
from addressbook_sync.config.sync_config import SyncConfig
from addressbook_sync.storage import AddressBook, LocalContact, LocalContactGroup
from addressbook_sync.sync.contact import Contact, EmailAddress, Name
from addressbook_sync.sync.engine import SyncEngine, SyncStats
from addressbook_sync.sync.group import (
    GROUP_TYPE_SYSTEM_CONTACT_GROUP,
    GROUP_TYPE_USER_CONTACT_GROUP,
    ContactGroup,
)
from addressbook_sync.sync.mapping import is_fake_email_address

# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def book():
    """Create an initialized in-memory address book."""
    address_book = AddressBook(":memory:")
    address_book.initialize()
    return address_book


@pytest.fixture
def api():
    """Create a mocked PeopleAPI with an empty Google account."""
    mock_api = MagicMock(spec=PeopleAPI)
    mock_api.get_include_system_contact_groups.return_value = False
    mock_api.get_contact_groups.return_value = []
    mock_api.get_contacts.return_value = []
    return mock_api


def remote_contact(resource_name, etag, given_name=None, memberships=None):
    """Create a remote contact."""
    return Contact(
        resource_name=resource_name,
        etag=etag,
        names=[Name(given_name=given_name)] if given_name else [],
        memberships=memberships or [],
    )


def remote_group(resource_name, etag, name, group_type=GROUP_TYPE_USER_CONTACT_GROUP):
    """Create a remote contact group."""
    return ContactGroup(
        resource_name=resource_name, etag=etag, name=name, group_type=group_type
    )


def store_contact(book, resource_name, etag, **kwargs):
    """Store a contact as the synchronizer would (no change log entry)."""
    contact = LocalContact(resource_name=resource_name, etag=etag, **kwargs)
    return book.add_item(contact, suppress_notification=True)


def store_group(book, resource_name, etag, list_name):
    """Store a list as the synchronizer would (no change log entry)."""
    group = LocalContactGroup(
        resource_name=resource_name, etag=etag, list_name=list_name
    )
    return book.add_item(group, suppress_notification=True)


def assert_no_remote_writes(api):
    """Assert that the Google account was not modified."""
    api.create_contact.assert_not_called()
    api.update_contact.assert_not_called()
    api.delete_contact.assert_not_called()
    api.create_contact_group.assert_not_called()
    api.update_contact_group.assert_not_called()
    api.delete_contact_group.assert_not_called()


# ==============================================================================
# SyncStats
# ==============================================================================


class TestSyncStats:
    """Tests for SyncStats."""

    def test_totals(self):
        """Test that totals add up the local and remote counters."""
        stats = SyncStats(
            groups_created_locally=1,
            contacts_updated_locally=2,
            contacts_deleted_remotely=3,
        )

        assert stats.total_local_changes == 3
        assert stats.total_remote_changes == 3
        assert stats.has_changes()

    def test_summary_without_changes(self):
        """Test the summary of a run that changed nothing."""
        summary = SyncStats(contacts_fetched=5).summary()

        assert "Sync Summary:" in summary
        assert "5 contacts" in summary
        assert "Everything is in sync." in summary

    def test_summary_with_changes(self):
        """Test the summary lists skipped groups and repaired entries."""
        summary = SyncStats(
            contacts_created_remotely=1,
            groups_skipped=2,
            change_log_entries_repaired=3,
        ).summary()

        assert "Everything is in sync." not in summary
        assert "Groups skipped (no etag): 2" in summary
        assert "Orphaned change log entries removed: 3" in summary


# ==============================================================================
# Remote pass
# ==============================================================================


class TestRemotePass:
    """Tests for applying remote state to the local address book."""

    def test_new_remote_items_are_created_locally(self, api, book):
        """Test that remote contacts and groups appear locally."""
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Friends")
        ]
        api.get_contacts.return_value = [remote_contact("people/c1", "e1", "Ann")]

        stats = SyncEngine(api, book).synchronize()

        group = book.get_item_by_resource_name("contactGroups/g")
        contact = book.get_item_by_resource_name("people/c1")
        assert isinstance(group, LocalContactGroup)
        assert group.list_name == "Friends"
        assert isinstance(contact, LocalContact)
        assert contact.first_name == "Ann"
        assert contact.etag == "e1"
        assert stats.groups_created_locally == 1
        assert stats.contacts_created_locally == 1
        assert book.get_items_from_change_log() == []

    def test_changed_etag_refreshes_local_item(self, api, book):
        """Test that a remote change overwrites the local card."""
        store_contact(book, "people/c1", "e1", first_name="Old")
        api.get_contacts.return_value = [remote_contact("people/c1", "e2", "New")]

        stats = SyncEngine(api, book).synchronize()

        contact = book.get_item_by_resource_name("people/c1")
        assert contact.first_name == "New"
        assert contact.etag == "e2"
        assert stats.contacts_updated_locally == 1

    def test_same_etag_leaves_local_item(self, api, book):
        """Test that an unchanged remote item is not rewritten."""
        store_contact(book, "people/c1", "e1", first_name="Local")
        api.get_contacts.return_value = [remote_contact("people/c1", "e1", "Remote")]

        stats = SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("people/c1").first_name == "Local"
        assert stats.contacts_updated_locally == 0
        assert not stats.has_changes()

    def test_remote_wins_over_local_modification(self, api, book):
        """Test that a remote change discards a concurrent local change."""
        contact = store_contact(book, "people/c1", "e1", first_name="Old")
        contact.first_name = "Local edit"
        book.modify_item(contact)
        api.get_contacts.return_value = [remote_contact("people/c1", "e2", "Remote")]

        SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("people/c1").first_name == "Remote"
        api.update_contact.assert_not_called()
        assert book.get_items_from_change_log() == []

    def test_locally_deleted_item_is_deleted_remotely(self, api, book):
        """Test that a local deletion removes the remote contact."""
        contact = store_contact(book, "people/c1", "e1")
        book.delete_item(contact)
        api.get_contacts.return_value = [remote_contact("people/c1", "e1")]

        stats = SyncEngine(api, book).synchronize()

        api.delete_contact.assert_called_once_with("people/c1")
        assert book.get_item_by_resource_name("people/c1") is None
        assert stats.contacts_deleted_remotely == 1
        assert book.get_items_from_change_log() == []

    def test_locally_deleted_group_is_deleted_remotely(self, api, book):
        """Test that a local list deletion removes the remote group."""
        group = store_group(book, "contactGroups/g", "g1", "Old")
        book.delete_item(group)
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Old")
        ]

        stats = SyncEngine(api, book).synchronize()

        api.delete_contact_group.assert_called_once_with("contactGroups/g")
        assert book.get_item_by_resource_name("contactGroups/g") is None
        assert stats.groups_deleted_remotely == 1

    def test_fake_email_for_contacts_without_email(self, api, book):
        """Test that placeholder addresses are created when enabled."""
        api.get_contacts.return_value = [remote_contact("people/c1", "e1", "Ann")]

        SyncEngine(api, book, SyncConfig(use_fake_email_addresses=True)).synchronize()

        contact = book.get_item_by_resource_name("people/c1")
        assert is_fake_email_address(contact.primary_email)


# ==============================================================================
# System groups
# ==============================================================================


class TestSystemGroups:
    """Tests for system contact group handling."""

    def test_system_groups_excluded_by_default(self, api, book):
        """Test that system groups are not synchronized."""
        api.get_contact_groups.return_value = [
            remote_group(
                "contactGroups/myContacts",
                "s1",
                "myContacts",
                GROUP_TYPE_SYSTEM_CONTACT_GROUP,
            ),
            remote_group("contactGroups/g", "g1", "Friends"),
        ]

        stats = SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("contactGroups/myContacts") is None
        assert book.get_item_by_resource_name("contactGroups/g") is not None
        assert stats.groups_fetched == 1

    def test_system_groups_included_when_enabled(self, api, book):
        """Test that system groups become local lists when included."""
        api.get_include_system_contact_groups.return_value = True
        api.get_contact_groups.return_value = [
            remote_group(
                "contactGroups/starred",
                "s1",
                "starred",
                GROUP_TYPE_SYSTEM_CONTACT_GROUP,
            )
        ]

        SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("contactGroups/starred") is not None


# ==============================================================================
# Local changes
# ==============================================================================


class TestLocalChanges:
    """Tests for pushing local additions and modifications."""

    def test_added_contact_is_created_remotely(self, api, book):
        """Test that a new local card is uploaded and bound to Google."""
        local = book.add_item(LocalContact(first_name="Ann"))
        api.create_contact.return_value = Contact(
            resource_name="people/new", etag="n1"
        )

        stats = SyncEngine(api, book).synchronize()

        sent = api.create_contact.call_args[0][0]
        assert sent.names == [Name(given_name="Ann")]
        assert sent.resource_name == ""
        stored = book.get_item(local.uid)
        assert stored.resource_name == "people/new"
        assert stored.etag == "n1"
        assert stats.contacts_created_remotely == 1
        assert stats.contacts_deleted_locally == 0
        assert book.get_items_from_change_log() == []

    def test_added_list_is_created_remotely(self, api, book):
        """Test that a new local list is uploaded as a contact group."""
        local = book.add_item(LocalContactGroup(list_name="Work"))
        api.create_contact_group.return_value = ContactGroup(
            resource_name="contactGroups/new", etag="g1", name="Work"
        )

        stats = SyncEngine(api, book).synchronize()

        assert api.create_contact_group.call_args[0][0].name == "Work"
        api.create_contact.assert_not_called()
        stored = book.get_item(local.uid)
        assert stored.resource_name == "contactGroups/new"
        assert stored.etag == "g1"
        assert stats.groups_created_remotely == 1

    def test_modified_contact_is_updated_remotely(self, api, book):
        """Test that a local edit is uploaded when Google is unchanged."""
        contact = store_contact(book, "people/c1", "e1", first_name="Old")
        contact.first_name = "New"
        book.modify_item(contact)
        api.get_contacts.return_value = [remote_contact("people/c1", "e1", "Old")]
        api.update_contact.return_value = Contact(resource_name="people/c1", etag="e2")

        stats = SyncEngine(api, book).synchronize()

        sent = api.update_contact.call_args[0][0]
        assert sent.resource_name == "people/c1"
        assert sent.etag == "e1"
        assert sent.names == [Name(given_name="New")]
        assert book.get_item_by_resource_name("people/c1").etag == "e2"
        assert stats.contacts_updated_remotely == 1
        assert book.get_items_from_change_log() == []

    def test_modified_contact_never_uploads_fake_email(self, api, book):
        """Test that placeholder addresses stay local."""
        api.get_contacts.return_value = [remote_contact("people/c1", "e1", "Ann")]
        config = SyncConfig(use_fake_email_addresses=True)
        SyncEngine(api, book, config).synchronize()

        contact = book.get_item_by_resource_name("people/c1")
        contact.nick_name = "Annie"
        book.modify_item(contact)
        api.update_contact.return_value = Contact(resource_name="people/c1", etag="e2")

        SyncEngine(api, book, config).synchronize()

        sent = api.update_contact.call_args[0][0]
        assert sent.email_addresses == []
        assert sent.nicknames == ["Annie"]

    def test_modified_list_is_renamed_remotely(self, api, book):
        """Test that a renamed local list renames the contact group."""
        group = store_group(book, "contactGroups/g", "g1", "Old")
        group.list_name = "New"
        book.modify_item(group)
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Old")
        ]
        api.update_contact_group.return_value = remote_group(
            "contactGroups/g", "g2", "New"
        )

        stats = SyncEngine(api, book).synchronize()

        sent = api.update_contact_group.call_args[0][0]
        assert sent.name == "New"
        assert sent.etag == "g1"
        assert book.get_item_by_resource_name("contactGroups/g").etag == "g2"
        assert stats.groups_updated_remotely == 1

    def test_modified_list_without_etag_is_skipped(self, api, book):
        """Test that a list without an etag is skipped with a warning."""
        group = book.add_item(
            LocalContactGroup(resource_name="contactGroups/x", list_name="X"),
            suppress_notification=True,
        )
        book.modify_item(group)
        logger = MagicMock()

        stats = SyncEngine(api, book, logger=logger).synchronize()

        api.update_contact_group.assert_not_called()
        logger.warning.assert_called_once()
        assert stats.groups_skipped == 1
        assert book.get_items_from_change_log() == []

    def test_lists_in_contact_changes_are_ignored(self, api, book):
        """Test that contact reconciliation never uploads lists."""
        added = book.add_item(LocalContactGroup(list_name="New"))
        modified = store_group(book, "contactGroups/g", "g1", "Old")
        modified.list_name = "Renamed"
        book.modify_item(modified)
        assert len(book.get_items_from_change_log()) == 2

        SyncEngine(api, book).synchronize_contacts()

        api.create_contact.assert_not_called()
        api.update_contact.assert_not_called()
        assert book.get_items_from_change_log() == []
        assert book.get_item(added.uid) is not None
        assert book.get_item(modified.uid).list_name == "Renamed"


# ==============================================================================
# Not found recovery
# ==============================================================================


class TestNotFoundRecovery:
    """Tests for items deleted remotely while being updated."""

    def test_contact_not_found_deletes_local_card(self, api, book):
        """Test that a vanished contact is deleted locally."""
        contact = store_contact(book, "people/c1", "e1", first_name="Old")
        contact.first_name = "New"
        book.modify_item(contact)
        api.get_contacts.return_value = [remote_contact("people/c1", "e1")]
        api.update_contact.side_effect = NotFoundError("gone")

        stats = SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("people/c1") is None
        assert stats.contacts_deleted_locally == 1
        assert book.get_items_from_change_log() == []

    def test_group_not_found_deletes_local_list(self, api, book):
        """Test that a vanished group is deleted locally."""
        group = store_group(book, "contactGroups/g", "g1", "Old")
        group.list_name = "New"
        book.modify_item(group)
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Old")
        ]
        api.update_contact_group.side_effect = NotFoundError("gone")

        stats = SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("contactGroups/g") is None
        assert stats.groups_deleted_locally == 1

    def test_other_errors_abort_the_run(self, api, book):
        """Test that errors other than not found propagate."""
        contact = store_contact(book, "people/c1", "e1")
        contact.first_name = "New"
        book.modify_item(contact)
        api.get_contacts.return_value = [remote_contact("people/c1", "e1")]
        api.update_contact.side_effect = PeopleAPIError("quota")

        with pytest.raises(PeopleAPIError, match="quota"):
            SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("people/c1") is not None
        assert book.get_modified_items_from_change_log() == ["people/c1"]


# ==============================================================================
# Tombstones
# ==============================================================================


class TestTombstoneSweep:
    """Tests for deleting local items that no longer exist remotely."""

    def test_remotely_deleted_contact_is_deleted_locally(self, api, book):
        """Test that contacts missing from Google are removed."""
        store_contact(book, "people/gone", "e1")
        store_contact(book, "people/kept", "e1")
        api.get_contacts.return_value = [remote_contact("people/kept", "e1")]

        stats = SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("people/gone") is None
        assert book.get_item_by_resource_name("people/kept") is not None
        assert stats.contacts_deleted_locally == 1

    def test_remotely_deleted_group_is_deleted_locally(self, api, book):
        """Test that lists whose group is gone are removed."""
        store_group(book, "contactGroups/gone", "g1", "Gone")

        stats = SyncEngine(api, book).synchronize()

        assert book.get_item_by_resource_name("contactGroups/gone") is None
        assert stats.groups_deleted_locally == 1

    def test_second_run_is_a_no_op(self, api, book):
        """Test that synchronizing twice without changes changes nothing."""
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Friends")
        ]
        api.get_contacts.return_value = [
            remote_contact("people/c1", "e1", "Ann", ["contactGroups/g"])
        ]
        SyncEngine(api, book).synchronize()

        stats = SyncEngine(api, book).synchronize()

        assert not stats.has_changes()
        assert len(book.get_all_items()) == 2


# ==============================================================================
# Read-only mode
# ==============================================================================


class TestReadOnlyMode:
    """Tests for read-only synchronization."""

    def test_read_only_never_writes_remotely(self, api, book):
        """Test that local changes are discarded and Google is untouched."""
        modified = store_contact(book, "people/c1", "e1", first_name="Old")
        modified.first_name = "Local edit"
        book.modify_item(modified)
        deleted = store_contact(book, "people/c2", "e1", first_name="Bob")
        book.delete_item(deleted)
        added = book.add_item(LocalContact(first_name="New"))
        added_list = book.add_item(LocalContactGroup(list_name="New list"))
        renamed = store_group(book, "contactGroups/g", "g1", "Old")
        renamed.list_name = "Renamed"
        book.modify_item(renamed)

        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Friends")
        ]
        api.get_contacts.return_value = [
            remote_contact("people/c1", "e1", "Remote"),
            remote_contact("people/c2", "e1", "Bob"),
        ]

        SyncEngine(api, book, SyncConfig(read_only_mode=True)).synchronize()

        assert_no_remote_writes(api)
        assert book.get_item_by_resource_name("people/c1").first_name == "Remote"
        assert book.get_item_by_resource_name("contactGroups/g").list_name == "Friends"
        assert book.get_item(added.uid) is None
        assert book.get_item(added_list.uid) is None
        assert book.get_items_from_change_log() == []

    def test_read_only_restores_locally_deleted_items_next_run(self, api, book):
        """Test that a local deletion is undone by the following run."""
        deleted = store_contact(book, "people/c2", "e1", first_name="Bob")
        book.delete_item(deleted)
        api.get_contacts.return_value = [remote_contact("people/c2", "e1", "Bob")]
        config = SyncConfig(read_only_mode=True)

        SyncEngine(api, book, config).synchronize()
        SyncEngine(api, book, config).synchronize()

        api.delete_contact.assert_not_called()
        assert book.get_item_by_resource_name("people/c2").first_name == "Bob"


# ==============================================================================
# Memberships
# ==============================================================================


class TestMemberships:
    """Tests for rebuilding local list members."""

    def test_members_follow_contact_memberships(self, api, book):
        """Test that a list contains the contacts referencing its group."""
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Friends")
        ]
        api.get_contacts.return_value = [
            remote_contact("people/c1", "e1", "Ann", ["contactGroups/g"]),
            remote_contact("people/c2", "e1", "Bob"),
            remote_contact("people/c3", "e1", "Cid", ["contactGroups/g"]),
        ]

        stats = SyncEngine(api, book).synchronize()

        group = book.get_item_by_resource_name("contactGroups/g")
        members = book.get_list_members(group)
        assert [m.resource_name for m in members] == ["people/c1", "people/c3"]
        assert stats.memberships_written == 2

    def test_stale_members_are_removed(self, api, book):
        """Test that contacts that left a group leave the list."""
        group = store_group(book, "contactGroups/g", "g1", "Friends")
        former = store_contact(book, "people/c1", "e1")
        book.add_list_member(group, former)
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Friends")
        ]
        api.get_contacts.return_value = [remote_contact("people/c1", "e1")]

        SyncEngine(api, book).synchronize()

        assert book.get_list_members(group) == []

    def test_created_contact_memberships_are_applied(self, api, book):
        """Test that memberships returned on creation are materialized."""
        api.get_contact_groups.return_value = [
            remote_group("contactGroups/g", "g1", "Friends")
        ]
        local = book.add_item(LocalContact(first_name="Ann"))
        api.create_contact.return_value = Contact(
            resource_name="people/new",
            etag="n1",
            memberships=["contactGroups/g"],
        )

        SyncEngine(api, book).synchronize()

        group = book.get_item_by_resource_name("contactGroups/g")
        assert [m.uid for m in book.get_list_members(group)] == [local.uid]


# ==============================================================================
# Change log repair
# ==============================================================================


class TestChangeLogRepair:
    """Tests for removing orphaned change log entries."""

    def test_orphaned_entry_is_removed(self, api, book):
        """Test that entries of items that no longer exist are dropped."""
        contact = store_contact(book, "people/orphan", "e1")
        book.modify_item(contact)
        book.delete_item(contact, suppress_notification=True)

        stats = SyncEngine(api, book).synchronize()

        assert book.get_items_from_change_log() == []
        assert stats.change_log_entries_repaired == 1

    def test_repair_keeps_entries_of_existing_items(self, api, book):
        """Test that repair only touches orphaned entries."""
        contact = store_contact(book, "people/c1", "e1")
        book.modify_item(contact)

        engine = SyncEngine(api, book)

        assert engine.repair_change_log() == 0
        assert book.get_modified_items_from_change_log() == ["people/c1"]

    def test_leftover_deleted_entry_is_removed(self, api, book):
        """Test that a deletion of an item Google no longer has is dropped."""
        contact = store_contact(book, "people/c1", "e1")
        book.delete_item(contact)

        stats = SyncEngine(api, book).synchronize()

        api.delete_contact.assert_not_called()
        assert book.get_items_from_change_log() == []
        assert stats.change_log_entries_repaired == 1
