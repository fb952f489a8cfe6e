"""
Tests for the local address book storage module.

Tests the SQLite address book: item persistence, property lookup,
list membership and change log bookkeeping.
"""

import sqlite3

import pytest

from addressbook_sync.storage import (
    ETAG_PROPERTY,
    RESOURCE_NAME_PROPERTY,
    AddressBook,
    ChangeLogEntry,
    LocalContact,
    LocalContactGroup,
)
from addressbook_sync.storage.addressbook import (
    LOCAL_RESOURCE_NAME_PREFIX,
    STATUS_ADDED,
    STATUS_DELETED,
    STATUS_MODIFIED,
)


@pytest.fixture
def book():
    """Create an initialized in-memory address book."""
    address_book = AddressBook(":memory:")
    address_book.initialize()
    return address_book


def make_contact(resource_name="people/c1", **kwargs):
    """Create a local contact bound to a remote resource."""
    return LocalContact(resource_name=resource_name, etag="e1", **kwargs)


class TestAddressBookInitialization:
    """Tests for address book initialization."""

    def test_initialize_creates_tables(self, book):
        """Test that initialize creates the items, list and change log tables."""
        with book.connection() as conn:
            cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            tables = {row["name"] for row in cursor.fetchall()}

        assert {"items", "list_members", "changelog"} <= tables

    def test_initialize_is_idempotent(self, book):
        """Test that calling initialize twice does not fail."""
        book.initialize()

    def test_file_database_persists(self, tmp_path):
        """Test that a file database keeps items across instances."""
        db_path = str(tmp_path / "book.db")
        first = AddressBook(db_path)
        first.initialize()
        first.add_item(make_contact(first_name="Ann"))

        second = AddressBook(db_path)
        second.initialize()

        items = second.get_all_items()
        assert len(items) == 1
        assert items[0].first_name == "Ann"

    def test_change_log_rejects_unknown_status(self, book):
        """Test that the change log only accepts the three statuses."""
        with pytest.raises(sqlite3.IntegrityError):
            with book.connection() as conn:
                conn.execute(
                    "INSERT INTO changelog (item_id, status) VALUES (?, ?)",
                    ("people/c1", "renamed"),
                )


class TestItemOperations:
    """Tests for adding, modifying, deleting and reading items."""

    def test_create_new_card_and_list(self, book):
        """Test that new items get a uid and the right kind."""
        card = book.create_new_card()
        group = book.create_new_list()

        assert card.uid
        assert group.uid
        assert card.uid != group.uid
        assert not card.is_list
        assert group.is_list

    def test_add_and_get_item(self, book):
        """Test that a stored contact reads back unchanged."""
        contact = make_contact(
            first_name="John",
            work_phone="555",
            extra_properties={"PopularityIndex": "7"},
        )

        book.add_item(contact)
        stored = book.get_item(contact.uid)

        assert stored == contact
        assert isinstance(stored, LocalContact)

    def test_add_list_item(self, book):
        """Test that lists are stored and read back as lists."""
        group = LocalContactGroup(resource_name="contactGroups/g1", list_name="Work")

        book.add_item(group)
        stored = book.get_item(group.uid)

        assert isinstance(stored, LocalContactGroup)
        assert stored.list_name == "Work"

    def test_add_item_assigns_uid_and_local_resource_name(self, book):
        """Test that items created locally get a placeholder resource name."""
        contact = LocalContact(first_name="New")

        book.add_item(contact)

        assert contact.uid
        assert contact.resource_name.startswith(LOCAL_RESOURCE_NAME_PREFIX)

    def test_modify_item(self, book):
        """Test that modifications are persisted."""
        contact = book.add_item(make_contact(first_name="Old"))

        contact.first_name = "New"
        book.modify_item(contact)

        assert book.get_item(contact.uid).first_name == "New"

    def test_modify_missing_item_raises(self, book):
        """Test that modifying an unknown item raises KeyError."""
        with pytest.raises(KeyError):
            book.modify_item(LocalContact(uid="missing"))

    def test_delete_item(self, book):
        """Test that deleted items are gone."""
        contact = book.add_item(make_contact())

        assert book.delete_item(contact) is True
        assert book.get_item(contact.uid) is None
        assert book.delete_item(contact) is False

    def test_empty_slots_not_stored(self, book):
        """Test that empty fields are omitted from the stored properties."""
        contact = book.add_item(make_contact(first_name="Ann", last_name=""))

        with book.connection() as conn:
            row = conn.execute(
                "SELECT properties FROM items WHERE uid = ?", (contact.uid,)
            ).fetchone()

        assert '"LastName"' not in row["properties"]
        assert '"FirstName"' in row["properties"]

    def test_get_all_items_in_insertion_order(self, book):
        """Test that items are returned oldest first."""
        first = book.add_item(make_contact("people/c1"))
        second = book.add_item(LocalContactGroup(resource_name="contactGroups/g1"))
        third = book.add_item(make_contact("people/c2"))

        assert [item.uid for item in book.get_all_items()] == [
            first.uid,
            second.uid,
            third.uid,
        ]

    def test_get_item_count(self, book):
        """Test counting contacts and lists."""
        book.add_item(make_contact("people/c1"))
        book.add_item(make_contact("people/c2"))
        book.add_item(LocalContactGroup(resource_name="contactGroups/g1"))

        assert book.get_item_count() == {"contacts": 2, "lists": 1}

    def test_get_item_count_empty(self, book):
        """Test counting an empty address book."""
        assert book.get_item_count() == {"contacts": 0, "lists": 0}


class TestPropertyLookup:
    """Tests for get_item_from_property."""

    def test_lookup_by_resource_name(self, book):
        """Test finding an item by its remote resource name."""
        contact = book.add_item(make_contact("people/c42"))

        found = book.get_item_from_property(RESOURCE_NAME_PROPERTY, "people/c42")

        assert found.uid == contact.uid
        assert book.get_item_by_resource_name("people/c42").uid == contact.uid

    def test_lookup_by_etag(self, book):
        """Test finding an item by any stored property."""
        contact = book.add_item(make_contact("people/c1"))

        assert book.get_item_from_property(ETAG_PROPERTY, "e1").uid == contact.uid

    def test_lookup_unknown_value(self, book):
        """Test that an unknown value finds nothing."""
        book.add_item(make_contact("people/c1"))

        assert book.get_item_by_resource_name("people/c99") is None

    def test_lookup_empty_value(self, book):
        """Test that empty values never match."""
        book.add_item(make_contact("people/c1"))

        assert book.get_item_by_resource_name("") is None
        assert book.get_item_by_resource_name(None) is None

    def test_lookup_returns_first_match(self, book):
        """Test that duplicates resolve to the oldest item."""
        first = book.add_item(make_contact("people/c1", first_name="First"))
        book.add_item(make_contact("people/c1", first_name="Second"))

        assert book.get_item_by_resource_name("people/c1").uid == first.uid

    def test_lookup_extra_property(self, book):
        """Test that properties outside the model are searchable too."""
        contact = book.add_item(
            make_contact(extra_properties={"PreferMailFormat": "html"})
        )

        found = book.get_item_from_property("PreferMailFormat", "html")

        assert found.uid == contact.uid


class TestListMembers:
    """Tests for list membership."""

    def test_add_members_in_order(self, book):
        """Test that members are returned in insertion order."""
        group = book.add_item(LocalContactGroup(resource_name="contactGroups/g1"))
        second = book.add_item(make_contact("people/c2"))
        first = book.add_item(make_contact("people/c1"))

        book.add_list_member(group, second)
        book.add_list_member(group, first)

        assert [m.uid for m in book.get_list_members(group)] == [
            second.uid,
            first.uid,
        ]

    def test_add_member_twice(self, book):
        """Test that a contact is only added to a list once."""
        group = book.add_item(LocalContactGroup(resource_name="contactGroups/g1"))
        contact = book.add_item(make_contact())

        assert book.add_list_member(group, contact) is True
        assert book.add_list_member(group, contact) is False
        assert len(book.get_list_members(group)) == 1

    def test_clear_list_members(self, book):
        """Test that clearing a list removes every member but no contact."""
        group = book.add_item(LocalContactGroup(resource_name="contactGroups/g1"))
        contact = book.add_item(make_contact())
        book.add_list_member(group, contact)

        assert book.clear_list_members(group) == 1
        assert book.get_list_members(group) == []
        assert book.get_item(contact.uid) is not None

    def test_deleting_contact_removes_membership(self, book):
        """Test that deleted contacts leave their lists."""
        group = book.add_item(LocalContactGroup(resource_name="contactGroups/g1"))
        contact = book.add_item(make_contact())
        book.add_list_member(group, contact)

        book.delete_item(contact)

        assert book.get_list_members(group) == []


class TestChangeLog:
    """Tests for change log bookkeeping."""

    def test_add_records_added(self, book):
        """Test that a user addition is recorded."""
        contact = book.add_item(make_contact())

        assert book.get_added_items_from_change_log() == [contact.resource_name]

    def test_suppressed_writes_not_recorded(self, book):
        """Test that the synchronizer's own writes are not recorded."""
        contact = book.add_item(make_contact(), suppress_notification=True)
        contact.first_name = "Changed"
        book.modify_item(contact, suppress_notification=True)
        book.delete_item(contact, suppress_notification=True)

        assert book.get_items_from_change_log() == []

    def test_modify_records_modified(self, book):
        """Test that a user modification is recorded."""
        contact = book.add_item(make_contact(), suppress_notification=True)

        book.modify_item(contact)

        assert book.get_modified_items_from_change_log() == ["people/c1"]

    def test_delete_records_deleted(self, book):
        """Test that a user deletion is recorded."""
        contact = book.add_item(make_contact(), suppress_notification=True)

        book.delete_item(contact)

        assert book.get_deleted_items_from_change_log() == ["people/c1"]

    def test_modified_after_added_stays_added(self, book):
        """Test that modifying a new item keeps it in the added set."""
        contact = book.add_item(LocalContact(first_name="New"))

        contact.first_name = "Newer"
        book.modify_item(contact)

        assert book.get_added_items_from_change_log() == [contact.resource_name]
        assert book.get_modified_items_from_change_log() == []

    def test_deleted_after_added_is_forgotten(self, book):
        """Test that an item added and deleted before sync leaves no entry."""
        contact = book.add_item(LocalContact(first_name="New"))

        book.delete_item(contact)

        assert book.get_items_from_change_log() == []

    def test_deleted_after_modified(self, book):
        """Test that a later deletion replaces a modification."""
        contact = book.add_item(make_contact(), suppress_notification=True)
        book.modify_item(contact)

        book.delete_item(contact)

        assert book.get_items_from_change_log() == [
            ChangeLogEntry("people/c1", STATUS_DELETED)
        ]

    def test_remove_item_from_change_log(self, book):
        """Test removing a single entry."""
        contact = book.add_item(make_contact(), suppress_notification=True)
        book.modify_item(contact)

        assert book.remove_item_from_change_log("people/c1") is True
        assert book.remove_item_from_change_log("people/c1") is False
        assert book.remove_item_from_change_log(None) is False

    def test_clear_changelog(self, book):
        """Test discarding every entry."""
        book.add_item(make_contact("people/c1"))
        book.add_item(make_contact("people/c2"))

        assert book.clear_changelog() == 2
        assert book.get_items_from_change_log() == []

    def test_change_log_counts(self, book):
        """Test counting entries per status."""
        added = book.add_item(make_contact("people/c1"))
        modified = book.add_item(make_contact("people/c2"), suppress_notification=True)
        deleted = book.add_item(make_contact("people/c3"), suppress_notification=True)
        book.modify_item(modified)
        book.delete_item(deleted)

        assert added.resource_name == "people/c1"
        assert book.get_change_log_counts() == {
            STATUS_ADDED: 1,
            STATUS_MODIFIED: 1,
            STATUS_DELETED: 1,
        }


class TestLocalItems:
    """Tests for the local item models."""

    def test_property_round_trip(self):
        """Test that properties survive serialization."""
        contact = LocalContact(
            uid="u1",
            resource_name="people/c1",
            etag="e1",
            first_name="Ann",
            skype="ann.s",
            extra_properties={"LastModifiedDate": "0"},
        )

        restored = LocalContact.from_properties("u1", contact.to_properties())

        assert restored == contact

    def test_property_names(self):
        """Test that fields are stored under the local property names."""
        properties = LocalContact(
            resource_name="people/c1", cellular_number="555", jabber_id="j@x"
        ).to_properties()

        assert properties == {
            RESOURCE_NAME_PROPERTY: "people/c1",
            "CellularNumber": "555",
            "_JabberId": "j@x",
        }

    def test_clear_managed_fields_keeps_binding(self):
        """Test that clearing keeps the remote binding and extra properties."""
        group = LocalContactGroup(
            uid="u1",
            resource_name="contactGroups/g1",
            etag="g1",
            list_name="Work",
            extra_properties={"Description": "x"},
        )

        group.clear_managed_fields()

        assert group.list_name is None
        assert group.resource_name == "contactGroups/g1"
        assert group.etag == "g1"
        assert group.extra_properties == {"Description": "x"}

    def test_get_property(self):
        """Test reading modelled and extra properties by name."""
        contact = LocalContact(first_name="Ann", extra_properties={"Other": "1"})

        assert contact.get_property("FirstName") == "Ann"
        assert contact.get_property("Other") == "1"
        assert contact.get_property("Missing") is None
