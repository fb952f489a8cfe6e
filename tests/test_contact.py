"""
Unit tests for the Contact model.

Tests conversion from People API person resources, conversion to the
create/update payload and the membership index built from contacts.
"""

from addressbook_sync.sync.contact import (
    Contact,
    EmailAddress,
    Event,
    Name,
    PartialDate,
    PhoneNumber,
)
from addressbook_sync.sync.membership import MembershipIndex


class TestContactFromApiResponse:
    """Tests for Contact.from_api_response."""

    def test_full_person(self):
        """Test parsing a person with every synchronized field group."""
        person = {
            "resourceName": "people/c123",
            "etag": "etag-1",
            "names": [
                {"givenName": "John", "familyName": "Doe", "displayName": "John Doe"}
            ],
            "nicknames": [{"value": "JD"}],
            "emailAddresses": [{"value": "john@example.com", "type": "home"}],
            "phoneNumbers": [{"value": "+1555", "type": "mobile"}],
            "addresses": [
                {
                    "streetAddress": "1 Main St",
                    "city": "Springfield",
                    "postalCode": "12345",
                    "type": "home",
                }
            ],
            "organizations": [{"name": "Acme", "title": "CEO"}],
            "urls": [{"value": "https://example.com", "type": "blog"}],
            "birthdays": [{"date": {"month": 4, "day": 1}}],
            "events": [{"date": {"year": 2010, "month": 6, "day": 5}, "type": "anniversary"}],
            "userDefined": [{"key": "team", "value": "blue"}],
            "imClients": [{"username": "jd", "protocol": "skype"}],
            "biographies": [{"value": "Notes here", "contentType": "TEXT_PLAIN"}],
            "memberships": [
                {
                    "contactGroupMembership": {
                        "contactGroupResourceName": "contactGroups/friends"
                    }
                },
                {"domainMembership": {"inViewerDomain": True}},
            ],
        }

        contact = Contact.from_api_response(person)

        assert contact.resource_name == "people/c123"
        assert contact.etag == "etag-1"
        assert contact.names == [Name("John", "Doe", "John Doe")]
        assert contact.display_name == "John Doe"
        assert contact.nicknames == ["JD"]
        assert contact.email_addresses == [EmailAddress("john@example.com", "home")]
        assert contact.phone_numbers == [PhoneNumber("+1555", "mobile")]
        assert contact.addresses[0].street_address == "1 Main St"
        assert contact.addresses[0].region is None
        assert contact.organizations[0].title == "CEO"
        assert contact.urls[0].type == "blog"
        assert contact.birthdays == [PartialDate(None, 4, 1)]
        assert contact.events == [Event(PartialDate(2010, 6, 5), "anniversary")]
        assert contact.user_defined[0].key == "team"
        assert contact.im_clients[0].protocol == "skype"
        assert contact.biographies == ["Notes here"]
        assert contact.memberships == ["contactGroups/friends"]

    def test_minimal_person(self):
        """Test parsing a person with only a resource name."""
        contact = Contact.from_api_response({"resourceName": "people/c1"})

        assert contact.resource_name == "people/c1"
        assert contact.etag == ""
        assert contact.names == []
        assert contact.memberships == []
        assert contact.display_name == "-"

    def test_zero_date_components_are_missing(self):
        """Test that zero year, month or day values mean "not set"."""
        contact = Contact.from_api_response(
            {"birthdays": [{"date": {"year": 0, "month": 3, "day": 9}}]}
        )

        assert contact.birthdays == [PartialDate(None, 3, 9)]


class TestContactToApiFormat:
    """Tests for Contact.to_api_format."""

    def test_includes_binding_when_set(self):
        """Test that resourceName and etag are sent for updates."""
        body = Contact(resource_name="people/c1", etag="e1").to_api_format()

        assert body == {"resourceName": "people/c1", "etag": "e1"}

    def test_omits_binding_when_unset(self):
        """Test that new contacts are sent without resourceName or etag."""
        assert Contact().to_api_format() == {}

    def test_display_name_is_output_only(self):
        """Test that displayName is never sent."""
        contact = Contact(names=[Name("John", "Doe", "John Doe")])

        assert contact.to_api_format()["names"] == [
            {"givenName": "John", "familyName": "Doe"}
        ]

    def test_name_without_parts_is_dropped(self):
        """Test that a name with only a display name is not sent."""
        contact = Contact(names=[Name(display_name="Computed")])

        assert "names" not in contact.to_api_format()

    def test_biographies_are_plain_text(self):
        """Test that notes are sent as plain text biographies."""
        body = Contact(biographies=["Hello"]).to_api_format()

        assert body["biographies"] == [{"value": "Hello", "contentType": "TEXT_PLAIN"}]

    def test_partial_dates_omit_missing_components(self):
        """Test that missing date components are left out."""
        contact = Contact(
            birthdays=[PartialDate(month=2, day=29)],
            events=[Event(PartialDate(year=2000), "anniversary")],
        )

        body = contact.to_api_format()

        assert body["birthdays"] == [{"date": {"month": 2, "day": 29}}]
        assert body["events"] == [{"date": {"year": 2000}, "type": "anniversary"}]

    def test_memberships_not_sent(self):
        """Test that memberships are never part of the payload."""
        contact = Contact(memberships=["contactGroups/a"])

        assert "memberships" not in contact.to_api_format()

    def test_clear_field_groups(self):
        """Test that clearing keeps the binding and memberships."""
        contact = Contact(
            resource_name="people/c1",
            etag="e1",
            phone_numbers=[PhoneNumber("1")],
            biographies=["x"],
            memberships=["contactGroups/a"],
        )

        contact.clear_field_groups()

        assert contact.to_api_format() == {"resourceName": "people/c1", "etag": "e1"}
        assert contact.memberships == ["contactGroups/a"]


class TestMembershipIndex:
    """Tests for MembershipIndex."""

    def test_fold_contact(self):
        """Test that contact memberships are folded per group."""
        index = MembershipIndex()

        index.fold_contact(
            Contact(resource_name="people/c1", memberships=["contactGroups/a"])
        )
        index.fold_contact(
            Contact(
                resource_name="people/c2",
                memberships=["contactGroups/a", "contactGroups/b"],
            )
        )

        assert index.members_of("contactGroups/a") == ["people/c1", "people/c2"]
        assert index.members_of("contactGroups/b") == ["people/c2"]
        assert len(index) == 2
        assert "contactGroups/a" in index
        assert sorted(index.groups()) == ["contactGroups/a", "contactGroups/b"]

    def test_duplicates_keep_first_position(self):
        """Test that a contact is recorded once per group."""
        index = MembershipIndex()

        index.add("contactGroups/a", "people/c1")
        index.add("contactGroups/a", "people/c2")
        index.add("contactGroups/a", "people/c1")

        assert index.members_of("contactGroups/a") == ["people/c1", "people/c2"]

    def test_unknown_group_is_empty(self):
        """Test that unknown groups have no members."""
        assert MembershipIndex().members_of("contactGroups/x") == []

    def test_contact_without_resource_name_is_ignored(self):
        """Test that unbound contacts are not folded."""
        index = MembershipIndex()

        index.fold_contact(Contact(memberships=["contactGroups/a"]))

        assert len(index) == 0
