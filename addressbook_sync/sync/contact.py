"""
Remote contact data model for Google People API synchronization.

Provides a typed Contact representation with methods for:
- Converting from Google People API person resources
- Converting back to the People API create/update payload format

Every repeatable People API field group is kept as a list of small
records so that the field mapper can apply its per-type slot rules.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

# Field groups managed by the synchronizer. Used both as the read mask
# and as the update mask, so memberships are read but never written.
PERSON_FIELD_GROUPS = (
    "names",
    "nicknames",
    "emailAddresses",
    "phoneNumbers",
    "addresses",
    "organizations",
    "urls",
    "birthdays",
    "events",
    "userDefined",
    "imClients",
    "biographies",
)


@dataclass
class Name:
    """A person's name. display_name is populated by Google only."""

    given_name: Optional[str] = None
    family_name: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class EmailAddress:
    value: Optional[str] = None
    type: Optional[str] = None


@dataclass
class PhoneNumber:
    value: Optional[str] = None
    type: Optional[str] = None


@dataclass
class Address:
    street_address: Optional[str] = None
    extended_address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    type: Optional[str] = None


@dataclass
class Organization:
    name: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None


@dataclass
class Url:
    value: Optional[str] = None
    type: Optional[str] = None


@dataclass
class PartialDate:
    """
    A calendar date whose components are independently optional.

    Google allows birthdays without a year and, less commonly, dates
    without a day or month.
    """

    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None

    def is_empty(self) -> bool:
        return not (self.year or self.month or self.day)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "PartialDate":
        return cls(
            year=data.get("year") or None,
            month=data.get("month") or None,
            day=data.get("day") or None,
        )

    def to_api_format(self) -> dict[str, int]:
        date: dict[str, int] = {}
        if self.year:
            date["year"] = self.year
        if self.month:
            date["month"] = self.month
        if self.day:
            date["day"] = self.day
        return date


@dataclass
class Event:
    date: PartialDate = field(default_factory=PartialDate)
    type: Optional[str] = None


@dataclass
class UserDefined:
    key: Optional[str] = None
    value: Optional[str] = None


@dataclass
class ImClient:
    username: Optional[str] = None
    protocol: Optional[str] = None


def _drop_empty(data: dict[str, Any]) -> dict[str, Any]:
    """Remove keys whose values are None or empty strings."""
    return {k: v for k, v in data.items() if v not in (None, "")}


@dataclass
class Contact:
    """
    Remote contact as returned by (and sent to) the People API.

    Attributes:
        resource_name: Google's unique ID (e.g., "people/c12345")
        etag: Concurrency token, changes on every remote mutation
        names: Name records (only the first one is synchronized)
        nicknames: Nickname values
        email_addresses: Typed email addresses
        phone_numbers: Typed phone numbers
        addresses: Typed postal addresses
        organizations: Organization records
        urls: Typed web pages
        birthdays: Birthday dates
        events: Typed events (anniversaries among them)
        user_defined: Key/value custom fields
        im_clients: Instant messaging handles keyed by protocol
        biographies: Notes
        memberships: Contact group resource names the contact belongs to

    Usage:
        contact = Contact.from_api_response(person)
        body = contact.to_api_format()
    """

    resource_name: str = ""
    etag: str = ""

    names: list[Name] = field(default_factory=list)
    nicknames: list[str] = field(default_factory=list)
    email_addresses: list[EmailAddress] = field(default_factory=list)
    phone_numbers: list[PhoneNumber] = field(default_factory=list)
    addresses: list[Address] = field(default_factory=list)
    organizations: list[Organization] = field(default_factory=list)
    urls: list[Url] = field(default_factory=list)
    birthdays: list[PartialDate] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    user_defined: list[UserDefined] = field(default_factory=list)
    im_clients: list[ImClient] = field(default_factory=list)
    biographies: list[str] = field(default_factory=list)

    # Read-only for the synchronizer; folded into the membership index
    memberships: list[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Display name for logging, "-" when the contact has none."""
        if self.names and self.names[0].display_name:
            return self.names[0].display_name
        return "-"

    def clear_field_groups(self) -> None:
        """Reset every field group managed by the synchronizer."""
        self.names = []
        self.nicknames = []
        self.email_addresses = []
        self.phone_numbers = []
        self.addresses = []
        self.organizations = []
        self.urls = []
        self.birthdays = []
        self.events = []
        self.user_defined = []
        self.im_clients = []
        self.biographies = []

    @classmethod
    def from_api_response(cls, person: dict[str, Any]) -> "Contact":
        """
        Create a Contact from a Google People API person resource.

        Args:
            person: Dictionary from Google People API containing contact data

        Returns:
            Contact instance populated from the API response

        Example API response structure::

            {
                'resourceName': 'people/c12345',
                'etag': '%EgUBAi43PRoEAQIFByIMR0xWb3',
                'names': [{'givenName': 'John', 'familyName': 'Doe',
                           'displayName': 'John Doe'}],
                'phoneNumbers': [{'value': '+1234567890', 'type': 'work'}],
                'memberships': [{'contactGroupMembership': {
                    'contactGroupResourceName': 'contactGroups/abc'}}]
            }
        """
        memberships = []
        for membership in person.get("memberships", []):
            group_membership = membership.get("contactGroupMembership") or {}
            group_resource = group_membership.get("contactGroupResourceName")
            if group_resource:
                memberships.append(group_resource)

        return cls(
            resource_name=person.get("resourceName", ""),
            etag=person.get("etag", ""),
            names=[
                Name(
                    given_name=n.get("givenName"),
                    family_name=n.get("familyName"),
                    display_name=n.get("displayName"),
                )
                for n in person.get("names", [])
            ],
            nicknames=[n.get("value", "") for n in person.get("nicknames", [])],
            email_addresses=[
                EmailAddress(value=e.get("value"), type=e.get("type"))
                for e in person.get("emailAddresses", [])
            ],
            phone_numbers=[
                PhoneNumber(value=p.get("value"), type=p.get("type"))
                for p in person.get("phoneNumbers", [])
            ],
            addresses=[
                Address(
                    street_address=a.get("streetAddress"),
                    extended_address=a.get("extendedAddress"),
                    city=a.get("city"),
                    region=a.get("region"),
                    postal_code=a.get("postalCode"),
                    country=a.get("country"),
                    type=a.get("type"),
                )
                for a in person.get("addresses", [])
            ],
            organizations=[
                Organization(
                    name=o.get("name"),
                    title=o.get("title"),
                    department=o.get("department"),
                )
                for o in person.get("organizations", [])
            ],
            urls=[
                Url(value=u.get("value"), type=u.get("type"))
                for u in person.get("urls", [])
            ],
            birthdays=[
                PartialDate.from_api_response(b.get("date") or {})
                for b in person.get("birthdays", [])
            ],
            events=[
                Event(
                    date=PartialDate.from_api_response(e.get("date") or {}),
                    type=e.get("type"),
                )
                for e in person.get("events", [])
            ],
            user_defined=[
                UserDefined(key=u.get("key"), value=u.get("value"))
                for u in person.get("userDefined", [])
            ],
            im_clients=[
                ImClient(username=i.get("username"), protocol=i.get("protocol"))
                for i in person.get("imClients", [])
            ],
            biographies=[b.get("value", "") for b in person.get("biographies", [])],
            memberships=memberships,
        )

    def to_api_format(self) -> dict[str, Any]:
        """
        Convert Contact to Google People API format for create/update operations.

        Returns:
            Dictionary in Google People API format

        Note:
            - Includes resourceName and etag only when set (updates)
            - names[].displayName is output-only and never included
            - Empty field groups are omitted
            - memberships are not written by the synchronizer
        """
        person: dict[str, Any] = {}

        if self.resource_name:
            person["resourceName"] = self.resource_name
        if self.etag:
            person["etag"] = self.etag

        names = [
            _drop_empty({"givenName": n.given_name, "familyName": n.family_name})
            for n in self.names
        ]
        names = [n for n in names if n]
        if names:
            person["names"] = names

        if self.nicknames:
            person["nicknames"] = [{"value": n} for n in self.nicknames]

        if self.email_addresses:
            person["emailAddresses"] = [
                _drop_empty({"value": e.value, "type": e.type})
                for e in self.email_addresses
            ]

        if self.phone_numbers:
            person["phoneNumbers"] = [
                _drop_empty({"value": p.value, "type": p.type})
                for p in self.phone_numbers
            ]

        if self.addresses:
            person["addresses"] = [
                _drop_empty(
                    {
                        "streetAddress": a.street_address,
                        "extendedAddress": a.extended_address,
                        "city": a.city,
                        "region": a.region,
                        "postalCode": a.postal_code,
                        "country": a.country,
                        "type": a.type,
                    }
                )
                for a in self.addresses
            ]

        if self.organizations:
            person["organizations"] = [
                _drop_empty(
                    {"name": o.name, "title": o.title, "department": o.department}
                )
                for o in self.organizations
            ]

        if self.urls:
            person["urls"] = [
                _drop_empty({"value": u.value, "type": u.type}) for u in self.urls
            ]

        if self.birthdays:
            person["birthdays"] = [{"date": b.to_api_format()} for b in self.birthdays]

        if self.events:
            person["events"] = [
                _drop_empty({"date": e.date.to_api_format(), "type": e.type})
                for e in self.events
            ]

        if self.user_defined:
            person["userDefined"] = [
                _drop_empty({"key": u.key, "value": u.value})
                for u in self.user_defined
            ]

        if self.im_clients:
            person["imClients"] = [
                _drop_empty({"username": i.username, "protocol": i.protocol})
                for i in self.im_clients
            ]

        if self.biographies:
            person["biographies"] = [
                {"value": b, "contentType": "TEXT_PLAIN"} for b in self.biographies
            ]

        return person

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return (
            f"Contact(resource_name={self.resource_name!r}, "
            f"display_name={self.display_name!r}, "
            f"etag={self.etag!r})"
        )
