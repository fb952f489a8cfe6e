"""
Field mapping between local address book items and remote People API records.

Provides the four fill functions used by the sync engine:
- fill_local_contact / fill_remote_contact
- fill_local_contact_group / fill_remote_contact_group

Every fill clears the fields it manages before writing, so applying it
twice with the same input yields the same output. Repeatable remote
field groups are mapped onto the fixed local slots by a single rule-table
fold (pick_first_per_slot): the first entry of a given type wins its slot
and later entries of the same type are dropped.
"""

import re
import secrets
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Optional, TypeVar

from addressbook_sync.storage.items import LocalContact, LocalContactGroup
from addressbook_sync.sync.contact import (
    Address,
    Contact,
    EmailAddress,
    Event,
    ImClient,
    Name,
    Organization,
    PartialDate,
    PhoneNumber,
    Url,
    UserDefined,
)
from addressbook_sync.sync.group import ContactGroup

T = TypeVar("T")

# Sentinel domain of placeholder addresses created for contacts without email
FAKE_EMAIL_ADDRESS_DOMAIN = "placeholder.addressbook-sync.example.com"

# Placeholder for a missing date component
DATE_PLACEHOLDER = "-"

# Characters the local store does not accept in list names
_INVALID_GROUP_NAME_CHARS = re.compile(r'[<>;,"]')

ANNIVERSARY_EVENT_TYPE = "anniversary"
CUSTOM_FIELD_COUNT = 4


@dataclass(frozen=True)
class SlotRule:
    """
    Maps entries of one type to a local slot.

    A rule whose discriminator is None is a wildcard: it applies to any
    entry type that has no rule of its own.
    """

    discriminator: Optional[str]
    slot: str


# Remote phone type -> LocalContact attribute
PHONE_SLOT_RULES = (
    SlotRule("work", "work_phone"),
    SlotRule("home", "home_phone"),
    SlotRule("workFax", "fax_number"),
    SlotRule("homeFax", "fax_number"),
    SlotRule("pager", "pager_number"),
    SlotRule("mobile", "cellular_number"),
)

# Remote address type -> LocalContact attribute prefix
ADDRESS_SLOT_RULES = (
    SlotRule("home", "home"),
    SlotRule("work", "work"),
)

# Remote IM protocol -> LocalContact attribute
IM_SLOT_RULES = (
    SlotRule("googleTalk", "google_talk"),
    SlotRule("aim", "aim_screen_name"),
    SlotRule("yahoo", "yahoo"),
    SlotRule("skype", "skype"),
    SlotRule("qq", "qq"),
    SlotRule("msn", "msn"),
    SlotRule("icq", "icq"),
    SlotRule("jabber", "jabber_id"),
)

# Remote url type -> LocalContact attribute; anything but "work" is personal
URL_SLOT_RULES = (
    SlotRule("work", "web_page1"),
    SlotRule(None, "web_page2"),
)

# The first two addresses, whatever their type
EMAIL_SLOT_RULES = (
    SlotRule(None, "primary_email"),
    SlotRule(None, "second_email"),
)

# Reverse direction: LocalContact attribute -> remote type
PHONE_TYPES = (
    ("work_phone", "work"),
    ("home_phone", "home"),
    ("fax_number", "workFax"),
    ("pager_number", "pager"),
    ("cellular_number", "mobile"),
)
URL_TYPES = (
    ("web_page1", "work"),
    ("web_page2", "other"),
)
EMAIL_TYPE = "other"

# Address attribute suffix -> Address field
ADDRESS_FIELDS = (
    ("address", "street_address"),
    ("address2", "extended_address"),
    ("city", "city"),
    ("state", "region"),
    ("zip_code", "postal_code"),
    ("country", "country"),
)


def pick_first_per_slot(
    entries: Iterable[T],
    rules: Sequence[SlotRule],
    discriminator: Callable[[T], Optional[str]],
) -> dict[str, T]:
    """
    Assign entries to slots, first occurrence wins.

    For each entry, the candidate rules are those whose discriminator
    equals the entry's type, or the wildcard rules when no rule names
    that type. The entry takes the first candidate slot not claimed by
    an earlier entry; when every candidate slot is claimed, or there is
    no candidate, the entry is dropped.

    Args:
        entries: Remote entries in their remote order
        rules: Ordered rule table
        discriminator: Returns the type of an entry

    Returns:
        Dictionary of slot name to the entry that claimed it, in claim order
    """
    wildcard = [rule.slot for rule in rules if rule.discriminator is None]
    claimed: dict[str, T] = {}

    for entry in entries:
        entry_type = discriminator(entry)
        candidates = [
            rule.slot
            for rule in rules
            if rule.discriminator is not None and rule.discriminator == entry_type
        ] or wildcard

        for slot in candidates:
            if slot not in claimed:
                claimed[slot] = entry
                break

    return claimed


# =============================================================================
# Helpers
# =============================================================================


def encode_partial_date(date: Optional[PartialDate]) -> Optional[str]:
    """
    Encode a partial date as YYYY-MM-DD with "-" for each missing component.

    Examples:
        PartialDate(1980, 5, 12) -> "1980-05-12"
        PartialDate(None, 5, 12) -> "--05-12"
        PartialDate(1980, None, 12) -> "1980---12"

    Returns:
        The encoded string, or None when every component is missing
    """
    if date is None or date.is_empty():
        return None

    year = f"{date.year:04d}" if date.year else DATE_PLACEHOLDER
    month = f"{date.month:02d}" if date.month else DATE_PLACEHOLDER
    day = f"{date.day:02d}" if date.day else DATE_PLACEHOLDER
    return f"{year}-{month}-{day}"


def decode_partial_date(value: Optional[str]) -> Optional[PartialDate]:
    """
    Decode a string produced by encode_partial_date.

    Components are read left to right; each one is either the "-"
    placeholder or a fixed-width number (4 digits for the year, 2 for
    month and day), and components are separated by "-".

    Returns:
        The decoded date, or None for empty, all-missing or malformed input
    """
    if not value:
        return None

    components: list[Optional[int]] = []
    position = 0
    for index, width in enumerate((4, 2, 2)):
        if index > 0:
            if value[position : position + 1] != "-":
                return None
            position += 1

        if value[position : position + 1] == DATE_PLACEHOLDER:
            components.append(None)
            position += 1
            continue

        text = value[position : position + width]
        if len(text) != width or not text.isdigit():
            return None
        components.append(int(text) or None)
        position += width

    if position != len(value):
        return None

    year, month, day = components
    if month is not None and not 1 <= month <= 12:
        return None
    if day is not None and not 1 <= day <= 31:
        return None

    date = PartialDate(year=year, month=month, day=day)
    return None if date.is_empty() else date


def make_fake_email_address() -> str:
    """Create a unique placeholder address at the sentinel domain."""
    millis = int(time.time() * 1000)
    token = secrets.token_hex(4)
    return f"{millis}.{token}@{FAKE_EMAIL_ADDRESS_DOMAIN}"


def is_fake_email_address(value: Optional[str]) -> bool:
    """Check whether an address was created by make_fake_email_address."""
    if not value:
        return False
    return value.lower().endswith(f"@{FAKE_EMAIL_ADDRESS_DOMAIN}")


def sanitize_group_name(name: Optional[str]) -> str:
    """Replace characters the local store rejects in list names with "_"."""
    if not name:
        return ""
    return _INVALID_GROUP_NAME_CHARS.sub("_", name)


def _require(**arguments: object) -> None:
    for name, value in arguments.items():
        if value is None:
            raise ValueError(f"Invalid argument: {name} is required")


# =============================================================================
# Contacts
# =============================================================================


def fill_local_contact(
    local: LocalContact, remote: Contact, use_fake_email_addresses: bool
) -> LocalContact:
    """
    Overwrite a local contact with the data of a remote contact.

    Args:
        local: Local contact to fill (modified in place)
        remote: Remote contact to read from
        use_fake_email_addresses: Create a placeholder address when the
            remote contact has none

    Returns:
        The filled local contact

    Raises:
        ValueError: If any argument is None
    """
    _require(
        local=local, remote=remote, use_fake_email_addresses=use_fake_email_addresses
    )

    previous_fake_email = (
        local.primary_email if is_fake_email_address(local.primary_email) else None
    )

    local.clear_managed_fields()
    if remote.resource_name:
        local.resource_name = remote.resource_name
    if remote.etag:
        local.etag = remote.etag

    if remote.names:
        name = remote.names[0]
        local.first_name = name.given_name
        local.last_name = name.family_name
        local.display_name = name.display_name

    if remote.nicknames:
        local.nick_name = remote.nicknames[0]

    emails = pick_first_per_slot(
        remote.email_addresses, EMAIL_SLOT_RULES, lambda e: e.type
    )
    for slot, email in emails.items():
        setattr(local, slot, email.value)
    if not remote.email_addresses and use_fake_email_addresses:
        local.primary_email = previous_fake_email or make_fake_email_address()

    phones = pick_first_per_slot(
        remote.phone_numbers, PHONE_SLOT_RULES, lambda p: p.type
    )
    for slot, phone in phones.items():
        setattr(local, slot, phone.value)

    addresses = pick_first_per_slot(
        remote.addresses, ADDRESS_SLOT_RULES, lambda a: a.type
    )
    for prefix, address in addresses.items():
        for suffix, address_field in ADDRESS_FIELDS:
            setattr(local, f"{prefix}_{suffix}", getattr(address, address_field))

    if remote.organizations:
        organization = remote.organizations[0]
        local.company = organization.name
        local.job_title = organization.title
        local.department = organization.department

    urls = pick_first_per_slot(remote.urls, URL_SLOT_RULES, lambda u: u.type)
    for slot, url in urls.items():
        setattr(local, slot, url.value)

    if remote.birthdays:
        local.birthday = encode_partial_date(remote.birthdays[0])

    for event in remote.events:
        if event.type == ANNIVERSARY_EVENT_TYPE:
            local.anniversary = encode_partial_date(event.date)
            break

    for index, custom in enumerate(remote.user_defined[:CUSTOM_FIELD_COUNT], 1):
        setattr(local, f"custom{index}", custom.value)

    im_clients = pick_first_per_slot(
        remote.im_clients, IM_SLOT_RULES, lambda i: i.protocol
    )
    for slot, im_client in im_clients.items():
        setattr(local, slot, im_client.username)

    if remote.biographies:
        local.notes = remote.biographies[0]

    return local


def fill_remote_contact(
    local: LocalContact, remote: Contact, use_fake_email_addresses: bool
) -> Contact:
    """
    Overwrite the field groups of a remote contact with a local contact's data.

    The display name is never written: Google computes it. Empty local
    slots produce no remote entry.

    Args:
        local: Local contact to read from
        remote: Remote contact to fill (modified in place)
        use_fake_email_addresses: Skip placeholder addresses created by
            fill_local_contact

    Returns:
        The filled remote contact

    Raises:
        ValueError: If any argument is None
    """
    _require(
        local=local, remote=remote, use_fake_email_addresses=use_fake_email_addresses
    )

    remote.clear_field_groups()

    if local.first_name or local.last_name:
        remote.names = [
            Name(given_name=local.first_name, family_name=local.last_name)
        ]

    if local.nick_name:
        remote.nicknames = [local.nick_name]

    for value in (local.primary_email, local.second_email):
        if not value:
            continue
        if use_fake_email_addresses and is_fake_email_address(value):
            continue
        remote.email_addresses.append(EmailAddress(value=value, type=EMAIL_TYPE))

    for attribute, phone_type in PHONE_TYPES:
        value = getattr(local, attribute)
        if value:
            remote.phone_numbers.append(PhoneNumber(value=value, type=phone_type))

    for rule in ADDRESS_SLOT_RULES:
        values = {
            address_field: getattr(local, f"{rule.slot}_{suffix}")
            for suffix, address_field in ADDRESS_FIELDS
        }
        if any(values.values()):
            remote.addresses.append(Address(type=rule.discriminator, **values))

    if local.company or local.job_title or local.department:
        remote.organizations = [
            Organization(
                name=local.company, title=local.job_title, department=local.department
            )
        ]

    for attribute, url_type in URL_TYPES:
        value = getattr(local, attribute)
        if value:
            remote.urls.append(Url(value=value, type=url_type))

    birthday = decode_partial_date(local.birthday)
    if birthday is not None:
        remote.birthdays = [birthday]

    anniversary = decode_partial_date(local.anniversary)
    if anniversary is not None:
        remote.events = [Event(date=anniversary, type=ANNIVERSARY_EVENT_TYPE)]

    for index in range(1, CUSTOM_FIELD_COUNT + 1):
        value = getattr(local, f"custom{index}")
        if value:
            remote.user_defined.append(UserDefined(key=f"Custom{index}", value=value))

    for rule in IM_SLOT_RULES:
        value = getattr(local, rule.slot)
        if value:
            remote.im_clients.append(
                ImClient(username=value, protocol=rule.discriminator)
            )

    if local.notes:
        remote.biographies = [local.notes]

    return remote


# =============================================================================
# Contact Groups
# =============================================================================


def fill_local_contact_group(
    local: LocalContactGroup, remote: ContactGroup
) -> LocalContactGroup:
    """
    Overwrite a local list with the data of a remote contact group.

    Raises:
        ValueError: If any argument is None
    """
    _require(local=local, remote=remote)

    local.clear_managed_fields()
    if remote.resource_name:
        local.resource_name = remote.resource_name
    if remote.etag:
        local.etag = remote.etag

    local.list_name = sanitize_group_name(remote.name) or None
    return local


def fill_remote_contact_group(
    local: LocalContactGroup, remote: ContactGroup
) -> ContactGroup:
    """
    Overwrite the name of a remote contact group with a local list's name.

    Raises:
        ValueError: If any argument is None
    """
    _require(local=local, remote=remote)

    remote.name = local.list_name or ""
    return remote
