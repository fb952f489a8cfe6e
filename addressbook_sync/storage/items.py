"""
Local address book item models.

The local store keeps every item as a bag of string properties. These
dataclasses give each item kind an explicit set of optional fields, each
bound to its property name through field metadata, so that the field
mapper can clear and set slots without string-keyed access.

Properties the models do not know about are preserved untouched in
extra_properties.
"""

from __future__ import annotations

from dataclasses import Field, dataclass, field, fields
from typing import Any, ClassVar, Optional

# Reserved synchronization metadata properties
RESOURCE_NAME_PROPERTY = "X-GOOGLE-RESOURCENAME"
ETAG_PROPERTY = "X-GOOGLE-ETAG"


def _property(name: str, managed: bool = True) -> Any:
    """Declare an optional string field stored under a local property name."""
    return field(default=None, metadata={"property": name, "managed": managed})


@dataclass
class LocalItem:
    """
    Base class for items stored in the local address book.

    Attributes:
        uid: Primary key assigned by the store
        resource_name: Remote resource identifier binding the item to Google
        etag: Last remote etag seen for this item
        extra_properties: Properties not modelled by the item class
    """

    is_list: ClassVar[bool] = False

    uid: str = ""
    resource_name: Optional[str] = _property(RESOURCE_NAME_PROPERTY, managed=False)
    etag: Optional[str] = _property(ETAG_PROPERTY, managed=False)
    extra_properties: dict[str, str] = field(default_factory=dict)

    @classmethod
    def property_fields(cls) -> list[Field[Any]]:
        """All fields stored as local properties."""
        return [f for f in fields(cls) if "property" in f.metadata]

    @classmethod
    def managed_fields(cls) -> list[Field[Any]]:
        """Fields owned by the field mapper (cleared before every fill)."""
        return [f for f in cls.property_fields() if f.metadata["managed"]]

    @classmethod
    def property_names(cls) -> dict[str, str]:
        """Map of local property name to attribute name."""
        return {f.metadata["property"]: f.name for f in cls.property_fields()}

    def clear_managed_fields(self) -> None:
        """Reset every managed slot to empty."""
        for f in self.managed_fields():
            setattr(self, f.name, None)

    def get_property(self, name: str) -> Optional[str]:
        """Read a property by its local property name."""
        attribute = self.property_names().get(name)
        if attribute is not None:
            value: Optional[str] = getattr(self, attribute)
            return value
        return self.extra_properties.get(name)

    def to_properties(self) -> dict[str, str]:
        """Serialize to the store's property bag, omitting empty slots."""
        properties = dict(self.extra_properties)
        for f in self.property_fields():
            value = getattr(self, f.name)
            if value not in (None, ""):
                properties[f.metadata["property"]] = value
        return properties

    @classmethod
    def from_properties(cls, uid: str, properties: dict[str, Any]) -> LocalItem:
        """Build an item from the store's property bag."""
        names = cls.property_names()
        item = cls(uid=uid)
        for key, value in properties.items():
            if key in names:
                setattr(item, names[key], None if value is None else str(value))
            else:
                item.extra_properties[key] = value
        return item


@dataclass
class LocalContact(LocalItem):
    """
    A local contact card.

    Field names follow the local address book's property names; the
    property each field is stored under is recorded in its metadata.
    """

    is_list: ClassVar[bool] = False

    # Names
    first_name: Optional[str] = _property("FirstName")
    last_name: Optional[str] = _property("LastName")
    display_name: Optional[str] = _property("DisplayName")
    nick_name: Optional[str] = _property("NickName")

    # Email addresses
    primary_email: Optional[str] = _property("PrimaryEmail")
    second_email: Optional[str] = _property("SecondEmail")

    # Phone numbers
    work_phone: Optional[str] = _property("WorkPhone")
    home_phone: Optional[str] = _property("HomePhone")
    fax_number: Optional[str] = _property("FaxNumber")
    pager_number: Optional[str] = _property("PagerNumber")
    cellular_number: Optional[str] = _property("CellularNumber")

    # Home address
    home_address: Optional[str] = _property("HomeAddress")
    home_address2: Optional[str] = _property("HomeAddress2")
    home_city: Optional[str] = _property("HomeCity")
    home_state: Optional[str] = _property("HomeState")
    home_zip_code: Optional[str] = _property("HomeZipCode")
    home_country: Optional[str] = _property("HomeCountry")

    # Work address
    work_address: Optional[str] = _property("WorkAddress")
    work_address2: Optional[str] = _property("WorkAddress2")
    work_city: Optional[str] = _property("WorkCity")
    work_state: Optional[str] = _property("WorkState")
    work_zip_code: Optional[str] = _property("WorkZipCode")
    work_country: Optional[str] = _property("WorkCountry")

    # Work information
    company: Optional[str] = _property("Company")
    job_title: Optional[str] = _property("JobTitle")
    department: Optional[str] = _property("Department")

    # Web pages (WebPage1 is the work page, WebPage2 the personal one)
    web_page1: Optional[str] = _property("WebPage1")
    web_page2: Optional[str] = _property("WebPage2")

    # Dates, encoded as YYYY-MM-DD with "-" for missing components
    birthday: Optional[str] = _property("Birthday")
    anniversary: Optional[str] = _property("Anniversary")

    # Custom fields
    custom1: Optional[str] = _property("Custom1")
    custom2: Optional[str] = _property("Custom2")
    custom3: Optional[str] = _property("Custom3")
    custom4: Optional[str] = _property("Custom4")

    # Instant messaging
    google_talk: Optional[str] = _property("_GoogleTalk")
    aim_screen_name: Optional[str] = _property("_AimScreenName")
    yahoo: Optional[str] = _property("_Yahoo")
    skype: Optional[str] = _property("_Skype")
    qq: Optional[str] = _property("_QQ")
    msn: Optional[str] = _property("_MSN")
    icq: Optional[str] = _property("_ICQ")
    jabber_id: Optional[str] = _property("_JabberId")

    notes: Optional[str] = _property("Notes")


@dataclass
class LocalContactGroup(LocalItem):
    """A local mailing list, the local counterpart of a contact group."""

    is_list: ClassVar[bool] = True

    list_name: Optional[str] = _property("ListName")
