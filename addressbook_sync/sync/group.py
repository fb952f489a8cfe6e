"""
Remote contact group data model for Google People API synchronization.

Provides a ContactGroup representation with methods for:
- Converting from Google People API contactGroups resources
- Converting to the contactGroups create/update payload format
- Detecting system-managed groups
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Group types as defined by Google People API
GROUP_TYPE_UNSPECIFIED = "GROUP_TYPE_UNSPECIFIED"
GROUP_TYPE_USER_CONTACT_GROUP = "USER_CONTACT_GROUP"
GROUP_TYPE_SYSTEM_CONTACT_GROUP = "SYSTEM_CONTACT_GROUP"


@dataclass
class ContactGroup:
    """
    Remote contact group.

    Group membership is not stored here: it is derived from the
    memberships of the contacts.

    Attributes:
        resource_name: Google's unique ID (e.g., "contactGroups/123abc")
        etag: Concurrency token, changes on every remote mutation
        name: Display name of the group (e.g., "Family", "Work")
        group_type: USER_CONTACT_GROUP or SYSTEM_CONTACT_GROUP
        member_count: Number of members reported by the API (informational)

    Usage:
        group = ContactGroup.from_api_response(api_response)
        body = group.to_api_format()
    """

    resource_name: str = ""
    etag: str = ""
    name: str = ""
    group_type: str = GROUP_TYPE_UNSPECIFIED
    member_count: int = 0

    @classmethod
    def from_api_response(cls, group_data: dict[str, Any]) -> ContactGroup:
        """
        Create a ContactGroup from a Google People API response.

        Args:
            group_data: Dictionary from Google People API containing group data

        Returns:
            ContactGroup instance populated from the API response

        Example API response structure::

            {
                'resourceName': 'contactGroups/123abc',
                'etag': 'xyz789',
                'name': 'My Custom Group',
                'groupType': 'USER_CONTACT_GROUP',
                'memberCount': 5
            }
        """
        return cls(
            resource_name=group_data.get("resourceName", ""),
            etag=group_data.get("etag", ""),
            name=group_data.get("name", ""),
            group_type=group_data.get("groupType", GROUP_TYPE_UNSPECIFIED),
            member_count=group_data.get("memberCount", 0),
        )

    def to_api_format(self) -> dict[str, Any]:
        """
        Convert ContactGroup to Google People API format for create/update.

        Returns:
            Dictionary in Google People API contactGroup format

        Note:
            - name is the only writable field for contactGroups
            - resourceName and etag are included only when set (updates)
        """
        group: dict[str, Any] = {}

        if self.resource_name:
            group["resourceName"] = self.resource_name
        if self.etag:
            group["etag"] = self.etag
        if self.name:
            group["name"] = self.name

        return group

    def is_system_group(self) -> bool:
        """
        Check if this is a system contact group.

        System groups (myContacts, starred, ...) are managed by Google and
        are only synchronized when configured to be included.
        """
        return self.group_type == GROUP_TYPE_SYSTEM_CONTACT_GROUP

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return (
            f"ContactGroup(resource_name={self.resource_name!r}, "
            f"name={self.name!r}, "
            f"group_type={self.group_type!r})"
        )
