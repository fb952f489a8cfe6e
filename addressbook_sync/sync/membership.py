"""
Group membership index built while synchronizing contacts.

Google stores group membership on the contacts, not on the groups. The
index collects, for every group resource name, the contacts that
reference it, in the order they were processed, so that the local lists
can be rebuilt once every contact has been reconciled.
"""

from collections.abc import Iterator

from addressbook_sync.sync.contact import Contact


class MembershipIndex:
    """
    Mapping of group resource name to an insertion-ordered set of contact
    resource names.

    Usage:
        index = MembershipIndex()
        index.fold_contact(contact)
        for contact_id in index.members_of("contactGroups/abc"):
            ...
    """

    def __init__(self) -> None:
        self._members: dict[str, dict[str, None]] = {}

    def add(self, group_id: str, contact_id: str) -> None:
        """Record that a contact belongs to a group."""
        self._members.setdefault(group_id, {})[contact_id] = None

    def fold_contact(self, contact: Contact) -> None:
        """Record every group membership of a remote contact."""
        if not contact.resource_name:
            return
        for group_id in contact.memberships:
            self.add(group_id, contact.resource_name)

    def members_of(self, group_id: str) -> list[str]:
        """Contact resource names of a group, in insertion order."""
        return list(self._members.get(group_id, {}))

    def groups(self) -> Iterator[str]:
        return iter(self._members)

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __repr__(self) -> str:
        return f"MembershipIndex(groups={len(self._members)})"
