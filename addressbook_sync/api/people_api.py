"""
Google People API wrapper for address book synchronization.

Provides a high-level interface to the Google People API for:
- Listing contacts and contact groups with pagination
- Creating, updating, and deleting contacts and contact groups
- Exponential backoff retry logic for rate limits and server errors
- Translating 404 responses into NotFoundError
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from addressbook_sync.sync.contact import PERSON_FIELD_GROUPS, Contact
from addressbook_sync.sync.group import ContactGroup

# Person fields to request from the API: the synchronized field groups
# plus the memberships used to rebuild local lists
PERSON_FIELDS = ",".join([*PERSON_FIELD_GROUPS, "memberships", "metadata"])

# Field groups kept as they are remotely when updating contacts
UNMANAGED_UPDATE_FIELDS = ("events",)

# Fields to update when modifying contacts (memberships are never written)
UPDATE_PERSON_FIELDS = ",".join(
    field for field in PERSON_FIELD_GROUPS if field not in UNMANAGED_UPDATE_FIELDS
)

# Fields to request for contact groups
GROUP_FIELDS = "name,groupType,memberCount,metadata"

# Maximum number of items per page when listing
DEFAULT_PAGE_SIZE = 100

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 60.0  # seconds

logger = logging.getLogger(__name__)


class PeopleAPIError(Exception):
    """Raised when a People API operation fails."""

    pass


class RateLimitError(PeopleAPIError):
    """Raised when rate limit is exceeded and retries are exhausted."""

    pass


class NotFoundError(PeopleAPIError):
    """Raised when the target of an operation no longer exists remotely."""

    pass


class PeopleAPI:
    """
    Google People API wrapper for contact and contact group operations.

    Attributes:
        credentials: Google OAuth2 credentials
        include_system_contact_groups: Whether system groups are synchronized

    Usage:
        api = PeopleAPI(credentials)

        contacts = api.get_contacts()
        created = api.create_contact(contact)
        updated = api.update_contact(contact)
        api.delete_contact(resource_name)

        groups = api.get_contact_groups()
        created_group = api.create_contact_group(group)
    """

    def __init__(
        self,
        credentials: Credentials,
        include_system_contact_groups: bool = False,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
    ):
        """
        Initialize the People API wrapper.

        Args:
            credentials: Valid Google OAuth2 credentials with contacts scope
            include_system_contact_groups: Synchronize system groups too
            page_size: Number of items per page when listing (default 100)
            max_retries: Maximum retry attempts for failed API calls (default 5)
            initial_retry_delay: Initial backoff delay in seconds (default 1.0)
            max_retry_delay: Maximum backoff delay in seconds (default 60.0)
        """
        self.credentials = credentials
        self.include_system_contact_groups = include_system_contact_groups
        self.page_size = min(page_size, 1000)  # API max is 1000
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._service = None

    @property
    def service(self) -> Any:
        """
        Get or create the Google API service object.

        Raises:
            PeopleAPIError: If service cannot be created
        """
        if self._service is None:
            try:
                self._service = build(
                    "people", "v1", credentials=self.credentials, cache_discovery=False
                )
                logger.debug("Created People API service")
            except Exception as e:
                logger.error(f"Failed to create People API service: {e}")
                raise PeopleAPIError(f"Failed to create API service: {e}") from e
        return self._service

    def get_include_system_contact_groups(self) -> bool:
        """Whether system contact groups take part in synchronization."""
        return self.include_system_contact_groups

    def _retry_with_backoff(
        self, operation: Callable[[], Any], operation_name: str
    ) -> Any:
        """
        Execute an operation with exponential backoff retry.

        Args:
            operation: Callable to execute
            operation_name: Name for logging purposes

        Returns:
            Result of the operation

        Raises:
            NotFoundError: If the API responds 404
            RateLimitError: If retries are exhausted due to rate limits
            PeopleAPIError: For other API errors
        """
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            try:
                return operation()

            except HttpError as e:
                status_code = e.resp.status

                # Rate limit or quota exceeded - retry with backoff
                if status_code in (429, 403):
                    if attempt < self.max_retries - 1:
                        logger.warning(
                            f"{operation_name} rate limited, retrying in "
                            f"{delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                        )
                        time.sleep(delay)
                        delay = min(delay * 2, self.max_retry_delay)
                        continue
                    raise RateLimitError(
                        f"Rate limit exceeded for {operation_name} "
                        f"after {self.max_retries} retries"
                    ) from e

                # Server error - retry with backoff
                if status_code >= 500 and attempt < self.max_retries - 1:
                    logger.warning(
                        f"{operation_name} server error ({status_code}), "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue

                if status_code == 404:
                    logger.debug(f"{operation_name} target not found")
                    raise NotFoundError(f"{operation_name} failed: not found") from e

                if status_code == 409:
                    raise PeopleAPIError(
                        f"{operation_name} failed: modified by another client. "
                        f"Please refresh and try again."
                    ) from e

                # Other errors - don't retry
                logger.error(f"{operation_name} failed with status {status_code}: {e}")
                raise PeopleAPIError(f"{operation_name} failed: {e}") from e

        raise PeopleAPIError(f"{operation_name} failed after all retries")

    # =========================================================================
    # Contacts
    # =========================================================================

    def get_contacts(self) -> list[Contact]:
        """
        List all contacts of the authenticated user.

        Returns:
            List of Contact objects

        Raises:
            PeopleAPIError: If listing fails
            RateLimitError: If rate limit exceeded
        """
        logger.debug("Listing contacts")

        contacts: list[Contact] = []
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "resourceName": "people/me",
                "personFields": PERSON_FIELDS,
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.people().connections().list(**p).execute()

            response = self._retry_with_backoff(execute_list, "get_contacts")

            for person in response.get("connections", []):
                contacts.append(Contact.from_api_response(person))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"Listed {len(contacts)} contacts")
        return contacts

    def create_contact(self, contact: Contact) -> Contact:
        """
        Create a new contact.

        Args:
            contact: Contact to create (resource_name will be ignored)

        Returns:
            Created Contact with resource_name and etag populated

        Raises:
            PeopleAPIError: If creation fails
        """
        logger.debug(f"Creating contact: {contact.display_name}")

        body = contact.to_api_format()
        body.pop("resourceName", None)
        body.pop("etag", None)

        def execute_create() -> Any:
            return (
                self.service.people()
                .createContact(body=body, personFields=PERSON_FIELDS)
                .execute()
            )

        response = self._retry_with_backoff(execute_create, "create_contact")
        created_contact = Contact.from_api_response(response)

        logger.info(f"Created contact: {created_contact.resource_name}")
        return created_contact

    def update_contact(self, contact: Contact) -> Contact:
        """
        Update an existing contact.

        Every synchronized field group except events is replaced, so field
        groups that are empty on the given contact are cleared remotely.

        Args:
            contact: Contact with updated data, resource_name and etag

        Returns:
            Updated Contact with new etag

        Raises:
            NotFoundError: If the contact no longer exists
            PeopleAPIError: If update fails
            ValueError: If resource_name is missing
        """
        if not contact.resource_name:
            raise ValueError("resource_name is required for update")

        logger.debug(f"Updating contact: {contact.resource_name}")

        body = contact.to_api_format()

        def execute_update() -> Any:
            return (
                self.service.people()
                .updateContact(
                    resourceName=contact.resource_name,
                    body=body,
                    updatePersonFields=UPDATE_PERSON_FIELDS,
                    personFields=PERSON_FIELDS,
                )
                .execute()
            )

        response = self._retry_with_backoff(
            execute_update, f"update_contact({contact.resource_name})"
        )
        updated_contact = Contact.from_api_response(response)
        logger.info(f"Updated contact: {contact.resource_name}")
        return updated_contact

    def delete_contact(self, resource_name: str) -> bool:
        """
        Delete a contact.

        Args:
            resource_name: Contact's resource name to delete

        Returns:
            True if deletion succeeded or the contact was already gone

        Raises:
            PeopleAPIError: If deletion fails
        """
        logger.debug(f"Deleting contact: {resource_name}")

        def execute_delete() -> Any:
            return (
                self.service.people()
                .deleteContact(resourceName=resource_name)
                .execute()
            )

        try:
            self._retry_with_backoff(execute_delete, f"delete_contact({resource_name})")
        except NotFoundError:
            logger.debug(f"Contact already deleted: {resource_name}")
            return True

        logger.info(f"Deleted contact: {resource_name}")
        return True

    # =========================================================================
    # Contact Groups
    # =========================================================================

    def get_contact_groups(self) -> list[ContactGroup]:
        """
        List all contact groups of the authenticated user.

        Returns both user-created groups and system groups (myContacts,
        starred, ...); the engine filters system groups.

        Raises:
            PeopleAPIError: If listing fails
            RateLimitError: If rate limit exceeded
        """
        logger.debug("Listing contact groups")

        groups: list[ContactGroup] = []
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "pageSize": self.page_size,
                "groupFields": GROUP_FIELDS,
            }
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.contactGroups().list(**p).execute()

            response = self._retry_with_backoff(execute_list, "get_contact_groups")

            for group_data in response.get("contactGroups", []):
                groups.append(ContactGroup.from_api_response(group_data))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"Listed {len(groups)} contact groups")
        return groups

    def create_contact_group(self, group: ContactGroup) -> ContactGroup:
        """
        Create a new contact group.

        Args:
            group: Group to create (only the name is used)

        Returns:
            Created ContactGroup with resource_name and etag populated

        Raises:
            PeopleAPIError: If creation fails (e.g., 409 if name already exists)
        """
        logger.debug(f"Creating contact group: {group.name}")

        body = {"contactGroup": {"name": group.name}}

        def execute_create() -> Any:
            return self.service.contactGroups().create(body=body).execute()

        response = self._retry_with_backoff(
            execute_create, f"create_contact_group({group.name})"
        )
        created_group = ContactGroup.from_api_response(response)
        logger.info(
            f"Created contact group: {created_group.resource_name} ({group.name})"
        )
        return created_group

    def update_contact_group(self, group: ContactGroup) -> ContactGroup:
        """
        Rename an existing contact group.

        Args:
            group: Group with resource_name, etag and the new name

        Returns:
            Updated ContactGroup with new etag

        Raises:
            NotFoundError: If the group no longer exists
            PeopleAPIError: If update fails (e.g., 409 conflict)
            ValueError: If resource_name is missing
        """
        if not group.resource_name:
            raise ValueError("resource_name is required for update")

        logger.debug(f"Updating contact group: {group.resource_name}")

        body: dict[str, Any] = {
            "contactGroup": group.to_api_format(),
            "updateGroupFields": "name",
        }

        def execute_update() -> Any:
            return (
                self.service.contactGroups()
                .update(resourceName=group.resource_name, body=body)
                .execute()
            )

        response = self._retry_with_backoff(
            execute_update, f"update_contact_group({group.resource_name})"
        )
        logger.info(f"Updated contact group: {group.resource_name} -> {group.name}")
        return ContactGroup.from_api_response(response)

    def delete_contact_group(self, resource_name: str) -> bool:
        """
        Delete a contact group, keeping its contacts.

        Returns:
            True if deletion succeeded or the group was already gone

        Raises:
            PeopleAPIError: If deletion fails

        Note:
            System groups (like myContacts) cannot be deleted.
        """
        logger.debug(f"Deleting contact group: {resource_name}")

        def execute_delete() -> Any:
            return (
                self.service.contactGroups()
                .delete(resourceName=resource_name, deleteContacts=False)
                .execute()
            )

        try:
            self._retry_with_backoff(
                execute_delete, f"delete_contact_group({resource_name})"
            )
        except NotFoundError:
            logger.debug(f"Contact group already deleted: {resource_name}")
            return True

        logger.info(f"Deleted contact group: {resource_name}")
        return True
