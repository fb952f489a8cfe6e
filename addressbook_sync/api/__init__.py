"""
addressbook_sync.api - Google People API client

Contains the People API wrapper and its exceptions.
"""

from addressbook_sync.api.people_api import (
    NotFoundError,
    PeopleAPI,
    PeopleAPIError,
    RateLimitError,
)

__all__ = ["PeopleAPI", "PeopleAPIError", "RateLimitError", "NotFoundError"]
