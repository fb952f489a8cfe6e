"""
addressbook_sync - Google Contacts to local address book synchronization.

Keeps a local address book and a Google account's contacts and contact
groups converged using etag comparison and a local change log.
"""

__version__ = "0.3.0"
