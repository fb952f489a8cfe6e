"""
addressbook_sync.auth - OAuth2 authentication

Contains the Google OAuth2 installed-app flow and token storage.
"""

from addressbook_sync.auth.google_auth import SCOPES, AuthenticationError, GoogleAuth

__all__ = ["GoogleAuth", "AuthenticationError", "SCOPES"]
