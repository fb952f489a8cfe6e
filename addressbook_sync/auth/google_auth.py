"""
OAuth2 authentication module for Google address book synchronization.

Provides OAuth 2.0 authentication with support for:
- Installed-application consent flow for one Google account
- Automatic token refresh
- Credential storage in the configuration directory
- Graceful handling of expired tokens
"""

import json
import logging
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from addressbook_sync.utils.paths import resolve_config_dir

# OAuth2 scopes required for Google Contacts access
SCOPES = [
    "https://www.googleapis.com/auth/contacts",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",  # Required by Google when requesting userinfo.email
]

CREDENTIALS_FILE = "credentials.json"
TOKEN_FILE = "token.json"

# Default auth timeout for network requests (in seconds)
DEFAULT_AUTH_TIMEOUT = 10

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails or credentials are invalid."""

    pass


class GoogleAuth:
    """
    OAuth2 authentication manager for the synchronized Google account.

    Attributes:
        config_dir: Directory for storing credentials and tokens
        credentials_path: Path to OAuth client credentials file
        token_path: Path to the stored user token

    Usage:
        auth = GoogleAuth()
        creds = auth.authenticate()

        # Get credentials if already authenticated
        creds = auth.get_credentials()
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        auth_timeout: int = DEFAULT_AUTH_TIMEOUT,
    ):
        """
        Initialize the authentication manager.

        Args:
            config_dir: Directory for storing credentials and tokens.
                       Defaults to ~/.addressbook-sync/ or $ADDRESSBOOK_SYNC_CONFIG_DIR
            auth_timeout: Timeout in seconds for network requests (default: 10)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.credentials_path = self.config_dir / CREDENTIALS_FILE
        self.token_path = self.config_dir / TOKEN_FILE
        self.auth_timeout = auth_timeout

    def _ensure_config_dir(self) -> None:
        """Create the configuration directory with permissions 700 if missing."""
        if not self.config_dir.exists():
            self.config_dir.mkdir(parents=True, mode=0o700)
            logger.debug(f"Created config directory: {self.config_dir}")

    def _load_credentials(self) -> Credentials | None:
        """
        Load credentials from the token file if it exists.

        Returns:
            Credentials object if token file exists and is valid, None otherwise
        """
        if not self.token_path.exists():
            logger.debug("No token file found")
            return None

        try:
            creds: Credentials = Credentials.from_authorized_user_file(
                str(self.token_path), SCOPES
            )
            logger.debug("Loaded stored credentials")
            return creds
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Invalid token file: {e}")
            return None

    def _save_credentials(self, creds: Credentials, email: str | None = None) -> None:
        """
        Save credentials to the token file.

        Args:
            creds: Credentials object to save
            email: Optional email address to store with credentials
        """
        self._ensure_config_dir()

        token_data = json.loads(creds.to_json())
        if email:
            token_data["email"] = email

        self.token_path.write_text(json.dumps(token_data))
        self.token_path.chmod(0o600)
        logger.debug("Saved credentials")

    def _refresh_credentials(self, creds: Credentials) -> bool:
        """
        Attempt to refresh expired credentials.

        Returns:
            True if refresh succeeded, False otherwise
        """
        if not creds.refresh_token:
            logger.debug("No refresh token available")
            return False

        try:
            creds.refresh(Request())
            logger.debug("Successfully refreshed credentials")
            return True
        except RefreshError as e:
            logger.warning(f"Failed to refresh credentials: {e}")
            return False

    def _fetch_user_email(self, creds: Credentials) -> str | None:
        """
        Fetch the authenticated user's email address from Google.

        Returns:
            Email address if available, None otherwise
        """
        import urllib.request
        from urllib.error import HTTPError

        try:
            url = "https://www.googleapis.com/oauth2/v2/userinfo"
            req = urllib.request.Request(url)
            req.add_header("Authorization", f"Bearer {creds.token}")

            with urllib.request.urlopen(req, timeout=self.auth_timeout) as response:  # nosec B310
                data: dict[str, str] = json.loads(response.read().decode("utf-8"))
                return data.get("email")
        except HTTPError as e:
            logger.debug(f"Failed to fetch user email: {e}")
            return None
        except Exception as e:
            logger.debug(f"Failed to fetch user email: {e}")
            return None

    def get_credentials(self) -> Credentials | None:
        """
        Get valid credentials if available, refreshing them when expired.

        Returns:
            Valid Credentials object, or None if not available
        """
        creds = self._load_credentials()

        if creds is None:
            return None

        if creds.valid:
            return creds

        if creds.expired and creds.refresh_token and self._refresh_credentials(creds):
            self._save_credentials(creds, email=self._read_stored_email())
            return creds

        return None

    def authenticate(self, force_reauth: bool = False) -> Credentials:
        """
        Authenticate the Google account.

        If valid credentials exist and force_reauth is False, returns existing
        credentials. Otherwise, initiates the OAuth flow in a browser.

        Args:
            force_reauth: If True, ignore existing credentials and re-authenticate

        Returns:
            Valid Credentials object

        Raises:
            AuthenticationError: If authentication fails
            FileNotFoundError: If credentials.json is not found
        """
        if not force_reauth:
            creds = self.get_credentials()
            if creds is not None:
                logger.info("Using existing credentials")
                return creds

        if not self.credentials_path.exists():
            raise FileNotFoundError(
                f"OAuth credentials file not found: {self.credentials_path}\n"
                "Please download your OAuth client credentials from "
                "Google Cloud Console and save them to this location."
            )

        logger.info("Starting OAuth flow")

        try:
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self.credentials_path), SCOPES
            )
            new_creds: Credentials = flow.run_local_server(port=0)

            email = self._fetch_user_email(new_creds)
            self._save_credentials(new_creds, email=email)
            logger.info("Successfully authenticated")

            return new_creds

        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            raise AuthenticationError(f"Failed to authenticate: {e}") from e

    def is_authenticated(self) -> bool:
        """Check whether valid credentials exist."""
        return self.get_credentials() is not None

    def clear_credentials(self) -> bool:
        """
        Remove the stored token.

        Returns:
            True if credentials were removed, False if they didn't exist
        """
        if self.token_path.exists():
            self.token_path.unlink()
            logger.info("Cleared stored credentials")
            return True

        return False

    def _read_stored_email(self) -> str | None:
        try:
            token_data: dict[str, str] = json.loads(self.token_path.read_text())
        except (json.JSONDecodeError, OSError):
            return None
        return token_data.get("email")

    def get_account_email(self) -> str | None:
        """
        Get the email address of the authenticated account.

        First checks the token file. If the email is not stored there,
        fetches it from Google's userinfo API and stores it.

        Returns:
            Email address if available, None otherwise
        """
        if not self.token_path.exists():
            return None

        email = self._read_stored_email()
        if email:
            return email

        creds = self.get_credentials()
        if creds:
            email = self._fetch_user_email(creds)
            if email:
                self._save_credentials(creds, email=email)
                logger.debug("Updated stored email")
        return email

    def get_auth_status(self) -> dict[str, object]:
        """
        Get authentication status.

        Returns:
            Dictionary with keys authenticated, token_path, token_exists,
            credentials_path, credentials_exist and config_dir
        """
        creds = self.get_credentials()
        return {
            "authenticated": creds is not None,
            "token_path": str(self.token_path),
            "token_exists": self.token_path.exists(),
            "credentials_path": str(self.credentials_path),
            "credentials_exist": self.credentials_path.exists(),
            "config_dir": str(self.config_dir),
        }
