"""Authentication utilities for the Google Drive API."""
import json
import os
from pathlib import Path
from typing import List, Optional, Sequence

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from drivezip.utils.exceptions import AuthError
from drivezip.utils.logger import get_logger

logger = get_logger()

SCOPES = ["https://www.googleapis.com/auth/drive"]

DEFAULT_TOKEN_PATH = "token.json"
DEFAULT_CLIENT_SECRETS_PATH = "credentials.json"


class CredentialProvider:
    """Loads, refreshes, authorizes and persists OAuth 2.0 user credentials.

    The token file holds an ``authorized_user`` record so that later runs can
    skip the interactive consent screen. It contains secret material and is
    written with owner-only permissions.
    """

    def __init__(
        self,
        token_path: str = DEFAULT_TOKEN_PATH,
        client_secrets_path: str = DEFAULT_CLIENT_SECRETS_PATH,
        scopes: Optional[Sequence[str]] = None
    ):
        self.token_path = Path(token_path)
        self.client_secrets_path = Path(client_secrets_path)
        self.scopes: List[str] = list(scopes or SCOPES)

    def obtain(self) -> Credentials:
        """Return usable credentials, authorizing interactively if needed.

        Raises:
            AuthError: If no stored credential exists and the client
                configuration file is missing, or authorization fails.
        """
        creds = self._load_existing_credentials()

        if creds is not None:
            if creds.valid or not creds.refresh_token:
                return creds
            refreshed = self._refresh(creds)
            if refreshed is not None:
                return refreshed

        creds = self._authorize()
        if creds.refresh_token:
            self._save_credentials(creds)
        else:
            logger.warning("Authorization returned no refresh token; credentials not persisted")
        return creds

    def _load_existing_credentials(self) -> Optional[Credentials]:
        """Load previously saved credentials from the token file."""
        if not self.token_path.exists():
            return None

        try:
            logger.debug(f"Loading saved OAuth credentials from {self.token_path}")
            return Credentials.from_authorized_user_file(str(self.token_path), self.scopes)
        except (ValueError, OSError) as e:
            logger.warning(f"Failed to load credentials from {self.token_path}: {e}")
            logger.info("Ignoring unreadable token file and re-authorizing")
            return None

    def _refresh(self, creds: Credentials) -> Optional[Credentials]:
        try:
            logger.info("Refreshing OAuth credentials")
            creds.refresh(Request())
            logger.info("OAuth credentials refreshed successfully")
            return creds
        except GoogleAuthError as e:
            logger.warning(f"Failed to refresh credentials: {e}")
            logger.info("Token refresh failed, will re-authorize")
            return None

    def _authorize(self) -> Credentials:
        """Run the installed-app consent flow in a local browser."""
        if not self.client_secrets_path.exists():
            raise AuthError(
                f"No saved credentials at {self.token_path} and OAuth client "
                f"configuration not found: {self.client_secrets_path}\n"
                "Please create OAuth credentials in Google Cloud Console."
            )

        logger.info("Starting OAuth authorization flow")
        try:
            flow = InstalledAppFlow.from_client_secrets_file(str(self.client_secrets_path), self.scopes)
            creds = flow.run_local_server(port=0)
        except (ValueError, OSError, GoogleAuthError) as e:
            raise AuthError(f"OAuth authorization failed: {e}") from e

        logger.info("OAuth authorization successful")
        return creds

    def _save_credentials(self, creds: Credentials) -> None:
        """Persist a normalized authorized_user record to the token file."""
        key = self._read_client_config()
        payload = {
            "type": "authorized_user",
            "client_id": key.get("client_id", creds.client_id),
            "client_secret": key.get("client_secret", creds.client_secret),
            "refresh_token": creds.refresh_token,
        }

        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.token_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as token:
            json.dump(payload, token)
        # O_CREAT mode is ignored when the file already existed
        os.chmod(self.token_path, 0o600)
        logger.debug(f"Saved OAuth credentials to {self.token_path}")

    def _read_client_config(self) -> dict:
        try:
            with open(self.client_secrets_path, "r", encoding="utf-8") as f:
                keys = json.load(f)
        except (OSError, ValueError) as e:
            raise AuthError(f"Cannot read OAuth client configuration {self.client_secrets_path}: {e}") from e

        key = keys.get("installed") or keys.get("web")
        if not key:
            raise AuthError(
                f"OAuth client configuration {self.client_secrets_path} has no 'installed' or 'web' section"
            )
        return key
