"""
Google Drive OAuth 2.0 credentials.

Listing needs read-only metadata access only. Tokens are cached on disk
under ~/.remote-lsf so the browser consent flow runs once; after that the
refresh token keeps the access token current.
"""

import json
import logging
from pathlib import Path

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.metadata.readonly"]

DEFAULT_TOKEN_DIR = Path.home() / ".remote-lsf"
DEFAULT_TOKEN_FILE = DEFAULT_TOKEN_DIR / "gdrive-token.json"


def get_token_path(token_file: str | None = None) -> Path:
    return Path(token_file) if token_file else DEFAULT_TOKEN_FILE


def load_credentials(token_path: Path) -> Credentials | None:
    """Read cached credentials, or None when absent or unreadable."""
    if not token_path.exists():
        logger.debug("No cached token at %s", token_path)
        return None

    try:
        return Credentials.from_authorized_user_file(str(token_path), SCOPES)
    except (json.JSONDecodeError, ValueError, KeyError) as e:
        logger.warning("Ignoring unreadable token file %s: %s", token_path, e)
        return None


def save_credentials(creds: Credentials, token_path: Path) -> None:
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json(), encoding="utf-8")
    logger.info("Saved credentials to %s", token_path)


def refresh_credentials(creds: Credentials | None) -> Credentials | None:
    """
    Bring credentials up to date using their refresh token.

    Returns:
        The credentials if they are (now) valid, otherwise None.
    """
    if creds is None or not creds.refresh_token:
        return None
    if creds.valid:
        return creds

    try:
        creds.refresh(Request())
    except (RefreshError, TransportError) as e:
        logger.warning("Token refresh failed: %s", e)
        return None

    logger.debug("Refreshed access token")
    return creds if creds.valid else None


def run_auth_flow(client_secrets_file: str) -> Credentials:
    """
    Run the browser consent flow.

    A temporary local HTTP server on an ephemeral port receives the
    redirect.

    Raises:
        FileNotFoundError: If client_secrets_file doesn't exist.
    """
    secrets_path = Path(client_secrets_file)
    if not secrets_path.exists():
        raise FileNotFoundError(
            f"Client secrets file not found: {client_secrets_file}\n"
            "Create an OAuth client ID (Desktop app) in Google Cloud Console "
            "and download its JSON"
        )

    logger.warning("Opening browser for Google authorization...")
    flow = InstalledAppFlow.from_client_secrets_file(str(secrets_path), scopes=SCOPES)
    creds = flow.run_local_server(port=0, prompt="consent", access_type="offline")
    logger.info("Authorization successful")
    return creds


def get_or_refresh_credentials(
    client_secrets_file: str | None = None,
    token_file: str | None = None,
) -> Credentials:
    """
    Return usable credentials: cached, refreshed, or freshly authorized.

    Raises:
        ValueError: If nothing is cached and no client_secrets_file was given.
        FileNotFoundError: If client_secrets_file doesn't exist.
    """
    token_path = get_token_path(token_file)

    creds = load_credentials(token_path)
    if creds is not None and creds.valid:
        return creds

    if creds is not None and creds.expired:
        refreshed = refresh_credentials(creds)
        if refreshed is not None:
            save_credentials(refreshed, token_path)
            return refreshed

    if not client_secrets_file:
        raise ValueError(
            "No saved Google Drive credentials found.\n"
            "Run: remote-lsf --client-secrets <path-to-client_secrets.json> gdrive:\n"
            "to authorize access to your Google Drive."
        )

    creds = run_auth_flow(client_secrets_file)
    save_credentials(creds, token_path)
    return creds
