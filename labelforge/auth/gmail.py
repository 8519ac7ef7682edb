"""Gmail authentication via OAuth 2.0 Installed Application Flow.

The user's browser opens to Google's consent page and the authorization
code is captured via a local HTTP server redirect. Tokens are persisted
to ~/.config/labelforge/credentials/gmail_token.json
"""

import json
import logging
import os

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from labelforge.config.paths import GMAIL_TOKEN_FILE, ensure_credentials_dir

logger = logging.getLogger(__name__)

# Label management only; message contents are never read
SCOPES = ["https://www.googleapis.com/auth/gmail.labels"]

# Environment variable for client secret.
# Using env var is preferred over storing in config.toml for security.
CLIENT_SECRET_ENV = "LABELFORGE_GMAIL_CLIENT_SECRET"

REDIRECT_PORT = 8080
REDIRECT_URI = f"http://localhost:{REDIRECT_PORT}"


def _load_token() -> Credentials | None:
    """Load credentials from disk, or None if missing or invalid."""
    if not GMAIL_TOKEN_FILE.exists():
        return None

    try:
        return Credentials.from_authorized_user_file(str(GMAIL_TOKEN_FILE), SCOPES)
    except (ValueError, OSError):
        logger.warning("Ignoring unreadable Gmail token file %s", GMAIL_TOKEN_FILE)
        return None


def _save_token(creds: Credentials) -> None:
    """Persist credentials to disk with 600 permissions."""
    ensure_credentials_dir()

    GMAIL_TOKEN_FILE.write_text(creds.to_json())
    GMAIL_TOKEN_FILE.chmod(0o600)


def get_client_secret(account_config: dict) -> str | None:
    """Get client secret from environment variable or config.

    Environment variable takes precedence.
    """
    return os.environ.get(CLIENT_SECRET_ENV) or account_config.get("client_secret")


def _build_client_config(client_id: str, client_secret: str) -> dict:
    """Build the client config InstalledAppFlow normally reads from a download."""
    return {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": [REDIRECT_URI],
        }
    }


def get_credentials() -> Credentials | None:
    """Get cached Gmail credentials for API access.

    Refreshes expired tokens when a refresh token is available. Does not
    prompt for login.

    Returns:
        Credentials object or None if not authenticated.
    """
    creds = _load_token()
    if not creds:
        return None

    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            _save_token(creds)
        except GoogleAuthError as e:
            logger.info("Gmail token refresh failed: %s", e)
            return None

    return creds if creds.valid else None


def authenticate_loopback_flow(client_id: str, client_secret: str) -> dict:
    """Perform OAuth 2.0 loopback flow authentication.

    Returns cached credentials without prompting when they are still
    valid (or refreshable).

    Returns:
        Authentication result dict containing:
        - On success: 'access_token', 'refresh_token'
        - On failure: 'error' and 'error_description'
    """
    creds = get_credentials()
    if creds is not None:
        return {"access_token": creds.token, "refresh_token": creds.refresh_token}

    try:
        flow = InstalledAppFlow.from_client_config(
            _build_client_config(client_id, client_secret),
            scopes=SCOPES,
            redirect_uri=REDIRECT_URI,
        )
        creds = flow.run_local_server(
            port=REDIRECT_PORT,
            success_message="Authentication successful! You can close this window.",
        )
    except (GoogleAuthError, OSError, ValueError) as e:
        return {
            "error": "oauth_flow_failed",
            "error_description": f"OAuth 2.0 flow failed: {e}",
        }

    _save_token(creds)
    return {"access_token": creds.token, "refresh_token": creds.refresh_token}


def is_authenticated() -> bool:
    """Check if valid (or refreshable) cached credentials exist."""
    return get_credentials() is not None
