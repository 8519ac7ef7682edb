"""Microsoft 365 (Outlook) authentication via MSAL Device Code Flow.

The user gets a code and URL, authenticates in their browser, and the
CLI receives tokens. MSAL's SerializableTokenCache is persisted to
~/.config/labelforge/credentials/ms365_cache.json
"""

import logging
import os
import sys

import msal

from labelforge.config.paths import MS365_CACHE_FILE, ensure_credentials_dir

logger = logging.getLogger(__name__)

# Mail.ReadWrite covers mail folder create/move/delete.
# offline_access is added by MSAL automatically.
SCOPES = ["User.Read", "Mail.ReadWrite"]

# Environment variable for client secret.
# Using env var is preferred over storing in config.toml for security.
CLIENT_SECRET_ENV = "LABELFORGE_MS365_CLIENT_SECRET"


def _load_token_cache() -> msal.SerializableTokenCache:
    """Load the token cache from disk (empty if there is none)."""
    cache = msal.SerializableTokenCache()

    if MS365_CACHE_FILE.exists():
        cache.deserialize(MS365_CACHE_FILE.read_text())

    return cache


def _save_token_cache(cache: msal.SerializableTokenCache) -> None:
    """Persist the token cache with 600 permissions, if it changed."""
    if not cache.has_state_changed:
        return

    ensure_credentials_dir()
    MS365_CACHE_FILE.write_text(cache.serialize())
    MS365_CACHE_FILE.chmod(0o600)


def get_client_secret(account_config: dict) -> str | None:
    """Get client secret from environment variable or config.

    Device Code Flow does not need one; it is accepted for parity with
    Gmail accounts.
    """
    return os.environ.get(CLIENT_SECRET_ENV) or account_config.get("client_secret")


def _build_msal_app(
    client_id: str,
    tenant_id: str,
    cache: msal.SerializableTokenCache | None = None,
) -> msal.PublicClientApplication:
    """Build an MSAL PublicClientApplication for the tenant."""
    return msal.PublicClientApplication(
        client_id=client_id,
        authority=f"https://login.microsoftonline.com/{tenant_id}",
        token_cache=cache,
    )


def _acquire_silent(app: msal.PublicClientApplication) -> dict | None:
    accounts = app.get_accounts()
    if not accounts:
        return None

    result = app.acquire_token_silent(SCOPES, account=accounts[0])
    if result and "access_token" in result:
        return result

    if result:
        logger.info("Silent token acquisition failed: %s", result.get("error"))
    return None


def authenticate_device_flow(client_id: str, tenant_id: str) -> dict:
    """Perform Device Code Flow authentication.

    Returns cached tokens without prompting when they are usable.
    Otherwise prints the sign-in instructions and blocks until the user
    completes them or the flow times out.

    Returns:
        Authentication result dict containing:
        - On success: 'access_token', 'id_token_claims', etc.
        - On failure: 'error' and 'error_description'
    """
    cache = _load_token_cache()
    app = _build_msal_app(client_id, tenant_id, cache)

    result = _acquire_silent(app)
    if result is not None:
        _save_token_cache(cache)
        return result

    flow = app.initiate_device_flow(scopes=SCOPES)
    if "user_code" not in flow:
        return {
            "error": "device_flow_failed",
            "error_description": flow.get(
                "error_description", "Failed to initiate device flow"
            ),
        }

    # MSAL's message contains the URL and the code to enter
    print(flow["message"])
    sys.stdout.flush()

    result = app.acquire_token_by_device_flow(flow)
    _save_token_cache(cache)
    return result


def get_access_token(client_id: str, tenant_id: str) -> str | None:
    """Get a valid access token from the cache, refreshing silently.

    Returns:
        Access token string, or None if not authenticated.
    """
    cache = _load_token_cache()
    app = _build_msal_app(client_id, tenant_id, cache)

    result = _acquire_silent(app)
    _save_token_cache(cache)
    return result["access_token"] if result else None


def is_authenticated(client_id: str, tenant_id: str) -> bool:
    """Check if usable cached credentials exist."""
    return get_access_token(client_id, tenant_id) is not None
