"""Authentication module for mailbox providers.

Provides a provider-agnostic interface over the cached-token layers for
Gmail (google-auth) and Outlook (msal).

Usage:
    from labelforge.auth import authenticate, get_provider_credentials

    # Perform OAuth flow (interactive)
    result = authenticate(account_config)

    # Cached credentials for an adapter (non-interactive)
    credentials = get_provider_credentials(account_config)
"""

from labelforge.config.schema import AccountConfig

from . import gmail, ms365

__all__ = [
    "authenticate",
    "get_provider_credentials",
    "is_authenticated",
]


def _missing(description: str) -> dict:
    return {"error": "missing_config", "error_description": description}


def authenticate(account: AccountConfig) -> dict:
    """Authenticate with the configured mailbox provider.

    Outlook uses Device Code Flow; Gmail uses the OAuth 2.0 loopback flow.

    Args:
        account: Account configuration from config.toml.

    Returns:
        Authentication result dict:
        - On success: contains 'access_token', plus provider-specific claims
        - On failure: contains 'error' and 'error_description'
    """
    provider = account.get("provider", "gmail")
    client_id = account.get("client_id")

    if provider == "outlook":
        tenant_id = account.get("tenant_id")
        if not client_id or not tenant_id:
            return _missing("Outlook account must have 'client_id' and 'tenant_id' configured.")
        return ms365.authenticate_device_flow(client_id, tenant_id)

    if provider == "gmail":
        if not client_id:
            return _missing("Gmail account must have 'client_id' configured.")

        client_secret = gmail.get_client_secret(account)
        if not client_secret:
            return _missing(
                f"Gmail client_secret not found. Set {gmail.CLIENT_SECRET_ENV} "
                "environment variable or add 'client_secret' to config."
            )
        return gmail.authenticate_loopback_flow(client_id, client_secret)

    return {
        "error": "unsupported_provider",
        "error_description": f"Provider '{provider}' is not supported. Use 'gmail' or 'outlook'.",
    }


def get_provider_credentials(account: AccountConfig):
    """Get what the provider adapter needs, from cached tokens only.

    Returns:
        google.oauth2 Credentials for Gmail, an access token string for
        Outlook, or None if not authenticated.
    """
    provider = account.get("provider", "gmail")

    if provider == "outlook":
        client_id = account.get("client_id")
        tenant_id = account.get("tenant_id")
        if not client_id or not tenant_id:
            return None
        return ms365.get_access_token(client_id, tenant_id)

    if provider == "gmail":
        return gmail.get_credentials()

    return None


def is_authenticated(account: AccountConfig) -> bool:
    """Check if the account has valid cached credentials."""
    return get_provider_credentials(account) is not None
