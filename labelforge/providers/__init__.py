"""Mailbox provider adapters.

Usage:
    from labelforge.providers import create_adapter

    adapter = create_adapter("gmail", credentials)
    adapter.create_node("MANAGER", None)
"""

from .base import Capabilities, ProviderAdapter, ProviderType, RemoteNode
from .detection import Detection, ProviderDetector
from .gmail import GmailLabelAdapter
from .outlook import OutlookFolderAdapter

__all__ = [
    "Capabilities",
    "Detection",
    "GmailLabelAdapter",
    "OutlookFolderAdapter",
    "ProviderAdapter",
    "ProviderDetector",
    "ProviderType",
    "RemoteNode",
    "create_adapter",
]


def create_adapter(provider: ProviderType | str, credentials) -> ProviderAdapter:
    """Build the adapter for a provider.

    Args:
        provider: "gmail" or "outlook".
        credentials: google.oauth2 Credentials for Gmail, an access token
                     string for Outlook.

    Raises:
        ValueError: If the provider is not supported.
    """
    try:
        provider = ProviderType(provider)
    except ValueError:
        raise ValueError(
            f"Provider '{provider}' is not supported. Use 'gmail' or 'outlook'."
        ) from None

    if provider is ProviderType.gmail:
        return GmailLabelAdapter(credentials)
    return OutlookFolderAdapter(credentials)
