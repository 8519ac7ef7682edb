"""Tests for provider-agnostic authentication helpers."""

from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import RefreshError

from labelforge.auth import authenticate, get_provider_credentials, is_authenticated
from labelforge.auth import gmail as gmail_auth


class TestAuthenticate:
    """Tests for authenticate() dispatch."""

    def test_outlook_uses_device_flow(self):
        account = {"provider": "outlook", "client_id": "cid", "tenant_id": "tid"}
        with patch("labelforge.auth.ms365.authenticate_device_flow") as flow:
            flow.return_value = {"access_token": "t"}
            assert authenticate(account) == {"access_token": "t"}
        flow.assert_called_once_with("cid", "tid")

    def test_outlook_requires_tenant(self):
        result = authenticate({"provider": "outlook", "client_id": "cid"})
        assert result["error"] == "missing_config"

    def test_gmail_uses_loopback_flow(self, monkeypatch):
        monkeypatch.setenv(gmail_auth.CLIENT_SECRET_ENV, "secret")
        with patch("labelforge.auth.gmail.authenticate_loopback_flow") as flow:
            flow.return_value = {"access_token": "t"}
            authenticate({"provider": "gmail", "client_id": "cid"})
        flow.assert_called_once_with("cid", "secret")

    def test_gmail_requires_secret(self, monkeypatch):
        monkeypatch.delenv(gmail_auth.CLIENT_SECRET_ENV, raising=False)
        result = authenticate({"provider": "gmail", "client_id": "cid"})
        assert result["error"] == "missing_config"

    def test_unsupported_provider(self):
        result = authenticate({"provider": "yahoo", "client_id": "cid"})
        assert result["error"] == "unsupported_provider"


class TestProviderCredentials:
    """Tests for get_provider_credentials()."""

    def test_gmail_returns_cached_credentials(self):
        creds = MagicMock()
        with patch("labelforge.auth.gmail.get_credentials", return_value=creds):
            assert get_provider_credentials({"provider": "gmail"}) is creds

    def test_outlook_returns_token(self):
        account = {"provider": "outlook", "client_id": "cid", "tenant_id": "tid"}
        with patch("labelforge.auth.ms365.get_access_token", return_value="token") as get:
            assert get_provider_credentials(account) == "token"
        get.assert_called_once_with("cid", "tid")

    @pytest.mark.parametrize(
        "account",
        [{"provider": "outlook", "client_id": "cid"}, {"provider": "yahoo"}],
    )
    def test_incomplete_or_unknown(self, account):
        assert get_provider_credentials(account) is None
        assert not is_authenticated(account)


class TestGmailToken:
    """Tests for cached Gmail token handling."""

    def test_no_token(self):
        with patch("labelforge.auth.gmail._load_token", return_value=None):
            assert gmail_auth.get_credentials() is None

    def test_expired_token_refreshed_and_saved(self):
        creds = MagicMock(expired=True, refresh_token="r", valid=True)
        with (
            patch("labelforge.auth.gmail._load_token", return_value=creds),
            patch("labelforge.auth.gmail._save_token") as save,
        ):
            assert gmail_auth.get_credentials() is creds
        creds.refresh.assert_called_once()
        save.assert_called_once_with(creds)

    def test_failed_refresh(self):
        creds = MagicMock(expired=True, refresh_token="r")
        creds.refresh.side_effect = RefreshError("revoked")
        with patch("labelforge.auth.gmail._load_token", return_value=creds):
            assert gmail_auth.get_credentials() is None
