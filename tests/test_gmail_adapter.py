"""Tests for the Gmail label adapter.

Uses mocking to test API interactions without real credentials.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from labelforge.errors import (
    AuthExpired,
    CapabilityViolation,
    Conflict,
    NotFound,
    PermissionDenied,
    ProviderError,
    RateLimited,
    TransientError,
)
from labelforge.providers.gmail import GmailLabelAdapter, translate_http_error
from labelforge.schema.models import ColorSpec


def make_http_error(status: int, reason: str | None = None, retry_after=None) -> HttpError:
    """Build an HttpError the way googleapiclient does for a failed request."""
    mock_resp = MagicMock()
    mock_resp.status = status
    mock_resp.reason = "error"
    mock_resp.get.side_effect = lambda key, default=None: (
        retry_after if key == "retry-after" else default
    )
    body = {"error": {"code": status, "message": "error", "errors": []}}
    if reason:
        body["error"]["errors"].append({"reason": reason, "message": reason})
    return HttpError(mock_resp, json.dumps(body).encode("utf-8"))


@pytest.fixture
def mock_credentials():
    """Create mock credentials for testing."""
    creds = MagicMock()
    creds.valid = True
    creds.expired = False
    return creds


@pytest.fixture
def mock_service():
    """Create a mock Gmail service."""
    return MagicMock()


@pytest.fixture
def gmail_adapter(mock_credentials, mock_service):
    """Create a GmailLabelAdapter with mocked service."""
    with patch("labelforge.providers.gmail.build") as mock_build:
        mock_build.return_value = mock_service
        yield GmailLabelAdapter(mock_credentials)


def labels_api(mock_service):
    return mock_service.users().labels()


class TestTranslateHttpError:
    """Tests for translate_http_error."""

    @pytest.mark.parametrize(
        "status, expected",
        [
            (401, AuthExpired),
            (403, PermissionDenied),
            (404, NotFound),
            (409, Conflict),
            (429, RateLimited),
            (400, CapabilityViolation),
            (500, TransientError),
            (503, TransientError),
            (418, ProviderError),
        ],
    )
    def test_maps_status(self, status, expected):
        error = translate_http_error(make_http_error(status))
        assert type(error) is expected
        assert error.status == status

    def test_403_rate_limit_reason_is_rate_limited(self):
        error = translate_http_error(make_http_error(403, reason="userRateLimitExceeded"))
        assert isinstance(error, RateLimited)

    def test_429_keeps_retry_after(self):
        error = translate_http_error(make_http_error(429, retry_after="7"))
        assert error.retry_after == 7.0

    def test_unparseable_retry_after_ignored(self):
        error = translate_http_error(make_http_error(429, retry_after="soon"))
        assert error.retry_after is None


class TestListChildren:
    """Tests for list_children."""

    def test_top_level_excludes_nested_and_system_labels(self, gmail_adapter, mock_service):
        labels_api(mock_service).list().execute.return_value = {
            "labels": [
                {"id": "INBOX", "name": "INBOX", "type": "system"},
                {"id": "Label_1", "name": "MANAGER", "type": "user"},
                {"id": "Label_2", "name": "MANAGER/Hailey", "type": "user"},
                {"id": "Label_3", "name": "SALES"},
            ]
        }

        children = gmail_adapter.list_children(None)

        assert [(c.name, c.id) for c in children] == [("MANAGER", "Label_1"), ("SALES", "Label_3")]

    def test_children_of_parent_by_prefix(self, gmail_adapter, mock_service):
        labels_api(mock_service).get().execute.return_value = {"id": "Label_1", "name": "MANAGER"}
        labels_api(mock_service).list().execute.return_value = {
            "labels": [
                {"id": "Label_1", "name": "MANAGER", "type": "user"},
                {"id": "Label_2", "name": "manager/Hailey", "type": "user"},
                {"id": "Label_3", "name": "MANAGER/Hailey/Old", "type": "user"},
                {"id": "Label_4", "name": "MANAGERS", "type": "user"},
            ]
        }

        children = gmail_adapter.list_children("Label_1")

        assert [(c.name, c.id) for c in children] == [("Hailey", "Label_2")]


class TestCreateNode:
    """Tests for create_node."""

    def test_creates_top_level_label_with_color(self, gmail_adapter, mock_service):
        labels_api(mock_service).create().execute.return_value = {"id": "Label_1"}

        node_id = gmail_adapter.create_node("MANAGER", None, ColorSpec("#ffad47", "#000000"))

        assert node_id == "Label_1"
        body = labels_api(mock_service).create.call_args.kwargs["body"]
        assert body["name"] == "MANAGER"
        assert body["color"] == {"backgroundColor": "#ffad47", "textColor": "#000000"}

    def test_nested_name_joins_parent(self, gmail_adapter, mock_service):
        labels_api(mock_service).create().execute.side_effect = [
            {"id": "Label_1"},
            {"id": "Label_2"},
        ]

        parent_id = gmail_adapter.create_node("MANAGER", None)
        gmail_adapter.create_node("Hailey", parent_id)

        body = labels_api(mock_service).create.call_args.kwargs["body"]
        assert body["name"] == "MANAGER/Hailey"
        assert "color" not in body

    def test_unknown_parent_is_looked_up(self, gmail_adapter, mock_service):
        labels_api(mock_service).get().execute.return_value = {"id": "Label_9", "name": "SALES"}
        labels_api(mock_service).create().execute.return_value = {"id": "Label_10"}

        gmail_adapter.create_node("Quotes", "Label_9")

        body = labels_api(mock_service).create.call_args.kwargs["body"]
        assert body["name"] == "SALES/Quotes"

    def test_vanished_parent_raises_not_found(self, gmail_adapter, mock_service):
        labels_api(mock_service).get().execute.side_effect = make_http_error(404)

        with pytest.raises(NotFound):
            gmail_adapter.create_node("Quotes", "Label_gone")

    @pytest.mark.parametrize("name", ["INBOX", "inbox", "CATEGORY_SOCIAL", "A/B", "  "])
    def test_rejects_invalid_top_level_names(self, gmail_adapter, mock_service, name):
        with pytest.raises(CapabilityViolation):
            gmail_adapter.create_node(name, None)
        labels_api(mock_service).create().execute.assert_not_called()

    def test_reserved_name_allowed_when_nested(self, gmail_adapter, mock_service):
        labels_api(mock_service).create().execute.side_effect = [
            {"id": "Label_1"},
            {"id": "Label_2"},
        ]

        parent_id = gmail_adapter.create_node("MISC", None)
        assert gmail_adapter.create_node("Inbox", parent_id) == "Label_2"

    def test_conflict_translated(self, gmail_adapter, mock_service):
        labels_api(mock_service).create().execute.side_effect = make_http_error(409)

        with pytest.raises(Conflict):
            gmail_adapter.create_node("MANAGER", None)

    def test_timeout_is_transient(self, gmail_adapter, mock_service):
        labels_api(mock_service).create().execute.side_effect = TimeoutError("timed out")

        with pytest.raises(TransientError):
            gmail_adapter.create_node("MANAGER", None)


class TestMoveNode:
    """Tests for move_node."""

    def test_renames_label_and_descendants(self, gmail_adapter, mock_service):
        api = labels_api(mock_service)
        api.list().execute.return_value = {
            "labels": [
                {"id": "Label_1", "name": "MANAGER", "type": "user"},
                {"id": "Label_2", "name": "MANAGER/Hailey", "type": "user"},
                {"id": "Label_3", "name": "MANAGER/Hailey/Old", "type": "user"},
                {"id": "Label_4", "name": "ARCHIVED/MANAGER", "type": "user"},
            ]
        }
        gmail_adapter.list_labels()

        node_id = gmail_adapter.move_node("Label_2", "Label_4")

        assert node_id == "Label_2"
        renames = [c.kwargs for c in api.patch.call_args_list if c.kwargs]
        assert {"userId": "me", "id": "Label_2", "body": {"name": "ARCHIVED/MANAGER/Hailey"}} in renames
        assert {
            "userId": "me",
            "id": "Label_3",
            "body": {"name": "ARCHIVED/MANAGER/Hailey/Old"},
        } in renames
        assert gmail_adapter.full_name("Label_2") == "ARCHIVED/MANAGER/Hailey"

    def test_move_with_new_name(self, gmail_adapter, mock_service):
        api = labels_api(mock_service)
        api.list().execute.return_value = {
            "labels": [
                {"id": "Label_2", "name": "MANAGER/Hailey", "type": "user"},
                {"id": "Label_4", "name": "ARCHIVED/MANAGER", "type": "user"},
            ]
        }
        gmail_adapter.list_labels()

        gmail_adapter.move_node("Label_2", "Label_4", "Hailey (2)")

        assert api.patch.call_args.kwargs["body"] == {"name": "ARCHIVED/MANAGER/Hailey (2)"}


class TestDeleteAndCount:
    """Tests for delete_node and count_items."""

    def test_delete(self, gmail_adapter, mock_service):
        gmail_adapter.delete_node("Label_2")

        labels_api(mock_service).delete.assert_called_with(userId="me", id="Label_2")

    def test_count_items(self, gmail_adapter, mock_service):
        labels_api(mock_service).get().execute.return_value = {
            "id": "Label_2",
            "name": "MANAGER/Hailey",
            "messagesTotal": 12,
        }

        assert gmail_adapter.count_items("Label_2") == 12

    def test_count_items_missing_total(self, gmail_adapter, mock_service):
        labels_api(mock_service).get().execute.return_value = {"id": "Label_2", "name": "X"}

        assert gmail_adapter.count_items("Label_2") == 0
