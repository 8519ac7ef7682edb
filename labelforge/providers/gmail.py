"""Gmail label adapter.

Gmail has no real label hierarchy: a nested label is a single label whose
name joins its ancestors with "/" (e.g., "MANAGER/Hailey"). The adapter
keeps an id -> full name cache so callers can address parents by id like
on a folder-tree provider.
"""

import json
import logging
import threading

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
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
from labelforge.schema.models import ColorSpec

from .base import Capabilities, ProviderAdapter, ProviderType, RemoteNode

logger = logging.getLogger(__name__)

SEPARATOR = "/"

# System labels and prefixes that cannot be used as user label names
RESERVED_LABELS = frozenset(
    {
        "INBOX",
        "SENT",
        "DRAFT",
        "DRAFTS",
        "SPAM",
        "TRASH",
        "STARRED",
        "IMPORTANT",
        "UNREAD",
        "CHAT",
        "CATEGORY_*",
    }
)

# 403 reasons Gmail uses for quota problems rather than missing consent
RATE_LIMIT_REASONS = frozenset(
    {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded", "dailyLimitExceeded"}
)

GMAIL_CAPABILITIES = Capabilities(
    supports_color=True,
    max_depth=None,
    path_separator=SEPARATOR,
    reserved_names=RESERVED_LABELS,
    case_sensitive=False,
    max_name_length=225,
)


def _error_reasons(error: HttpError) -> set[str]:
    """Extract the machine-readable reasons from a Gmail error body."""
    try:
        body = json.loads(error.content.decode("utf-8"))
        return {item.get("reason", "") for item in body["error"].get("errors", [])}
    except (AttributeError, ValueError, KeyError, TypeError):
        return set()


def _retry_after(error: HttpError) -> float | None:
    try:
        value = error.resp.get("retry-after")
        return float(value) if value is not None else None
    except (AttributeError, TypeError, ValueError):
        return None


def translate_http_error(error: HttpError) -> ProviderError:
    """Map a Gmail API HttpError onto the provider error taxonomy."""
    status = error.resp.status
    message = f"Gmail API error {status}: {error.reason if hasattr(error, 'reason') else error}"

    if status == 401:
        return AuthExpired(message, status)
    if status == 403:
        if _error_reasons(error) & RATE_LIMIT_REASONS:
            return RateLimited(message, status, retry_after=_retry_after(error))
        return PermissionDenied(message, status)
    if status == 404:
        return NotFound(message, status)
    if status == 409:
        return Conflict(message, status)
    if status == 429:
        return RateLimited(message, status, retry_after=_retry_after(error))
    if status == 400:
        # Gmail answers 400 "Invalid label name" for reserved or malformed names
        return CapabilityViolation(message, status)
    if status >= 500:
        return TransientError(message, status)
    return ProviderError(message, status)


class GmailLabelAdapter(ProviderAdapter):
    """Adapter for Gmail labels.

    Example:
        creds = get_credentials()
        adapter = GmailLabelAdapter(creds)
        label_id = adapter.create_node("MANAGER", None, ColorSpec("#ffad47", "#000000"))
        adapter.create_node("Hailey", label_id)  # creates "MANAGER/Hailey"
    """

    provider = ProviderType.gmail

    def __init__(self, credentials: Credentials):
        """Initialize the adapter with Google OAuth credentials.

        Args:
            credentials: Credentials with the gmail.labels scope.
        """
        self._credentials = credentials
        # googleapiclient services are not thread-safe; one per worker thread
        self._local = threading.local()
        self._names: dict[str, str] = {}
        self._names_lock = threading.Lock()

    def _service(self):
        if not hasattr(self._local, "service"):
            self._local.service = build(
                "gmail", "v1", credentials=self._credentials, cache_discovery=False
            )
        return self._local.service

    def _labels(self):
        return self._service().users().labels()

    @staticmethod
    def _execute(request) -> dict:
        try:
            return request.execute()
        except HttpError as e:
            raise translate_http_error(e) from e
        except (TimeoutError, ConnectionError) as e:
            raise TransientError(f"Gmail request failed: {e}") from e

    def _remember(self, label_id: str, name: str) -> None:
        with self._names_lock:
            self._names[label_id] = name

    def _forget(self, label_id: str) -> None:
        with self._names_lock:
            self._names.pop(label_id, None)

    def capabilities(self) -> Capabilities:
        return GMAIL_CAPABILITIES

    def list_labels(self) -> list[dict]:
        """List user labels in the mailbox.

        Returns:
            List of dicts with keys: id, name. System labels are excluded.
        """
        result = self._execute(self._labels().list(userId="me"))
        labels = [
            {"id": label["id"], "name": label["name"]}
            for label in result.get("labels", [])
            if label.get("type", "user") == "user"
        ]
        for label in labels:
            self._remember(label["id"], label["name"])
        return labels

    def full_name(self, label_id: str) -> str:
        """Resolve a label id into its full "/"-joined name.

        Raises:
            NotFound: If the label no longer exists.
        """
        with self._names_lock:
            cached = self._names.get(label_id)
        if cached is not None:
            return cached

        result = self._execute(self._labels().get(userId="me", id=label_id))
        self._remember(label_id, result["name"])
        return result["name"]

    def list_children(self, parent_id: str | None) -> list[RemoteNode]:
        prefix = self.full_name(parent_id) + SEPARATOR if parent_id else ""
        folded_prefix = prefix.casefold()

        children = []
        for label in self.list_labels():
            name = label["name"]
            if not name.casefold().startswith(folded_prefix):
                continue
            remainder = name[len(prefix):]
            if remainder and SEPARATOR not in remainder:
                children.append(RemoteNode(name=remainder, id=label["id"]))
        return children

    def create_node(
        self,
        name: str,
        parent_id: str | None,
        color: ColorSpec | None = None,
    ) -> str:
        parent_name = self.full_name(parent_id) if parent_id else None
        depth = parent_name.count(SEPARATOR) + 2 if parent_name else 1
        self.check_name(name, depth)

        full_name = f"{parent_name}{SEPARATOR}{name}" if parent_name else name
        if len(full_name) > GMAIL_CAPABILITIES.max_name_length:
            raise CapabilityViolation(f"Label '{full_name[:40]}...' is too long")

        body = {
            "name": full_name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        if color is not None:
            body["color"] = color.to_gmail()

        result = self._execute(self._labels().create(userId="me", body=body))
        self._remember(result["id"], full_name)
        logger.debug("Created Gmail label %s (%s)", full_name, result["id"])
        return result["id"]

    def _rename(self, label_id: str, new_name: str) -> None:
        self._execute(
            self._labels().patch(userId="me", id=label_id, body={"name": new_name})
        )
        self._remember(label_id, new_name)

    def move_node(
        self,
        node_id: str,
        new_parent_id: str | None,
        new_name: str | None = None,
    ) -> str:
        old_name = self.full_name(node_id)
        leaf = new_name or old_name.rsplit(SEPARATOR, 1)[-1]
        parent_name = self.full_name(new_parent_id) if new_parent_id else None
        depth = parent_name.count(SEPARATOR) + 2 if parent_name else 1
        self.check_name(leaf, depth)

        target = f"{parent_name}{SEPARATOR}{leaf}" if parent_name else leaf

        # Nested labels are independent labels; carry descendants along
        old_prefix = old_name + SEPARATOR
        descendants = [
            label for label in self.list_labels() if label["name"].startswith(old_prefix)
        ]

        self._rename(node_id, target)
        for label in descendants:
            self._rename(label["id"], target + SEPARATOR + label["name"][len(old_prefix):])

        logger.debug("Moved Gmail label %s -> %s", old_name, target)
        return node_id

    def delete_node(self, node_id: str) -> None:
        self._execute(self._labels().delete(userId="me", id=node_id))
        self._forget(node_id)

    def count_items(self, node_id: str) -> int:
        result = self._execute(self._labels().get(userId="me", id=node_id))
        self._remember(node_id, result["name"])
        return int(result.get("messagesTotal", 0))
