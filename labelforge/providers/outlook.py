"""Outlook mail folder adapter (Microsoft Graph v1.0).

Outlook folders form a real tree: children are addressed by parent id
and names are stored per folder, so no name encoding is needed. Colors
are not supported and nesting is capped at MAX_DEPTH levels.
"""

import logging
import threading

import requests

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

GRAPH_URL = "https://graph.microsoft.com/v1.0"

# Well-known folder name usable as a move destination for top-level folders
ROOT_FOLDER = "msgfolderroot"

MAX_DEPTH = 10
PAGE_SIZE = 100

# Well-known folders, compared case-insensitively at the top level
RESERVED_FOLDERS = frozenset(
    {
        "inbox",
        "drafts",
        "sent",
        "sent items",
        "deleted items",
        "junk email",
        "outbox",
        "archive",
        "conversation history",
        "sync issues",
        "clutter",
    }
)

# Graph sometimes reports a duplicate folder as 400 with one of these codes
FOLDER_EXISTS_CODES = frozenset({"ErrorFolderExists", "ErrorDuplicateFolderName"})

OUTLOOK_CAPABILITIES = Capabilities(
    supports_color=False,
    max_depth=MAX_DEPTH,
    path_separator=None,
    reserved_names=RESERVED_FOLDERS,
    case_sensitive=True,
    max_name_length=255,
)


def _error_body(response: requests.Response) -> tuple[str, str]:
    """Return (code, message) from a Graph error response."""
    try:
        error = response.json().get("error", {})
        return error.get("code", ""), error.get("message", "")
    except (ValueError, AttributeError):
        return "", response.text[:200] if response.text else ""


def _retry_after(response: requests.Response) -> float | None:
    value = response.headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def translate_graph_error(response: requests.Response) -> ProviderError:
    """Map a failed Graph response onto the provider error taxonomy."""
    status = response.status_code
    code, detail = _error_body(response)
    message = f"Graph API error {status}"
    if code:
        message += f" {code}"
    if detail:
        message += f": {detail}"

    if status == 401:
        return AuthExpired(message, status)
    if status == 403:
        return PermissionDenied(message, status)
    if status == 404:
        return NotFound(message, status)
    if status == 409 or code in FOLDER_EXISTS_CODES:
        return Conflict(message, status)
    if status == 429:
        return RateLimited(message, status, retry_after=_retry_after(response))
    if status == 400:
        return CapabilityViolation(message, status)
    if status >= 500:
        return TransientError(message, status)
    return ProviderError(message, status)


class OutlookFolderAdapter(ProviderAdapter):
    """Adapter for Outlook mail folders.

    Example:
        token = get_access_token(account)
        adapter = OutlookFolderAdapter(token)
        folder_id = adapter.create_node("MANAGER", None)
        adapter.create_node("Hailey", folder_id)
    """

    provider = ProviderType.outlook

    def __init__(self, access_token: str, base_url: str = GRAPH_URL, timeout=(10, 60)):
        """Initialize the adapter.

        Args:
            access_token: Graph access token with Mail.ReadWrite.
            base_url: Graph endpoint (overridable for national clouds).
            timeout: requests (connect, read) timeout.
        """
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._thread_local = threading.local()
        # folder id -> depth (1 = top level), learned from list/create calls
        self._depths: dict[str, int] = {}
        self._depths_lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self._access_token}",
                "Content-Type": "application/json",
            }
        )
        return session

    def _url(self, path: str) -> str:
        if path.startswith("https://"):
            return path
        return f"{self._base_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._get_session().request(
                method, self._url(path), timeout=self._timeout, **kwargs
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise TransientError(f"Graph request failed: {e}") from e

        if response.status_code >= 400:
            raise translate_graph_error(response)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def _set_depth(self, folder_id: str, depth: int) -> None:
        with self._depths_lock:
            self._depths[folder_id] = depth

    def _depth_of(self, folder_id: str | None) -> int | None:
        if folder_id is None:
            return 0
        with self._depths_lock:
            return self._depths.get(folder_id)

    def capabilities(self) -> Capabilities:
        return OUTLOOK_CAPABILITIES

    def list_children(self, parent_id: str | None) -> list[RemoteNode]:
        if parent_id is None:
            url = f"/me/mailFolders?$top={PAGE_SIZE}"
        else:
            url = f"/me/mailFolders/{parent_id}/childFolders?$top={PAGE_SIZE}"

        parent_depth = self._depth_of(parent_id)
        children = []
        while url:
            page = self._request("GET", url)
            for folder in page.get("value", []):
                children.append(RemoteNode(name=folder["displayName"], id=folder["id"]))
                if parent_depth is not None:
                    self._set_depth(folder["id"], parent_depth + 1)
            url = page.get("@odata.nextLink")
        return children

    def create_node(
        self,
        name: str,
        parent_id: str | None,
        color: ColorSpec | None = None,
    ) -> str:
        parent_depth = self._depth_of(parent_id)
        depth = parent_depth + 1 if parent_depth is not None else None
        self.check_name(name, depth)

        if parent_id is None:
            path = "/me/mailFolders"
        else:
            path = f"/me/mailFolders/{parent_id}/childFolders"

        folder = self._request("POST", path, json={"displayName": name})
        if depth is not None:
            self._set_depth(folder["id"], depth)
        logger.debug("Created Outlook folder %s (%s)", name, folder["id"])
        return folder["id"]

    def move_node(
        self,
        node_id: str,
        new_parent_id: str | None,
        new_name: str | None = None,
    ) -> str:
        parent_depth = self._depth_of(new_parent_id)
        if new_name is not None:
            self.check_name(new_name, parent_depth + 1 if parent_depth is not None else None)
            # Rename before moving so the destination never sees the old name
            self._request(
                "PATCH", f"/me/mailFolders/{node_id}", json={"displayName": new_name}
            )

        folder = self._request(
            "POST",
            f"/me/mailFolders/{node_id}/move",
            json={"destinationId": new_parent_id or ROOT_FOLDER},
        )
        moved_id = folder.get("id", node_id)

        with self._depths_lock:
            self._depths.pop(node_id, None)
        if parent_depth is not None:
            self._set_depth(moved_id, parent_depth + 1)
        return moved_id

    def delete_node(self, node_id: str) -> None:
        self._request("DELETE", f"/me/mailFolders/{node_id}")
        with self._depths_lock:
            self._depths.pop(node_id, None)

    def count_items(self, node_id: str) -> int:
        folder = self._request(
            "GET", f"/me/mailFolders/{node_id}?$select=totalItemCount"
        )
        return int(folder.get("totalItemCount", 0))
