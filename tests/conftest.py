"""Shared fixtures: an in-memory provider adapter that records calls."""

import threading

import pytest

from labelforge.errors import Conflict, NotFound
from labelforge.providers.base import Capabilities, ProviderAdapter, ProviderType, RemoteNode
from labelforge.schema.models import Supplier, TeamMember, TeamSnapshot
from labelforge.sync.retry import RetryPolicy

FLAT_CAPABILITIES = Capabilities(
    supports_color=True,
    max_depth=None,
    path_separator="/",
    reserved_names=frozenset({"INBOX", "SENT", "CATEGORY_*"}),
    case_sensitive=False,
    max_name_length=225,
)

TREE_CAPABILITIES = Capabilities(
    supports_color=False,
    max_depth=3,
    path_separator=None,
    reserved_names=frozenset({"inbox", "archive"}),
    case_sensitive=True,
    max_name_length=255,
)


class FakeAdapter(ProviderAdapter):
    """In-memory mailbox with per-path error injection.

    Nodes live in a dict keyed by id. Errors queued with fail() are
    raised, one per call, when the operation touches that path.
    """

    def __init__(self, provider=ProviderType.gmail, capabilities=FLAT_CAPABILITIES):
        self.provider = provider
        self._capabilities = capabilities
        self.nodes: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self._errors: dict[tuple[str, tuple], list[Exception]] = {}
        self._lock = threading.Lock()
        self._next_id = 0

    def fail(self, op: str, path: tuple, *errors: Exception) -> None:
        with self._lock:
            self._errors.setdefault((op, tuple(path)), []).extend(errors)

    def _check(self, op: str, path: tuple) -> None:
        with self._lock:
            queue = self._errors.get((op, path))
            error = queue.pop(0) if queue else None
        if error is not None:
            raise error

    def _new_id(self) -> str:
        self._next_id += 1
        return f"id-{self._next_id}"

    def path_of(self, node_id: str) -> tuple:
        parts = []
        while node_id is not None:
            node = self.nodes[node_id]
            parts.append(node["name"])
            node_id = node["parent"]
        return tuple(reversed(parts))

    def id_of(self, path: tuple) -> str | None:
        for node_id in list(self.nodes):
            if self.path_of(node_id) == tuple(path):
                return node_id
        return None

    def paths(self) -> set[tuple]:
        return {self.path_of(node_id) for node_id in self.nodes}

    def calls_to(self, op: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == op]

    def add_remote(self, path: tuple, items: int = 0) -> str:
        """Create a node (and missing parents) without recording a call."""
        parent_id = None
        for depth in range(1, len(path) + 1):
            node_id = self.id_of(path[:depth])
            if node_id is None:
                node_id = self._new_id()
                self.nodes[node_id] = {"name": path[depth - 1], "parent": parent_id, "items": 0}
            parent_id = node_id
        self.nodes[parent_id]["items"] = items
        return parent_id

    def remove_remote(self, path: tuple) -> None:
        """Delete a node and its descendants without recording a call."""
        assert self.id_of(path) is not None
        self._drop(tuple(path))

    def _drop(self, path: tuple) -> None:
        doomed = [other for other in self.nodes if self.path_of(other)[: len(path)] == path]
        for other in doomed:
            del self.nodes[other]

    def capabilities(self) -> Capabilities:
        return self._capabilities

    def _children(self, parent_id):
        return [
            (node_id, node) for node_id, node in self.nodes.items() if node["parent"] == parent_id
        ]

    def list_children(self, parent_id):
        with self._lock:
            self.calls.append(("list_children", parent_id))
            if parent_id is not None and parent_id not in self.nodes:
                raise NotFound(f"{parent_id} not found", 404)
            path = self.path_of(parent_id) if parent_id else ()
        self._check("list_children", path)
        with self._lock:
            return [RemoteNode(node["name"], node_id) for node_id, node in self._children(parent_id)]

    def create_node(self, name, parent_id, color=None):
        with self._lock:
            self.calls.append(("create_node", name, parent_id, color))
            if parent_id is not None and parent_id not in self.nodes:
                raise NotFound(f"{parent_id} not found", 404)
            path = (self.path_of(parent_id) if parent_id else ()) + (name,)
        self._check("create_node", path)
        with self._lock:
            for _, node in self._children(parent_id):
                if self._capabilities.same_name(node["name"], name):
                    raise Conflict(f"{name} exists", 409)
            node_id = self._new_id()
            self.nodes[node_id] = {"name": name, "parent": parent_id, "items": 0}
            return node_id

    def move_node(self, node_id, new_parent_id, new_name=None):
        with self._lock:
            self.calls.append(("move_node", node_id, new_parent_id, new_name))
            if node_id not in self.nodes:
                raise NotFound(f"{node_id} not found", 404)
            if new_parent_id is not None and new_parent_id not in self.nodes:
                raise NotFound(f"{new_parent_id} not found", 404)
            path = self.path_of(node_id)
        self._check("move_node", path)
        with self._lock:
            name = new_name or self.nodes[node_id]["name"]
            for other_id, node in self._children(new_parent_id):
                if other_id != node_id and self._capabilities.same_name(node["name"], name):
                    raise Conflict(f"{name} exists", 409)
            self.nodes[node_id]["name"] = name
            self.nodes[node_id]["parent"] = new_parent_id
            return node_id

    def delete_node(self, node_id):
        with self._lock:
            self.calls.append(("delete_node", node_id))
            if node_id not in self.nodes:
                raise NotFound(f"{node_id} not found", 404)
            path = self.path_of(node_id)
        self._check("delete_node", path)
        with self._lock:
            self._drop(path)

    def count_items(self, node_id):
        with self._lock:
            self.calls.append(("count_items", node_id))
            if node_id not in self.nodes:
                raise NotFound(f"{node_id} not found", 404)
            path = self.path_of(node_id)
        self._check("count_items", path)
        return self.nodes[node_id]["items"]


@pytest.fixture
def adapter() -> FakeAdapter:
    """A Gmail-like fake adapter (flat names, case-insensitive)."""
    return FakeAdapter()


@pytest.fixture
def tree_adapter() -> FakeAdapter:
    """An Outlook-like fake adapter (folder tree, depth limit 3)."""
    return FakeAdapter(provider=ProviderType.outlook, capabilities=TREE_CAPABILITIES)


@pytest.fixture
def sleeps() -> list[float]:
    """Records delays requested by the retry policy."""
    return []


@pytest.fixture
def retry_policy(sleeps) -> RetryPolicy:
    """Fast retry policy: no jitter, records sleeps instead of sleeping."""
    return RetryPolicy(max_attempts=3, jitter=False, sleep=sleeps.append)


@pytest.fixture
def team() -> TeamSnapshot:
    """Two managers and two suppliers."""
    return TeamSnapshot(
        managers=(
            TeamMember("Hailey", email="hailey@acme-hvac.com"),
            TeamMember("Jillian"),
        ),
        suppliers=(
            Supplier("Lennox", domains=("lennox.com",)),
            Supplier("Daikin", domains=("@Daikin.com",)),
        ),
    )
