"""Sync engine: reconcile a canonical label tree against a provider.

The walk is depth-first and pre-order. A scheduler on the calling thread
owns the identifier map; only adapter calls run on the worker pool.
Children are scheduled only once their parent's id is known, so parents
always exist before their children.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from labelforge.errors import (
    FATAL_ERRORS,
    CapabilityViolation,
    Conflict,
    NotFound,
    ProviderError,
)
from labelforge.providers.base import ProviderAdapter
from labelforge.schema.composer import iter_nodes
from labelforge.schema.models import SchemaNode
from labelforge.sync.retry import RetryPolicy
from labelforge.sync.state import IdentifierMap

logger = logging.getLogger(__name__)

LabelPath = tuple[str, ...]

DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class FailedNode:
    """A node that could not be provisioned.

    Attributes:
        path: Logical path of the node.
        kind: Error kind (e.g., "capability_violation", "transient").
        message: Error description.
    """

    path: LabelPath
    kind: str
    message: str


@dataclass
class SyncResult:
    """Result of a reconcile run.

    Tracks what happened to every node of the tree. Paths of nodes below
    a failed node are listed in not_attempted.
    dropped lists map entries found missing remotely by a verify pass.
    """

    label_map: IdentifierMap
    created: list[LabelPath] = field(default_factory=list)
    skipped: list[LabelPath] = field(default_factory=list)
    adopted: list[LabelPath] = field(default_factory=list)
    dropped: list[LabelPath] = field(default_factory=list)
    failed: list[FailedNode] = field(default_factory=list)
    not_attempted: list[LabelPath] = field(default_factory=list)
    fatal_error: ProviderError | None = None
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return (
            not self.failed
            and not self.not_attempted
            and self.fatal_error is None
            and not self.cancelled
        )

    def add_failure(self, path: LabelPath, error: Exception) -> None:
        kind = getattr(error, "kind", type(error).__name__)
        self.failed.append(FailedNode(path, kind, str(error)))

    def forget(self, paths: set[LabelPath]) -> None:
        """Drop outcomes for paths that are being provisioned again."""
        self.created = [p for p in self.created if p not in paths]
        self.skipped = [p for p in self.skipped if p not in paths]
        self.adopted = [p for p in self.adopted if p not in paths]


@dataclass
class _Task:
    path: LabelPath
    node: SchemaNode
    parent_id: str | None

    @property
    def parent_path(self) -> LabelPath:
        return self.path[:-1]

    @property
    def name(self) -> str:
        return self.path[-1]


# Type for progress callback: (path, outcome) -> None
ProgressCallback = Callable[[LabelPath, str], None]

# Type for checkpoint callback: called with the map after every change
CheckpointCallback = Callable[[IdentifierMap], None]


class SyncEngine:
    """Engine for provisioning a label tree through a provider adapter.

    Example:
        adapter = GmailLabelAdapter(creds)
        engine = SyncEngine(adapter, RetryPolicy(), max_workers=4)
        result = engine.reconcile(tree, store.load_map(), checkpoint=store.save_map)
        print(f"Created {len(result.created)} labels")
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        retry_policy: RetryPolicy | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """Initialize sync engine.

        Args:
            adapter: Provider adapter for remote calls.
            retry_policy: Retry policy for create/list calls.
            max_workers: Size of the worker pool (1 gives strict pre-order).
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self._adapter = adapter
        self._retry = retry_policy or RetryPolicy()
        self._max_workers = max_workers

    @property
    def provider(self) -> str:
        return self._adapter.provider.value

    def _create(self, task: _Task, color) -> tuple[str, str]:
        """Create one node remotely. Runs on a worker thread.

        Returns:
            (node id, "created" or "adopted")
        """
        try:
            node_id = self._retry.call(
                self._adapter.create_node, task.name, task.parent_id, color
            )
            return node_id, "created"
        except Conflict:
            match = self._retry.call(self._adapter.find_child, task.parent_id, task.name)
            if match is None:
                raise
            logger.debug("Adopting existing %s (%s)", "/".join(task.path), match.id)
            return match.id, "adopted"

    def verify(self, tree: SchemaNode, label_map: IdentifierMap) -> list[LabelPath]:
        """Drop map entries whose node no longer exists remotely.

        Lists the children of every materialized parent in the tree, so
        only read calls are made. Dropped entries (and everything below
        them) are created again by the next walk.

        Returns:
            Paths of the dropped entries.

        Raises:
            AuthExpired, PermissionDenied: Propagated from the adapter.
        """
        provider = self.provider
        dropped: list[LabelPath] = []
        parents = [((), tree)] + [(path, node) for path, node in iter_nodes(tree) if node.children]

        for parent_path, parent in parents:
            parent_id = None
            if parent_path:
                parent_id = label_map.get_id(provider, parent_path)
                if parent_id is None:
                    continue

            mapped = []
            for child in parent.children:
                path = parent_path + (child.name,)
                node_id = label_map.get_id(provider, path)
                if node_id is not None:
                    mapped.append((path, node_id))
            if not mapped:
                continue

            try:
                remote = self._retry.call(self._adapter.list_children, parent_id)
            except NotFound:
                label_map.remove_subtree(provider, parent_path)
                dropped.append(parent_path)
                continue
            except FATAL_ERRORS:
                raise
            except ProviderError as e:
                where = "/".join(parent_path) or "<root>"
                logger.warning("Could not verify labels under %s: %s", where, e)
                continue

            present = {node.id for node in remote}
            for path, node_id in mapped:
                if node_id not in present:
                    logger.info("%s is gone remotely; it will be re-created", "/".join(path))
                    label_map.remove_subtree(provider, path)
                    dropped.append(path)

        return dropped

    def reconcile(
        self,
        tree: SchemaNode,
        label_map: IdentifierMap,
        cancel: threading.Event | None = None,
        checkpoint: CheckpointCallback | None = None,
        progress: ProgressCallback | None = None,
        verify: bool = False,
    ) -> SyncResult:
        """Make the remote mailbox contain every node of the tree.

        Nodes already in the map are reused without remote calls. Missing
        nodes are created (or adopted on Conflict) and recorded in the map
        before their children are scheduled.

        Args:
            tree: Canonical tree (root node is not provisioned).
            label_map: Identifier map, updated in place.
            cancel: Set to stop between nodes.
            checkpoint: Called with the map after every change.
            progress: Called with (path, outcome) for every node.
            verify: Check mapped nodes still exist remotely before the walk.

        Returns:
            SyncResult describing every node's outcome.
        """
        result = SyncResult(label_map=label_map)
        provider = self.provider

        if verify:
            try:
                result.dropped = self.verify(tree, label_map)
            except FATAL_ERRORS as e:
                logger.error("Aborting run while verifying: %s", e)
                result.fatal_error = e
                return result
            if result.dropped and checkpoint is not None:
                checkpoint(label_map)

        supports_color = self._adapter.capabilities().supports_color

        stack = [_Task((child.name,), child, None) for child in reversed(tree.children)]
        tasks_by_path: dict[LabelPath, _Task] = {}
        in_flight: dict[Future, _Task] = {}
        recreated: set[LabelPath] = set()
        pending_recreate: set[LabelPath] = set()

        def notify(path: LabelPath, outcome: str) -> None:
            if progress is not None:
                progress(path, outcome)

        def save() -> None:
            if checkpoint is not None:
                checkpoint(label_map)

        def push_children(task: _Task, node_id: str) -> None:
            for child in reversed(task.node.children):
                stack.append(_Task(task.path + (child.name,), child, node_id))

        def skip_descendants(task: _Task) -> None:
            result.not_attempted.extend(path for path, _ in iter_nodes(task.node, task.path))

        def fail(task: _Task, error: Exception) -> None:
            logger.warning("Failed to provision %s: %s", "/".join(task.path), error)
            result.add_failure(task.path, error)
            skip_descendants(task)
            notify(task.path, "failed")

        def stopping() -> bool:
            if result.fatal_error is not None:
                return True
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                return True
            return False

        def handle_not_found(task: _Task, error: NotFound) -> None:
            parent_path = task.parent_path
            if not parent_path:
                fail(task, error)
                return
            if parent_path in pending_recreate:
                return
            current = label_map.get_id(provider, parent_path)
            if current is not None and current != task.parent_id:
                # Parent was re-created meanwhile; its children were rescheduled
                return
            if parent_path in recreated:
                fail(task, error)
                return

            logger.info(
                "%s no longer exists remotely; re-creating it", "/".join(parent_path)
            )
            recreated.add(parent_path)
            pending_recreate.add(parent_path)
            removed = label_map.remove_subtree(provider, parent_path)
            result.forget({entry.path for entry in removed})
            save()
            stack.append(tasks_by_path[parent_path])

        def handle(task: _Task, future: Future) -> None:
            try:
                node_id, outcome = future.result()
            except FATAL_ERRORS as e:
                logger.error("Aborting run at %s: %s", "/".join(task.path), e)
                if result.fatal_error is None:
                    result.fatal_error = e
                result.add_failure(task.path, e)
                skip_descendants(task)
                notify(task.path, "failed")
                return
            except NotFound as e:
                handle_not_found(task, e)
                return
            except ProviderError as e:
                fail(task, e)
                return

            label_map.set(provider, task.path, node_id)
            pending_recreate.discard(task.path)
            save()
            if outcome == "adopted":
                result.adopted.append(task.path)
            else:
                logger.info("Created %s", "/".join(task.path))
                result.created.append(task.path)
            notify(task.path, outcome)
            push_children(task, node_id)

        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="labelforge-sync"
        ) as pool:
            while stack or in_flight:
                while stack and len(in_flight) < self._max_workers and not stopping():
                    task = stack.pop()
                    tasks_by_path[task.path] = task

                    if task.parent_path and (
                        label_map.get_id(provider, task.parent_path) != task.parent_id
                    ):
                        # Stale: the parent is being (or was) re-created
                        continue

                    existing = label_map.get_id(provider, task.path)
                    if existing is not None:
                        result.skipped.append(task.path)
                        notify(task.path, "skipped")
                        push_children(task, existing)
                        continue

                    try:
                        self._adapter.validate_path(task.path)
                    except CapabilityViolation as e:
                        fail(task, e)
                        continue

                    color = task.node.color if supports_color else None
                    in_flight[pool.submit(self._create, task, color)] = task

                if stopping():
                    while stack:
                        task = stack.pop()
                        result.not_attempted.append(task.path)
                        skip_descendants(task)

                if not in_flight:
                    continue

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    handle(in_flight.pop(future), future)

        if result.cancelled:
            logger.info("Reconcile cancelled; %d nodes not attempted", len(result.not_attempted))

        return result
