"""Team and supplier reconfiguration between provisioning runs.

When a manager or supplier disappears from the team data, their routing
label is moved under ARCHIVED/<CATEGORY> so that mail already carrying
it stays labelled. Labels of remaining team members are never touched.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from labelforge.errors import FATAL_ERRORS, Conflict, NotFound, ProviderError
from labelforge.providers.base import ProviderAdapter
from labelforge.schema.composer import iter_nodes, placeholder_paths
from labelforge.schema.models import (
    MANAGERS,
    SUPPLIERS,
    SchemaNode,
    Supplier,
    TeamMember,
    TeamSnapshot,
)
from labelforge.sync.engine import FailedNode
from labelforge.sync.retry import RetryPolicy
from labelforge.sync.state import IdentifierMap, LabelMapEntry

logger = logging.getLogger(__name__)

LabelPath = tuple[str, ...]

DEFAULT_ARCHIVE_ROOT = "ARCHIVED"

# Highest " (n)" suffix tried when the archive already holds the name
MAX_NAME_SUFFIX = 20


class RemovalPolicy(str, Enum):
    """What to do with the label of a removed manager or supplier."""

    archive = "archive"
    delete_if_empty = "delete_if_empty"


@dataclass(frozen=True)
class ReconfigurationDiff:
    """Team changes between the previous and the new snapshot."""

    added_managers: tuple[TeamMember, ...] = ()
    removed_managers: tuple[TeamMember, ...] = ()
    added_suppliers: tuple[Supplier, ...] = ()
    removed_suppliers: tuple[Supplier, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.added_managers
            or self.removed_managers
            or self.added_suppliers
            or self.removed_suppliers
        )


def _minus(items, others) -> tuple:
    names = {other.name.casefold() for other in others}
    return tuple(item for item in items if item.name.casefold() not in names)


def diff_teams(previous: TeamSnapshot | None, new: TeamSnapshot) -> ReconfigurationDiff:
    """Compare two team snapshots by case-insensitive name.

    A missing previous snapshot means everything in `new` is added.
    Input order is kept within each list.
    """
    previous = previous or TeamSnapshot()
    return ReconfigurationDiff(
        added_managers=_minus(new.managers, previous.managers),
        removed_managers=_minus(previous.managers, new.managers),
        added_suppliers=_minus(new.suppliers, previous.suppliers),
        removed_suppliers=_minus(previous.suppliers, new.suppliers),
    )


@dataclass
class ReconfigurationReport:
    """Result of applying a reconfiguration.

    Paths are the active paths the labels had before the change.
    """

    archived: list[LabelPath] = field(default_factory=list)
    deleted: list[LabelPath] = field(default_factory=list)
    renamed: list[tuple[LabelPath, LabelPath]] = field(default_factory=list)
    dropped: list[LabelPath] = field(default_factory=list)
    failed: list[FailedNode] = field(default_factory=list)
    fatal_error: ProviderError | None = None

    @property
    def success(self) -> bool:
        return not self.failed and self.fatal_error is None


class ReconfigurationManager:
    """Archive or delete labels of removed managers and suppliers.

    Example:
        manager = ReconfigurationManager(adapter, RetryPolicy())
        diff = diff_teams(store.load_snapshot(), team)
        report = manager.apply(diff, label_map, tree)
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        retry_policy: RetryPolicy | None = None,
        policy: RemovalPolicy = RemovalPolicy.archive,
        archive_root: str = DEFAULT_ARCHIVE_ROOT,
    ):
        self._adapter = adapter
        self._retry = retry_policy or RetryPolicy()
        self._policy = RemovalPolicy(policy)
        self._archive_root = archive_root

    @property
    def provider(self) -> str:
        return self._adapter.provider.value

    def find_respelled(
        self, label_map: IdentifierMap, tree: SchemaNode
    ) -> dict[LabelPath, LabelPath]:
        """Active entries whose name differs from a tree node only by case.

        Names match the way diff_teams matches them, so "hailey" becoming
        "Hailey" is the same team member and keeps the same label.
        """
        canonical = {path for path, _ in iter_nodes(tree)}
        by_name = {(path[:-1], path[-1].casefold()): path for path in canonical}

        respelled: dict[LabelPath, LabelPath] = {}
        for parent_path in placeholder_paths(tree).values():
            for entry in label_map.children_of(self.provider, parent_path):
                if entry.path in canonical:
                    continue
                match = by_name.get((parent_path, entry.path[-1].casefold()))
                if match is None or match in respelled.values():
                    continue
                if label_map.get(self.provider, match) is None:
                    respelled[entry.path] = match
        return respelled

    def find_targets(
        self, diff: ReconfigurationDiff, label_map: IdentifierMap, tree: SchemaNode
    ) -> list[LabelMapEntry]:
        """Active entries to move away: removed team members, then orphans.

        Orphans are entries directly under a placeholder parent that the
        new tree no longer contains (e.g., an earlier archive that failed).
        """
        canonical = {path for path, _ in iter_nodes(tree)}
        respelled = self.find_respelled(label_map, tree)
        parents = placeholder_paths(tree)
        removed = {
            MANAGERS: {m.name.casefold() for m in diff.removed_managers},
            SUPPLIERS: {s.name.casefold() for s in diff.removed_suppliers},
        }

        targets: list[LabelMapEntry] = []
        orphans: list[LabelMapEntry] = []
        for kind, parent_path in parents.items():
            for entry in label_map.children_of(self.provider, parent_path):
                if entry.path in canonical or entry.path in respelled:
                    continue
                if entry.path[-1].casefold() in removed.get(kind, set()):
                    targets.append(entry)
                else:
                    orphans.append(entry)

        for entry in orphans:
            logger.info("Sweeping orphaned label %s", "/".join(entry.path))
        return targets + orphans

    def _ensure_chain(self, chain: LabelPath, label_map: IdentifierMap) -> str:
        """Make sure every node of the archive holding chain exists."""
        parent_id = None
        for depth in range(1, len(chain) + 1):
            sub = chain[:depth]
            entry = label_map.get_archived(self.provider, sub)
            if entry is not None:
                parent_id = entry.id
                continue

            name = sub[-1]
            try:
                node_id = self._retry.call(self._adapter.create_node, name, parent_id)
            except Conflict:
                match = self._retry.call(self._adapter.find_child, parent_id, name)
                if match is None:
                    raise
                node_id = match.id
            label_map.set_archived(self.provider, sub, node_id)
            parent_id = node_id
        return parent_id

    def _drop_chain(self, chain: LabelPath, label_map: IdentifierMap) -> None:
        for depth in range(len(chain), 0, -1):
            label_map.remove_archived(self.provider, chain[:depth])

    def _move_into_archive(self, entry: LabelMapEntry, label_map: IdentifierMap) -> None:
        chain = (self._archive_root,) + entry.path[:-1]
        name = entry.path[-1]
        self._adapter.validate_path(chain + (name,))

        for attempt in range(2):
            holding_id = self._ensure_chain(chain, label_map)
            try:
                for n in range(1, MAX_NAME_SUFFIX + 1):
                    new_name = None if n == 1 else f"{name} ({n})"
                    try:
                        new_id = self._retry.call(
                            self._adapter.move_node, entry.id, holding_id, new_name
                        )
                    except Conflict:
                        continue
                    label_map.archive(
                        self.provider, entry.path, chain + (new_name or name,), new_id
                    )
                    return
                raise Conflict(f"No free archive name for '{name}' under {'/'.join(chain)}")
            except NotFound:
                if attempt:
                    raise
                # The cached holding chain may be gone; rebuild it once
                self._drop_chain(chain, label_map)

    def _remove(self, entry: LabelMapEntry, label_map: IdentifierMap, report) -> None:
        if self._policy is RemovalPolicy.delete_if_empty:
            count = self._retry.call(self._adapter.count_items, entry.id)
            if count == 0:
                self._retry.call(self._adapter.delete_node, entry.id)
                label_map.remove_subtree(self.provider, entry.path)
                logger.info("Deleted empty label %s", "/".join(entry.path))
                report.deleted.append(entry.path)
                return
            logger.info(
                "%s still holds %d messages; archiving instead", "/".join(entry.path), count
            )

        self._move_into_archive(entry, label_map)
        logger.info("Archived %s", "/".join(entry.path))
        report.archived.append(entry.path)

    def apply(
        self,
        diff: ReconfigurationDiff,
        label_map: IdentifierMap,
        tree: SchemaNode,
        checkpoint: Callable[[IdentifierMap], None] | None = None,
    ) -> ReconfigurationReport:
        """Archive or delete the labels the new tree no longer needs.

        Args:
            diff: Team changes since the previous run.
            label_map: Identifier map, updated in place.
            tree: Newly composed canonical tree.
            checkpoint: Called with the map after every change.

        Returns:
            ReconfigurationReport. Entries that failed stay active and are
            retried by the orphan sweep of the next run.
        """
        report = ReconfigurationReport()

        for old_path, new_path in self.find_respelled(label_map, tree).items():
            label_map.rekey(self.provider, old_path, new_path)
            logger.info("%s is now spelled %s", "/".join(old_path), "/".join(new_path))
            report.renamed.append((old_path, new_path))
        if report.renamed and checkpoint is not None:
            checkpoint(label_map)

        for entry in self.find_targets(diff, label_map, tree):
            try:
                self._remove(entry, label_map, report)
            except FATAL_ERRORS as e:
                logger.error("Aborting reconfiguration at %s: %s", "/".join(entry.path), e)
                report.fatal_error = e
                report.failed.append(FailedNode(entry.path, e.kind, str(e)))
                break
            except NotFound:
                logger.info("%s is already gone remotely", "/".join(entry.path))
                label_map.remove_subtree(self.provider, entry.path)
                report.dropped.append(entry.path)
            except ProviderError as e:
                logger.warning("Could not remove %s: %s", "/".join(entry.path), e)
                report.failed.append(FailedNode(entry.path, e.kind, str(e)))

            if checkpoint is not None:
                checkpoint(label_map)

        return report
