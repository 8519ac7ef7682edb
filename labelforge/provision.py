"""Single-run provisioning: lock, compose, reconfigure, reconcile, save.

Example:
    request = ProvisionRequest(user_id="ops@acme-hvac.com", business_type="HVAC", team=team)
    result = provision(request, adapter, IdentifierMapStore(request.user_id))
    if result.error_kind == "auth_expired":
        ...  # ask the user to sign in again
"""

import logging
import threading
from dataclasses import dataclass, field

from labelforge.errors import AuthExpired, CompositionError, PermissionDenied, RunInProgress
from labelforge.providers.base import ProviderAdapter
from labelforge.routing import routing_keys
from labelforge.schema.composer import compose, iter_nodes
from labelforge.schema.models import TeamSnapshot
from labelforge.schema.templates import BASE_TEMPLATE, get_extension
from labelforge.sync.engine import FailedNode, ProgressCallback, SyncEngine, SyncResult
from labelforge.sync.reconfigure import (
    ReconfigurationManager,
    ReconfigurationReport,
    diff_teams,
)
from labelforge.sync.state import IdentifierMapStore

logger = logging.getLogger(__name__)

LabelPath = tuple[str, ...]


@dataclass(frozen=True)
class ProvisionRequest:
    """Inputs for one provisioning run.

    Attributes:
        user_id: Owner of the identifier map (usually the mailbox address).
        business_type: Business vertical (e.g., "HVAC").
        team: Managers and suppliers for this run.
        lock_timeout: Seconds to wait for a concurrent run.
        verify: Check recorded labels still exist before reusing them.
    """

    user_id: str
    business_type: str
    team: TeamSnapshot = field(default_factory=TeamSnapshot)
    lock_timeout: float = 0
    verify: bool = False


@dataclass
class ProvisionResult:
    """Outcome of provision().

    error_kind tells callers what to do next: "auth_expired" and
    "permission_denied" need the user, "partial" and "run_in_progress"
    can simply be retried, "composition" needs different inputs.
    """

    success: bool
    labels_created: int = 0
    skipped: int = 0
    failed: list[FailedNode] = field(default_factory=list)
    archived: list[LabelPath] = field(default_factory=list)
    error: str | None = None
    error_kind: str | None = None
    routing: dict[str, str] = field(default_factory=dict)
    sync: SyncResult | None = None
    reconfiguration: ReconfigurationReport | None = None


@dataclass
class ProvisionPlan:
    """What a run would do, computed without remote calls."""

    to_create: list[LabelPath] = field(default_factory=list)
    to_archive: list[LabelPath] = field(default_factory=list)
    existing: int = 0


def _fatal_kind(error: Exception | None) -> str | None:
    if isinstance(error, (AuthExpired, PermissionDenied)):
        return error.kind
    return None


def plan(
    request: ProvisionRequest, adapter: ProviderAdapter, store: IdentifierMapStore
) -> ProvisionPlan:
    """Compute a dry run from the stored map.

    Raises:
        CompositionError: If the tree cannot be composed.
    """
    tree = compose(
        BASE_TEMPLATE,
        get_extension(request.business_type),
        request.team.managers,
        request.team.suppliers,
    )
    label_map = store.load_map()
    provider = adapter.provider.value
    diff = diff_teams(store.load_snapshot(), request.team)

    result = ProvisionPlan()
    for path, _ in iter_nodes(tree):
        if label_map.get_id(provider, path) is None:
            result.to_create.append(path)
        else:
            result.existing += 1

    targets = ReconfigurationManager(adapter).find_targets(diff, label_map, tree)
    result.to_archive = [entry.path for entry in targets]
    return result


def provision(
    request: ProvisionRequest,
    adapter: ProviderAdapter,
    store: IdentifierMapStore,
    *,
    engine: SyncEngine | None = None,
    manager: ReconfigurationManager | None = None,
    cancel: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> ProvisionResult:
    """Provision the label taxonomy for one account.

    Args:
        request: Business type and team for this run.
        adapter: Adapter for the account's provider.
        store: Identifier map store for request.user_id.
        engine: Sync engine (defaults to SyncEngine(adapter)).
        manager: Reconfiguration manager (defaults to archiving).
        cancel: Set to stop between nodes.
        progress: Per-node progress callback.

    Returns:
        ProvisionResult. Ids created before a failure are always saved.
    """
    engine = engine or SyncEngine(adapter)
    manager = manager or ReconfigurationManager(adapter)
    provider = adapter.provider.value

    try:
        with store.lock(timeout=request.lock_timeout):
            try:
                tree = compose(
                    BASE_TEMPLATE,
                    get_extension(request.business_type),
                    request.team.managers,
                    request.team.suppliers,
                )
            except CompositionError as e:
                logger.error("Cannot compose taxonomy: %s", e)
                return ProvisionResult(success=False, error=str(e), error_kind="composition")

            label_map = store.load_map()
            previous = store.load_snapshot()
            diff = diff_teams(previous, request.team)
            if not diff.is_empty:
                logger.info(
                    "Team changed: +%d/-%d managers, +%d/-%d suppliers",
                    len(diff.added_managers),
                    len(diff.removed_managers),
                    len(diff.added_suppliers),
                    len(diff.removed_suppliers),
                )

            report = manager.apply(diff, label_map, tree, checkpoint=store.save_map)

            if report.fatal_error is not None:
                store.save_map(label_map)
                return ProvisionResult(
                    success=False,
                    failed=list(report.failed),
                    archived=list(report.archived),
                    error=str(report.fatal_error),
                    error_kind=_fatal_kind(report.fatal_error),
                    reconfiguration=report,
                )

            sync = engine.reconcile(
                tree,
                label_map,
                cancel=cancel,
                checkpoint=store.save_map,
                progress=progress,
                verify=request.verify,
            )
            store.save(label_map, request.team)
    except RunInProgress as e:
        logger.warning("%s", e)
        return ProvisionResult(success=False, error=str(e), error_kind="run_in_progress")

    result = ProvisionResult(
        success=sync.success and report.success,
        labels_created=len(sync.created) + len(sync.adopted),
        skipped=len(sync.skipped),
        failed=list(report.failed) + list(sync.failed),
        archived=list(report.archived),
        routing=routing_keys(label_map, provider).keys,
        sync=sync,
        reconfiguration=report,
    )

    if sync.fatal_error is not None:
        result.error = str(sync.fatal_error)
        result.error_kind = _fatal_kind(sync.fatal_error)
    elif not result.success:
        result.error_kind = "partial"
        if sync.cancelled:
            result.error = "Provisioning was cancelled"
        else:
            result.error = f"{len(result.failed)} labels could not be provisioned"

    return result
