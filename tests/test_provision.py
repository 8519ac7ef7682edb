"""End-to-end tests for provision() with the in-memory adapter and a real store."""

import threading

import pytest

from labelforge.errors import AuthExpired, TransientError
from labelforge.provision import ProvisionRequest, plan, provision
from labelforge.schema.composer import compose_for_business, iter_nodes
from labelforge.schema.models import TeamSnapshot
from labelforge.sync.engine import SyncEngine
from labelforge.sync.reconfigure import ReconfigurationManager
from labelforge.sync.state import IdentifierMapStore

USER = "ops@acme-hvac.com"


@pytest.fixture
def store(tmp_path) -> IdentifierMapStore:
    return IdentifierMapStore(USER, state_dir=tmp_path)


@pytest.fixture
def run(adapter, retry_policy, store):
    """Run provision() with a single worker and the fast retry policy."""

    def _run(team, business_type="HVAC", **kwargs):
        request = ProvisionRequest(user_id=USER, business_type=business_type, team=team)
        return provision(
            request,
            adapter,
            store,
            engine=SyncEngine(adapter, retry_policy, max_workers=1),
            manager=ReconfigurationManager(adapter, retry_policy),
            **kwargs,
        )

    return _run


@pytest.fixture
def hvac_paths(team) -> list[tuple]:
    return [path for path, _ in iter_nodes(compose_for_business("HVAC", team))]


class TestProvision:
    """Tests for provision()."""

    def test_fresh_run(self, run, adapter, store, team, hvac_paths):
        result = run(team)

        assert result.success
        assert result.error_kind is None
        assert result.labels_created == len(hvac_paths)
        assert adapter.paths() == set(hvac_paths)
        assert result.routing["MANAGER_HAILEY"] == adapter.id_of(("MANAGER", "Hailey"))
        assert store.load_snapshot() == team

    def test_second_run_is_noop(self, run, adapter, team, hvac_paths):
        run(team)
        adapter.calls.clear()

        result = run(team)

        assert result.success
        assert result.labels_created == 0
        assert result.skipped == len(hvac_paths)
        assert adapter.calls_to("create_node") == []

    def test_team_change_archives_and_adds(self, run, adapter, team):
        run(team)
        hailey_id = adapter.id_of(("MANAGER", "Hailey"))
        new_team = TeamSnapshot(
            managers=tuple(m for m in team.managers if m.name != "Hailey"),
            suppliers=team.suppliers,
        )

        result = run(new_team)

        assert result.success
        assert result.archived == [("MANAGER", "Hailey")]
        assert adapter.path_of(hailey_id) == ("ARCHIVED", "MANAGER", "Hailey")
        assert "MANAGER_HAILEY" not in result.routing
        assert "MANAGER_JILLIAN" in result.routing

    def test_unknown_business_type(self, run, adapter, team):
        result = run(team, business_type="Bakery")

        assert not result.success
        assert result.error_kind == "composition"
        assert adapter.calls == []

    def test_concurrent_run_rejected(self, run, adapter, store, team, tmp_path):
        holder = IdentifierMapStore(USER, state_dir=tmp_path)

        with holder.lock():
            result = run(team)

        assert result.error_kind == "run_in_progress"
        assert adapter.calls == []

    def test_auth_expired_keeps_progress(self, run, adapter, store, team):
        adapter.fail("create_node", ("SALES",), AuthExpired("token expired", 401))

        result = run(team)

        assert not result.success
        assert result.error_kind == "auth_expired"
        saved = store.load_map()
        assert len(saved) == result.labels_created > 0
        assert saved.get_id("gmail", ("BANKING",)) == adapter.id_of(("BANKING",))

    def test_partial_run_then_retry(self, run, adapter, team, hvac_paths):
        adapter.fail("create_node", ("SALES",), *[TransientError("503")] * 3)

        first = run(team)

        assert not first.success
        assert first.error_kind == "partial"
        assert [f.path for f in first.failed] == [("SALES",)]

        second = run(team)

        assert second.success
        assert adapter.paths() == set(hvac_paths)

    def test_verify_recreates_label_deleted_in_mailbox(
        self, adapter, retry_policy, store, run, team
    ):
        run(team)
        adapter.remove_remote(("MANAGER", "Hailey"))
        request = ProvisionRequest(user_id=USER, business_type="HVAC", team=team, verify=True)

        result = provision(
            request, adapter, store, engine=SyncEngine(adapter, retry_policy, max_workers=1)
        )

        assert result.success
        assert result.sync.dropped == [("MANAGER", "Hailey")]
        assert result.labels_created == 1
        hailey_id = adapter.id_of(("MANAGER", "Hailey"))
        assert store.load_map().get_id("gmail", ("MANAGER", "Hailey")) == hailey_id

    def test_cancelled_run(self, run, team):
        cancel = threading.Event()
        cancel.set()

        result = run(team, cancel=cancel)

        assert not result.success
        assert result.error_kind == "partial"
        assert "cancelled" in result.error


class TestPlan:
    """Tests for plan()."""

    def test_fresh_plan(self, adapter, store, team, hvac_paths):
        request = ProvisionRequest(user_id=USER, business_type="HVAC", team=team)

        result = plan(request, adapter, store)

        assert result.to_create == hvac_paths
        assert result.existing == 0
        assert result.to_archive == []
        assert adapter.calls == []

    def test_plan_after_team_change(self, run, adapter, store, team, hvac_paths):
        run(team)
        new_team = TeamSnapshot(managers=team.managers, suppliers=team.suppliers[:1])
        request = ProvisionRequest(user_id=USER, business_type="HVAC", team=new_team)

        result = plan(request, adapter, store)

        assert result.to_create == []
        assert result.existing == len(hvac_paths) - 1
        assert result.to_archive == [("SUPPLIERS", "Daikin")]
