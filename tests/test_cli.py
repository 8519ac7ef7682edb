"""Tests for the labelforge CLI.

Uses typer.testing.CliRunner for CLI tests. The provider adapter is the
in-memory FakeAdapter and identifier maps live under tmp_path.
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from labelforge.cli.main import app
from labelforge.errors import AuthExpired
from labelforge.sync.state import IdentifierMapStore

TEAM_TOML = """\
[[managers]]
name = "Hailey"
email = "hailey@acme-hvac.com"

[[managers]]
name = "Jillian"

[[suppliers]]
name = "Lennox"
domains = ["lennox.com"]
"""


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep root handlers off the runner's short-lived stderr."""
    with patch("labelforge.cli.main.setup_logging"):
        yield


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def team_file(tmp_path):
    path = tmp_path / "team.toml"
    path.write_text(TEAM_TOML)
    return path


@pytest.fixture
def mock_config(team_file):
    """Mock configuration for tests."""
    return {
        "defaults": {"max_workers": 1, "max_attempts": 1},
        "accounts": {
            "shop": {
                "provider": "gmail",
                "client_id": "test-client-id.apps.googleusercontent.com",
                "email": "ops@acme-hvac.com",
                "business_type": "HVAC",
                "team_file": str(team_file),
            }
        },
    }


@pytest.fixture
def map_dir(tmp_path):
    return tmp_path / "label-maps"


@pytest.fixture
def cli_env(mock_config, adapter, map_dir):
    """Patch config, credentials, adapter and map location."""

    def make_store(user_id):
        return IdentifierMapStore(user_id, state_dir=map_dir)

    with (
        patch("labelforge.cli.commands.provision.load_config", return_value=mock_config),
        patch("labelforge.cli.commands.provision.get_provider_credentials", return_value="token"),
        patch("labelforge.cli.commands.provision.create_adapter", return_value=adapter),
        patch("labelforge.cli.commands.provision.IdentifierMapStore", side_effect=make_store),
        patch("labelforge.cli.commands.labels.IdentifierMapStore", side_effect=make_store),
    ):
        yield


class TestProvisionCommand:
    """Tests for provision command."""

    def test_provisions_labels(self, runner, cli_env, adapter):
        result = runner.invoke(app, ["provision"])

        assert result.exit_code == 0, result.output
        assert f"Created: {len(adapter.nodes)}" in result.output
        assert "Done." in result.output
        assert adapter.id_of(("MANAGER", "Hailey")) is not None

    def test_second_run_creates_nothing(self, runner, cli_env, adapter):
        runner.invoke(app, ["provision"])
        count = len(adapter.nodes)

        result = runner.invoke(app, ["provision"])

        assert result.exit_code == 0
        assert "Created: 0" in result.output
        assert f"Unchanged: {count}" in result.output

    def test_removed_manager_is_archived(self, runner, cli_env, adapter, team_file):
        runner.invoke(app, ["provision"])
        team_file.write_text(TEAM_TOML.replace('name = "Jillian"', 'name = "Priya"'))

        result = runner.invoke(app, ["provision"])

        assert result.exit_code == 0, result.output
        assert "Archived: 1" in result.output
        assert "MANAGER/Jillian" in result.output
        assert adapter.id_of(("ARCHIVED", "MANAGER", "Jillian")) is not None

    def test_dry_run_makes_no_calls(self, runner, cli_env, adapter):
        result = runner.invoke(app, ["provision", "--dry-run"])

        assert result.exit_code == 0
        assert "Would create" in result.output
        assert "  + MANAGER/Hailey" in result.output
        assert adapter.calls == []

    def test_verify_option(self, runner, cli_env, adapter):
        runner.invoke(app, ["provision"])
        adapter.remove_remote(("MANAGER", "Hailey"))

        result = runner.invoke(app, ["provision", "--verify"])

        assert result.exit_code == 0, result.output
        assert "Missing from mailbox: 1" in result.output
        assert "Created: 1" in result.output
        assert adapter.id_of(("MANAGER", "Hailey")) is not None

    def test_business_type_option_overrides_config(self, runner, cli_env, adapter):
        result = runner.invoke(app, ["provision", "--business-type", "Pools & Spas"])

        assert result.exit_code == 0, result.output
        assert "Provisioning Pools & Spas labels" in result.output

    def test_requires_business_type(self, runner, mock_config):
        del mock_config["accounts"]["shop"]["business_type"]
        with patch("labelforge.cli.commands.provision.load_config", return_value=mock_config):
            result = runner.invoke(app, ["provision"])

        assert result.exit_code == 1
        assert "No business type" in result.output

    def test_unknown_account(self, runner, mock_config):
        with patch("labelforge.cli.commands.provision.load_config", return_value=mock_config):
            result = runner.invoke(app, ["provision", "--account", "nope"])

        assert result.exit_code == 1
        assert "Account 'nope' not found" in result.output

    def test_missing_team_file(self, runner, mock_config, tmp_path):
        with patch("labelforge.cli.commands.provision.load_config", return_value=mock_config):
            result = runner.invoke(app, ["provision", "--team", str(tmp_path / "missing.toml")])

        assert result.exit_code == 1
        assert "Team file not found" in result.output

    def test_requires_authentication(self, runner, mock_config):
        with (
            patch("labelforge.cli.commands.provision.load_config", return_value=mock_config),
            patch("labelforge.cli.commands.provision.get_provider_credentials", return_value=None),
        ):
            result = runner.invoke(app, ["provision"])

        assert result.exit_code == 2
        assert "Not authenticated" in result.output

    def test_expired_token_exits_for_reauth(self, runner, cli_env, adapter):
        adapter.fail("create_node", ("BANKING",), AuthExpired("token expired", 401))

        result = runner.invoke(app, ["provision"])

        assert result.exit_code == 2
        assert "config auth --account shop" in result.output

    def test_run_in_progress(self, runner, cli_env, map_dir):
        with IdentifierMapStore("ops@acme-hvac.com", state_dir=map_dir).lock():
            result = runner.invoke(app, ["provision"])

        assert result.exit_code == 3


class TestLabelsCommand:
    """Tests for labels show."""

    def test_nothing_provisioned(self, runner, cli_env):
        result = runner.invoke(app, ["labels", "show"])

        assert result.exit_code == 0
        assert "No labels provisioned" in result.output

    def test_env_format(self, runner, cli_env, adapter):
        runner.invoke(app, ["provision"])

        result = runner.invoke(app, ["labels", "show", "--format", "env"])

        assert result.exit_code == 0
        hailey_id = adapter.id_of(("MANAGER", "Hailey"))
        assert f"LABEL_MANAGER_HAILEY={hailey_id}" in result.output

    def test_archived_listing(self, runner, cli_env, team_file):
        runner.invoke(app, ["provision"])
        team_file.write_text(TEAM_TOML.replace('name = "Jillian"', 'name = "Priya"'))
        runner.invoke(app, ["provision"])

        result = runner.invoke(app, ["labels", "show", "--archived"])

        assert "ARCHIVED/MANAGER/Jillian (was MANAGER/Jillian)" in result.output
        assert "MANAGER_JILLIAN" not in result.output

    def test_rejects_unknown_format(self, runner):
        result = runner.invoke(app, ["labels", "show", "--format", "xml"])

        assert result.exit_code == 1
        assert "Unknown format" in result.output


class TestSchemaCommand:
    """Tests for schema commands."""

    def test_types(self, runner):
        result = runner.invoke(app, ["schema", "types"])

        assert result.exit_code == 0
        assert "HVAC" in result.output

    def test_show_with_team(self, runner, team_file):
        result = runner.invoke(app, ["schema", "show", "HVAC", "--team", str(team_file)])

        assert result.exit_code == 0
        assert "  Hailey *" in result.output
        assert "labels" in result.output

    def test_show_unknown_type(self, runner):
        result = runner.invoke(app, ["schema", "show", "Bakery"])

        assert result.exit_code == 1
        assert "Unknown business type" in result.output

    def test_check(self, runner):
        result = runner.invoke(app, ["schema", "check"])

        assert result.exit_code == 0
        assert "INVALID" not in result.output


class TestDetectCommand:
    """Tests for detect."""

    def test_known_domain(self, runner):
        with patch("labelforge.cli.commands.detect.load_config", return_value={}):
            result = runner.invoke(app, ["detect", "someone@gmail.com"])

        assert result.exit_code == 0
        assert "Provider: gmail" in result.output
        assert "Method: known_domain" in result.output

    def test_invalid_address(self, runner):
        with patch("labelforge.cli.commands.detect.load_config", return_value={}):
            result = runner.invoke(app, ["detect", "not-an-address"])

        assert result.exit_code == 1
        assert "Invalid email address" in result.output


def test_version(runner):
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "labelforge version" in result.output
