"""Provision command implementation."""

import signal
import threading
import tomllib
from pathlib import Path

import typer
from typing_extensions import Annotated

from labelforge.auth import get_provider_credentials
from labelforge.config import get_account, get_defaults, load_config, load_team
from labelforge.config.schema import AccountConfig
from labelforge.errors import CompositionError
from labelforge.provision import ProvisionRequest, plan, provision as run_provision
from labelforge.providers import create_adapter
from labelforge.schema.models import TeamSnapshot
from labelforge.sync.engine import SyncEngine
from labelforge.sync.reconfigure import ReconfigurationManager, RemovalPolicy
from labelforge.sync.retry import RetryPolicy
from labelforge.sync.state import IdentifierMapStore

app = typer.Typer(help="Create or update the label taxonomy in a mailbox")

# Exit codes beyond typer's 1 for user errors
EXIT_REAUTH = 2
EXIT_RUN_IN_PROGRESS = 3


def resolve_account(name: str | None) -> tuple[str, AccountConfig]:
    """Load the named (or first) account, exiting with 1 if there is none."""
    config = load_config()
    account_config = get_account(config, name)

    if not account_config:
        if name:
            typer.echo(f"Account '{name}' not found.", err=True)
        else:
            typer.echo("No account configured.", err=True)
            typer.echo("Run 'labelforge config init' and add an account to config.toml")
        raise typer.Exit(1)

    if name is None:
        name = next(iter(config.get("accounts", {})))
    return name, account_config


def user_id_for(name: str, account_config: AccountConfig) -> str:
    """Identifier map key for an account: its mailbox address, else its name."""
    return account_config.get("email") or name


def _load_team_or_exit(team_file: str | None) -> TeamSnapshot:
    if not team_file:
        return TeamSnapshot()
    try:
        return load_team(team_file)
    except FileNotFoundError:
        typer.echo(f"Team file not found: {team_file}", err=True)
        raise typer.Exit(1)
    except (tomllib.TOMLDecodeError, ValueError) as e:
        typer.echo(f"Invalid team file {team_file}: {e}", err=True)
        raise typer.Exit(1)


def _print_plan(provision_plan) -> None:
    typer.echo(f"Existing labels: {provision_plan.existing}")
    typer.echo(f"Would create {len(provision_plan.to_create)} labels:")
    for path in provision_plan.to_create:
        typer.echo(f"  + {'/'.join(path)}")
    if provision_plan.to_archive:
        typer.echo(f"Would archive {len(provision_plan.to_archive)} labels:")
        for path in provision_plan.to_archive:
            typer.echo(f"  - {'/'.join(path)}")


@app.callback(invoke_without_command=True)
def provision(
    account: Annotated[
        str | None, typer.Option("--account", "-a", help="Account to provision")
    ] = None,
    team: Annotated[
        Path | None, typer.Option("--team", "-t", help="Team file (overrides config)")
    ] = None,
    business_type: Annotated[
        str | None,
        typer.Option("--business-type", "-b", help="Business type (overrides config)"),
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Show what would change without calling the provider")
    ] = False,
    workers: Annotated[
        int | None, typer.Option("--workers", "-w", min=1, help="Parallel label creations")
    ] = None,
    verify: Annotated[
        bool,
        typer.Option("--verify", help="Re-create recorded labels that were deleted in the mailbox"),
    ] = False,
):
    """Create or update the label taxonomy in a mailbox.

    Re-running is safe: labels recorded in the identifier map are reused,
    and labels of removed managers or suppliers are archived.
    """
    name, account_config = resolve_account(account)
    defaults = get_defaults(load_config())

    business_type = business_type or account_config.get("business_type")
    if not business_type:
        typer.echo(
            "No business type. Use --business-type or set "
            f"accounts.{name}.business_type",
            err=True,
        )
        raise typer.Exit(1)

    team_file = str(team) if team else account_config.get("team_file")
    team_snapshot = _load_team_or_exit(team_file)

    credentials = get_provider_credentials(account_config)
    if credentials is None:
        typer.echo("Not authenticated.", err=True)
        typer.echo(f"Run 'labelforge config auth --account {name}' first.", err=True)
        raise typer.Exit(EXIT_REAUTH)

    try:
        adapter = create_adapter(account_config.get("provider", "gmail"), credentials)
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)

    user_id = user_id_for(name, account_config)
    store = IdentifierMapStore(user_id)
    request = ProvisionRequest(
        user_id=user_id,
        business_type=business_type,
        team=team_snapshot,
        lock_timeout=defaults["lock_timeout"],
        verify=verify,
    )

    if dry_run:
        try:
            _print_plan(plan(request, adapter, store))
        except CompositionError as e:
            typer.echo(f"Cannot compose taxonomy: {e}", err=True)
            raise typer.Exit(1)
        return

    retry_policy = RetryPolicy(
        max_attempts=defaults["max_attempts"],
        base_delay=defaults["base_delay"],
        max_delay=defaults["max_delay"],
        rate_limit_delay=defaults["rate_limit_delay"],
    )
    try:
        removal_policy = RemovalPolicy(defaults["removal_policy"])
    except ValueError:
        typer.echo(f"Invalid removal_policy: {defaults['removal_policy']}", err=True)
        raise typer.Exit(1)

    engine = SyncEngine(adapter, retry_policy, max_workers=workers or defaults["max_workers"])
    manager = ReconfigurationManager(
        adapter, retry_policy, policy=removal_policy, archive_root=defaults["archive_root"]
    )

    # Ctrl-C stops between nodes; finished labels stay in the map
    cancel = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        typer.echo(f"Provisioning {business_type} labels for {user_id}...")
        result = run_provision(
            request, adapter, store, engine=engine, manager=manager, cancel=cancel
        )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    typer.echo(f"Created: {result.labels_created}")
    typer.echo(f"Unchanged: {result.skipped}")
    if result.sync is not None and result.sync.dropped:
        typer.echo(f"Missing from mailbox: {len(result.sync.dropped)}")
        for path in result.sync.dropped:
            typer.echo(f"  {'/'.join(path)}")
    if result.archived:
        typer.echo(f"Archived: {len(result.archived)}")
        for path in result.archived:
            typer.echo(f"  {'/'.join(path)}")
    if result.failed:
        typer.echo(f"Failed: {len(result.failed)}", err=True)
        for failure in result.failed:
            typer.echo(
                f"  {'/'.join(failure.path)}: {failure.kind}: {failure.message}", err=True
            )

    if result.success:
        typer.echo("Done.")
        return

    typer.echo(f"Error: {result.error}", err=True)
    if result.error_kind in ("auth_expired", "permission_denied"):
        typer.echo(f"Run 'labelforge config auth --account {name}' and retry.", err=True)
        raise typer.Exit(EXIT_REAUTH)
    if result.error_kind == "run_in_progress":
        raise typer.Exit(EXIT_RUN_IN_PROGRESS)
    raise typer.Exit(1)
