"""Labels command implementation."""

import json

import typer
from typing_extensions import Annotated

from labelforge.routing import routing_keys, to_env
from labelforge.sync.state import IdentifierMapStore

from .provision import resolve_account, user_id_for

app = typer.Typer(help="Show provisioned labels and routing keys")

FORMATS = ("keys", "env", "json")


@app.command()
def show(
    account: Annotated[
        str | None, typer.Option("--account", "-a", help="Account to show")
    ] = None,
    output_format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: keys, env or json")
    ] = "keys",
    archived: Annotated[
        bool, typer.Option("--archived", help="Also list archived labels")
    ] = False,
):
    """Show the routing keys of the account's identifier map."""
    if output_format not in FORMATS:
        typer.echo(f"Unknown format '{output_format}'. Use one of: {', '.join(FORMATS)}", err=True)
        raise typer.Exit(1)

    name, account_config = resolve_account(account)
    provider = account_config.get("provider", "gmail")
    label_map = IdentifierMapStore(user_id_for(name, account_config)).load_map()

    if not label_map.entries(provider):
        typer.echo(f"No labels provisioned for '{name}' yet.")
        typer.echo("Run 'labelforge provision' first.")
        return

    keys = routing_keys(label_map, provider)

    if output_format == "json":
        typer.echo(json.dumps(keys.keys, indent=2))
    elif output_format == "env":
        for key, value in to_env(keys.keys).items():
            typer.echo(f"{key}={value}")
    else:
        width = max(len(key) for key in keys.keys) if keys.keys else 0
        for key, value in keys.keys.items():
            typer.echo(f"{key:<{width}}  {value}")

    for path, owner, key in keys.collisions:
        typer.echo(
            f"Warning: {'/'.join(path)} maps to {key}, already used by {'/'.join(owner)}",
            err=True,
        )

    if archived:
        entries = label_map.archived_entries(provider)
        typer.echo()
        typer.echo(f"Archived ({len(entries)}):")
        for entry in entries:
            origin = f" (was {'/'.join(entry.original_path)})" if entry.original_path else ""
            typer.echo(f"  {'/'.join(entry.path)}{origin}")
