"""Schema command implementation."""

from pathlib import Path

import typer
from typing_extensions import Annotated

from labelforge.config import load_team
from labelforge.errors import CompositionError
from labelforge.schema import (
    compose_for_business,
    get_business_types,
    get_extension,
    iter_nodes,
    render_tree,
    validate_schema_integrity,
)
from labelforge.schema.models import TeamSnapshot

app = typer.Typer(help="Inspect label taxonomies")


@app.command()
def types():
    """List supported business types."""
    for business_type in get_business_types():
        typer.echo(business_type)


@app.command()
def show(
    business_type: Annotated[str, typer.Argument(help="Business type (e.g., HVAC)")],
    team: Annotated[
        Path | None, typer.Option("--team", "-t", help="Team file to inject")
    ] = None,
):
    """Print the composed taxonomy for a business type.

    Labels injected from the team file are marked with '*'.
    """
    try:
        team_snapshot = load_team(team) if team else TeamSnapshot()
        tree = compose_for_business(business_type, team_snapshot)
    except (CompositionError, FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(render_tree(tree))
    typer.echo()
    typer.echo(f"{sum(1 for _ in iter_nodes(tree))} labels")


@app.command()
def check():
    """Validate every business extension against the base template."""
    failed = False
    for business_type in get_business_types():
        report = validate_schema_integrity(get_extension(business_type))
        status = "ok" if report.is_valid else "INVALID"
        typer.echo(f"{business_type}: {status}")
        for error in report.errors:
            typer.echo(f"  error: {error}")
        for warning in report.warnings:
            typer.echo(f"  warning: {warning}")
        failed = failed or not report.is_valid

    if failed:
        raise typer.Exit(1)
