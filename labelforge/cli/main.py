"""Main CLI entry point for labelforge."""

from pathlib import Path

import typer
from typing_extensions import Annotated

from labelforge import __version__
from labelforge.cli import commands
from labelforge.logger import setup_logging

app = typer.Typer(
    name="labelforge",
    help="Provision business label taxonomies in Gmail and Outlook mailboxes",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(commands.provision.app, name="provision")
app.add_typer(commands.schema.app, name="schema")
app.add_typer(commands.labels.app, name="labels")
app.add_typer(commands.config.app, name="config")
app.command("detect")(commands.detect.detect)


@app.callback()
def main_options(
    debug: Annotated[
        bool, typer.Option("--debug", help="Enable debug logging")
    ] = False,
    log_file: Annotated[
        Path | None, typer.Option("--log-file", help="Also write logs to this file")
    ] = None,
    log_format: Annotated[
        str, typer.Option("--log-format", help="Log format: text or json")
    ] = "text",
):
    """Provision business label taxonomies in Gmail and Outlook mailboxes."""
    setup_logging(debug=debug, log_file=log_file, log_format=log_format)


@app.command()
def version():
    """Show version information."""
    typer.echo(f"labelforge version {__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
