"""Detect command implementation."""

import typer
from typing_extensions import Annotated

from labelforge.cache import TTLCache
from labelforge.config import get_defaults, load_config
from labelforge.providers.detection import ProviderDetector


def detect(
    email: Annotated[str, typer.Argument(help="Email address to look up")],
):
    """Detect whether an address is hosted by Gmail or Outlook."""
    defaults = get_defaults(load_config())
    detector = ProviderDetector(cache=TTLCache(ttl=defaults["detection_ttl"]))

    try:
        detection = detector.detect(email)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Provider: {detection.provider}")
    typer.echo(f"Domain: {detection.domain}")
    typer.echo(f"Method: {detection.method}")
    typer.echo(f"Confidence: {detection.confidence:.1f}")

    if not detection.is_known:
        raise typer.Exit(1)
