"""CLI commands module."""

from . import config, detect, labels, provision, schema

__all__ = ["provision", "schema", "labels", "detect", "config"]
