"""Command-line interface for labelforge."""
