"""cortex-db command-line interface (Typer + Rich)."""

from cortex_db.cli.app import app

__all__ = ["app"]
