"""
Root Typer application for the cortex-db CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="cortex-db",
    help="cortex-db — persistence adapters and relationship integrity tools.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("cortex-db")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"cortex-db {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override CORTEX_LOG_LEVEL."),
) -> None:
    """cortex-db CLI — validate and repair records, manage the database."""
    from cortex_db.logging import configure_logging
    from cortex_db.settings import get_settings

    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_format == "json",
    )


from cortex_db.cli.config import app as config_app  # noqa: E402
from cortex_db.cli.db import app as db_app  # noqa: E402
from cortex_db.cli.relationships import app as relationships_app  # noqa: E402

app.add_typer(relationships_app, name="relationships", help="Relationship validation and repair.")
app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(config_app, name="config", help="Configuration inspection.")
