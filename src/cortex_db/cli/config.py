"""
CLI: ``cortex-db config`` — configuration inspection.
"""

from __future__ import annotations

import typer

from cortex_db.cli.utils import console
from cortex_db.logging import redact_url

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show current configuration and the back-end it selects."""
    from cortex_db.adapters.factory import AdapterFactory
    from cortex_db.settings import get_settings

    settings = get_settings()
    values = settings.model_dump()
    if settings.database_url:
        values["database_url"] = redact_url(settings.database_url)
    mode = AdapterFactory.resolve_mode()

    if format == "json":
        console.print_json(data={"mode": mode.value, "settings": values})
        return

    from rich.table import Table

    console.print(f"[bold]Mode:[/bold] {mode.value}")
    table = Table()
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(values.items()):
        table.add_row(key, str(value))
    console.print(table)
