"""
CLI: ``cortex-db db`` — schema and back-end diagnostics.
"""

from __future__ import annotations

import typer

from cortex_db.cli.utils import console, fail, output_json, print_table

app = typer.Typer(no_args_is_help=True)


@app.command()
def init() -> None:
    """Create the relational tables (no-op for the document store)."""
    from cortex_db.adapters.factory import get_database
    from cortex_db.adapters.relational import RelationalAdapter
    from cortex_db.errors import CortexError

    try:
        db = get_database()
        if not isinstance(db, RelationalAdapter):
            console.print("[dim]Document store selected: no schema to create.[/dim]")
            return
        db.create_schema()
    except CortexError as e:
        fail(e)
    console.print("[green]Schema created.[/green]")


@app.command()
def diagnose(
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Run the back-end self-checks against the configured database."""
    from cortex_db.diagnostics import DiagnosticsService

    report = DiagnosticsService().run()

    if json_out:
        output_json(report)
    else:
        rows = [
            {
                "check": r.test,
                "status": "[green]pass[/green]" if r.passed else "[red]fail[/red]",
                "ms": r.duration_ms,
                "error": r.error or "",
            }
            for r in report.results
        ]
        print_table(rows, title=f"Diagnostics ({report.mode.value})")
        console.print(f"[bold]Overall:[/bold] {report.overall}")

    if report.overall != "passed":
        raise typer.Exit(code=1)
