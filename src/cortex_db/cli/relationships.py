"""
CLI: ``cortex-db relationships`` — validate, repair and inspect project graphs.
"""

from __future__ import annotations

import typer

from cortex_db.cli.utils import console, output_json, print_dict, print_table

app = typer.Typer(no_args_is_help=True)


def _manager(actor: str):
    from cortex_db.relationships import RelationshipManager

    return RelationshipManager(actor=actor)


@app.command()
def validate(
    project_id: str = typer.Argument(..., help="Project id"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Report dangling references (errors) and unassociated records (warnings)."""
    report = _manager("cli").validate_relationships(project_id)

    if json_out:
        output_json(report)
    else:
        status = "[green]valid[/green]" if report.valid else "[red]invalid[/red]"
        console.print(f"[bold]Project {project_id}:[/bold] {status}")
        for message in report.errors:
            console.print(f"  [red]✗[/red] {message}")
        for message in report.warnings:
            console.print(f"  [yellow]![/yellow] {message}")

    if not report.valid:
        raise typer.Exit(code=1)


@app.command()
def repair(
    project_id: str = typer.Argument(..., help="Project id"),
    actor: str = typer.Option("cli", "--actor", help="Recorded as lastModifiedBy"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Null dangling references and drop dangling ids from arrays."""
    result = _manager(actor).repair_relationships(project_id)

    if json_out:
        output_json(result)
    else:
        print_dict(result.to_dict(), title=f"Repair {project_id}")

    if result.errors:
        raise typer.Exit(code=1)


@app.command()
def graph(
    project_id: str = typer.Argument(..., help="Project id"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show the POV / TRR / Scenario links of a project."""
    result = _manager("cli").get_project_relationship_graph(project_id)
    if result is None:
        console.print(f"[red]Project not found:[/red] {project_id}")
        raise typer.Exit(code=1)

    if json_out:
        output_json(result)
        return

    rows = [
        {
            "pov": pov["id"],
            "title": pov.get("title", ""),
            "trrs": ", ".join(result.pov_to_trrs.get(pov["id"], [])),
            "scenarios": ", ".join(result.pov_to_scenarios.get(pov["id"], [])),
        }
        for pov in result.povs
    ]
    print_table(rows, title=f"Project {project_id}")
    unlinked = [trr["id"] for trr in result.trrs if trr["id"] not in result.trr_to_pov]
    if unlinked:
        console.print(f"[dim]TRRs without POV: {', '.join(unlinked)}[/dim]")
