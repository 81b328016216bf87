"""
venuesync state - Inspect or reset the replication cursor.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from venuesync.cli.context import build_orchestrator

app = typer.Typer(name="state", help="Show or set the replication state")

console = Console()


@app.command("show")
def show(
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """Show local and mirrored replication state."""
    orchestrator = build_orchestrator(project_dir, env, verbose=False)
    try:
        described = orchestrator.tracker.describe()
    finally:
        orchestrator.mirror.close()

    table = Table(title="Replication state")
    table.add_column("Location", style="cyan")
    table.add_column("Sequence", justify="right")
    table.add_column("Timestamp")
    for location in ("local", "storage"):
        entry = described.get(location)
        if entry:
            table.add_row(location, str(entry["sequenceNumber"]), entry["timestamp"])
        else:
            table.add_row(location, "-", "[dim]not set[/dim]")
    console.print(table)


@app.command("set")
def set_state(
    sequence: int = typer.Argument(..., help="Sequence number to mark as consumed"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """
    Overwrite the consumed sequence number (locally and in the mirror).

    The next sync resumes at SEQUENCE + 1.
    """
    if sequence < 0:
        typer.echo("Error: sequence number must be >= 0", err=True)
        raise typer.Exit(1)

    orchestrator = build_orchestrator(project_dir, env, verbose=False)
    try:
        state = orchestrator.tracker.override(sequence)
    finally:
        orchestrator.mirror.close()
    console.print(f"[green]Replication state set to #{state.sequence_number}[/green]")
