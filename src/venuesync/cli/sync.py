"""
venuesync sync - One incremental replication run.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from venuesync.cli.context import build_orchestrator
from venuesync.service.orchestrator import IncrementalRunSummary, SyncOrchestrator

app = typer.Typer(name="sync", help="Apply pending replication diffs once", invoke_without_command=True)

console = Console()


async def _run_once(orchestrator: SyncOrchestrator) -> IncrementalRunSummary:
    try:
        return await orchestrator.run_incremental()
    finally:
        await orchestrator.stop()


@app.callback()
def sync(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Consume the replication feed up to its current sequence (capped per run).

    Exits 1 if the run stopped at a failing sequence.
    """
    if ctx.invoked_subcommand is None:
        orchestrator = build_orchestrator(project_dir, env, verbose)
        summary = asyncio.run(_run_once(orchestrator))

        if summary.processed:
            console.print(
                f"[green]Applied sequences #{summary.processed[0]}..#{summary.processed[-1]}[/green] "
                f"({summary.venues_changed} changed, {summary.venues_removed} removed, "
                f"{summary.batches_emitted} enrichment batches)"
            )
        elif summary.succeeded:
            console.print(f"[dim]Already up to date at #{summary.start_sequence}[/dim]")

        if not summary.succeeded:
            where = f" at #{summary.failed_sequence}" if summary.failed_sequence is not None else ""
            console.print(f"[red]Sync stopped{where}: {summary.error}[/red]")
            raise typer.Exit(1)
