"""
venuesync bootstrap - Build the venue cache from Overpass.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from venuesync.cli.context import build_orchestrator
from venuesync.replication.bootstrap import BootstrapResult
from venuesync.service.orchestrator import SyncOrchestrator

app = typer.Typer(name="bootstrap", help="Take the initial Overpass snapshot", invoke_without_command=True)

console = Console()


async def _bootstrap(orchestrator: SyncOrchestrator) -> BootstrapResult | None:
    try:
        return await orchestrator.run_bootstrap()
    finally:
        await orchestrator.stop()


@app.callback()
def bootstrap(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Snapshot all tracked venues via Overpass unless a cache already exists.

    Only runs when the configured role is primary.
    """
    if ctx.invoked_subcommand is None:
        orchestrator = build_orchestrator(project_dir, env, verbose)
        if not orchestrator.settings.is_primary:
            console.print(f"[yellow]Role is '{orchestrator.settings.role}', bootstrap only runs on a primary[/yellow]")
            raise typer.Exit(1)

        result = asyncio.run(_bootstrap(orchestrator))
        if result is None:
            console.print("[red]Bootstrap failed, see log for details[/red]")
            raise typer.Exit(1)
        if result.skipped:
            console.print("[dim]Venue cache already present, nothing to do[/dim]")
        else:
            console.print(
                f"[green]Synced {result.venues} venues[/green] "
                f"({result.queries} queries, {result.failed_queries} failed)"
            )
