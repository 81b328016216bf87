"""
venuesync serve - Long-running service.

Runs the sync jobs on their interval tickers and serves:
- GET /health
- GET /api/v1/sync/status
- GET/PUT /api/v1/sync/state
- POST /api/v1/jobs/{job}/run
"""

from pathlib import Path

import typer

from venuesync.service.server import run_service

app = typer.Typer(name="serve", help="Run venuesync as a long-running service", invoke_without_command=True)


@app.callback()
def serve(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    no_jobs: bool = typer.Option(False, "--no-jobs", help="Serve the API without running sync jobs"),
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    port: int = typer.Option(8080, help="Port to bind to"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Run venuesync as a long-running service.

    On a primary, the Overpass bootstrap runs first; the replication job then
    runs on its configured interval.
    """
    if ctx.invoked_subcommand is None:
        try:
            run_service(
                project_dir=project_dir,
                env=env,
                host=host,
                port=port,
                verbose=verbose,
                enable_jobs=not no_jobs,
            )
        except RuntimeError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e
