"""
Main CLI entry point.
"""

import typer

from venuesync import __version__
from venuesync.cli import bootstrap, serve, state, sync


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"venuesync version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="venuesync",
    help="venuesync - keep a local cache of bitcoin-accepting venues in sync with OpenStreetMap",
    add_completion=True,
)

app.add_typer(serve.app, name="serve")
app.add_typer(sync.app, name="sync")
app.add_typer(bootstrap.app, name="bootstrap")
app.add_typer(state.app, name="state")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        help="Show version and exit.",
    ),
):
    """
    venuesync - OpenStreetMap replication consumer for bitcoin venues.

    Run 'venuesync <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        if not version:
            typer.echo(ctx.get_help())
            raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
