"""
Shared CLI setup: config, logging and the orchestrator.
"""

from pathlib import Path

import typer

from venuesync.config.loader import load_config
from venuesync.config.settings import SyncSettings
from venuesync.exceptions import VenueSyncError
from venuesync.service.orchestrator import SyncOrchestrator
from venuesync.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("venuesync.cli")


def build_orchestrator(project_dir: Path, env: str | None, verbose: bool) -> SyncOrchestrator:
    """Load config from ``project_dir`` and build the orchestrator; exits 1 on bad config."""
    try:
        config = load_config(project_dir, env=env)
        logging_config = dict(config.data)
        if verbose:
            logging_config["logging"] = {**config.section("logging"), "level": "DEBUG"}
        setup_logging_from_config(logging_config, project_dir)
        settings = SyncSettings.from_config(config, project_dir=project_dir)
        return SyncOrchestrator(settings)
    except VenueSyncError as e:
        logger.error(f"Initialization failed: {e.message}")
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1) from e
