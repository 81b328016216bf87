"""
venuesync long-running service (HTTP API + background sync jobs).

Provides:
- GET /health
- GET /api/v1/sync/status, GET/PUT /api/v1/sync/state
- POST /api/v1/jobs/{job}/run
- Interval tickers for the replication jobs
"""

from __future__ import annotations

from pathlib import Path

from aiohttp import web

from venuesync.config.loader import load_config
from venuesync.config.settings import SyncSettings
from venuesync.exceptions import ConfigurationError
from venuesync.service.handlers import SyncHandler
from venuesync.service.middleware import error_middleware
from venuesync.service.orchestrator import SyncOrchestrator
from venuesync.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("venuesync.service")

ORCHESTRATOR_KEY = web.AppKey("orchestrator", SyncOrchestrator)


def setup_routes(app: web.Application, orchestrator: SyncOrchestrator) -> None:
    handler = SyncHandler(orchestrator)
    app.add_routes(
        [
            web.get("/health", handler.health),
            web.get("/api/v1/sync/status", handler.status),
            web.get("/api/v1/sync/state", handler.get_state),
            web.put("/api/v1/sync/state", handler.put_state),
            web.post("/api/v1/jobs/{job}/run", handler.run_job),
        ]
    )


def create_app(orchestrator: SyncOrchestrator, *, start_jobs: bool = True) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        orchestrator: Orchestrator whose jobs the service hosts
        start_jobs: Start the bootstrap and interval tickers on startup
    """
    app = web.Application(middlewares=[error_middleware])
    app[ORCHESTRATOR_KEY] = orchestrator
    setup_routes(app, orchestrator)

    async def on_startup(app: web.Application) -> None:
        if start_jobs:
            orchestrator.start()

    async def on_cleanup(app: web.Application) -> None:
        await orchestrator.stop()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def run_service(
    project_dir: Path,
    env: str | None = None,
    host: str = "127.0.0.1",
    port: int = 8080,
    verbose: bool = False,
    enable_jobs: bool = True,
) -> None:
    """
    Run the sync service until interrupted.

    Args:
        project_dir: Directory holding config.yaml
        env: Environment overlay (config.<env>.yaml)
        host: Host to bind to
        port: Port to bind to
        verbose: Force DEBUG logging
        enable_jobs: Run the bootstrap and interval tickers
    """
    project_dir = Path(project_dir)
    config = load_config(project_dir, env=env)
    logging_config = dict(config.data)
    if verbose:
        logging_config["logging"] = {**config.section("logging"), "level": "DEBUG"}
    setup_logging_from_config(logging_config, project_dir)

    try:
        settings = SyncSettings.from_config(config, project_dir=project_dir)
        orchestrator = SyncOrchestrator(settings)
    except ConfigurationError as e:
        raise RuntimeError(f"Initialization failed: {e.message}") from None

    app = create_app(orchestrator, start_jobs=enable_jobs)
    logger.info(f"venuesync service ({settings.role}) starting on http://{host}:{port}")
    web.run_app(app, host=host, port=port, access_log=None)
