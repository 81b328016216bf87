"""
Long-running sync service: orchestrator and HTTP API.
"""

from venuesync.service.orchestrator import (
    JOB_BOOTSTRAP,
    JOB_OSM_DIFFS,
    IncrementalRunSummary,
    SyncOrchestrator,
)
from venuesync.service.server import create_app, run_service

__all__ = [
    "JOB_BOOTSTRAP",
    "JOB_OSM_DIFFS",
    "IncrementalRunSummary",
    "SyncOrchestrator",
    "create_app",
    "run_service",
]
