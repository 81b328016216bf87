"""
HTTP endpoint handlers for the sync service.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from aiohttp import web

from venuesync.service.errors import ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from venuesync.service.orchestrator import SyncOrchestrator


class SyncHandler:
    """Operational endpoints over a :class:`SyncOrchestrator`."""

    def __init__(self, orchestrator: SyncOrchestrator):
        self.orchestrator = orchestrator
        self._start_time = time.time()

    async def health(self, request: web.Request) -> web.Response:
        """GET /health"""
        from venuesync import __version__

        return web.json_response(
            {
                "status": "ok",
                "version": __version__,
                "uptime_seconds": round(time.time() - self._start_time, 2),
            }
        )

    async def status(self, request: web.Request) -> web.Response:
        """GET /api/v1/sync/status"""
        return web.json_response(await asyncio.to_thread(self.orchestrator.status))

    async def get_state(self, request: web.Request) -> web.Response:
        """
        GET /api/v1/sync/state

        Local and mirrored replication state side by side.
        """
        return web.json_response(await asyncio.to_thread(self.orchestrator.tracker.describe))

    async def put_state(self, request: web.Request) -> web.Response:
        """
        PUT /api/v1/sync/state

        Body: ``{"sequenceNumber": <int >= 0>}``. Moves the replication cursor,
        backwards too.
        """
        body = await request.json()
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        sequence = body.get("sequenceNumber")
        if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 0:
            raise ValidationError(
                "sequenceNumber must be a non-negative integer", details={"sequenceNumber": sequence}
            )
        if self.orchestrator.is_running("osm-diffs"):
            raise ConflictError("Cannot change replication state while osm-diffs is running")

        state = await asyncio.to_thread(self.orchestrator.tracker.override, sequence)
        return web.json_response({"status": "updated", "state": state.to_dict()})

    async def run_job(self, request: web.Request) -> web.Response:
        """
        POST /api/v1/jobs/{job}/run

        202 when started, 409 when a run of the same job is in flight.
        """
        job = request.match_info["job"]
        if job not in self.orchestrator.jobs:
            raise NotFoundError("Job", job)
        if not self.orchestrator.spawn(job):
            raise ConflictError(f"Job '{job}' is already running", details={"job": job})
        return web.json_response({"job": job, "status": "started"}, status=202)
