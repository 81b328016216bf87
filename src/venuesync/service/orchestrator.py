"""
Sync orchestration: single-flight jobs, interval tickers, the incremental run.

Each job class has one run guard. A trigger that arrives while the previous
run of the same class is still in flight is dropped, never queued. Sequences
are processed strictly in ascending order and the replication cursor only
moves after a sequence has been applied to the cache and queued.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from venuesync.config.settings import SyncSettings
from venuesync.connections.manager import build_storage
from venuesync.connections.storage import BaseStorageConnection
from venuesync.exceptions import BootstrapError, RemoteStateError, ReplicationError
from venuesync.replication.bootstrap import BootstrapResult, OverpassBootstrap, SyncCheckpoints
from venuesync.replication.cache import VenueCache
from venuesync.replication.changelog import ChangeLog
from venuesync.replication.classifier import ChangeClassifier
from venuesync.replication.fetcher import DiffRetriever
from venuesync.replication.queue import EnrichmentQueue, FileEnrichmentQueue
from venuesync.replication.state import ReplicationStateTracker
from venuesync.replication.types import DiffFile, format_timestamp
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.service.orchestrator")

JOB_BOOTSTRAP = "bootstrap"
JOB_OSM_DIFFS = "osm-diffs"

JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class IncrementalRunSummary:
    """What one incremental run did."""

    started_at: datetime
    finished_at: datetime | None = None
    start_sequence: int = 0
    processed: list[int] = field(default_factory=list)
    failed_sequence: int | None = None
    error: str | None = None
    venues_changed: int = 0
    venues_removed: int = 0
    batches_emitted: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "startedAt": format_timestamp(self.started_at),
            "finishedAt": format_timestamp(self.finished_at) if self.finished_at else None,
            "startSequence": self.start_sequence,
            "processed": list(self.processed),
            "failedSequence": self.failed_sequence,
            "error": self.error,
            "venuesChanged": self.venues_changed,
            "venuesRemoved": self.venues_removed,
            "batchesEmitted": self.batches_emitted,
        }


@dataclass
class _Job:
    name: str
    func: JobFunc
    every_s: float | None = None


class SyncOrchestrator:
    """
    Owns the sync components and drives them on a schedule.

    Components default to the ones described by ``settings``; tests pass
    their own.
    """

    def __init__(
        self,
        settings: SyncSettings,
        *,
        mirror: BaseStorageConnection | None = None,
        tracker: ReplicationStateTracker | None = None,
        retriever: DiffRetriever | None = None,
        classifier: ChangeClassifier | None = None,
        cache: VenueCache | None = None,
        queue: EnrichmentQueue | None = None,
        changelog: ChangeLog | None = None,
        bootstrap: OverpassBootstrap | None = None,
    ):
        self.settings = settings
        self.mirror = mirror if mirror is not None else build_storage(settings.storage)
        self.tracker = tracker or ReplicationStateTracker(settings.state_file, mirror=self.mirror)
        self.retriever = retriever or DiffRetriever(settings.replication, settings.work_dir, self.tracker)
        self.classifier = classifier or ChangeClassifier()
        self.cache = cache or VenueCache(settings.venue_cache_file, mirror=self.mirror)
        self.queue = queue or FileEnrichmentQueue(settings.queue_dir)
        self.changelog = changelog or ChangeLog(settings.changelog_dir)
        self.bootstrap = bootstrap or OverpassBootstrap(
            settings.overpass,
            self.cache,
            SyncCheckpoints(settings.checkpoints_file, mirror=self.mirror),
        )

        self._jobs: dict[str, _Job] = {}
        self._running: dict[str, bool] = {}
        self._bootstrap_attempted = False
        self.last_run: IncrementalRunSummary | None = None
        self.last_bootstrap: BootstrapResult | None = None

        self._stopping = asyncio.Event()
        self._tickers: list[asyncio.Task] = []
        self._inflight: set[asyncio.Task] = set()

        self.register_job(JOB_BOOTSTRAP, self.run_bootstrap)
        self.register_job(JOB_OSM_DIFFS, self.run_incremental, every_s=settings.diff_interval_s)

    # --- Guarded job execution ---------------------------------------------

    def register_job(self, name: str, func: JobFunc, every_s: float | None = None) -> None:
        """Add a job class; ``every_s`` schedules it on an interval ticker."""
        if name in self._jobs:
            raise ValueError(f"Job already registered: {name}")
        self._jobs[name] = _Job(name=name, func=func, every_s=every_s)
        self._running[name] = False

    @property
    def jobs(self) -> list[str]:
        return list(self._jobs)

    def is_running(self, job: str) -> bool:
        return self._running.get(job, False)

    def _acquire(self, job: str) -> bool:
        if job not in self._jobs:
            raise KeyError(job)
        if self._running[job]:
            logger.info(f"{job} job already running, skipping this trigger")
            return False
        self._running[job] = True
        return True

    async def _run_acquired(self, job: _Job) -> None:
        try:
            await job.func()
        except Exception as e:
            logger.exception(f"{job.name} job failed: {e}")
        finally:
            self._running[job.name] = False

    async def trigger(self, job: str) -> bool:
        """
        Run ``job`` now and wait for it.

        Returns False (and logs) when a run of the same class is in flight.

        Raises:
            KeyError: If ``job`` is not registered
        """
        if not self._acquire(job):
            return False
        await self._run_acquired(self._jobs[job])
        return True

    def spawn(self, job: str) -> bool:
        """Like :meth:`trigger` but runs in the background."""
        if not self._acquire(job):
            return False
        task = asyncio.create_task(self._run_acquired(self._jobs[job]), name=f"venuesync-{job}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return True

    # --- Jobs ----------------------------------------------------------------

    async def run_bootstrap(self) -> BootstrapResult | None:
        """
        Overpass snapshot, at most once per process and only on the primary.

        Afterwards an unset replication cursor is seeded to the feed's current
        sequence so the incremental run starts from now, not from history.
        """
        if not self.settings.is_primary:
            logger.info(f"Role is {self.settings.role}, skipping Overpass bootstrap")
            return None
        if self._bootstrap_attempted:
            logger.debug("Overpass bootstrap already ran in this process")
            return None
        self._bootstrap_attempted = True

        try:
            result = await self.bootstrap.run()
        except BootstrapError as e:
            logger.error(f"Overpass bootstrap failed: {e.message}")
            return None
        self.last_bootstrap = result

        await asyncio.to_thread(self.tracker.reconcile)
        if await asyncio.to_thread(self.tracker.get_consumed_sequence) == 0:
            try:
                high_water_mark = await self.retriever.get_remote_high_water_mark()
            except RemoteStateError as e:
                logger.warning(f"Could not seed replication state: {e.message}")
            else:
                logger.info(f"Seeding replication state to feed sequence #{high_water_mark}")
                await asyncio.to_thread(self.tracker.advance, high_water_mark)
        return result

    async def run_incremental(self) -> IncrementalRunSummary:
        """
        Consume the replication feed up to its high-water mark (capped per run).

        Stops at the first sequence that cannot be fetched, parsed or applied;
        that sequence is retried on the next run.
        """
        summary = IncrementalRunSummary(started_at=datetime.now(UTC))
        self.last_run = summary

        await asyncio.to_thread(self.tracker.reconcile)
        await asyncio.to_thread(self.cache.restore)
        summary.start_sequence = await asyncio.to_thread(self.tracker.get_consumed_sequence)

        try:
            sequences = await self.retriever.get_missing_sequences()
        except RemoteStateError as e:
            logger.error(f"Cannot determine missing sequences: {e.message}")
            summary.error = e.message
            summary.finished_at = datetime.now(UTC)
            return summary

        if not sequences:
            logger.info("Replication state is up to date")

        for sequence in sequences:
            diff: DiffFile | None = None
            try:
                diff = await self.retriever.fetch_diff(sequence)
                await self._apply_diff(diff, summary)
            except (ReplicationError, OSError, ValueError) as e:
                logger.error(f"Stopping incremental run at sequence #{sequence}: {e}")
                summary.failed_sequence = sequence
                summary.error = str(e)
                break
            finally:
                self.retriever.cleanup(diff)
            summary.processed.append(sequence)

        summary.finished_at = datetime.now(UTC)
        if summary.processed:
            logger.info(
                f"Processed sequences #{summary.processed[0]}..#{summary.processed[-1]}: "
                f"{summary.venues_changed} changed, {summary.venues_removed} removed"
            )
        return summary

    async def _apply_diff(self, diff: DiffFile, summary: IncrementalRunSummary) -> None:
        changes = await asyncio.to_thread(self.classifier.classify_file, diff.path)
        logger.debug(
            f"Diff #{diff.sequence}: {len(changes.created)} created, {len(changes.modified)} modified, "
            f"{len(changes.deleted)} deleted, {len(changes.unqualified_modified)} untagged, "
            f"{changes.skipped} skipped"
        )

        # The cache is committed only once its batch is queued
        update = await asyncio.to_thread(self.cache.prepare, changes)
        result = update.result
        if result.changed and await asyncio.to_thread(self.queue.emit, diff.sequence, result.changed):
            summary.batches_emitted += 1
        await asyncio.to_thread(self.changelog.record, diff.sequence, diff.timestamp, result)
        await asyncio.to_thread(self.cache.commit, update)
        await asyncio.to_thread(self.tracker.advance, diff.sequence, diff.timestamp)

        summary.venues_changed += len(result.changed)
        summary.venues_removed += result.removed_count if not result.rejected else 0

    # --- Lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Start the bootstrap (primary only) followed by the interval tickers."""
        self._stopping.clear()
        self._tickers.append(asyncio.create_task(self._startup(), name="venuesync-startup"))

    async def _startup(self) -> None:
        if self.settings.is_primary:
            await self.trigger(JOB_BOOTSTRAP)
        for job in self._jobs.values():
            if job.every_s:
                self._tickers.append(asyncio.create_task(self._ticker(job), name=f"venuesync-ticker-{job.name}"))
                logger.info(f"Scheduled {job.name} every {job.every_s}s")

    async def _ticker(self, job: _Job) -> None:
        interval = max(1.0, float(job.every_s or 0))
        while not self._stopping.is_set():
            self.spawn(job.name)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                pass

    async def stop(self) -> None:
        """Cancel tickers, wait for in-flight runs and close the feed client."""
        self._stopping.set()
        for task in list(self._tickers):
            task.cancel()
        if self._tickers:
            await asyncio.gather(*self._tickers, return_exceptions=True)
        self._tickers.clear()
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        await self.retriever.close()
        self.mirror.close()

    # --- Observability -------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Guard map and pipeline counters; performs blocking file reads."""
        try:
            cached = len(self.cache.load())
        except ValueError:
            cached = None
        return {
            "role": self.settings.role,
            "jobs": {
                name: {"running": self._running[name], "everyS": job.every_s} for name, job in self._jobs.items()
            },
            "consumedSequence": self.tracker.get_consumed_sequence(),
            "cachedVenues": cached,
            "pendingBatches": len(self.queue.pending()),
            "lastRun": self.last_run.to_dict() if self.last_run else None,
        }
