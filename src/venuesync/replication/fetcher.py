"""
Replication feed client.

Fetches minutely change-files (``.osc.gz``) and their ``.state.txt`` metadata
from the OpenStreetMap replication server, and the feed's current sequence
number. Every request carries a bounded timeout; any failure raises before
anything is handed to the caller, so the cursor never advances on a partial
download.
"""

from __future__ import annotations

import asyncio
import gzip
import re
import time
import zlib
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiohttp

from venuesync.config.settings import ReplicationSettings
from venuesync.exceptions import DiffFetchError, RemoteStateError
from venuesync.replication.state import ReplicationStateTracker
from venuesync.replication.types import DiffFile, parse_timestamp
from venuesync.utils.files import atomic_write_bytes, remove_quietly
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.replication.fetcher")

_SEQUENCE_RE = re.compile(r"sequenceNumber=(\d+)")


def sequence_path(sequence: int) -> str:
    """
    Path fragment of a sequence on the replication server.

    Example: 6123456 -> "006/123/456"
    """
    if sequence < 0:
        raise ValueError(f"Sequence number must be >= 0, got {sequence}")
    padded = str(sequence).zfill(9)
    return f"{padded[0:3]}/{padded[3:6]}/{padded[6:9]}"


def parse_state_timestamp(text: str) -> datetime | None:
    """Extract the ``timestamp=`` line from a state.txt body."""
    for line in text.splitlines():
        if line.startswith("timestamp="):
            return parse_timestamp(line[len("timestamp=") :])
    return None


def _write_and_decompress(raw: bytes, gz_path: Path, osc_path: Path) -> None:
    atomic_write_bytes(gz_path, raw)
    atomic_write_bytes(osc_path, gzip.decompress(raw))


class DiffRetriever:
    """
    Client for the minutely replication feed.

    Use as an async context manager so the HTTP session is closed::

        async with DiffRetriever(settings.replication, work_dir, tracker) as retriever:
            for seq in await retriever.get_missing_sequences():
                diff = await retriever.fetch_diff(seq)
    """

    def __init__(
        self,
        settings: ReplicationSettings,
        work_dir: str | Path,
        state: ReplicationStateTracker,
        headers: dict[str, str] | None = None,
    ):
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.work_dir = Path(work_dir)
        self.state = state
        self.default_headers = headers or {"User-Agent": "venuesync (+replication consumer)"}
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_s)
        self.session: aiohttp.ClientSession | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(headers=self.default_headers, timeout=self.timeout)
        return self.session

    async def __aenter__(self) -> "DiffRetriever":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> bytes:
        """GET a resource; raises aiohttp.ClientError or TimeoutError."""
        session = await self._ensure_session()
        async with session.get(url, params=params, timeout=self.timeout) as resp:
            resp.raise_for_status()
            return await resp.read()

    async def fetch_diff(self, sequence: int) -> DiffFile:
        """
        Download and decompress the change-file for ``sequence``.

        Raises:
            DiffFetchError: On any network, HTTP, decompression or I/O failure
        """
        fragment = sequence_path(sequence)
        diff_url = f"{self.base_url}/{fragment}.osc.gz"
        state_url = f"{self.base_url}/{fragment}.state.txt"
        gz_path = self.work_dir / f"diff-{sequence}.osc.gz"
        osc_path = self.work_dir / f"diff-{sequence}.osc"

        try:
            try:
                raw = await self._get(diff_url)
            except (aiohttp.ClientError, TimeoutError) as e:
                raise DiffFetchError(sequence, f"failed to fetch {diff_url}: {e!r}", cause=e) from e

            try:
                await asyncio.to_thread(_write_and_decompress, raw, gz_path, osc_path)
            except (OSError, EOFError, zlib.error) as e:
                raise DiffFetchError(sequence, f"failed to decompress change-file: {e}", cause=e) from e

            await asyncio.sleep(self.settings.courtesy_delay_s)

            try:
                state_text = (await self._get(state_url)).decode("utf-8", errors="replace")
            except (aiohttp.ClientError, TimeoutError) as e:
                raise DiffFetchError(sequence, f"failed to fetch {state_url}: {e!r}", cause=e) from e
        except DiffFetchError as e:
            logger.warning(f"Failed to fetch sequence #{sequence}: {e.message}")
            remove_quietly(gz_path)
            remove_quietly(osc_path)
            raise

        timestamp = parse_state_timestamp(state_text)
        if timestamp is None:
            logger.debug(f"No timestamp in state for #{sequence}, using current time")
            timestamp = datetime.now(UTC)

        logger.debug(f"Downloaded and decompressed diff #{sequence} ({len(raw)} bytes compressed)")
        return DiffFile(path=osc_path, gz_path=gz_path, timestamp=timestamp, sequence=sequence)

    def cleanup(self, diff: DiffFile | None) -> None:
        """Delete the temp files of a fetched diff."""
        if diff is None:
            return
        remove_quietly(diff.gz_path)
        remove_quietly(diff.path)

    async def get_remote_high_water_mark(self) -> int:
        """
        Current sequence number published by the feed.

        Raises:
            RemoteStateError: If the state resource is unreachable or has no marker
        """
        url = f"{self.base_url}/state.txt"
        try:
            # Cache buster; some mirrors serve stale state.txt otherwise
            text = (await self._get(url, params={"_": str(int(time.time() * 1000))})).decode("utf-8", errors="replace")
        except (aiohttp.ClientError, TimeoutError) as e:
            raise RemoteStateError(f"Failed to fetch remote state {url}: {e!r}") from e

        match = _SEQUENCE_RE.search(text)
        if not match:
            raise RemoteStateError(f"sequenceNumber not found in remote state {url}")
        return int(match.group(1))

    async def get_missing_sequences(self) -> list[int]:
        """
        Sequences between the consumed cursor and the feed's high-water mark.

        Capped to ``max_sequences_per_run``, oldest first.
        """
        local = await asyncio.to_thread(self.state.get_consumed_sequence)
        remote = await self.get_remote_high_water_mark()
        logger.info(f"Local sequence: {local}, remote sequence: {remote}")

        if remote <= local:
            return []
        last = min(remote, local + self.settings.max_sequences_per_run)
        return list(range(local + 1, last + 1))
