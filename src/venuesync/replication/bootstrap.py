"""
Full historical catch-up through the Overpass API.

Used once, when no venue cache exists locally or in the mirror. Each tracked
payment tag is queried per entity type; every query that succeeds is merged
into the cache immediately and checkpointed, so an interrupted bootstrap
resumes with ``newer:`` filters instead of starting over.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiohttp

from venuesync.config.settings import OverpassSettings
from venuesync.connections.storage import AssetType, BaseStorageConnection, asset_name
from venuesync.exceptions import BlobNotFoundError, BootstrapError
from venuesync.replication.cache import VenueCache
from venuesync.replication.classifier import BITCOIN_TAGS, is_domain_tagged, sanitize_tags
from venuesync.replication.types import EntityType, VenueRecord, format_timestamp
from venuesync.utils.files import atomic_write_text
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.replication.bootstrap")

CHECKPOINTS_ASSET = asset_name(AssetType.SYNC, "SyncData.json")


class SyncCheckpoints:
    """
    Small string map persisted next to the cache (``SyncData.json``).

    Keys are ``<type>_<tag>`` per Overpass query plus ``lastSync``.
    """

    def __init__(self, path: str | Path, mirror: BaseStorageConnection | None = None):
        self.path = Path(path)
        self.mirror = mirror
        self._data: dict[str, str] = {}

    def load(self) -> dict[str, str]:
        """Read local checkpoints, pulling them from the mirror first if missing."""
        if not self.path.exists() and self.mirror is not None:
            try:
                self.mirror.download_to(CHECKPOINTS_ASSET, self.path)
            except BlobNotFoundError:
                pass
            except Exception as e:
                logger.warning(f"Could not download {self.path.name} from mirror: {e}")

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._data = {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}
        except FileNotFoundError:
            self._data = {}
        except ValueError:
            logger.warning(f"Failed to parse {self.path.name}, starting fresh")
            self._data = {}
        return dict(self._data)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        content = json.dumps(self._data, indent=2)
        atomic_write_text(self.path, content)
        if self.mirror is not None:
            try:
                self.mirror.put(CHECKPOINTS_ASSET, content.encode("utf-8"))
            except Exception as e:
                logger.warning(f"Failed to mirror {self.path.name}: {e}")


@dataclass
class BootstrapResult:
    skipped: bool = False
    queries: int = 0
    failed_queries: int = 0
    venues: int = 0


def build_query(entity_type: EntityType, tag: str, since: str, timeout_s: int = 60) -> str:
    """Overpass QL for entities of one type with ``tag=yes`` edited after ``since``."""
    return (
        f"[out:json][timeout:{timeout_s}];\n"
        f'({entity_type.value}["{tag}"="yes"](newer:"{since}"););\n'
        f"out center meta;"
    )


def element_to_record(element: dict[str, Any], tracked_tags: tuple[str, ...] = BITCOIN_TAGS) -> VenueRecord | None:
    """
    Convert an Overpass JSON element; None for untracked or malformed elements.

    Ways and relations carry their position in ``center``.
    """
    try:
        entity_type = EntityType(element.get("type"))
        entity_id = int(element["id"])
    except (KeyError, TypeError, ValueError):
        return None

    tags = sanitize_tags({str(k): str(v) for k, v in (element.get("tags") or {}).items()})
    if not is_domain_tagged(tags, tracked_tags):
        return None

    position = element if "lat" in element else (element.get("center") or {})
    lat, lon = position.get("lat"), position.get("lon")
    return VenueRecord(
        id=entity_id,
        type=entity_type,
        lat=float(lat) if lat is not None else None,
        lon=float(lon) if lon is not None else None,
        tags=tags,
    )


class OverpassBootstrap:
    """Builds the initial venue cache from Overpass queries."""

    def __init__(
        self,
        settings: OverpassSettings,
        cache: VenueCache,
        checkpoints: SyncCheckpoints,
        tracked_tags: tuple[str, ...] = BITCOIN_TAGS,
    ):
        self.settings = settings
        self.cache = cache
        self.checkpoints = checkpoints
        self.tracked_tags = tracked_tags
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_s)

    async def run(self) -> BootstrapResult:
        """
        Take the snapshot unless a cache already exists.

        Raises:
            BootstrapError: If every Overpass query failed
        """
        await asyncio.to_thread(self.cache.restore)
        if await asyncio.to_thread(self.cache.has_data):
            logger.info(f"{self.cache.cache_file.name} already exists, skipping Overpass bootstrap")
            return BootstrapResult(skipped=True)

        await asyncio.to_thread(self.checkpoints.load)
        result = BootstrapResult()

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            for tag in self.tracked_tags:
                for entity_type in EntityType:
                    result.queries += 1
                    try:
                        result.venues += await self._run_query(session, entity_type, tag)
                    except (aiohttp.ClientError, TimeoutError, ValueError) as e:
                        result.failed_queries += 1
                        logger.error(f"Error fetching {entity_type.value} with tag {tag}: {e!r}")
                    await asyncio.sleep(self.settings.request_delay_s)

        if result.queries and result.failed_queries == result.queries:
            raise BootstrapError(f"All {result.queries} Overpass queries failed", details={"url": self.settings.url})

        logger.info(f"Overpass bootstrap synced {result.venues} venues ({result.failed_queries} failed queries)")
        return result

    async def _run_query(self, session: aiohttp.ClientSession, entity_type: EntityType, tag: str) -> int:
        key = f"{entity_type.value}_{tag}"
        since = self.checkpoints.get(key) or self.settings.since
        query = build_query(entity_type, tag, since, timeout_s=int(self.settings.timeout_s))

        logger.info(f"Querying Overpass for {entity_type.value} with tag {tag} since {since}")
        async with session.post(self.settings.url, data={"data": query}) as resp:
            resp.raise_for_status()
            payload = await resp.json(content_type=None)

        converted = (element_to_record(e, self.tracked_tags) for e in payload.get("elements") or [])
        records = [r for r in converted if r is not None]
        if records:
            await asyncio.to_thread(self.cache.merge_snapshot, records)

        now = format_timestamp(datetime.now(UTC))
        await asyncio.to_thread(self.checkpoints.set, key, now)
        await asyncio.to_thread(self.checkpoints.set, "lastSync", now)
        return len(records)
