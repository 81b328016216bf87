"""
Authoritative local snapshot of bitcoin venues.

The cache is a JSON array of venue records, rewritten atomically and only
when its serialized form changes, then mirrored to the blob store. A write
that would turn a non-empty cache into an empty one is refused: losing the
whole dataset is always treated as a bug upstream of the cache, never as
news.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from venuesync.connections.storage import AssetType, BaseStorageConnection, asset_name
from venuesync.exceptions import BlobNotFoundError
from venuesync.replication.types import ApplyResult, ChangeSet, VenueKey, VenueRecord
from venuesync.utils.files import atomic_write_text
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.replication.cache")

CACHE_ASSET = asset_name(AssetType.VENUES, "BitcoinVenues.json")


def serialize_records(records: Iterable[VenueRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)


def _differs(prev: VenueRecord, new: VenueRecord) -> bool:
    return prev.lat != new.lat or prev.lon != new.lon or prev.tags != new.tags


@dataclass
class CacheUpdate:
    """A merged snapshot computed from a change set, not yet written."""

    result: ApplyResult
    records: dict[VenueKey, VenueRecord]


class VenueCache:
    """Identity-keyed venue snapshot with upsert/tombstone merge."""

    def __init__(self, cache_file: str | Path, mirror: BaseStorageConnection | None = None):
        self.cache_file = Path(cache_file)
        self.mirror = mirror

    def _read_raw(self) -> str | None:
        try:
            return self.cache_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def load(self) -> dict[VenueKey, VenueRecord]:
        """
        Current records keyed by ``(type, id)``, in file order.

        Raises:
            ValueError: If the cache file exists but is not a JSON array of records
        """
        raw = self._read_raw()
        if raw is None:
            return {}
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"{self.cache_file} must contain a JSON array, got {type(data).__name__}")
        by_key: dict[VenueKey, VenueRecord] = {}
        for item in data:
            record = VenueRecord.from_dict(item)
            by_key[record.key] = record
        return by_key

    def records(self) -> list[VenueRecord]:
        return list(self.load().values())

    def has_data(self) -> bool:
        try:
            return bool(self.load())
        except ValueError:
            return False

    def restore(self) -> bool:
        """
        Pull the cache from the mirror when no local copy exists.

        Returns True if a copy was downloaded. Failures are logged only.
        """
        if self.cache_file.exists() or self.mirror is None:
            return False
        try:
            logger.info(f"{self.cache_file.name} not found locally, downloading from mirror")
            self.mirror.download_to(CACHE_ASSET, self.cache_file)
            return True
        except BlobNotFoundError:
            logger.info(f"No mirrored {self.cache_file.name} yet")
        except Exception as e:
            logger.warning(f"Could not download {self.cache_file.name} from mirror: {e}")
        return False

    def prepare(self, changes: ChangeSet) -> CacheUpdate:
        """
        Merge a classified change set into an in-memory copy of the cache.

        Upserts new or changed domain-tagged entities and removes deleted and
        no-longer-tagged ones. Nothing is written until :meth:`commit`, so a
        failure in between leaves the sequence replayable.
        """
        previous = self.load()
        by_key = dict(previous)
        result = ApplyResult()

        for entry in changes.upserts:
            record = entry.to_venue()
            prev = by_key.get(record.key)
            if prev is not None and not _differs(prev, record):
                continue
            by_key[record.key] = record
            result.changed.append(record)
            if prev is None:
                result.created_keys.add(record.key)
                result.created_count += 1
            else:
                result.modified_count += 1

        for entry in changes.removals:
            removed = by_key.pop(entry.key, None)
            if removed is not None:
                result.removed.append(removed)
                result.removed_count += 1

        # An entity upserted and removed in the same change set is gone
        gone = {record.key for record in result.removed}
        result.changed = [record for record in result.changed if record.key not in gone]
        result.created_keys -= gone

        if result.has_changes and not by_key and previous:
            logger.error(
                f"Refusing to write empty {self.cache_file.name}: change set would remove all "
                f"{len(previous)} cached venues; keeping previous cache"
            )
            result.rejected = True
            result.changed = []
        return CacheUpdate(result=result, records=by_key)

    def commit(self, update: CacheUpdate) -> ApplyResult:
        """Persist a prepared update; a no-op when it changed nothing or was rejected."""
        result = update.result
        if result.has_changes and not result.rejected:
            result.updated = self._persist(update.records.values())
        return result

    def apply_change_set(self, changes: ChangeSet) -> ApplyResult:
        """Prepare and commit in one step."""
        return self.commit(self.prepare(changes))

    def merge_snapshot(self, records: Iterable[VenueRecord]) -> bool:
        """
        Upsert-only merge of a full or partial snapshot.

        Returns True if the cache file was rewritten.
        """
        by_key = self.load()
        for record in records:
            by_key[record.key] = record
        return self._persist(by_key.values())

    def _persist(self, records: Iterable[VenueRecord]) -> bool:
        records = list(records)
        existing_raw = self._read_raw()

        if not records and existing_raw is not None and self._has_entries(existing_raw):
            logger.error(f"Skipped writing empty {self.cache_file.name}: existing data present")
            return False

        content = serialize_records(records)
        if content == existing_raw:
            logger.debug(f"No changes detected, {self.cache_file.name} not rewritten")
            return False

        atomic_write_text(self.cache_file, content)
        logger.info(f"{self.cache_file.name} updated ({len(records)} venues)")

        if self.mirror is not None:
            try:
                self.mirror.put(CACHE_ASSET, content.encode("utf-8"))
            except Exception as e:
                logger.warning(f"Failed to mirror {self.cache_file.name}: {e}")
        return True

    @staticmethod
    def _has_entries(raw: str) -> bool:
        try:
            data = json.loads(raw)
        except ValueError:
            return True
        return bool(data)
