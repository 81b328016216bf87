"""
Type definitions for replication state, venue records and change sets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any


class EntityType(StrEnum):
    NODE = "node"
    WAY = "way"
    RELATION = "relation"


VenueKey = tuple[EntityType, int]


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO8601 timestamp as written by the feed or by us.

    Accepts a trailing ``Z`` and the backslash-escaped colons used in
    ``state.txt`` files. Returns None for missing or unparsable input.
    """
    if not value:
        return None
    text = value.strip().replace("\\:", ":")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format as ISO8601 UTC with a ``Z`` suffix."""
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ReplicationState:
    """How far the replication feed has been consumed."""

    sequence_number: int
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"sequenceNumber": self.sequence_number, "timestamp": format_timestamp(self.timestamp)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReplicationState":
        """
        Raises:
            ValueError: If sequenceNumber is missing or not a non-negative int
        """
        seq = data.get("sequenceNumber")
        if isinstance(seq, bool) or not isinstance(seq, int) or seq < 0:
            raise ValueError(f"Invalid sequenceNumber: {seq!r}")
        timestamp = parse_timestamp(data.get("timestamp")) or datetime.fromtimestamp(0, tz=UTC)
        return cls(sequence_number=seq, timestamp=timestamp)


@dataclass
class VenueRecord:
    """A cached point of interest, identified by ``(type, id)``."""

    id: int
    type: EntityType
    lat: float | None = None
    lon: float | None = None
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> VenueKey:
        return (self.type, self.id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "id": self.id}
        if self.lat is not None:
            data["lat"] = self.lat
        if self.lon is not None:
            data["lon"] = self.lon
        data["tags"] = dict(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VenueRecord":
        lat = data.get("lat")
        lon = data.get("lon")
        return cls(
            id=int(data["id"]),
            # Records written before types were tracked are nodes
            type=EntityType(data.get("type") or EntityType.NODE),
            lat=float(lat) if lat is not None else None,
            lon=float(lon) if lon is not None else None,
            tags={str(k): str(v) for k, v in (data.get("tags") or {}).items()},
        )


@dataclass(frozen=True)
class ChangeRecord:
    """One entity touched by a change-file."""

    id: int
    type: EntityType
    lat: float | None = None
    lon: float | None = None
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> VenueKey:
        return (self.type, self.id)

    def to_venue(self) -> VenueRecord:
        return VenueRecord(id=self.id, type=self.type, lat=self.lat, lon=self.lon, tags=dict(self.tags))


@dataclass
class ChangeSet:
    """Classified contents of one change-file."""

    created: list[ChangeRecord] = field(default_factory=list)
    modified: list[ChangeRecord] = field(default_factory=list)
    deleted: list[ChangeRecord] = field(default_factory=list)
    unqualified_modified: list[ChangeRecord] = field(default_factory=list)
    # Entities dropped for missing id/coordinates
    skipped: int = 0

    @property
    def upserts(self) -> list[ChangeRecord]:
        return self.created + self.modified

    @property
    def removals(self) -> list[ChangeRecord]:
        return self.deleted + self.unqualified_modified

    def __len__(self) -> int:
        return len(self.created) + len(self.modified) + len(self.deleted) + len(self.unqualified_modified)


@dataclass
class ApplyResult:
    """Outcome of applying a change set to the venue cache."""

    updated: bool = False
    created_count: int = 0
    modified_count: int = 0
    removed_count: int = 0
    changed: list[VenueRecord] = field(default_factory=list)
    removed: list[VenueRecord] = field(default_factory=list)
    created_keys: set[VenueKey] = field(default_factory=set)
    # Never-empty guard tripped; nothing was written
    rejected: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.created_count or self.modified_count or self.removed_count)


@dataclass(frozen=True)
class DiffFile:
    """A downloaded, decompressed change-file."""

    path: Path
    gz_path: Path
    timestamp: datetime
    sequence: int


@dataclass(frozen=True)
class EnrichmentBatch:
    sequence: int
    entries: list[VenueRecord]
