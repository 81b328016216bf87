"""
Enrichment queue: per-sequence batches of changed venues.

The producer writes each batch exactly once; the enrichment stage reads and
acknowledges (deletes) batches on its own schedule.
"""

from __future__ import annotations

import json
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from venuesync.replication.types import EnrichmentBatch, VenueRecord
from venuesync.utils.files import remove_quietly
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.replication.queue")


class EnrichmentQueue(ABC):
    """Write-once, consumer-deletes channel to the enrichment stage."""

    @abstractmethod
    def emit(self, sequence: int, records: Sequence[VenueRecord]) -> bool:
        """Publish the batch for ``sequence``; returns True if a batch was written."""

    @abstractmethod
    def pending(self) -> list[int]:
        """Sequences with a batch not yet acknowledged, ascending."""

    @abstractmethod
    def read(self, sequence: int) -> EnrichmentBatch:
        """Load a pending batch (raises FileNotFoundError / KeyError when absent)."""

    @abstractmethod
    def acknowledge(self, sequence: int) -> None:
        """Consumer side: drop a processed batch."""


class FileEnrichmentQueue(EnrichmentQueue):
    """
    Directory-backed queue, one ``geo-enrichment-<seq>.json`` file per batch.
    """

    PREFIX = "geo-enrichment-"
    _NAME_RE = re.compile(r"^geo-enrichment-(\d+)\.json$")

    def __init__(self, queue_dir: str | Path):
        self.queue_dir = Path(queue_dir)

    def batch_path(self, sequence: int) -> Path:
        return self.queue_dir / f"{self.PREFIX}{sequence}.json"

    def emit(self, sequence: int, records: Sequence[VenueRecord]) -> bool:
        if not records:
            return False

        self.queue_dir.mkdir(parents=True, exist_ok=True)
        path = self.batch_path(sequence)
        tmp_path = path.with_suffix(".json.part")
        content = json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)

        try:
            tmp_path.write_text(content, encoding="utf-8")
            # link() fails if the batch exists, so a published batch is never replaced
            os.link(tmp_path, path)
        except FileExistsError:
            logger.warning(f"Enrichment batch {path.name} already exists, not rewriting it")
            return False
        finally:
            remove_quietly(tmp_path)

        logger.info(f"Created enrichment batch: {path.name} ({len(records)} entries)")
        return True

    def pending(self) -> list[int]:
        if not self.queue_dir.is_dir():
            return []
        sequences = []
        for entry in self.queue_dir.iterdir():
            match = self._NAME_RE.match(entry.name)
            if match:
                sequences.append(int(match.group(1)))
        return sorted(sequences)

    def read(self, sequence: int) -> EnrichmentBatch:
        data = json.loads(self.batch_path(sequence).read_text(encoding="utf-8"))
        return EnrichmentBatch(sequence=sequence, entries=[VenueRecord.from_dict(item) for item in data])

    def acknowledge(self, sequence: int) -> None:
        remove_quietly(self.batch_path(sequence))
