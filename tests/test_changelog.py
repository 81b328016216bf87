"""
Tests for the daily change log.
"""

import json
from datetime import UTC, datetime

from helpers import BTC
from venuesync.replication.changelog import ChangeLog
from venuesync.replication.types import ApplyResult, EntityType, VenueRecord


def _venue(entity_id: int) -> VenueRecord:
    return VenueRecord(id=entity_id, type=EntityType.NODE, lat=1.0, lon=2.0, tags=dict(BTC))


class TestChangeLog:
    def test_records_daily_file(self, tmp_path):
        log = ChangeLog(tmp_path / "logs")
        result = ApplyResult(
            updated=True,
            created_count=1,
            modified_count=1,
            removed_count=1,
            changed=[_venue(1), _venue(2)],
            removed=[_venue(3)],
            created_keys={(EntityType.NODE, 1)},
        )

        path = log.record(5, datetime(2024, 3, 9, 23, 59, tzinfo=UTC), result)

        assert path == tmp_path / "logs" / "2024" / "03" / "09.log"
        lines = path.read_text().splitlines()
        assert lines[0] == "=== Diff #5 ==="
        assert lines[1].startswith("- CREATED node/1: ")
        assert json.loads(lines[1].split(": ", 1)[1]) == BTC
        assert lines[2].startswith("- MODIFIED node/2")
        assert lines[3] == "- REMOVED node/3"

    def test_appends(self, tmp_path):
        log = ChangeLog(tmp_path)
        result = ApplyResult(removed_count=1, removed=[_venue(3)])
        when = datetime(2024, 3, 9, tzinfo=UTC)
        log.record(1, when, result)
        log.record(2, when, result)
        assert log.path_for(when).read_text().count("=== Diff #") == 2

    def test_nothing_to_record(self, tmp_path):
        log = ChangeLog(tmp_path)
        assert log.record(1, datetime.now(UTC), ApplyResult()) is None
        assert log.record(1, datetime.now(UTC), ApplyResult(removed_count=1, rejected=True)) is None
        assert list(tmp_path.iterdir()) == []
