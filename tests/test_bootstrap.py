"""
Tests for the Overpass bootstrap and its checkpoints.
"""

import json

import pytest
from aioresponses import aioresponses

from helpers import BTC, OVERPASS_URL
from venuesync.exceptions import BootstrapError
from venuesync.replication.bootstrap import (
    CHECKPOINTS_ASSET,
    OverpassBootstrap,
    SyncCheckpoints,
    build_query,
    element_to_record,
)
from venuesync.replication.cache import VenueCache
from venuesync.replication.types import EntityType, VenueRecord


@pytest.fixture
def checkpoints(settings, mirror):
    return SyncCheckpoints(settings.checkpoints_file, mirror=mirror)


@pytest.fixture
def cache(settings, mirror):
    return VenueCache(settings.venue_cache_file, mirror=mirror)


def _bootstrap(settings, cache, checkpoints):
    return OverpassBootstrap(settings.overpass, cache, checkpoints, tracked_tags=("payment:bitcoin",))


class TestQueryAndElements:
    def test_build_query(self):
        query = build_query(EntityType.WAY, "payment:lightning", "2009-01-01T00:00:00Z")
        assert 'way["payment:lightning"="yes"](newer:"2009-01-01T00:00:00Z")' in query
        assert query.startswith("[out:json]")
        assert query.endswith("out center meta;")

    def test_node_element(self):
        record = element_to_record({"type": "node", "id": 1, "lat": 1.5, "lon": 2.5, "tags": BTC})
        assert record == VenueRecord(id=1, type=EntityType.NODE, lat=1.5, lon=2.5, tags=BTC)

    def test_way_uses_center(self):
        record = element_to_record({"type": "way", "id": 2, "center": {"lat": 3.0, "lon": 4.0}, "tags": BTC})
        assert (record.type, record.lat, record.lon) == (EntityType.WAY, 3.0, 4.0)

    @pytest.mark.parametrize(
        "element",
        [
            {"type": "node", "id": 1, "lat": 1, "lon": 2},
            {"type": "node", "id": 1, "lat": 1, "lon": 2, "tags": {"amenity": "cafe"}},
            {"type": "area", "id": 1, "tags": BTC},
            {"type": "node", "tags": BTC},
        ],
    )
    def test_untracked_or_malformed(self, element):
        assert element_to_record(element) is None


class TestSyncCheckpoints:
    def test_set_persists_and_mirrors(self, checkpoints, mirror):
        checkpoints.load()
        checkpoints.set("node_bitcoin", "2024-01-01T00:00:00Z")

        assert json.loads(checkpoints.path.read_text()) == {"node_bitcoin": "2024-01-01T00:00:00Z"}
        assert json.loads(mirror.get(CHECKPOINTS_ASSET)) == {"node_bitcoin": "2024-01-01T00:00:00Z"}

    def test_restored_from_mirror(self, checkpoints, mirror):
        mirror.put(CHECKPOINTS_ASSET, b'{"lastSync": "2024-02-02T00:00:00Z"}')
        assert checkpoints.load() == {"lastSync": "2024-02-02T00:00:00Z"}
        assert checkpoints.get("lastSync") == "2024-02-02T00:00:00Z"

    def test_corrupt_file_starts_fresh(self, checkpoints):
        checkpoints.path.parent.mkdir(parents=True)
        checkpoints.path.write_text("[[[")
        assert checkpoints.load() == {}


class TestOverpassBootstrap:
    async def test_snapshot_merged_and_checkpointed(self, settings, cache, checkpoints):
        payload = {
            "elements": [
                {"type": "node", "id": 1, "lat": 1.0, "lon": 2.0, "tags": BTC},
                {"type": "way", "id": 2, "center": {"lat": 3.0, "lon": 4.0}, "tags": BTC},
                {"type": "node", "id": 3, "lat": 1.0, "lon": 2.0},
            ]
        }
        with aioresponses() as m:
            m.post(OVERPASS_URL, payload=payload, repeat=True)
            result = await _bootstrap(settings, cache, checkpoints).run()

        assert not result.skipped
        assert result.queries == 3
        assert result.failed_queries == 0
        assert set(cache.load()) == {(EntityType.NODE, 1), (EntityType.WAY, 2)}

        saved = json.loads(settings.checkpoints_file.read_text())
        assert set(saved) == {"node_payment:bitcoin", "way_payment:bitcoin", "relation_payment:bitcoin", "lastSync"}

    async def test_resumes_from_checkpoint(self, settings, cache, checkpoints):
        settings.checkpoints_file.parent.mkdir(parents=True)
        settings.checkpoints_file.write_text(json.dumps({"node_payment:bitcoin": "2023-06-01T00:00:00Z"}))

        with aioresponses() as m:
            m.post(OVERPASS_URL, payload={"elements": [{"type": "node", "id": 1, "lat": 1, "lon": 2, "tags": BTC}]}, repeat=True)
            await _bootstrap(settings, cache, checkpoints).run()
            requests = [call for key, calls in m.requests.items() for call in calls]

        queries = [call.kwargs["data"]["data"] for call in requests]
        assert any('newer:"2023-06-01T00:00:00Z"' in q and q.count("node[") == 1 for q in queries)
        assert any('newer:"2009-01-01T00:00:00Z"' in q for q in queries)

    async def test_skipped_when_cache_exists(self, settings, cache, checkpoints):
        cache.merge_snapshot([VenueRecord(id=1, type=EntityType.NODE, lat=1.0, lon=2.0, tags=BTC)])
        with aioresponses() as m:
            result = await _bootstrap(settings, cache, checkpoints).run()
            assert not m.requests
        assert result.skipped

    async def test_skipped_when_mirror_has_cache(self, settings, mirror, checkpoints):
        VenueCache(settings.data_dir / "other.json", mirror=mirror).merge_snapshot(
            [VenueRecord(id=1, type=EntityType.NODE, lat=1.0, lon=2.0, tags=BTC)]
        )
        cache = VenueCache(settings.venue_cache_file, mirror=mirror)

        result = await _bootstrap(settings, cache, checkpoints).run()

        assert result.skipped
        assert cache.cache_file.exists()

    async def test_failed_query_is_skipped(self, settings, cache, checkpoints):
        with aioresponses() as m:
            m.post(OVERPASS_URL, status=429)
            m.post(OVERPASS_URL, payload={"elements": [{"type": "way", "id": 2, "center": {"lat": 1, "lon": 2}, "tags": BTC}]})
            m.post(OVERPASS_URL, payload={"elements": []})
            result = await _bootstrap(settings, cache, checkpoints).run()

        assert result.failed_queries == 1
        assert set(cache.load()) == {(EntityType.WAY, 2)}
        assert "node_payment:bitcoin" not in json.loads(settings.checkpoints_file.read_text())

    async def test_all_queries_failing_raises(self, settings, cache, checkpoints):
        with aioresponses() as m:
            m.post(OVERPASS_URL, status=504, repeat=True)
            with pytest.raises(BootstrapError):
                await _bootstrap(settings, cache, checkpoints).run()
        assert not cache.has_data()
