"""
Tests for the venue cache: merge, idempotence and the never-empty guard.
"""

import json
from unittest.mock import MagicMock

import pytest

from helpers import BTC
from venuesync.exceptions import StorageError
from venuesync.replication.cache import CACHE_ASSET, VenueCache
from venuesync.replication.types import ChangeRecord, ChangeSet, EntityType, VenueRecord


def _rec(entity_id: int, tags: dict | None = None, lat: float = 52.5, kind: EntityType = EntityType.NODE) -> ChangeRecord:
    return ChangeRecord(id=entity_id, type=kind, lat=lat, lon=13.4, tags=dict(tags or BTC))


@pytest.fixture
def cache(settings, mirror):
    return VenueCache(settings.venue_cache_file, mirror=mirror)


class TestApplyChangeSet:
    def test_create_persists_and_mirrors(self, cache, mirror):
        result = cache.apply_change_set(ChangeSet(created=[_rec(1)]))

        assert result.updated
        assert result.created_count == 1
        assert [r.id for r in result.changed] == [1]
        assert result.created_keys == {(EntityType.NODE, 1)}
        assert json.loads(mirror.get(CACHE_ASSET)) == json.loads(cache.cache_file.read_text())

    def test_idempotent(self, cache):
        changes = ChangeSet(created=[_rec(1)], modified=[_rec(2)])
        cache.apply_change_set(changes)
        before = cache.cache_file.read_bytes()
        mtime = cache.cache_file.stat().st_mtime_ns

        result = cache.apply_change_set(changes)

        assert not result.has_changes
        assert not result.updated
        assert result.changed == []
        assert cache.cache_file.read_bytes() == before
        assert cache.cache_file.stat().st_mtime_ns == mtime

    def test_modify_with_new_tags(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        result = cache.apply_change_set(ChangeSet(modified=[_rec(1, tags={**BTC, "name": "Renamed"})]))

        assert result.modified_count == 1
        assert result.created_keys == set()
        assert cache.load()[(EntityType.NODE, 1)].tags["name"] == "Renamed"

    def test_modify_of_unknown_venue_is_created(self, cache):
        result = cache.apply_change_set(ChangeSet(modified=[_rec(8)]))
        assert result.created_count == 1

    def test_unqualified_modify_removes(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1), _rec(2)]))
        result = cache.apply_change_set(ChangeSet(unqualified_modified=[_rec(1, tags={"amenity": "cafe"})]))

        assert result.removed_count == 1
        assert [r.id for r in result.removed] == [1]
        assert list(cache.load()) == [(EntityType.NODE, 2)]

    def test_delete_of_unknown_venue_is_noop(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        result = cache.apply_change_set(ChangeSet(deleted=[_rec(99)]))
        assert not result.has_changes

    def test_identity_includes_type(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(7), _rec(7, kind=EntityType.WAY)]))
        assert set(cache.load()) == {(EntityType.NODE, 7), (EntityType.WAY, 7)}

        cache.apply_change_set(ChangeSet(deleted=[_rec(7, kind=EntityType.WAY)]))
        assert set(cache.load()) == {(EntityType.NODE, 7)}

    def test_mirror_failure_is_not_fatal(self, settings):
        broken = MagicMock()
        broken.put.side_effect = StorageError("down")
        cache = VenueCache(settings.venue_cache_file, mirror=broken)
        result = cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        assert result.updated
        assert cache.has_data()


class TestNeverEmptyGuard:
    def test_refuses_to_empty_the_cache(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1), _rec(2)]))
        before = cache.cache_file.read_bytes()

        result = cache.apply_change_set(ChangeSet(deleted=[_rec(1), _rec(2)]))

        assert result.rejected
        assert not result.updated
        assert result.changed == []
        assert cache.cache_file.read_bytes() == before

    def test_merge_snapshot_of_nothing_keeps_cache(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        assert cache.merge_snapshot([]) is False
        assert cache.has_data()


class TestScenarios:
    def test_tag_removed_then_venue_deleted(self, cache):
        """A venue dropping its payment tag leaves the cache; deleting it later is a no-op."""
        cache.apply_change_set(ChangeSet(created=[_rec(5), _rec(6)]))

        result = cache.apply_change_set(ChangeSet(unqualified_modified=[_rec(5, tags={"shop": "bakery"})]))
        assert result.removed_count == 1
        assert (EntityType.NODE, 5) not in cache.load()

        result = cache.apply_change_set(ChangeSet(deleted=[_rec(5)]))
        assert not result.has_changes

    def test_create_modify_delete_in_one_change_set(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        result = cache.apply_change_set(
            ChangeSet(created=[_rec(2)], modified=[_rec(1, lat=40.0)], deleted=[_rec(3)])
        )
        assert (result.created_count, result.modified_count, result.removed_count) == (1, 1, 0)
        assert cache.load()[(EntityType.NODE, 1)].lat == 40.0

    def test_upserted_then_deleted_is_not_reported_as_changed(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1), _rec(2)]))
        result = cache.apply_change_set(
            ChangeSet(created=[_rec(3)], modified=[_rec(2, lat=40.0)], deleted=[_rec(2), _rec(3)])
        )
        assert result.changed == []
        assert result.created_keys == set()
        assert set(cache.load()) == {(EntityType.NODE, 1)}


class TestPrepareAndCommit:
    def test_prepare_writes_nothing(self, cache, mirror):
        update = cache.prepare(ChangeSet(created=[_rec(1)]))

        assert [r.id for r in update.result.changed] == [1]
        assert not cache.cache_file.exists()
        assert not mirror.exists(CACHE_ASSET)

    def test_commit_persists(self, cache):
        update = cache.prepare(ChangeSet(created=[_rec(1)]))
        result = cache.commit(update)

        assert result.updated
        assert set(cache.load()) == {(EntityType.NODE, 1)}

    def test_uncommitted_update_can_be_prepared_again(self, cache):
        cache.prepare(ChangeSet(created=[_rec(1)]))
        update = cache.prepare(ChangeSet(created=[_rec(1)]))
        assert update.result.created_count == 1

    def test_commit_of_rejected_update_is_noop(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        before = cache.cache_file.read_bytes()

        update = cache.prepare(ChangeSet(deleted=[_rec(1)]))
        assert update.result.rejected
        assert not cache.commit(update).updated
        assert cache.cache_file.read_bytes() == before


class TestLoadAndRestore:
    def test_load_missing_is_empty(self, cache):
        assert cache.load() == {}
        assert not cache.has_data()

    def test_load_rejects_non_list(self, cache):
        cache.cache_file.parent.mkdir(parents=True)
        cache.cache_file.write_text("{}")
        with pytest.raises(ValueError):
            cache.load()
        assert not cache.has_data()

    def test_records_without_type_are_nodes(self, cache):
        cache.cache_file.parent.mkdir(parents=True)
        cache.cache_file.write_text(json.dumps([{"id": 3, "lat": 1.0, "lon": 2.0, "tags": BTC}]))
        assert list(cache.load()) == [(EntityType.NODE, 3)]

    def test_restore_from_mirror(self, cache, mirror):
        mirror.put(CACHE_ASSET, json.dumps([VenueRecord(id=1, type=EntityType.NODE, tags=BTC).to_dict()]).encode())
        assert cache.restore() is True
        assert cache.has_data()

    def test_restore_keeps_local_copy(self, cache, mirror):
        cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        mirror.put(CACHE_ASSET, b"[]")
        assert cache.restore() is False
        assert cache.has_data()

    def test_restore_without_mirrored_copy(self, cache):
        assert cache.restore() is False

    def test_merge_snapshot_upserts(self, cache):
        cache.apply_change_set(ChangeSet(created=[_rec(1)]))
        changed = cache.merge_snapshot([VenueRecord(id=2, type=EntityType.WAY, lat=1.0, lon=2.0, tags=BTC)])
        assert changed is True
        assert set(cache.load()) == {(EntityType.NODE, 1), (EntityType.WAY, 2)}
        assert cache.merge_snapshot([VenueRecord(id=2, type=EntityType.WAY, lat=1.0, lon=2.0, tags=BTC)]) is False
