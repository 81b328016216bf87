"""
Shared fixtures: settings rooted in tmp_path and a filesystem mirror.
"""

import pytest

from helpers import BASE_URL, OVERPASS_URL
from venuesync.config.settings import OverpassSettings, ReplicationSettings, SyncSettings
from venuesync.connections.filesystem import FilesystemConnection


@pytest.fixture
def settings(tmp_path):
    return SyncSettings(
        data_dir=tmp_path / "data",
        replication=ReplicationSettings(base_url=BASE_URL, timeout_s=5, courtesy_delay_s=0, max_sequences_per_run=40),
        overpass=OverpassSettings(url=OVERPASS_URL, timeout_s=5, request_delay_s=0),
        diff_interval_s=60,
        storage={"type": "filesystem", "config": {"root_path": str(tmp_path / "mirror")}},
    )


@pytest.fixture
def mirror(tmp_path):
    return FilesystemConnection("mirror", {"config": {"root_path": str(tmp_path / "mirror")}})
