"""
Typed settings derived from the loaded configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from venuesync.config.loader import Config
from venuesync.exceptions import ConfigurationError

DEFAULT_REPLICATION_URL = "https://planet.openstreetmap.org/replication/minute"
DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"


def _storage_config(storage: dict[str, Any], data_dir: Path, project_dir: Path | None) -> dict[str, Any]:
    """Default to a filesystem mirror under ``data_dir``; relative roots resolve against the project."""
    if not storage:
        return {"type": "filesystem", "config": {"root_path": str(data_dir / "mirror")}}
    if storage.get("type", "filesystem") != "filesystem" or project_dir is None:
        return storage

    conn_config = dict(storage.get("config") or {})
    root = Path(conn_config.get("root_path", data_dir / "mirror"))
    if not root.is_absolute():
        conn_config["root_path"] = str(project_dir / root)
    return {**storage, "config": conn_config}


@dataclass(frozen=True)
class ReplicationSettings:
    base_url: str = DEFAULT_REPLICATION_URL
    timeout_s: float = 30.0
    # Pause between the change-file and its state.txt, to go easy on the mirror
    courtesy_delay_s: float = 1.0
    max_sequences_per_run: int = 40


@dataclass(frozen=True)
class OverpassSettings:
    url: str = DEFAULT_OVERPASS_URL
    timeout_s: float = 90.0
    request_delay_s: float = 0.5
    since: str = "2009-01-01T00:00:00Z"


@dataclass(frozen=True)
class SyncSettings:
    """
    Runtime settings for the sync service.

    Paths are resolved against ``data_dir``; the blob mirror is configured by
    the raw ``storage`` mapping (see :func:`venuesync.connections.build_storage`).
    """

    data_dir: Path = Path("data")
    role: str = "primary"
    replication: ReplicationSettings = field(default_factory=ReplicationSettings)
    overpass: OverpassSettings = field(default_factory=OverpassSettings)
    diff_interval_s: float = 60.0
    storage: dict[str, Any] = field(default_factory=dict)

    @property
    def state_file(self) -> Path:
        return self.data_dir / "osm-replication.state"

    @property
    def venue_cache_file(self) -> Path:
        return self.data_dir / "BitcoinVenues.json"

    @property
    def checkpoints_file(self) -> Path:
        return self.data_dir / "SyncData.json"

    @property
    def queue_dir(self) -> Path:
        return self.data_dir / "queues"

    @property
    def changelog_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def work_dir(self) -> Path:
        return self.data_dir / "tmp"

    @property
    def is_primary(self) -> bool:
        return self.role == "primary"

    @classmethod
    def from_config(cls, config: Config | dict[str, Any], project_dir: Path | None = None) -> "SyncSettings":
        """Build settings from a Config (or raw dict), applying defaults."""
        if isinstance(config, dict):
            config = Config(config)

        data_dir = Path(config.get("paths.data_dir", "data"))
        if project_dir is not None and not data_dir.is_absolute():
            data_dir = project_dir / data_dir

        replication = config.section("replication")
        overpass = config.section("overpass")
        try:
            return cls(
                data_dir=data_dir,
                role=str(config.get("role", "primary")),
                replication=ReplicationSettings(
                    base_url=str(replication.get("base_url", DEFAULT_REPLICATION_URL)).rstrip("/"),
                    timeout_s=float(replication.get("timeout_s", 30.0)),
                    courtesy_delay_s=float(replication.get("courtesy_delay_s", 1.0)),
                    max_sequences_per_run=int(replication.get("max_sequences_per_run", 40)),
                ),
                overpass=OverpassSettings(
                    url=str(overpass.get("url", DEFAULT_OVERPASS_URL)),
                    timeout_s=float(overpass.get("timeout_s", 90.0)),
                    request_delay_s=float(overpass.get("request_delay_s", 0.5)),
                    since=str(overpass.get("since", "2009-01-01T00:00:00Z")),
                ),
                diff_interval_s=float(config.get("schedule.osm_diffs.every_s", 60.0)),
                storage=_storage_config(config.section("storage"), data_dir, project_dir),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e
