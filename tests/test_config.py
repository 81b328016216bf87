"""
Tests for configuration loading, resolution and typed settings.
"""

from pathlib import Path

import pytest

from venuesync.config.loader import Config, _merge_dict, load_config
from venuesync.config.resolver import resolve_config
from venuesync.config.settings import SyncSettings
from venuesync.exceptions import ConfigurationError


class TestConfig:
    """Tests for Config class."""

    def test_dot_notation(self):
        cfg = Config({"replication": {"base_url": "https://x"}})
        assert cfg.get("replication.base_url") == "https://x"

    def test_dot_notation_missing_returns_default(self):
        cfg = Config({"a": 1})
        assert cfg.get("a.b.c", "fallback") == "fallback"

    def test_contains(self):
        cfg = Config({"a": {"b": 1}})
        assert "a" in cfg
        assert "a.b" in cfg
        assert "a.c" not in cfg

    def test_getitem(self):
        cfg = Config({"role": "primary", "paths": {"data_dir": "data"}})
        assert cfg["role"] == "primary"
        assert isinstance(cfg["paths"], Config)
        assert cfg["paths.data_dir"] == "data"
        with pytest.raises(KeyError):
            _ = cfg["missing"]

    def test_section(self):
        cfg = Config({"storage": {"type": "s3"}, "role": "primary"})
        assert cfg.section("storage") == {"type": "s3"}
        assert cfg.section("overpass") == {}
        with pytest.raises(ConfigurationError):
            cfg.section("role")

    def test_validate_rejects_unknown_role(self):
        with pytest.raises(ConfigurationError, match="role"):
            Config({"role": "leader"}).validate()

    def test_validate_rejects_non_mapping_section(self):
        with pytest.raises(ConfigurationError, match="replication"):
            Config({"replication": "fast"}).validate()


class TestMergeAndResolve:
    def test_merge_dict_is_recursive(self):
        base = {"replication": {"timeout_s": 30, "base_url": "a"}, "role": "primary"}
        _merge_dict(base, {"replication": {"timeout_s": 10}, "role": "replica"})
        assert base == {"replication": {"timeout_s": 10, "base_url": "a"}, "role": "replica"}

    def test_env_var_substitution(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", "venues-prod")
        resolved = resolve_config({"storage": {"config": {"bucket": "${S3_BUCKET}"}}})
        assert resolved["storage"]["config"]["bucket"] == "venues-prod"

    def test_unset_env_var_left_as_written(self, monkeypatch):
        monkeypatch.delenv("VENUESYNC_UNSET", raising=False)
        assert resolve_config({"x": "${VENUESYNC_UNSET}"})["x"] == "${VENUESYNC_UNSET}"

    def test_env_placeholder(self):
        assert resolve_config({"base_path": "{env}/mirror"}, env="prod")["base_path"] == "prod/mirror"


class TestLoadConfig:
    def test_missing_config_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path)

    def test_env_overlay(self, tmp_path):
        (tmp_path / "config.yaml").write_text("role: primary\nreplication:\n  timeout_s: 30\n")
        (tmp_path / "config.prod.yaml").write_text("role: replica\n")
        cfg = load_config(tmp_path, env="prod")
        assert cfg.get("role") == "replica"
        assert cfg.get("replication.timeout_s") == 30

    def test_invalid_yaml_raises(self, tmp_path):
        (tmp_path / "config.yaml").write_text("role: [unclosed\n")
        with pytest.raises(ConfigurationError, match="config.yaml"):
            load_config(tmp_path)


class TestSyncSettings:
    def test_defaults(self):
        settings = SyncSettings.from_config({})
        assert settings.role == "primary"
        assert settings.is_primary
        assert settings.replication.base_url == "https://planet.openstreetmap.org/replication/minute"
        assert settings.replication.max_sequences_per_run == 40
        assert settings.replication.courtesy_delay_s == 1.0
        assert settings.overpass.since == "2009-01-01T00:00:00Z"
        assert settings.diff_interval_s == 60
        assert settings.state_file == Path("data") / "osm-replication.state"
        assert settings.venue_cache_file.name == "BitcoinVenues.json"
        assert settings.storage["type"] == "filesystem"

    def test_values_from_config(self, tmp_path):
        settings = SyncSettings.from_config(
            {
                "role": "replica",
                "paths": {"data_dir": "state"},
                "replication": {"base_url": "https://mirror.test/minute/", "max_sequences_per_run": 5},
                "schedule": {"osm_diffs": {"every_s": 120}},
                "storage": {"type": "filesystem", "config": {"root_path": "blobs"}},
            },
            project_dir=tmp_path,
        )
        assert not settings.is_primary
        assert settings.data_dir == tmp_path / "state"
        assert settings.replication.base_url == "https://mirror.test/minute"
        assert settings.replication.max_sequences_per_run == 5
        assert settings.diff_interval_s == 120
        assert settings.storage["config"]["root_path"] == str(tmp_path / "blobs")

    def test_s3_storage_passed_through(self):
        storage = {"type": "s3", "config": {"bucket": "b"}}
        settings = SyncSettings.from_config({"storage": storage}, project_dir=Path("/srv"))
        assert settings.storage == storage

    def test_bad_value_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            SyncSettings.from_config({"replication": {"max_sequences_per_run": "many"}})
