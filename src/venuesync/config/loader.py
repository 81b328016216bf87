"""
Configuration file loading.

``config.yaml`` in the project directory is the base; ``config.<env>.yaml``
beside it, when present, is merged over it key by key.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from venuesync.config.resolver import resolve_config
from venuesync.exceptions import ConfigurationError

_SECTIONS = ("paths", "replication", "overpass", "schedule", "storage", "logging")
_ROLES = ("primary", "replica")
_MISSING = object()


class Config:
    """Loaded configuration; keys may be dotted paths such as ``"replication.base_url"``."""

    def __init__(self, data: dict[str, Any]):
        self.data = data

    def _lookup(self, dotted: str) -> Any:
        node: Any = self.data
        for part in dotted.split("."):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING or value is None else value

    def section(self, key: str) -> dict[str, Any]:
        """Mapping at ``key``; empty when the key is absent or null."""
        value = self.get(key, {})
        if not isinstance(value, dict):
            raise ConfigurationError(f"'{key}' should be a mapping in config.yaml, found {type(value).__name__}")
        return value

    def __getitem__(self, key: str) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(key)
        # Top-level sections come back wrapped so they can be indexed the same way
        if isinstance(value, dict) and "." not in key:
            return Config(value)
        return value

    def __contains__(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def validate(self) -> None:
        """Reject a malformed top level before settings are derived from it."""
        if not isinstance(self.data, dict):
            raise ConfigurationError(f"config.yaml should hold a mapping, found {type(self.data).__name__}")

        problems = [
            f"'{name}' should be a mapping, found {type(self.data[name]).__name__}"
            for name in _SECTIONS
            if self.data.get(name) is not None and not isinstance(self.data[name], dict)
        ]
        role = self.data.get("role", "primary")
        if role not in _ROLES:
            problems.append(f"'role' should be one of {', '.join(_ROLES)}, found '{role}'")
        if problems:
            raise ConfigurationError("Invalid configuration:\n  " + "\n  ".join(problems))


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Read, merge and resolve the project's configuration.

    Raises:
        ConfigurationError: config.yaml is absent, unreadable or malformed
    """
    project_path = Path.cwd() if project_path is None else project_path

    base = project_path / "config.yaml"
    if not base.is_file():
        raise ConfigurationError(
            f"config.yaml not found in {project_path}; pass --project-dir or create one there",
            details={"path": str(base)},
        )
    data = _read_yaml(base)

    overlay = project_path / f"config.{env}.yaml" if env else None
    if overlay is not None and overlay.is_file():
        _merge_dict(data, _read_yaml(overlay))

    config = Config(resolve_config(data, env or "dev"))
    config.validate()
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        position = f" (line {mark.line + 1}, column {mark.column + 1})" if mark is not None else ""
        raise ConfigurationError(f"{path.name} is not valid YAML{position}: {e}", details={"path": str(path)}) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", details={"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} should hold a mapping, found {type(data).__name__}")
    return data


def _merge_dict(base: dict, override: dict) -> None:
    """Merge ``override`` into ``base`` in place, descending into nested mappings."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_dict(current, value)
        else:
            base[key] = value
