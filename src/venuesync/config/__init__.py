"""
Configuration management.

Configuration file parsing, environment resolution, typed settings.
"""

from venuesync.config.loader import Config, load_config
from venuesync.config.resolver import resolve_config
from venuesync.config.settings import OverpassSettings, ReplicationSettings, SyncSettings

__all__ = [
    "load_config",
    "Config",
    "resolve_config",
    "SyncSettings",
    "ReplicationSettings",
    "OverpassSettings",
]
