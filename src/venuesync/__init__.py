"""
venuesync - OpenStreetMap replication consumer for bitcoin-accepting venues.

Follows the minutely replication feed, keeps a local venue cache in sync,
and hands changed venues to the enrichment stage.
"""

__version__ = "0.1.0"

from venuesync.config.loader import Config, load_config
from venuesync.config.settings import SyncSettings
from venuesync.exceptions import (
    BlobNotFoundError,
    BootstrapError,
    ConfigurationError,
    DiffFetchError,
    DiffParseError,
    RemoteStateError,
    ReplicationError,
    StorageError,
    VenueSyncError,
)
from venuesync.service.orchestrator import IncrementalRunSummary, SyncOrchestrator

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "SyncSettings",
    "SyncOrchestrator",
    "IncrementalRunSummary",
    "VenueSyncError",
    "ConfigurationError",
    "StorageError",
    "BlobNotFoundError",
    "ReplicationError",
    "DiffFetchError",
    "RemoteStateError",
    "DiffParseError",
    "BootstrapError",
]
