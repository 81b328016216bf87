"""
Replication pipeline: feed client, classification, venue cache, queue.
"""

from venuesync.replication.bootstrap import OverpassBootstrap, SyncCheckpoints
from venuesync.replication.cache import CacheUpdate, VenueCache
from venuesync.replication.changelog import ChangeLog
from venuesync.replication.classifier import BITCOIN_TAGS, ChangeClassifier, is_domain_tagged, sanitize_tags
from venuesync.replication.fetcher import DiffRetriever, sequence_path
from venuesync.replication.queue import EnrichmentQueue, FileEnrichmentQueue
from venuesync.replication.state import ReplicationStateTracker
from venuesync.replication.types import (
    ApplyResult,
    ChangeRecord,
    ChangeSet,
    DiffFile,
    EnrichmentBatch,
    EntityType,
    ReplicationState,
    VenueRecord,
)

__all__ = [
    "ApplyResult",
    "BITCOIN_TAGS",
    "CacheUpdate",
    "ChangeClassifier",
    "ChangeLog",
    "ChangeRecord",
    "ChangeSet",
    "DiffFile",
    "DiffRetriever",
    "EnrichmentBatch",
    "EnrichmentQueue",
    "EntityType",
    "FileEnrichmentQueue",
    "OverpassBootstrap",
    "ReplicationState",
    "ReplicationStateTracker",
    "SyncCheckpoints",
    "VenueCache",
    "VenueRecord",
    "is_domain_tagged",
    "sanitize_tags",
    "sequence_path",
]
