"""
venuesync exception hierarchy.

All domain-specific exceptions inherit from VenueSyncError, making it easy
to catch any sync failure with a single base class while still allowing
fine-grained handling when needed.

Hierarchy::

    VenueSyncError
    ├── ConfigurationError        - config loading, parsing, validation
    ├── StorageError              - blob mirror reads/writes
    │   └── BlobNotFoundError     - named blob does not exist
    ├── ReplicationError          - replication feed consumption
    │   ├── DiffFetchError        - change-file download/decompress/metadata
    │   ├── RemoteStateError      - feed high-water mark unavailable
    │   └── DiffParseError        - change-file is not a readable osmChange
    └── BootstrapError            - Overpass snapshot failures
"""

from __future__ import annotations


class VenueSyncError(Exception):
    """Base exception for all venuesync errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(VenueSyncError):
    """Raised when configuration loading, parsing, or validation fails."""


# --- Storage -----------------------------------------------------------------


class StorageError(VenueSyncError):
    """Raised when the blob mirror cannot be read or written."""


class BlobNotFoundError(StorageError):
    """Raised when a named blob is absent from the mirror."""

    def __init__(self, name: str, *, connection: str | None = None) -> None:
        super().__init__(f"Blob not found: {name}", details={"name": name, "connection": connection})
        self.name = name


# --- Replication -------------------------------------------------------------


class ReplicationError(VenueSyncError):
    """Raised when a replication sequence cannot be consumed."""


class DiffFetchError(ReplicationError):
    """Raised when a change-file or its metadata cannot be fetched."""

    def __init__(self, sequence: int, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(f"Diff #{sequence}: {message}", details={"sequence": sequence})
        self.sequence = sequence
        if cause is not None:
            self.__cause__ = cause


class RemoteStateError(ReplicationError):
    """Raised when the feed's current sequence marker is unavailable."""


class DiffParseError(ReplicationError):
    """Raised when a change-file is not well-formed."""


# --- Bootstrap ---------------------------------------------------------------


class BootstrapError(VenueSyncError):
    """Raised when the Overpass snapshot cannot be taken."""
