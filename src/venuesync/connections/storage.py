"""
Blob mirror backends.

The blob mirror is a key/value store addressed by logical asset name
(``venues/BitcoinVenues.json``, ``sync/osm-replication.state``).
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any

from venuesync.exceptions import BlobNotFoundError
from venuesync.utils.files import atomic_write_bytes


class AssetType(str, Enum):
    """Prefix grouping for mirrored assets."""

    VENUES = "venues"
    SYNC = "sync"


def asset_name(asset_type: AssetType, filename: str) -> str:
    """Build the logical blob name for a file of the given asset type."""
    return f"{asset_type.value}/{filename.lstrip('/')}"


class BaseStorageConnection(ABC):
    """
    A blob mirror backend.

    Backends address blobs under a configurable prefix (``base_path``): a
    key prefix inside an S3 bucket, or a subdirectory of ``root_path`` on
    disk. Subclasses implement ``get``/``put``/``exists``/``delete``.
    """

    def __init__(self, name: str, config: dict[str, Any]):
        self.name = name
        self.config = config

    @property
    def base_path(self) -> str:
        """Prefix from ``config.storage.base_path``; empty when unset."""
        options = self.config.get("config") or {}
        return (options.get("storage") or {}).get("base_path", "")

    @abstractmethod
    def get(self, name: str) -> bytes:
        """Return blob content; raises BlobNotFoundError when absent."""

    @abstractmethod
    def put(self, name: str, data: bytes) -> None:
        """Store blob content, replacing any previous version."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check whether a blob exists."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete a blob (no-op when absent)."""

    def download_to(self, name: str, local_path: str | Path) -> Path:
        """
        Download a blob into a local file (atomic).

        Raises:
            BlobNotFoundError: If the blob does not exist
        """
        return atomic_write_bytes(local_path, self.get(name))

    def upload_from(self, local_path: str | Path, name: str) -> None:
        """Upload a local file as a blob."""
        source = Path(local_path)
        if not source.is_file():
            raise BlobNotFoundError(str(source), connection=self.name)
        self.put(name, source.read_bytes())

    def close(self) -> None:
        """Release any client resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
