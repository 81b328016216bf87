"""
Blob storage connections (filesystem, S3) for the durable mirror.
"""

from venuesync.connections.filesystem import FilesystemConnection
from venuesync.connections.manager import build_storage
from venuesync.connections.s3 import S3Connection
from venuesync.connections.storage import AssetType, BaseStorageConnection, asset_name

__all__ = [
    "AssetType",
    "BaseStorageConnection",
    "FilesystemConnection",
    "S3Connection",
    "asset_name",
    "build_storage",
]
