"""
Blob storage construction from configuration.
"""

from typing import Any

from venuesync.connections.filesystem import FilesystemConnection
from venuesync.connections.s3 import S3Connection
from venuesync.connections.storage import BaseStorageConnection
from venuesync.exceptions import ConfigurationError
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.connections.manager")

DEFAULT_STORAGE = {"type": "filesystem", "config": {"root_path": "data/mirror"}}


def build_storage(storage_config: dict[str, Any] | None, name: str = "mirror") -> BaseStorageConnection:
    """
    Create the blob mirror connection described by the ``storage`` section.

    Args:
        storage_config: Mapping with ``type`` (``filesystem`` or ``s3``) and ``config``
        name: Connection name used in logs and errors

    Raises:
        ConfigurationError: For unknown types or invalid connection config
    """
    storage_config = storage_config or DEFAULT_STORAGE
    conn_type = storage_config.get("type", "filesystem")

    try:
        if conn_type == "s3":
            conn: BaseStorageConnection = S3Connection(name, storage_config)
        elif conn_type == "filesystem":
            conn = FilesystemConnection(name, storage_config)
        else:
            raise ConfigurationError(
                f"Unknown storage type '{conn_type}' for connection '{name}'. Supported: filesystem, s3"
            )
    except ValueError as e:
        raise ConfigurationError(str(e), details={"connection": name}) from e

    logger.debug(f"Using {conn!r} as blob mirror")
    return conn
