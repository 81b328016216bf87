"""
Local filesystem connection for the blob mirror.

Useful for single-host deployments and tests; names map to files below
``root_path/base_path``.
"""

from pathlib import Path

from venuesync.connections.storage import BaseStorageConnection
from venuesync.exceptions import BlobNotFoundError, StorageError
from venuesync.utils.files import atomic_write_bytes


class FilesystemConnection(BaseStorageConnection):
    """
    Blob mirror kept in a local directory.

        storage:
          type: filesystem
          config:
            root_path: data/mirror
            storage:
              base_path: prod
    """

    @property
    def root_path(self) -> Path:
        return Path((self.config.get("config") or {}).get("root_path", "data/mirror"))

    @staticmethod
    def _contained(path: Path, parent: Path, what: str) -> Path:
        try:
            path.relative_to(parent)
        except ValueError as e:
            raise ValueError(f"Path traversal: {what} resolves outside {parent}") from e
        return path

    @property
    def full_path(self) -> Path:
        """
        Directory that blob names resolve against.

        Raises:
            ValueError: ``base_path`` points outside ``root_path``
        """
        root = self.root_path.resolve()
        if not self.base_path:
            return root
        return self._contained((root / self.base_path).resolve(), root, f"base_path '{self.base_path}'")

    def _blob_path(self, name: str) -> Path:
        base = self.full_path
        return self._contained((base / name.lstrip("/")).resolve(), base, f"blob name '{name}'")

    def get(self, name: str) -> bytes:
        path = self._blob_path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFoundError(name, connection=self.name) from None
        except OSError as e:
            raise StorageError(f"Failed to read blob '{name}': {e}", details={"connection": self.name}) from e

    def put(self, name: str, data: bytes) -> None:
        try:
            atomic_write_bytes(self._blob_path(name), data)
        except OSError as e:
            raise StorageError(f"Failed to write blob '{name}': {e}", details={"connection": self.name}) from e

    def exists(self, name: str) -> bool:
        return self._blob_path(name).is_file()

    def delete(self, name: str) -> None:
        self._blob_path(name).unlink(missing_ok=True)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} at {self.root_path}>"
