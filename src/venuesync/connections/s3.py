"""
S3 connection for the blob mirror.

Works with AWS S3 and S3-compatible services (Hetzner Object Storage,
DigitalOcean Spaces, MinIO) via ``endpoint_url``.
"""

from __future__ import annotations

from typing import Any

from venuesync.connections.storage import BaseStorageConnection
from venuesync.exceptions import BlobNotFoundError, StorageError

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def _is_not_found(exc: Exception) -> bool:
    """Check a botocore ClientError for 404 / NoSuchKey / NotFound."""
    response = getattr(exc, "response", None) or {}
    error_code = response.get("Error", {}).get("Code")
    http_status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return error_code in _NOT_FOUND_CODES or http_status == 404


# Config key -> boto3.client keyword
_CLIENT_OPTIONS = (("region", "region_name"), ("endpoint_url", "endpoint_url"))
_CREDENTIAL_OPTIONS = (
    ("access_key_id", "aws_access_key_id"),
    ("secret_access_key", "aws_secret_access_key"),
    ("session_token", "aws_session_token"),
)


class S3Connection(BaseStorageConnection):
    """
    Blob mirror kept in an S3 bucket.

    The boto3 client is created on first use. Credentials given in config
    take precedence; without them boto3 falls back to its usual environment
    and instance-role lookup.

        storage:
          type: s3
          config:
            bucket: venue-mirror
            region: fsn1
            endpoint_url: https://fsn1.your-objectstorage.com
            access_key_id: ${S3_ACCESS_KEY}
            secret_access_key: ${S3_SECRET_KEY}
            storage:
              base_path: "{env}"
    """

    def __init__(self, name: str, config: dict[str, Any]):
        super().__init__(name, config)
        self._client = None
        self._options: dict[str, Any] = config.get("config") or {}
        if not self._options.get("bucket"):
            raise ValueError(f"storage '{name}' is of type s3 but has no 'bucket' set under storage.config")

    @property
    def bucket(self) -> str:
        return self._options["bucket"]

    def client_options(self) -> dict[str, Any]:
        """Keyword arguments for ``boto3.client("s3", ...)``."""
        options = {kw: self._options[key] for key, kw in _CLIENT_OPTIONS if self._options.get(key)}
        credentials = {kw: self._options.get(key) for key, kw in _CREDENTIAL_OPTIONS}
        # A key id without its secret is ignored rather than half-applied
        if credentials["aws_access_key_id"] and credentials["aws_secret_access_key"]:
            options.update({kw: value for kw, value in credentials.items() if value})
        return options

    @property
    def client(self):
        if self._client is None:
            import boto3

            self._client = boto3.client("s3", **self.client_options())
        return self._client

    def _full_key(self, key: str) -> str:
        key = key.lstrip("/")
        prefix = (self.base_path or "").strip("/")
        return f"{prefix}/{key}" if prefix else key

    def get(self, name: str) -> bytes:
        full_key = self._full_key(name)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=full_key)
            return response["Body"].read()
        except Exception as e:
            if _is_not_found(e):
                raise BlobNotFoundError(name, connection=self.name) from None
            raise StorageError(
                f"Failed to get s3://{self.bucket}/{full_key}: {e}", details={"connection": self.name}
            ) from e

    def put(self, name: str, data: bytes) -> None:
        full_key = self._full_key(name)
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Key": full_key, "Body": data}
        if name.endswith(".json"):
            kwargs["ContentType"] = "application/json"
        try:
            self.client.put_object(**kwargs)
        except Exception as e:
            raise StorageError(
                f"Failed to put s3://{self.bucket}/{full_key}: {e}", details={"connection": self.name}
            ) from e

    def exists(self, name: str) -> bool:
        full_key = self._full_key(name)
        try:
            self.client.head_object(Bucket=self.bucket, Key=full_key)
            return True
        except Exception as e:
            if _is_not_found(e):
                return False
            raise StorageError(
                f"Failed to check s3://{self.bucket}/{full_key}: {e}", details={"connection": self.name}
            ) from e

    def delete(self, name: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=self._full_key(name))

    def close(self) -> None:
        """Reset the client; boto3 clients need no explicit close."""
        self._client = None

    def __enter__(self) -> "S3Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
