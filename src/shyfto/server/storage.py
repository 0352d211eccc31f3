"""Object store abstraction for uploaded files.

This module provides:
- Abstract interface for the versioned object store behind the proxy
- S3ObjectStore for S3-compatible gateways (Storj DCS, AWS, MinIO)
- create_store factory building a store from StoreSettings
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shyfto.core.errors import (
    ConfigurationError,
    NotFoundError,
    StoreError,
    StoreTimeoutError,
)

if TYPE_CHECKING:
    from typing import Any

    from shyfto.core.config import StoreSettings

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most this many objects per request
MAX_BATCH_SIZE = 1000

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


@dataclass(frozen=True)
class VersionRecord:
    """One version or delete-marker of an object."""

    key: str
    version_id: str
    is_delete_marker: bool = False


@dataclass
class VersionPage:
    """One page of a version listing plus its continuation markers."""

    records: list[VersionRecord] = field(default_factory=list)
    is_truncated: bool = False
    next_key_marker: str | None = None
    next_version_id_marker: str | None = None


@dataclass
class StoredObject:
    """Object content fetched in full."""

    data: bytes
    content_type: str | None = None


class ObjectStore(ABC):
    """Abstract interface for the versioned object store."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of the store endpoint."""

    @abstractmethod
    def put(self, bucket: str, key: str, data: bytes, content_type: str | None) -> None:
        """Store an object, creating a new version on versioned buckets."""

    @abstractmethod
    def get(self, bucket: str, key: str) -> StoredObject:
        """Fetch an object in full.

        Raises:
            NotFoundError: If the key has no current version.
        """

    @abstractmethod
    def presigned_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Return a credential-free URL granting read access to one key."""

    @abstractmethod
    def list_versions(
        self,
        bucket: str,
        prefix: str,
        key_marker: str | None = None,
        version_id_marker: str | None = None,
    ) -> VersionPage:
        """List one page of versions and delete-markers under a prefix.

        Pass the previous page's markers to continue the listing.
        """

    @abstractmethod
    def delete(self, bucket: str, key: str) -> None:
        """Delete a key without naming a version."""

    @abstractmethod
    def delete_version(self, bucket: str, key: str, version_id: str) -> None:
        """Permanently delete one version or delete-marker."""

    @abstractmethod
    def delete_versions_batch(
        self, bucket: str, versions: Sequence[tuple[str, str]]
    ) -> None:
        """Permanently delete up to MAX_BATCH_SIZE (key, version_id) pairs.

        Raises:
            ValueError: If more than MAX_BATCH_SIZE pairs are given.
            StoreError: If the store rejects any of the pairs.
        """


@contextmanager
def _translate_errors(action: str, key: str | None = None) -> Iterator[None]:
    """Convert botocore exceptions into the shyfto error taxonomy."""
    from botocore.exceptions import (
        BotoCoreError,
        ClientError,
        ConnectTimeoutError,
        ReadTimeoutError,
    )

    try:
        yield
    except ClientError as e:
        code = str(e.response.get("Error", {}).get("Code", ""))
        if key is not None and code in _NOT_FOUND_CODES:
            raise NotFoundError(key) from e
        message = e.response.get("Error", {}).get("Message") or code
        raise StoreError(f"{action} failed: {message}") from e
    except (ConnectTimeoutError, ReadTimeoutError) as e:
        raise StoreTimeoutError(f"{action} timed out: {e}") from e
    except BotoCoreError as e:
        raise StoreError(f"{action} failed: {e}") from e


class S3ObjectStore(ObjectStore):
    """S3-compatible object store (Storj DCS gateway, AWS, MinIO, etc.).

    Credentials are bound at construction and never leave this object.
    """

    def __init__(
        self,
        access_key: str | None,
        secret_key: str | None,
        endpoint_url: str | None = None,
        region: str = "us-east-1",
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
    ) -> None:
        """Initialize the S3 client.

        Args:
            access_key: Access key ID.
            secret_key: Secret access key.
            endpoint_url: Custom endpoint URL (None for AWS).
            region: Signing region (default: us-east-1).
            connect_timeout: Connection timeout in seconds.
            read_timeout: Response timeout in seconds.

        Raises:
            ConfigurationError: If either credential is missing.
        """
        if not access_key or not secret_key:
            raise ConfigurationError(
                "Object store credentials not configured: set "
                "SHYFTO_S3_ACCESS_KEY and SHYFTO_S3_SECRET_KEY"
            )

        import boto3
        from botocore.config import Config

        self._endpoint_url = endpoint_url
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": 0},
            ),
        )

    @property
    def location(self) -> str:
        """Return the S3 endpoint location."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}"
        return "S3: AWS"

    def put(self, bucket: str, key: str, data: bytes, content_type: str | None) -> None:
        """Store an object."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        with _translate_errors("put", key):
            self._client.put_object(**params)

    def get(self, bucket: str, key: str) -> StoredObject:
        """Fetch an object in full."""
        with _translate_errors("get", key):
            response = self._client.get_object(Bucket=bucket, Key=key)
            body: bytes = response["Body"].read()
        return StoredObject(data=body, content_type=response.get("ContentType"))

    def presigned_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Return a presigned GET URL for one key."""
        with _translate_errors("presign", key):
            url: str = self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        return url

    def list_versions(
        self,
        bucket: str,
        prefix: str,
        key_marker: str | None = None,
        version_id_marker: str | None = None,
    ) -> VersionPage:
        """List one page of versions and delete-markers."""
        params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if key_marker is not None:
            params["KeyMarker"] = key_marker
            if version_id_marker is not None:
                params["VersionIdMarker"] = version_id_marker

        with _translate_errors("list versions"):
            response = self._client.list_object_versions(**params)

        records = [
            VersionRecord(key=v["Key"], version_id=v["VersionId"])
            for v in response.get("Versions", [])
        ]
        records.extend(
            VersionRecord(key=m["Key"], version_id=m["VersionId"], is_delete_marker=True)
            for m in response.get("DeleteMarkers", [])
        )
        return VersionPage(
            records=records,
            is_truncated=bool(response.get("IsTruncated")),
            next_key_marker=response.get("NextKeyMarker"),
            next_version_id_marker=response.get("NextVersionIdMarker"),
        )

    def delete(self, bucket: str, key: str) -> None:
        """Delete a key without naming a version."""
        with _translate_errors("delete"):
            self._client.delete_object(Bucket=bucket, Key=key)

    def delete_version(self, bucket: str, key: str, version_id: str) -> None:
        """Permanently delete one version."""
        with _translate_errors("delete version"):
            self._client.delete_object(Bucket=bucket, Key=key, VersionId=version_id)

    def delete_versions_batch(
        self, bucket: str, versions: Sequence[tuple[str, str]]
    ) -> None:
        """Permanently delete a batch of versions in one request."""
        if len(versions) > MAX_BATCH_SIZE:
            raise ValueError(
                f"Batch of {len(versions)} exceeds the limit of {MAX_BATCH_SIZE}"
            )
        if not versions:
            return

        with _translate_errors("delete batch"):
            response = self._client.delete_objects(
                Bucket=bucket,
                Delete={
                    "Objects": [
                        {"Key": key, "VersionId": version_id}
                        for key, version_id in versions
                    ],
                    "Quiet": True,
                },
            )

        errors = response.get("Errors", [])
        if errors:
            first = errors[0]
            raise StoreError(
                f"delete batch failed for {len(errors)} of {len(versions)} versions: "
                f"{first.get('Key')}@{first.get('VersionId')}: "
                f"{first.get('Code')} {first.get('Message', '')}".rstrip()
            )


def create_store(settings: StoreSettings) -> ObjectStore:
    """Factory function to create the object store from settings.

    Args:
        settings: Store connection settings.

    Returns:
        Configured ObjectStore instance.

    Raises:
        ConfigurationError: If credentials or bucket are missing.
    """
    if not settings.bucket:
        raise ConfigurationError("Object store requires a default bucket")
    logger.info(
        "Object store credentials present: %s",
        bool(settings.access_key and settings.secret_key),
    )
    return S3ObjectStore(
        access_key=settings.access_key,
        secret_key=settings.secret_key,
        endpoint_url=settings.endpoint_url,
        region=settings.region,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
    )
