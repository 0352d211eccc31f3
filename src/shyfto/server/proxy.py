"""Transfer proxy: the single dispatch point for storage operations.

The proxy performs no authorization of its own. It trusts its invoker: the
HTTP layer in front of it is expected to sit behind the auth provider that
has already checked the caller's bearer credential and ownership of the
storage keys involved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shyfto.core import transcoding
from shyfto.core.config import PRESIGN_TTL_SECONDS
from shyfto.core.errors import (
    ConfigurationError,
    DecodeError,
    InvalidEnvelopeError,
    InvalidOperationError,
    PartialDeletionError,
)
from shyfto.core.types import Operation
from shyfto.server.deletion import purge_object, purge_objects

if TYPE_CHECKING:
    from shyfto.server.schemas import TransferEnvelope
    from shyfto.server.storage import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BucketReference:
    """Bucket an operation runs against, fixed for its whole duration.

    Credentials stay inside the ObjectStore and are never part of a
    reference that could reach a response.
    """

    name: str


class TransferProxy:
    """Dispatches transfer envelopes to the object store.

    Stateless across requests: every call resolves its own bucket and
    touches no shared mutable state besides the store itself.
    """

    def __init__(
        self,
        store: ObjectStore,
        default_bucket: str,
        presign_ttl: int = PRESIGN_TTL_SECONDS,
        delete_workers: int = 1,
    ) -> None:
        """Initialize the proxy.

        Args:
            store: Object store client holding the credentials.
            default_bucket: Bucket used when a request has no override.
            presign_ttl: Lifetime of download URLs in seconds.
            delete_workers: Keys purged in parallel by delete-multiple.
        """
        if not default_bucket:
            raise ConfigurationError("Transfer proxy requires a default bucket")
        self._store = store
        self._default_bucket = default_bucket
        self._presign_ttl = presign_ttl
        self._delete_workers = delete_workers

    @property
    def store(self) -> ObjectStore:
        """Return the backing object store."""
        return self._store

    @property
    def default_bucket(self) -> str:
        """Return the default bucket name."""
        return self._default_bucket

    def resolve_bucket(self, override: str | None = None) -> BucketReference:
        """Pick the bucket for one operation."""
        return BucketReference(name=override or self._default_bucket)

    def handle(self, envelope: TransferEnvelope) -> dict[str, Any]:
        """Run one transfer envelope to completion.

        Args:
            envelope: Validated request body.

        Returns:
            JSON-ready success response.

        Raises:
            InvalidOperationError: If the operation is not supported.
            InvalidEnvelopeError: If a required field is missing.
            ShyftoError: Any failure from decoding or the store.
        """
        try:
            operation = Operation(envelope.operation)
        except ValueError as e:
            raise InvalidOperationError(envelope.operation) from e

        bucket = self.resolve_bucket(envelope.bucket_override)
        logger.info(
            "Storage operation: %s, bucket: %s, key: %s",
            operation.value,
            bucket.name,
            envelope.storage_key,
        )

        if operation is Operation.DELETE_MULTIPLE:
            if envelope.storage_keys is None:
                raise InvalidEnvelopeError("delete-multiple requires storageKeys")
            return self.delete_multiple(bucket, envelope.storage_keys)

        key = envelope.storage_key
        if not key:
            raise InvalidEnvelopeError(f"{operation.value} requires storageKey")

        if operation is Operation.UPLOAD:
            if envelope.payload is None:
                raise InvalidEnvelopeError("upload requires payload")
            return self.upload(
                bucket, key, envelope.payload, envelope.content_type, envelope.size
            )
        if operation is Operation.DOWNLOAD:
            return self.download(bucket, key)
        if operation is Operation.GET_DOWNLOAD_URL:
            return self.get_download_url(bucket, key)
        return self.delete(bucket, key)

    def upload(
        self,
        bucket: BucketReference,
        key: str,
        payload: str,
        content_type: str | None,
        size: int | None = None,
    ) -> dict[str, Any]:
        """Decode a base64 payload and store it under key."""
        data = transcoding.decode(payload)
        if size is not None and size != len(data):
            raise DecodeError(f"Payload decoded to {len(data)} bytes, expected {size}")
        self._store.put(bucket.name, key, data, content_type)
        logger.info("Uploaded %s/%s (%d bytes)", bucket.name, key, len(data))
        return {"success": True}

    def download(self, bucket: BucketReference, key: str) -> dict[str, Any]:
        """Fetch an object and return it base64-encoded.

        Legacy path: the whole object travels inside one JSON response.
        Prefer get_download_url for anything but small files.
        """
        stored = self._store.get(bucket.name, key)
        return {
            "success": True,
            "data": transcoding.encode(stored.data),
            "contentType": stored.content_type,
        }

    def get_download_url(self, bucket: BucketReference, key: str) -> dict[str, Any]:
        """Issue a presigned GET URL for one key."""
        url = self._store.presigned_get_url(bucket.name, key, self._presign_ttl)
        return {"success": True, "url": url, "expiresIn": self._presign_ttl}

    def delete(self, bucket: BucketReference, key: str) -> dict[str, Any]:
        """Purge every version of one key."""
        result = purge_object(self._store, bucket.name, key)
        return {"success": True, "deletedVersions": result.deleted_versions}

    def delete_multiple(
        self, bucket: BucketReference, keys: list[str]
    ) -> dict[str, Any]:
        """Purge several keys, reporting the outcome of each.

        Raises:
            PartialDeletionError: If any key failed; carries every result.
        """
        results = purge_objects(
            self._store, bucket.name, keys, max_workers=self._delete_workers
        )
        if any(not r.success for r in results):
            raise PartialDeletionError(results)
        return {"success": True, "results": [r.to_dict() for r in results]}
