"""Error taxonomy shared by the proxy server and the transfer client.

The same classes are raised on both sides of the wire: the server reports
the class name as ``errorType`` and the client raises it again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shyfto.core.types import KeyDeletionResult


class ShyftoError(Exception):
    """Base exception for storage proxy errors."""


class InvalidOperationError(ShyftoError):
    """Operation is not one of the supported transfer operations."""

    def __init__(self, operation: object, message: str | None = None) -> None:
        super().__init__(message or f"Invalid operation: {operation}")
        self.operation = operation


class InvalidEnvelopeError(ShyftoError):
    """Transfer envelope is missing a field its operation requires."""


class ConfigurationError(ShyftoError):
    """Credentials or bucket configuration are missing."""


class NotFoundError(ShyftoError):
    """Requested object does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


class DecodeError(ShyftoError):
    """Transport payload is not valid base64 or does not match its size."""


class StoreError(ShyftoError):
    """Backing object store failed (network, permission, throttling)."""


class StoreTimeoutError(StoreError, TimeoutError):
    """Backing object store did not answer within the configured deadline."""


class BatchDeletionError(StoreError):
    """A delete batch failed part-way through purging one key.

    Deletion is not transactional across batches: ``deleted`` versions are
    already gone, ``remaining`` were not attempted or failed.
    """

    def __init__(self, key: str, message: str, deleted: int, remaining: int) -> None:
        super().__init__(
            f"Failed to purge {key}: {message} "
            f"({deleted} versions deleted, {remaining} remaining)"
        )
        self.key = key
        self.deleted = deleted
        self.remaining = remaining


class PartialDeletionError(StoreError):
    """One or more keys of a multi-key delete failed."""

    def __init__(self, results: list[KeyDeletionResult]) -> None:
        failed = [r for r in results if not r.success]
        super().__init__(f"{len(failed)} of {len(results)} keys failed to delete")
        self.results = results

    @property
    def failed_keys(self) -> list[str]:
        """Keys whose deletion failed."""
        return [r.key for r in self.results if not r.success]


ERRORS_BY_NAME: dict[str, type[ShyftoError]] = {
    cls.__name__: cls
    for cls in (
        ShyftoError,
        InvalidOperationError,
        InvalidEnvelopeError,
        ConfigurationError,
        NotFoundError,
        DecodeError,
        StoreError,
        StoreTimeoutError,
        BatchDeletionError,
        PartialDeletionError,
    )
}
