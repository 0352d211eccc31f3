"""HTTP client for the shyfto storage proxy.

This module provides:
- ProxyClient: sends transfer envelopes to the proxy endpoint
- Mapping of error responses back onto the shyfto exception classes
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from shyfto.core.errors import (
    ERRORS_BY_NAME,
    InvalidOperationError,
    NotFoundError,
    PartialDeletionError,
    ShyftoError,
    StoreError,
    StoreTimeoutError,
)
from shyfto.core.types import KeyDeletionResult, Operation

if TYPE_CHECKING:
    from shyfto.core.config import ProxyConfig

logger = logging.getLogger(__name__)

OPERATIONS_PATH = "/api/storage/operations"


def _error_from_response(
    response: httpx.Response, storage_key: str | None
) -> ShyftoError:
    """Rebuild the server-side exception from an error response."""
    try:
        body: dict[str, Any] = response.json()
    except ValueError:
        body = {}
    message = str(body.get("error") or response.text or f"HTTP {response.status_code}")
    error_type = body.get("errorType")

    if error_type == "PartialDeletionError" or body.get("results") is not None:
        results = [KeyDeletionResult.from_dict(r) for r in body.get("results") or []]
        return PartialDeletionError(results)
    if error_type == "NotFoundError" or response.status_code == 404:
        return NotFoundError(storage_key or "")
    if error_type == "InvalidOperationError":
        return InvalidOperationError(None, message)

    cls = ERRORS_BY_NAME.get(str(error_type))
    if cls is not None and cls not in (NotFoundError, PartialDeletionError):
        try:
            return cls(message)
        except TypeError:
            pass
    if response.status_code == 504:
        return StoreTimeoutError(message)
    if response.status_code >= 500:
        return StoreError(message)
    return ShyftoError(message)


class ProxyClient:
    """HTTP client for the storage operations endpoint."""

    def __init__(self, config: ProxyConfig, http: httpx.Client | None = None) -> None:
        """Initialize the proxy client.

        Args:
            config: Proxy URL, bearer token and timeouts.
            http: Optional preconfigured client (e.g. a FastAPI TestClient).
        """
        self._config = config
        self._owns_http = http is None
        self._client = http or httpx.Client(
            base_url=config.proxy_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
        )
        self._headers = {"Authorization": f"Bearer {config.token}"}
        if not config.is_secure:
            logger.warning(
                "Proxy URL %s is not HTTPS; the bearer token is sent unencrypted",
                config.proxy_url,
            )

    def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_http:
            self._client.close()

    def __enter__(self) -> ProxyClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def invoke(self, operation: Operation, **fields: Any) -> dict[str, Any]:
        """Send one transfer envelope and return the success body.

        Args:
            operation: Operation to run.
            **fields: Envelope fields in wire (camelCase) form; None values
                are omitted.

        Returns:
            Decoded JSON response.

        Raises:
            ShyftoError: The error reported by the proxy.
            StoreTimeoutError: If the proxy did not answer in time.
        """
        body: dict[str, Any] = {"operation": operation.value}
        body.update({k: v for k, v in fields.items() if v is not None})
        storage_key = fields.get("storageKey")
        logger.debug("Proxy request: %s %s", operation.value, storage_key or "")

        try:
            response = self._client.post(
                OPERATIONS_PATH, json=body, headers=self._headers
            )
        except httpx.TimeoutException as e:
            raise StoreTimeoutError(f"{operation.value} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise StoreError(f"{operation.value} request failed: {e}") from e

        if response.status_code >= 400:
            raise _error_from_response(response, storage_key)

        data: dict[str, Any] = response.json()
        if not data.get("success"):
            raise StoreError(f"{operation.value} failed: {data}")
        return data

    def upload(
        self,
        storage_key: str,
        payload: str,
        content_type: str | None,
        size: int | None = None,
        bucket: str | None = None,
    ) -> None:
        """Upload a base64 payload under storage_key."""
        self.invoke(
            Operation.UPLOAD,
            storageKey=storage_key,
            payload=payload,
            contentType=content_type,
            size=size,
            bucketOverride=bucket,
        )

    def download(
        self, storage_key: str, bucket: str | None = None
    ) -> tuple[str, str | None]:
        """Download an object as base64 through the proxy.

        Returns:
            Tuple of (base64 payload, content type).
        """
        data = self.invoke(
            Operation.DOWNLOAD, storageKey=storage_key, bucketOverride=bucket
        )
        return data["data"], data.get("contentType")

    def get_download_url(self, storage_key: str, bucket: str | None = None) -> str:
        """Obtain a presigned download URL for storage_key."""
        data = self.invoke(
            Operation.GET_DOWNLOAD_URL, storageKey=storage_key, bucketOverride=bucket
        )
        url: str = data["url"]
        return url

    def delete(self, storage_key: str, bucket: str | None = None) -> int:
        """Purge every version of storage_key.

        Returns:
            Number of versions removed.
        """
        data = self.invoke(
            Operation.DELETE, storageKey=storage_key, bucketOverride=bucket
        )
        deleted: int = data.get("deletedVersions", 0)
        return deleted

    def delete_multiple(
        self, storage_keys: list[str], bucket: str | None = None
    ) -> list[KeyDeletionResult]:
        """Purge several keys.

        Raises:
            PartialDeletionError: If any key failed; ``results`` holds all outcomes.
        """
        data = self.invoke(
            Operation.DELETE_MULTIPLE, storageKeys=storage_keys, bucketOverride=bucket
        )
        return [KeyDeletionResult.from_dict(r) for r in data.get("results", [])]
