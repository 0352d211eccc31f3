"""Client transfer agent: uploads, downloads and deletes with progress.

This module provides:
- TransferAgent: drives one transfer end to end and reports progress
- Download strategies: PayloadDownload (legacy base64 via the proxy),
  StreamedUrlDownload (presigned URL, streamed), DirectUrlDownload
  (fresh presigned URL, single fetch; the last-resort fallback)
- DownloadPolicy: picks the primary strategy from the expected file size

Progress contract: values passed to ``on_progress`` never decrease during
a transfer and end at exactly 100 on success. Every failure path resets
progress to 0 before raising.
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import httpx

from shyfto.client.progress import AggregateProgress, ProgressTracker
from shyfto.core import transcoding
from shyfto.core.errors import (
    NotFoundError,
    PartialDeletionError,
    ShyftoError,
    StoreError,
)

if TYPE_CHECKING:
    from shyfto.client.api import ProxyClient
    from shyfto.core.types import KeyDeletionResult, ProgressCallback

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Bytes requested per read when streaming from a presigned URL
STREAM_CHUNK_SIZE = 64 * 1024

# Streamed progress stays below this until the body is fully received
STREAM_PROGRESS_CAP = 99


class TransferError(ShyftoError):
    """Base exception for client transfer failures."""


class UploadError(TransferError):
    """Failed to upload a file."""


class DownloadError(TransferError):
    """Failed to download a file after every strategy was tried."""


class DeleteError(TransferError):
    """Failed to delete a file."""


def _raise_for_fetch(response: httpx.Response, key: str) -> None:
    """Translate a failed presigned-URL fetch into shyfto errors."""
    if response.status_code == 404:
        raise NotFoundError(key)
    if response.status_code >= 400:
        raise StoreError(f"Fetching {key} failed with HTTP {response.status_code}")


class DownloadStrategy(Protocol):
    """One way of turning a storage key into bytes."""

    name: str

    def fetch(
        self, key: str, tracker: ProgressTracker, bucket: str | None = None
    ) -> bytes:
        """Download key, reporting progress to tracker."""
        ...


class PayloadDownload:
    """Legacy download: the proxy returns the whole file as base64 JSON.

    The proxy round-trip counts as the first half of the progress bar;
    decoding fills the second half.
    """

    name = "payload"

    def __init__(
        self, proxy: ProxyClient, chunk_size: int = transcoding.DEFAULT_CHUNK_SIZE
    ) -> None:
        self._proxy = proxy
        self._chunk_size = chunk_size

    def fetch(
        self, key: str, tracker: ProgressTracker, bucket: str | None = None
    ) -> bytes:
        payload, _content_type = self._proxy.download(key, bucket=bucket)
        tracker.report(50)
        return transcoding.decode(
            payload,
            chunk_size=self._chunk_size,
            on_progress=tracker.report,
            progress_range=(50, 100),
        )


class StreamedUrlDownload:
    """Preferred download: stream the body from a presigned URL.

    Progress follows received/Content-Length, capped at 99 until the body
    is complete. Without a length header the body is read in one go and
    progress jumps straight to 100.
    """

    name = "streamed"

    def __init__(
        self,
        proxy: ProxyClient,
        http: httpx.Client,
        chunk_size: int = STREAM_CHUNK_SIZE,
    ) -> None:
        self._proxy = proxy
        self._http = http
        self._chunk_size = chunk_size

    def fetch(
        self, key: str, tracker: ProgressTracker, bucket: str | None = None
    ) -> bytes:
        url = self._proxy.get_download_url(key, bucket=bucket)

        with self._http.stream("GET", url) as response:
            _raise_for_fetch(response, key)
            length_header = response.headers.get("Content-Length")
            if length_header is None:
                data = response.read()
                tracker.complete()
                return data

            total = int(length_header)
            received = bytearray()
            for chunk in response.iter_bytes(self._chunk_size):
                received += chunk
                if total > 0:
                    tracker.report(
                        min(STREAM_PROGRESS_CAP, len(received) * 100 // total)
                    )

        if len(received) != total:
            raise StoreError(
                f"Download of {key} ended after {len(received)} of {total} bytes"
            )
        tracker.complete()
        return bytes(received)


class DirectUrlDownload:
    """Last resort: a fresh presigned URL fetched in a single request.

    ``fetch_to_file`` writes the body straight to disk without holding the
    whole file in memory.
    """

    name = "direct"

    def __init__(self, proxy: ProxyClient, http: httpx.Client) -> None:
        self._proxy = proxy
        self._http = http

    def fetch(
        self, key: str, tracker: ProgressTracker, bucket: str | None = None
    ) -> bytes:
        url = self._proxy.get_download_url(key, bucket=bucket)
        response = self._http.get(url)
        _raise_for_fetch(response, key)
        tracker.complete()
        return response.content

    def fetch_to_file(
        self,
        key: str,
        destination: Path,
        tracker: ProgressTracker,
        bucket: str | None = None,
    ) -> None:
        """Stream key into destination."""
        url = self._proxy.get_download_url(key, bucket=bucket)
        with self._http.stream("GET", url) as response:
            _raise_for_fetch(response, key)
            with destination.open("wb") as f:
                for chunk in response.iter_bytes(STREAM_CHUNK_SIZE):
                    f.write(chunk)
        tracker.complete()


def _log_fallback(primary: DownloadStrategy, key: str, error: Exception) -> None:
    logger.warning(
        "%s download of %s failed, retrying with a direct URL: %s",
        primary.name,
        key,
        error,
    )


def _download_failed(
    key: str, tracker: ProgressTracker, error: Exception
) -> DownloadError:
    tracker.reset()
    logger.error("Download of %s failed: %s", key, error)
    return DownloadError(f"Download of {key} failed: {error}")


@dataclass
class DownloadPolicy:
    """Chooses between the legacy payload path and the streamed URL path.

    Attributes:
        payload_max_size: Files of a known size up to this many bytes go
            through the proxy payload path. 0 disables it entirely.
    """

    payload_max_size: int = 0

    def use_payload(self, expected_size: int | None) -> bool:
        """Return True if the payload path should be the primary strategy."""
        return (
            self.payload_max_size > 0
            and expected_size is not None
            and expected_size <= self.payload_max_size
        )


class TransferAgent:
    """Drives file transfers against the storage proxy.

    Independent transfers share no state apart from the HTTP clients, so
    callers may run several uploads or downloads concurrently.
    """

    def __init__(
        self,
        proxy: ProxyClient,
        http: httpx.Client | None = None,
        policy: DownloadPolicy | None = None,
        chunk_size: int = transcoding.DEFAULT_CHUNK_SIZE,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the agent.

        Args:
            proxy: Client for the proxy endpoint.
            http: Client for presigned URLs; must not carry proxy credentials.
            policy: Download strategy policy (default: always stream).
            chunk_size: Window size for base64 transcoding.
            timeout: Timeout for presigned URL fetches in seconds.
        """
        self._proxy = proxy
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout, follow_redirects=True)
        self._policy = policy or DownloadPolicy()
        self._chunk_size = chunk_size

        self._payload = PayloadDownload(proxy, chunk_size)
        self._streamed = StreamedUrlDownload(proxy, self._http)
        self._fallback = DirectUrlDownload(proxy, self._http)

    def close(self) -> None:
        """Close the presigned URL client."""
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> TransferAgent:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    # === Upload ===

    def upload(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
        bucket: str | None = None,
    ) -> None:
        """Upload bytes under key through the proxy.

        Encoding occupies progress 0-50; completion reports 100.

        Raises:
            UploadError: If encoding or the proxy call failed.
        """
        tracker = ProgressTracker(on_progress)
        try:
            payload = transcoding.encode(
                data,
                chunk_size=self._chunk_size,
                on_progress=tracker.report,
                progress_range=(0, 50),
            )
            self._proxy.upload(
                key,
                payload,
                content_type or DEFAULT_CONTENT_TYPE,
                size=len(data),
                bucket=bucket,
            )
        except ShyftoError as e:
            tracker.reset()
            logger.error("Upload of %s failed: %s", key, e)
            raise UploadError(f"Upload of {key} failed: {e}") from e

        tracker.complete()
        logger.info("Uploaded %s (%d bytes)", key, len(data))

    def upload_file(
        self,
        path: Path | str,
        key: str,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
        bucket: str | None = None,
    ) -> None:
        """Read a local file into memory and upload it.

        The content type is guessed from the file name when not given.
        """
        path = Path(path)
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or DEFAULT_CONTENT_TYPE
        self.upload(key, path.read_bytes(), content_type, on_progress, bucket)

    # === Download ===

    def _primary_strategy(self, expected_size: int | None) -> DownloadStrategy:
        if self._policy.use_payload(expected_size):
            return self._payload
        return self._streamed

    def download(
        self,
        key: str,
        expected_size: int | None = None,
        on_progress: ProgressCallback | None = None,
        bucket: str | None = None,
    ) -> bytes:
        """Download key, falling back to a direct fetch if the first try fails.

        Args:
            key: Storage key.
            expected_size: Size from file metadata, used by the policy.
            on_progress: Optional progress callback.
            bucket: Optional bucket override.

        Returns:
            File content.

        Raises:
            DownloadError: If both the primary strategy and the fallback failed.
        """
        tracker = ProgressTracker(on_progress)
        primary = self._primary_strategy(expected_size)

        try:
            data = primary.fetch(key, tracker, bucket)
        except Exception as e:
            _log_fallback(primary, key, e)
            try:
                data = self._fallback.fetch(key, tracker, bucket)
            except Exception as fallback_error:
                raise _download_failed(key, tracker, fallback_error) from fallback_error

        tracker.complete()
        return data

    def download_to_file(
        self,
        key: str,
        destination: Path | str,
        expected_size: int | None = None,
        on_progress: ProgressCallback | None = None,
        bucket: str | None = None,
    ) -> Path:
        """Download key and write it to destination.

        The direct fallback streams into the file instead of buffering.
        A failed download leaves no partial file behind.

        Raises:
            DownloadError: If both the primary strategy and the fallback failed.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        tracker = ProgressTracker(on_progress)
        primary = self._primary_strategy(expected_size)

        try:
            data = primary.fetch(key, tracker, bucket)
        except Exception as e:
            _log_fallback(primary, key, e)
            try:
                self._fallback.fetch_to_file(key, destination, tracker, bucket)
            except Exception as fallback_error:
                destination.unlink(missing_ok=True)
                raise _download_failed(key, tracker, fallback_error) from fallback_error
        else:
            destination.write_bytes(data)

        tracker.complete()
        return destination

    def download_many(
        self,
        items: Sequence[tuple[str, int]],
        on_progress: ProgressCallback | None = None,
        on_file_progress: Callable[[str, int], None] | None = None,
        bucket: str | None = None,
    ) -> dict[str, bytes]:
        """Download several files with byte-weighted overall progress.

        Args:
            items: (storage key, expected size) pairs.
            on_progress: Receives the overall percentage.
            on_file_progress: Receives (key, percentage) per file.
            bucket: Optional bucket override.

        Returns:
            Mapping of storage key to content, in input order.

        Raises:
            DownloadError: On the first file that cannot be downloaded.
        """
        aggregate = AggregateProgress(dict(items), on_progress)
        results: dict[str, bytes] = {}

        for key, size in items:
            overall = aggregate.for_file(key)

            def report(
                percent: int, key: str = key, overall: ProgressCallback = overall
            ) -> None:
                overall(percent)
                if on_file_progress is not None:
                    on_file_progress(key, percent)

            try:
                results[key] = self.download(key, size, report, bucket)
            except DownloadError:
                aggregate.reset()
                raise

        return results

    # === Delete ===

    def delete(self, key: str, bucket: str | None = None) -> int:
        """Purge every version of key.

        Returns:
            Number of versions removed.

        Raises:
            DeleteError: If the proxy reported a failure.
        """
        try:
            return self._proxy.delete(key, bucket=bucket)
        except ShyftoError as e:
            logger.error("Delete of %s failed: %s", key, e)
            raise DeleteError(f"Delete of {key} failed: {e}") from e

    def delete_many(
        self, keys: list[str], bucket: str | None = None
    ) -> list[KeyDeletionResult]:
        """Purge several keys.

        Raises:
            PartialDeletionError: If some keys failed; carries every result.
            DeleteError: If the request failed as a whole.
        """
        try:
            return self._proxy.delete_multiple(keys, bucket=bucket)
        except PartialDeletionError:
            raise
        except ShyftoError as e:
            logger.error("Delete of %d files failed: %s", len(keys), e)
            raise DeleteError(f"Delete of {len(keys)} files failed: {e}") from e
