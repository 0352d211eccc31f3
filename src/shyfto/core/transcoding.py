"""Chunked base64 transcoding for binary transport over JSON.

This module provides:
- encode: bytes to base64 text, one bounded window at a time
- decode: base64 text back to bytes, failing atomically on bad input
- Throttled progress reporting inside a caller-chosen percentage range

Uploads use the encode phase as the first half of their progress bar and
downloads use the decode phase as the second half, which is why the
default ranges are (0, 50) and (50, 100).
"""

from __future__ import annotations

import base64
import binascii
import re

from shyfto.core.errors import DecodeError
from shyfto.core.types import ProgressCallback

# 768 KiB of raw input per window (a multiple of 3, so windows concatenate)
DEFAULT_CHUNK_SIZE = 3 * 256 * 1024

# Minimum percentage-point advance between two progress reports
PROGRESS_THRESHOLD = 2

_BASE64_ALPHABET = re.compile(rb"[A-Za-z0-9+/=]*")
_WHITESPACE = re.compile(rb"\s+")


class _ProgressThrottle:
    """Maps processed/total onto a percentage range, reporting sparingly."""

    def __init__(
        self,
        callback: ProgressCallback | None,
        progress_range: tuple[int, int],
        threshold: int,
    ) -> None:
        self._callback = callback
        self._start, self._end = progress_range
        self._threshold = max(1, threshold)
        self._last = self._start

    def update(self, processed: int, total: int) -> None:
        if self._callback is None or total <= 0:
            return
        value = self._start + (self._end - self._start) * processed // total
        if value - self._last >= self._threshold:
            self._last = value
            self._callback(value)

    def finish(self) -> None:
        if self._callback is not None and self._last < self._end:
            self._last = self._end
            self._callback(self._end)


def _window(chunk_size: int, multiple: int) -> int:
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return max(multiple, chunk_size - chunk_size % multiple)


def encode(
    data: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: ProgressCallback | None = None,
    progress_range: tuple[int, int] = (0, 50),
    threshold: int = PROGRESS_THRESHOLD,
) -> str:
    """Encode binary data as base64 text.

    The input is processed in windows of ``chunk_size`` bytes, rounded down
    to a multiple of 3 so each window encodes without padding and the
    pieces join into one valid base64 string.

    Args:
        data: Raw bytes to encode.
        chunk_size: Bytes per window.
        on_progress: Optional callback receiving percentages.
        progress_range: Range the encode phase occupies.
        threshold: Minimum advance between two reports.

    Returns:
        Base64 text (ASCII).
    """
    window = _window(chunk_size, 3)
    total = len(data)
    if total == 0:
        return ""

    throttle = _ProgressThrottle(on_progress, progress_range, threshold)
    view = memoryview(data)
    parts: list[bytes] = []
    for offset in range(0, total, window):
        parts.append(base64.b64encode(view[offset : offset + window]))
        throttle.update(min(offset + window, total), total)
    throttle.finish()

    return b"".join(parts).decode("ascii")


def decode(
    text: str | bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: ProgressCallback | None = None,
    progress_range: tuple[int, int] = (50, 100),
    threshold: int = PROGRESS_THRESHOLD,
) -> bytes:
    """Decode base64 text back into binary data.

    Whitespace is ignored. Nothing is returned unless the whole input
    decodes; partial output is discarded on failure.

    Args:
        text: Base64 text.
        chunk_size: Characters per window (rounded down to a multiple of 4).
        on_progress: Optional callback receiving percentages.
        progress_range: Range the decode phase occupies.
        threshold: Minimum advance between two reports.

    Returns:
        Decoded bytes.

    Raises:
        DecodeError: If the text is not valid base64.
    """
    window = _window(chunk_size, 4)
    if isinstance(text, str):
        try:
            raw = text.encode("ascii")
        except UnicodeEncodeError as e:
            raise DecodeError("Payload contains non-ASCII characters") from e
    else:
        raw = bytes(text)

    raw = _WHITESPACE.sub(b"", raw)
    total = len(raw)
    if total == 0:
        return b""

    if total % 4 != 0:
        raise DecodeError(f"Payload length {total} is not a multiple of 4")
    if _BASE64_ALPHABET.fullmatch(raw) is None:
        raise DecodeError("Payload contains characters outside the base64 alphabet")
    padding_at = raw.find(b"=")
    if padding_at != -1 and (
        total - padding_at > 2 or raw[padding_at:].strip(b"=")
    ):
        raise DecodeError("Payload has padding before its end")

    throttle = _ProgressThrottle(on_progress, progress_range, threshold)
    output = bytearray()
    for offset in range(0, total, window):
        try:
            output += base64.b64decode(raw[offset : offset + window], validate=True)
        except binascii.Error as e:
            raise DecodeError(f"Invalid base64 payload: {e}") from e
        throttle.update(min(offset + window, total), total)
    throttle.finish()

    return bytes(output)
