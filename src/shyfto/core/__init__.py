"""Core module - Shared transcoding, configuration, errors, and types."""

from shyfto.core.config import PRESIGN_TTL_SECONDS, ProxyConfig, StoreSettings
from shyfto.core.errors import (
    BatchDeletionError,
    ConfigurationError,
    DecodeError,
    InvalidEnvelopeError,
    InvalidOperationError,
    NotFoundError,
    PartialDeletionError,
    ShyftoError,
    StoreError,
    StoreTimeoutError,
)
from shyfto.core.transcoding import DEFAULT_CHUNK_SIZE, decode, encode
from shyfto.core.types import KeyDeletionResult, Operation, ProgressCallback

__all__ = [
    # Config
    "PRESIGN_TTL_SECONDS",
    "ProxyConfig",
    "StoreSettings",
    # Errors
    "BatchDeletionError",
    "ConfigurationError",
    "DecodeError",
    "InvalidEnvelopeError",
    "InvalidOperationError",
    "NotFoundError",
    "PartialDeletionError",
    "ShyftoError",
    "StoreError",
    "StoreTimeoutError",
    # Transcoding
    "DEFAULT_CHUNK_SIZE",
    "decode",
    "encode",
    # Types
    "KeyDeletionResult",
    "Operation",
    "ProgressCallback",
]
