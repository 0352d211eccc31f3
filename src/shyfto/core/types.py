"""Shared types for shyfto.

This module defines types and enums used by both client and server.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

# Receives an integer percentage in [0, 100]
ProgressCallback = Callable[[int], None]


class Operation(str, Enum):
    """Operations accepted by the transfer proxy.

    Values are the wire names carried in the ``operation`` envelope field.
    """

    UPLOAD = "upload"
    DOWNLOAD = "download"
    GET_DOWNLOAD_URL = "get-download-url"
    DELETE = "delete"
    DELETE_MULTIPLE = "delete-multiple"


@dataclass
class KeyDeletionResult:
    """Outcome of purging one key during a multi-key delete."""

    key: str
    success: bool
    deleted_versions: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire form."""
        data: dict[str, Any] = {
            "storageKey": self.key,
            "success": self.success,
            "deletedVersions": self.deleted_versions,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyDeletionResult:
        """Create from API response dictionary."""
        return cls(
            key=data["storageKey"],
            success=data["success"],
            deleted_versions=data.get("deletedVersions", 0),
            error=data.get("error"),
        )
