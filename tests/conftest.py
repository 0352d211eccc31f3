"""Shared pytest fixtures.

This module provides an in-memory versioned object store so proxy, API
and CLI tests run without an S3 endpoint.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Sequence
from dataclasses import dataclass

import pytest

from shyfto.core.errors import NotFoundError, StoreError
from shyfto.server.storage import (
    MAX_BATCH_SIZE,
    ObjectStore,
    StoredObject,
    VersionPage,
    VersionRecord,
)


@dataclass
class StoredVersion:
    """One version held by the in-memory store."""

    version_id: str
    data: bytes = b""
    content_type: str | None = None
    is_delete_marker: bool = False


class MemoryObjectStore(ObjectStore):
    """Versioned object store kept in a dict, newest version last.

    Knobs for failure scenarios:
    - page_size: records per list_versions page
    - versioned: False makes plain deletes remove the object outright
    - failing_list_keys: prefixes whose listing raises StoreError
    - fail_batch_number: 1-based batch call that raises StoreError
    """

    def __init__(self, page_size: int = MAX_BATCH_SIZE, versioned: bool = True) -> None:
        self.page_size = page_size
        self.versioned = versioned
        self.objects: dict[tuple[str, str], list[StoredVersion]] = {}
        self.failing_list_keys: set[str] = set()
        self.fail_batch_number: int | None = None
        self.batch_sizes: list[int] = []
        self.plain_deletes: list[str] = []
        self.single_deletes: list[tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def location(self) -> str:
        return "memory"

    def _next_id(self) -> str:
        return f"v{next(self._ids):06d}"

    # === Test helpers ===

    def add_versions(
        self, bucket: str, key: str, versions: int, delete_markers: int = 0
    ) -> None:
        """Seed a key with data versions followed by delete-markers."""
        history = self.objects.setdefault((bucket, key), [])
        for i in range(versions):
            history.append(StoredVersion(self._next_id(), f"{key}#{i}".encode()))
        for _ in range(delete_markers):
            history.append(StoredVersion(self._next_id(), is_delete_marker=True))

    def version_count(self, bucket: str, key: str) -> int:
        """Number of versions and delete-markers left for a key."""
        return len(self.objects.get((bucket, key), []))

    # === ObjectStore ===

    def put(self, bucket: str, key: str, data: bytes, content_type: str | None) -> None:
        history = self.objects.setdefault((bucket, key), [])
        if not self.versioned:
            history.clear()
        history.append(StoredVersion(self._next_id(), data, content_type))

    def get(self, bucket: str, key: str) -> StoredObject:
        history = self.objects.get((bucket, key))
        if not history or history[-1].is_delete_marker:
            raise NotFoundError(key)
        latest = history[-1]
        return StoredObject(data=latest.data, content_type=latest.content_type)

    def presigned_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        return (
            f"https://store.test/{bucket}/{key}"
            f"?X-Amz-Expires={ttl_seconds}&X-Amz-Signature=abc"
        )

    def list_versions(
        self,
        bucket: str,
        prefix: str,
        key_marker: str | None = None,
        version_id_marker: str | None = None,
    ) -> VersionPage:
        if prefix in self.failing_list_keys:
            raise StoreError(f"list versions failed for {prefix}")
        if not self.versioned:
            return VersionPage()

        with self._lock:
            records = [
                VersionRecord(key, v.version_id, v.is_delete_marker)
                for (b, key), history in sorted(self.objects.items())
                if b == bucket and key.startswith(prefix)
                for v in reversed(history)
            ]
        start = 0
        if key_marker is not None:
            for index, record in enumerate(records):
                if (record.key, record.version_id) == (key_marker, version_id_marker):
                    start = index + 1
                    break

        page = records[start : start + self.page_size]
        truncated = start + self.page_size < len(records)
        return VersionPage(
            records=page,
            is_truncated=truncated,
            next_key_marker=page[-1].key if truncated else None,
            next_version_id_marker=page[-1].version_id if truncated else None,
        )

    def delete(self, bucket: str, key: str) -> None:
        self.plain_deletes.append(key)
        if self.versioned:
            history = self.objects.setdefault((bucket, key), [])
            history.append(StoredVersion(self._next_id(), is_delete_marker=True))
        else:
            self.objects.pop((bucket, key), None)

    def _remove(self, bucket: str, key: str, version_ids: set[str]) -> None:
        with self._lock:
            history = self.objects.get((bucket, key), [])
            history[:] = [v for v in history if v.version_id not in version_ids]
            if not history:
                self.objects.pop((bucket, key), None)

    def delete_version(self, bucket: str, key: str, version_id: str) -> None:
        self.single_deletes.append((key, version_id))
        self._remove(bucket, key, {version_id})

    def delete_versions_batch(
        self, bucket: str, versions: Sequence[tuple[str, str]]
    ) -> None:
        if len(versions) > MAX_BATCH_SIZE:
            raise ValueError(f"Batch of {len(versions)} exceeds {MAX_BATCH_SIZE}")
        self.batch_sizes.append(len(versions))
        if self.fail_batch_number == len(self.batch_sizes):
            raise StoreError("SlowDown: please reduce your request rate")
        by_key: dict[str, set[str]] = {}
        for key, version_id in versions:
            by_key.setdefault(key, set()).add(version_id)
        for key, version_ids in by_key.items():
            self._remove(bucket, key, version_ids)


@pytest.fixture
def memory_store() -> MemoryObjectStore:
    """Create an empty versioned in-memory object store."""
    return MemoryObjectStore()
