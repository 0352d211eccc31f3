"""Version-complete deletion for versioned buckets.

A plain DELETE on a versioned bucket only adds a delete-marker; the data
stays restorable. Purging a key therefore means enumerating every version
and delete-marker of that key and deleting each one by version ID.

This module provides:
- collect_versions: full enumeration of one key's versions
- purge_object: purge one key in sequential, size-bounded batches
- purge_objects: purge many independent keys with per-key results
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shyfto.core.errors import BatchDeletionError, ShyftoError, StoreError
from shyfto.core.types import KeyDeletionResult
from shyfto.server.storage import MAX_BATCH_SIZE, VersionRecord

if TYPE_CHECKING:
    from shyfto.server.storage import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class PurgeResult:
    """Outcome of purging one key."""

    key: str
    deleted_versions: int
    used_fallback: bool = False


def collect_versions(store: ObjectStore, bucket: str, key: str) -> list[VersionRecord]:
    """Enumerate every version and delete-marker of exactly one key.

    The listing is prefix-based, so records for longer keys sharing the
    prefix (``a.txt`` vs ``a.txt.bak``) are filtered out.

    Args:
        store: Object store to query.
        bucket: Bucket name.
        key: Exact storage key.

    Returns:
        All matching records across all pages.
    """
    records: list[VersionRecord] = []
    key_marker: str | None = None
    version_id_marker: str | None = None

    while True:
        page = store.list_versions(
            bucket,
            key,
            key_marker=key_marker,
            version_id_marker=version_id_marker,
        )
        records.extend(r for r in page.records if r.key == key)

        if not page.is_truncated:
            return records
        if page.next_key_marker is None:
            # A truncated page without markers cannot be continued
            raise StoreError(
                f"Version listing for {key} truncated without a continuation marker"
            )
        key_marker = page.next_key_marker
        version_id_marker = page.next_version_id_marker


def _batches(
    records: Sequence[VersionRecord], batch_size: int
) -> list[list[tuple[str, str]]]:
    pairs = [(r.key, r.version_id) for r in records]
    return [pairs[i : i + batch_size] for i in range(0, len(pairs), batch_size)]


def purge_object(
    store: ObjectStore,
    bucket: str,
    key: str,
    batch_size: int = MAX_BATCH_SIZE,
) -> PurgeResult:
    """Remove every version and delete-marker of a key.

    The full listing completes before the first delete is issued. Batches
    are sent one after another; the store offers no cross-batch atomicity,
    so a failure leaves earlier batches deleted.

    Args:
        store: Object store holding the key.
        bucket: Bucket name.
        key: Exact storage key.
        batch_size: Maximum pairs per delete request (capped at MAX_BATCH_SIZE).

    Returns:
        PurgeResult with the number of versions removed.

    Raises:
        BatchDeletionError: If a batch fails after listing succeeded.
        StoreError: If listing or the fallback delete fails.
    """
    batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
    records = collect_versions(store, bucket, key)

    if not records:
        # No version metadata (unversioned bucket or absent key)
        store.delete(bucket, key)
        # On a versioned bucket the plain delete itself leaves a delete-marker
        for leftover in collect_versions(store, bucket, key):
            store.delete_version(bucket, leftover.key, leftover.version_id)
        logger.info("Purged %s/%s with a plain delete (no versions listed)", bucket, key)
        return PurgeResult(key=key, deleted_versions=0, used_fallback=True)

    if len(records) == 1:
        only = records[0]
        store.delete_version(bucket, only.key, only.version_id)
        logger.info("Purged %s/%s (1 version)", bucket, key)
        return PurgeResult(key=key, deleted_versions=1)

    batches = _batches(records, batch_size)
    deleted = 0
    for index, batch in enumerate(batches, start=1):
        try:
            store.delete_versions_batch(bucket, batch)
        except ShyftoError as e:
            logger.error(
                "Delete batch %d/%d for %s/%s failed: %s",
                index,
                len(batches),
                bucket,
                key,
                e,
            )
            raise BatchDeletionError(
                key,
                f"batch {index} of {len(batches)}: {e}",
                deleted=deleted,
                remaining=len(records) - deleted,
            ) from e
        deleted += len(batch)

    markers = sum(1 for r in records if r.is_delete_marker)
    logger.info(
        "Purged %s/%s (%d versions, %d delete-markers, %d batches)",
        bucket,
        key,
        len(records) - markers,
        markers,
        len(batches),
    )
    return PurgeResult(key=key, deleted_versions=deleted)


def _purge_one(store: ObjectStore, bucket: str, key: str) -> KeyDeletionResult:
    try:
        result = purge_object(store, bucket, key)
    except ShyftoError as e:
        logger.warning("Failed to purge %s/%s: %s", bucket, key, e)
        return KeyDeletionResult(key=key, success=False, error=str(e))
    return KeyDeletionResult(
        key=key, success=True, deleted_versions=result.deleted_versions
    )


def purge_objects(
    store: ObjectStore,
    bucket: str,
    keys: Sequence[str],
    max_workers: int = 1,
) -> list[KeyDeletionResult]:
    """Purge several independent keys.

    A failing key never stops the others. With ``max_workers > 1`` keys are
    purged in parallel, but each key's own batches stay sequential.

    Args:
        store: Object store holding the keys.
        bucket: Bucket name.
        keys: Storage keys to purge.
        max_workers: Keys processed concurrently.

    Returns:
        One result per key, in input order.
    """
    if max_workers <= 1 or len(keys) <= 1:
        return [_purge_one(store, bucket, key) for key in keys]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(keys))) as pool:
        return list(pool.map(lambda key: _purge_one(store, bucket, key), keys))
