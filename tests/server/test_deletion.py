"""Tests for version-complete deletion."""

from typing import Any

import pytest

from shyfto.core.errors import BatchDeletionError, NotFoundError, StoreError
from shyfto.server.deletion import collect_versions, purge_object, purge_objects
from shyfto.server.storage import MAX_BATCH_SIZE, S3ObjectStore, VersionPage

BUCKET = "test-bucket"


class TestCollectVersions:
    """Tests for collect_versions()."""

    def test_follows_pagination(self, memory_store: Any) -> None:
        """Every page should be fetched until the listing ends."""
        memory_store.page_size = 7
        memory_store.add_versions(BUCKET, "a.txt", 20, delete_markers=3)

        records = collect_versions(memory_store, BUCKET, "a.txt")

        assert len(records) == 23
        assert len({r.version_id for r in records}) == 23

    def test_filters_longer_keys(self, memory_store: Any) -> None:
        """Keys that merely share the prefix should be ignored."""
        memory_store.add_versions(BUCKET, "a.txt", 2)
        memory_store.add_versions(BUCKET, "a.txt.bak", 5)

        records = collect_versions(memory_store, BUCKET, "a.txt")

        assert {r.key for r in records} == {"a.txt"}
        assert len(records) == 2

    def test_truncated_page_without_marker(self, memory_store: Any) -> None:
        """A truncated page that cannot be continued should fail."""
        memory_store.list_versions = lambda *args, **kwargs: VersionPage(
            is_truncated=True
        )

        with pytest.raises(StoreError, match="continuation marker"):
            collect_versions(memory_store, BUCKET, "a.txt")


class TestPurgeObject:
    """Tests for purge_object()."""

    def test_removes_versions_and_markers(self, memory_store: Any) -> None:
        """Three versions and one marker should all be removed."""
        memory_store.add_versions(BUCKET, "a.txt", 3, delete_markers=1)

        result = purge_object(memory_store, BUCKET, "a.txt")

        assert result.deleted_versions == 4
        assert result.used_fallback is False
        assert memory_store.version_count(BUCKET, "a.txt") == 0
        with pytest.raises(NotFoundError):
            memory_store.get(BUCKET, "a.txt")

    def test_leaves_prefix_siblings(self, memory_store: Any) -> None:
        """Purging a.txt should not touch a.txt.bak."""
        memory_store.add_versions(BUCKET, "a.txt", 2)
        memory_store.add_versions(BUCKET, "a.txt.bak", 2)

        purge_object(memory_store, BUCKET, "a.txt")

        assert memory_store.version_count(BUCKET, "a.txt.bak") == 2

    def test_batches_never_exceed_limit(self, memory_store: Any) -> None:
        """2500 records should go out as 1000, 1000, 500."""
        memory_store.add_versions(BUCKET, "big.bin", 2400, delete_markers=100)

        result = purge_object(memory_store, BUCKET, "big.bin")

        assert result.deleted_versions == 2500
        assert memory_store.batch_sizes == [1000, 1000, 500]
        assert max(memory_store.batch_sizes) <= MAX_BATCH_SIZE
        assert memory_store.version_count(BUCKET, "big.bin") == 0

    def test_batch_size_is_capped(self, memory_store: Any) -> None:
        """A requested batch size above the limit should be capped."""
        memory_store.add_versions(BUCKET, "big.bin", 1001)

        purge_object(memory_store, BUCKET, "big.bin", batch_size=5000)

        assert memory_store.batch_sizes == [1000, 1]

    def test_single_version_uses_version_delete(self, memory_store: Any) -> None:
        """One record should be removed with a single versioned delete."""
        memory_store.add_versions(BUCKET, "one.txt", 1)

        result = purge_object(memory_store, BUCKET, "one.txt")

        assert result.deleted_versions == 1
        assert len(memory_store.single_deletes) == 1
        assert memory_store.batch_sizes == []

    def test_fallback_without_versions(self, memory_store: Any) -> None:
        """No version metadata should fall back to a plain delete."""
        memory_store.versioned = False
        memory_store.put(BUCKET, "plain.txt", b"data", None)

        result = purge_object(memory_store, BUCKET, "plain.txt")

        assert result.used_fallback is True
        assert result.deleted_versions == 0
        assert memory_store.plain_deletes == ["plain.txt"]
        with pytest.raises(NotFoundError):
            memory_store.get(BUCKET, "plain.txt")

    def test_fallback_removes_its_delete_marker(self, memory_store: Any) -> None:
        """A plain delete on a versioned bucket should not leave a marker behind."""
        result = purge_object(memory_store, BUCKET, "absent.txt")

        assert result.used_fallback is True
        assert result.deleted_versions == 0
        assert memory_store.plain_deletes == ["absent.txt"]
        assert len(memory_store.single_deletes) == 1
        assert memory_store.version_count(BUCKET, "absent.txt") == 0

    def test_failed_batch_reports_progress(self, memory_store: Any) -> None:
        """A failing second batch should report what was already deleted."""
        memory_store.add_versions(BUCKET, "big.bin", 2500)
        memory_store.fail_batch_number = 2

        with pytest.raises(BatchDeletionError) as exc_info:
            purge_object(memory_store, BUCKET, "big.bin")

        assert exc_info.value.deleted == 1000
        assert exc_info.value.remaining == 1500
        assert memory_store.batch_sizes == [1000, 1000]
        assert memory_store.version_count(BUCKET, "big.bin") == 1500

    def test_listing_failure_deletes_nothing(self, memory_store: Any) -> None:
        """A failed listing should abort before any delete."""
        memory_store.add_versions(BUCKET, "a.txt", 3)
        memory_store.failing_list_keys.add("a.txt")

        with pytest.raises(StoreError):
            purge_object(memory_store, BUCKET, "a.txt")

        assert memory_store.batch_sizes == []
        assert memory_store.version_count(BUCKET, "a.txt") == 3


class TestPurgeObjects:
    """Tests for purge_objects()."""

    def test_reports_each_key(self, memory_store: Any) -> None:
        """Every key should get its own result."""
        memory_store.add_versions(BUCKET, "a.txt", 2)
        memory_store.add_versions(BUCKET, "b.txt", 3)

        results = purge_objects(memory_store, BUCKET, ["a.txt", "b.txt"])

        assert [(r.key, r.success, r.deleted_versions) for r in results] == [
            ("a.txt", True, 2),
            ("b.txt", True, 3),
        ]

    def test_failure_does_not_stop_others(self, memory_store: Any) -> None:
        """A failed listing for the second key should not affect the others."""
        for key in ("a.txt", "b.txt", "c.txt"):
            memory_store.add_versions(BUCKET, key, 2)
        memory_store.failing_list_keys.add("b.txt")

        results = purge_objects(memory_store, BUCKET, ["a.txt", "b.txt", "c.txt"])

        assert [r.success for r in results] == [True, False, True]
        assert "list versions failed" in (results[1].error or "")
        assert memory_store.version_count(BUCKET, "a.txt") == 0
        assert memory_store.version_count(BUCKET, "b.txt") == 2
        assert memory_store.version_count(BUCKET, "c.txt") == 0

    def test_parallel_keeps_input_order(self, memory_store: Any) -> None:
        """Parallel purging should still return results in input order."""
        keys = [f"file-{i}.txt" for i in range(10)]
        for key in keys:
            memory_store.add_versions(BUCKET, key, 2)

        results = purge_objects(memory_store, BUCKET, keys, max_workers=4)

        assert [r.key for r in results] == keys
        assert all(r.success for r in results)

    def test_empty_key_list(self, memory_store: Any) -> None:
        """No keys should produce no results."""
        assert purge_objects(memory_store, BUCKET, []) == []


class TestPurgeObjectS3:
    """End-to-end purge against a moto versioned bucket."""

    def test_purge_three_versions_and_marker(self, s3_store: S3ObjectStore) -> None:
        """After purging, the key should have no versions and get should 404."""
        for i in range(3):
            s3_store.put(BUCKET, "a.txt", f"v{i}".encode(), "text/plain")
        s3_store.delete(BUCKET, "a.txt")

        result = purge_object(s3_store, BUCKET, "a.txt")

        assert result.deleted_versions == 4
        assert s3_store.list_versions(BUCKET, "a.txt").records == []
        with pytest.raises(NotFoundError):
            s3_store.get(BUCKET, "a.txt")

    def test_purge_absent_key(self, s3_store: S3ObjectStore) -> None:
        """Purging a key that never existed should use the plain delete."""
        result = purge_object(s3_store, BUCKET, "never.txt")

        assert result.used_fallback is True
        assert s3_store.list_versions(BUCKET, "never.txt").records == []
