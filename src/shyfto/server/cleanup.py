"""Cleanup of expired shared files.

This module provides:
- ExpiredFileSource: the metadata store's side of the cleanup contract
- cleanup_expired_files: purge expired objects, then drop their rows

Scheduling is left to the caller (cron, a platform scheduler, etc.); this
module only runs one pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from shyfto.server.proxy import TransferProxy

logger = logging.getLogger(__name__)


@dataclass
class ExpiredFile:
    """Metadata row of a shared file whose expiry has passed."""

    id: str
    storage_key: str
    filename: str
    owner_id: str | None = None
    batch_id: str | None = None


class ExpiredFileSource(Protocol):
    """Metadata store holding file rows and their expiry timestamps."""

    def list_expired(self, now: datetime) -> list[ExpiredFile]:
        """Return files whose expiry is set and earlier than now."""
        ...

    def remove(self, file_id: str) -> None:
        """Delete one file row."""
        ...


@dataclass
class CleanupError:
    """Why one expired file could not be cleaned up."""

    file_id: str
    error: str


@dataclass
class CleanupReport:
    """Summary of one cleanup pass."""

    total: int = 0
    deleted: int = 0
    failed: int = 0
    affected_owners: int = 0
    errors: list[CleanupError] = field(default_factory=list)


def cleanup_expired_files(
    source: ExpiredFileSource,
    proxy: TransferProxy,
    now: datetime | None = None,
) -> CleanupReport:
    """Purge every expired file from storage and then from metadata.

    A row is removed only after its object was fully purged, so a storage
    failure leaves the row in place for the next pass. One failing file
    never stops the others.

    Args:
        source: Metadata store listing expired files.
        proxy: Transfer proxy used for version-complete deletion.
        now: Reference time (default: current UTC time).

    Returns:
        CleanupReport with counts and per-file errors.
    """
    now = now or datetime.now(UTC)
    expired = source.list_expired(now)
    report = CleanupReport(total=len(expired))

    if not expired:
        logger.info("Cleanup: no expired files found")
        return report

    logger.info("Cleanup: found %d expired files", len(expired))
    report.affected_owners = len({f.owner_id for f in expired if f.owner_id})
    bucket = proxy.resolve_bucket()

    for file in expired:
        try:
            proxy.delete(bucket, file.storage_key)
        except Exception as e:
            logger.warning(
                "Cleanup: failed to delete %s from storage: %s", file.filename, e
            )
            report.errors.append(CleanupError(file_id=file.id, error=str(e)))
            report.failed += 1
            continue

        try:
            source.remove(file.id)
        except Exception as e:
            logger.warning(
                "Cleanup: failed to delete metadata for %s: %s", file.filename, e
            )
            report.errors.append(CleanupError(file_id=file.id, error=str(e)))
            report.failed += 1
            continue

        logger.info("Cleanup: deleted %s", file.filename)
        report.deleted += 1

    logger.info(
        "Cleanup completed: %d deleted, %d failed, %d owners affected",
        report.deleted,
        report.failed,
        report.affected_owners,
    )
    return report
