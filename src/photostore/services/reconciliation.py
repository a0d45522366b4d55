"""
Cross-store reconciliation.

Compares the blob store with the metadata store and reports:

- orphaned blobs: blobs no record references (left by a failed ingest
  compensation or a partial delete)
- dangling records: records whose blob does not exist

Only orphaned blobs are ever repaired, by deleting them. Dangling records are
reported for an operator to decide on.

An ingest writes its blob before its record, so an unreferenced blob younger
than the grace window may belong to an ingest still in flight. Such blobs are
reported as pending and never deleted.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from ..config import get_reconcile_grace_seconds
from ..error_handling import BlobNotFoundError, StorageError
from ..logging_config import get_logger, log_consistency_violation, log_context
from .metadata import MetadataService
from .storage import StorageService

logger = get_logger(__name__)


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation pass."""

    orphaned_blobs: list[str] = field(default_factory=list)
    pending_blobs: list[str] = field(default_factory=list)
    dangling_records: dict[str, str] = field(default_factory=dict)
    deleted_blobs: list[str] = field(default_factory=list)
    failed_deletions: dict[str, str] = field(default_factory=dict)

    @property
    def is_consistent(self) -> bool:
        return not self.orphaned_blobs and not self.dangling_records

    def to_dict(self) -> dict[str, Any]:
        return {
            "consistent": self.is_consistent,
            "orphaned_blobs": self.orphaned_blobs,
            "pending_blobs": self.pending_blobs,
            "dangling_records": self.dangling_records,
            "deleted_blobs": self.deleted_blobs,
            "failed_deletions": self.failed_deletions,
        }


def reconcile(
    storage: StorageService,
    metadata: MetadataService,
    fix: bool = False,
    grace_seconds: int | None = None,
) -> ReconciliationReport:
    """
    Find disagreements between the two stores.

    Args:
        storage: Blob store
        metadata: Metadata store
        fix: Delete orphaned blobs
        grace_seconds: Minimum age of an unreferenced blob before it counts as
            orphaned (defaults to RECONCILE_GRACE_SECONDS)

    Returns:
        ReconciliationReport
    """
    if grace_seconds is None:
        grace_seconds = get_reconcile_grace_seconds()

    with log_context(logger, fix=fix, grace_seconds=grace_seconds) as log:
        # records first: an ingest writes its blob before its record, so every
        # listed record's blob is already in the blob listing
        references = metadata.list_blob_references()
        blobs = storage.list_blobs()
        blob_ids = set(blobs)

        cutoff = datetime.now(UTC) - timedelta(seconds=grace_seconds)
        orphaned, pending = [], []
        for blob_id in sorted(blob_ids - set(references)):
            created = blobs[blob_id]
            if created is not None and created > cutoff:
                pending.append(blob_id)
            else:
                orphaned.append(blob_id)

        report = ReconciliationReport(
            orphaned_blobs=orphaned,
            pending_blobs=pending,
            dangling_records={
                photo_id: blob_id for blob_id, photo_id in sorted(references.items()) if blob_id not in blob_ids
            },
        )

        for blob_id in report.orphaned_blobs:
            log_consistency_violation("orphaned_blob", blob_id=blob_id)
        for photo_id, blob_id in report.dangling_records.items():
            log_consistency_violation("dangling_record", photo_id=photo_id, blob_id=blob_id)

        if fix:
            for blob_id in report.orphaned_blobs:
                try:
                    storage.delete(blob_id)
                except BlobNotFoundError:
                    pass
                except StorageError as e:
                    report.failed_deletions[blob_id] = e.code
                    continue
                report.deleted_blobs.append(blob_id)

        log.info(
            "reconciliation_completed",
            blob_count=len(blob_ids),
            record_count=len(references),
            orphaned_blobs=len(report.orphaned_blobs),
            pending_blobs=len(report.pending_blobs),
            dangling_records=len(report.dangling_records),
            deleted_blobs=len(report.deleted_blobs),
        )
        return report
