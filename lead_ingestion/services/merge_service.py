"""
Merge service: validated staging rows -> live leads.

Locks the batch row so concurrent merges of one batch serialize; the second
merge then sees the first one's leads as duplicates.  Each row is promoted
in its own SAVEPOINT; any promotion failure propagates so the caller's
transaction rolls the whole merge back (no partial merge).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lead_ingestion.domain.batch_state import BatchAction, next_status
from lead_ingestion.domain.types import BatchStatus, MergeResult
from lead_ingestion.models.staging import LeadUploadBatch, LeadUploadStagingRow
from lead_ingestion.promoters.base import EntityPromoter
from lead_ingestion.promoters.lead import LeadPromoter
from lead_kernel.domain.clock import Clock, SystemClock
from lead_kernel.exceptions import BatchNotFoundError, InvalidBatchStateError
from lead_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.merge_service")


class MergeService:

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        promoter: EntityPromoter | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._promoter = promoter or LeadPromoter()

    def _lock_batch(self, batch_id: UUID) -> LeadUploadBatch:
        batch = self._session.execute(
            select(LeadUploadBatch)
            .where(LeadUploadBatch.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def _unvalidated_rows(self, batch_id: UUID) -> int:
        """Rows that are invalid or were corrected after the last validation."""
        return self._session.execute(
            select(func.count(LeadUploadStagingRow.id)).where(
                LeadUploadStagingRow.batch_id == batch_id,
                LeadUploadStagingRow.is_valid.is_(False),
            )
        ).scalar_one()

    def merge_batch(self, batch_id: UUID, actor_id: UUID) -> MergeResult:
        batch = self._lock_batch(batch_id)
        status = BatchStatus(batch.status)

        if status is BatchStatus.VALIDATED:
            invalid = self._unvalidated_rows(batch.id)
            if invalid:
                raise InvalidBatchStateError(
                    batch.id,
                    status.value,
                    BatchAction.MERGE.value,
                    reason=f"{invalid} rows are invalid or not validated",
                )
            batch.status = next_status(batch.id, status, BatchAction.APPROVE).value
            batch.approved_by = actor_id
            batch.approved_at = self._clock.now()
            self._session.flush()
            status = BatchStatus.APPROVED

        target = next_status(batch.id, status, BatchAction.MERGE)
        replay = status is BatchStatus.MERGED

        rows = self._session.scalars(
            select(LeadUploadStagingRow)
            .where(
                LeadUploadStagingRow.batch_id == batch.id,
                LeadUploadStagingRow.is_valid.is_(True),
            )
            .order_by(LeadUploadStagingRow.source_row)
        ).all()

        inserted: list[UUID] = []
        skipped = 0
        with LogContext.bind(batch_id=str(batch.id), actor_id=str(actor_id), producer="ingestion"):
            logger.info("batch_merge_started", extra={"valid_rows": len(rows), "replay": replay})
            for row in rows:
                if row.merged_lead_id is not None:
                    skipped += 1
                    logger.info(
                        "record_skipped",
                        extra={
                            "source_row": row.source_row,
                            "reason": "already_merged",
                            "duplicate_of": str(row.merged_lead_id),
                        },
                    )
                    continue
                savepoint = self._session.begin_nested()
                try:
                    duplicate_of = self._promoter.find_duplicate(row, self._session)
                    if duplicate_of is not None:
                        savepoint.rollback()
                        skipped += 1
                        logger.info(
                            "record_skipped",
                            extra={
                                "source_row": row.source_row,
                                "reason": "duplicate",
                                "duplicate_of": str(duplicate_of),
                            },
                        )
                        continue
                    result = self._promoter.promote(row, self._session, actor_id, self._clock)
                    if not result.success or result.entity_id is None:
                        raise RuntimeError(result.error or "promotion failed")
                    savepoint.commit()
                except Exception:
                    if savepoint.is_active:
                        savepoint.rollback()
                    logger.error(
                        "record_merge_failed",
                        extra={"source_row": row.source_row},
                        exc_info=True,
                    )
                    raise
                row.merged_lead_id = result.entity_id
                inserted.append(result.entity_id)
                logger.info(
                    "record_merged",
                    extra={"source_row": row.source_row, "lead_id": str(result.entity_id)},
                )

            # A replay reports what it did but keeps the original merge counters.
            if not replay:
                batch.inserted_rows = len(inserted)
                batch.skipped_rows = skipped
                batch.status = target.value
                batch.merged_at = self._clock.now()
                batch.updated_by_id = actor_id
                self._session.flush()
            logger.info(
                "batch_merged",
                extra={
                    "valid_rows": len(rows),
                    "inserted_rows": len(inserted),
                    "skipped_rows": skipped,
                },
            )

        return MergeResult(
            batch_id=batch.id,
            valid_rows=len(rows),
            inserted_rows=len(inserted),
            skipped_rows=skipped,
            inserted_lead_ids=tuple(inserted),
        )
