"""
Import service: parse -> stage -> validate.

Orchestrates the CSV adapter, the mapping engine and the row validators.
Every staging insert runs in its own SAVEPOINT so one bad row is counted
in ``insert_errors`` instead of aborting the upload.  Services flush only;
the caller owns the transaction.
"""

from __future__ import annotations

import csv
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lead_config.schema import IngestionSchema
from lead_ingestion.adapters.csv_adapter import CsvSourceAdapter
from lead_ingestion.domain.batch_state import BatchAction, next_status
from lead_ingestion.domain.types import (
    BatchStatus,
    StagingRow,
    StagingSummary,
    UploadBatch,
    ValidationSummary,
)
from lead_ingestion.domain.validators import format_validation_errors, validate_row
from lead_ingestion.mapping.engine import DEFAULT_DATE_FORMATS, map_table, normalize_filing_date
from lead_ingestion.models.staging import ROW_FIELDS, LeadUploadBatch, LeadUploadStagingRow
from lead_kernel.domain.clock import Clock, SystemClock
from lead_kernel.exceptions import (
    BatchNotFoundError,
    InvalidInputError,
    StagingRowNotFoundError,
)
from lead_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.import_service")

_MAX_CELL_LENGTH = 4000


def _coerce_cell(name: str, value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"unsupported value type for {name}: {type(value).__name__}")
    text = str(value).strip()
    if len(text) > _MAX_CELL_LENGTH:
        raise ValueError(f"value for {name} exceeds {_MAX_CELL_LENGTH} characters")
    return text or None


class ImportService:
    """Stages uploads and validates staged rows."""

    def __init__(
        self,
        session: Session,
        schema: IngestionSchema,
        clock: Clock | None = None,
        adapter: CsvSourceAdapter | None = None,
    ):
        self._session = session
        self._schema = schema
        self._clock = clock or SystemClock()
        self._adapter = adapter or CsvSourceAdapter()
        self._date_formats = schema.date_formats or DEFAULT_DATE_FORMATS

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _load_batch(self, batch_id: UUID, lock: bool = False) -> LeadUploadBatch:
        stmt = select(LeadUploadBatch).where(LeadUploadBatch.id == batch_id)
        if lock:
            stmt = stmt.with_for_update()
        batch = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def get_batch(self, batch_id: UUID) -> UploadBatch:
        return self._load_batch(batch_id).to_dto()

    def list_batches(self, limit: int = 50) -> list[UploadBatch]:
        stmt = (
            select(LeadUploadBatch)
            .order_by(LeadUploadBatch.created_at.desc(), LeadUploadBatch.id)
            .limit(limit)
        )
        return [batch.to_dto() for batch in self._session.scalars(stmt)]

    def get_staging_rows(self, batch_id: UUID, only_invalid: bool = False) -> list[StagingRow]:
        self._load_batch(batch_id)
        stmt = select(LeadUploadStagingRow).where(LeadUploadStagingRow.batch_id == batch_id)
        if only_invalid:
            stmt = stmt.where(LeadUploadStagingRow.is_valid.is_(False))
        stmt = stmt.order_by(LeadUploadStagingRow.source_row)
        return [row.to_dto() for row in self._session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def create_upload_batch(
        self,
        filename: str,
        total_rows: int,
        actor_id: UUID,
        source: str = "csv_upload",
    ) -> UploadBatch:
        filename = (filename or "").strip()
        if not filename:
            raise InvalidInputError("filename is required", field="filename")
        if isinstance(total_rows, bool) or not isinstance(total_rows, int) or total_rows < 0:
            raise InvalidInputError("total_rows must be a non-negative integer", field="total_rows")

        batch = LeadUploadBatch(
            filename=filename,
            source=source,
            status=BatchStatus.UPLOADED.value,
            total_rows=total_rows,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self._session.add(batch)
        self._session.flush()
        logger.info(
            "batch_created",
            extra={"batch_id": str(batch.id), "upload_filename": filename, "total_rows": total_rows},
        )
        return batch.to_dto()

    def insert_staging_row(
        self,
        batch_id: UUID,
        fields: Mapping[str, Any],
        actor_id: UUID,
        source_row: int | None = None,
    ) -> bool:
        """
        Stage one row.  Returns False (and counts an insert error) when the
        row cannot be stored; never raises for row-level problems.
        """
        batch = self._load_batch(batch_id)
        next_status(batch.id, batch.status, BatchAction.STAGE)
        return self._insert_row(batch, fields, source_row, actor_id)

    def _insert_row(
        self,
        batch: LeadUploadBatch,
        fields: Mapping[str, Any],
        source_row: int | None,
        actor_id: UUID,
    ) -> bool:
        if source_row is None:
            source_row = self._next_source_row(batch.id)
        savepoint = self._session.begin_nested()
        try:
            values = {name: _coerce_cell(name, fields.get(name)) for name in ROW_FIELDS}
            values["filing_date"] = normalize_filing_date(values["filing_date"], self._date_formats)
            self._session.add(
                LeadUploadStagingRow(
                    batch_id=batch.id,
                    source_row=source_row,
                    is_valid=False,
                    **values,
                )
            )
            self._session.flush()
            savepoint.commit()
            return True
        except (SQLAlchemyError, ValueError) as exc:
            savepoint.rollback()
            batch.insert_errors = (batch.insert_errors or 0) + 1
            batch.updated_by_id = actor_id
            self._session.flush()
            logger.warning(
                "staging_row_insert_failed",
                extra={
                    "batch_id": str(batch.id),
                    "source_row": source_row,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return False

    def _next_source_row(self, batch_id: UUID) -> int:
        current = self._session.execute(
            select(func.max(LeadUploadStagingRow.source_row)).where(
                LeadUploadStagingRow.batch_id == batch_id
            )
        ).scalar_one()
        return (current or 0) + 1

    def stage_csv(self, filename: str, content: str | bytes, actor_id: UUID) -> StagingSummary:
        """
        Parse an uploaded CSV and stage every data row in one new batch.

        Raises:
            InvalidInputError: not a .csv file, too large, undecodable, or
                no data rows.
        """
        filename = (filename or "").strip()
        if not filename.lower().endswith(".csv"):
            raise InvalidInputError("file must be a .csv", field="filename")
        raw_size = len(content) if isinstance(content, bytes) else len(content.encode("utf-8"))
        if raw_size > self._schema.max_upload_bytes:
            raise InvalidInputError("file too large", field="file")
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8-sig")
            except UnicodeDecodeError:
                raise InvalidInputError("file must be UTF-8 text", field="file") from None

        try:
            table = self._adapter.read_text(content)
        except csv.Error:
            raise InvalidInputError("empty or invalid CSV", field="file") from None
        mapping = map_table(
            table,
            self._schema.alias_table(),
            self._schema.fields,
            self._date_formats,
        )
        if not mapping.rows:
            raise InvalidInputError("empty or invalid CSV", field="file")

        batch_dto = self.create_upload_batch(filename, len(mapping.rows), actor_id)
        batch = self._load_batch(batch_dto.batch_id)

        with LogContext.bind(batch_id=str(batch.id), actor_id=str(actor_id), producer="ingestion"):
            if mapping.ignored_headers:
                logger.info(
                    "headers_ignored",
                    extra={"headers": list(mapping.ignored_headers)},
                )
            staged = 0
            chunk = self._schema.chunk_size
            for start in range(0, len(mapping.rows), chunk):
                for parsed in mapping.rows[start:start + chunk]:
                    if self._insert_row(batch, parsed.fields, parsed.source_row, actor_id):
                        staged += 1
                self._session.flush()
                logger.debug(
                    "staging_chunk_inserted",
                    extra={"offset": start, "rows": min(chunk, len(mapping.rows) - start)},
                )

            logger.info(
                "batch_staged",
                extra={
                    "total_rows": len(mapping.rows),
                    "staged_rows": staged,
                    "insert_errors": batch.insert_errors,
                },
            )
        return StagingSummary(
            batch_id=batch.id,
            total_rows=len(mapping.rows),
            staged_rows=staged,
            insert_errors=batch.insert_errors,
        )

    # ------------------------------------------------------------------
    # Validation and lifecycle
    # ------------------------------------------------------------------

    def validate_batch(self, batch_id: UUID, actor_id: UUID) -> ValidationSummary:
        """Validate every staged row; re-runnable until the batch is merged."""
        batch = self._load_batch(batch_id, lock=True)
        target = next_status(batch.id, batch.status, BatchAction.VALIDATE)

        valid = invalid = 0
        rows = self._session.scalars(
            select(LeadUploadStagingRow)
            .where(LeadUploadStagingRow.batch_id == batch.id)
            .order_by(LeadUploadStagingRow.source_row)
        ).all()
        for row in rows:
            result = validate_row(
                row.row_fields(),
                required=self._schema.required_fields,
                contact_any_of=self._schema.contact_any_of,
                url_fields=self._schema.url_fields,
            )
            row.email_norm = result.email_norm
            row.company_norm = result.company_norm
            row.validation_errors = format_validation_errors(result.errors)
            row.is_valid = result.is_valid
            if result.is_valid:
                valid += 1
            else:
                invalid += 1

        batch.total_rows = len(rows)
        batch.valid_rows = valid
        batch.invalid_rows = invalid
        batch.status = target.value
        batch.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "batch_validated",
            extra={
                "batch_id": str(batch.id),
                "total_rows": len(rows),
                "valid_rows": valid,
                "invalid_rows": invalid,
            },
        )
        return ValidationSummary(
            batch_id=batch.id,
            total_rows=len(rows),
            valid_rows=valid,
            invalid_rows=invalid,
        )

    def correct_staging_row(
        self,
        row_id: UUID,
        fields: Mapping[str, Any],
        actor_id: UUID,
    ) -> StagingRow:
        """
        Overwrite some fields of one staging row.  The row's validation is
        cleared, so the batch must be validated again before it can merge.
        """
        row = self._session.get(LeadUploadStagingRow, row_id)
        if row is None:
            raise StagingRowNotFoundError(row_id)
        batch = self._load_batch(row.batch_id, lock=True)
        next_status(batch.id, batch.status, BatchAction.EDIT)

        unknown = sorted(set(fields) - set(ROW_FIELDS))
        if unknown:
            raise InvalidInputError(f"unknown staging fields: {', '.join(unknown)}", field="fields")
        try:
            values = {name: _coerce_cell(name, value) for name, value in fields.items()}
        except ValueError as exc:
            raise InvalidInputError(str(exc), field="fields") from None
        if "filing_date" in values:
            values["filing_date"] = normalize_filing_date(values["filing_date"], self._date_formats)

        for name, value in values.items():
            setattr(row, name, value)
        row.is_valid = False
        row.validation_errors = None
        row.email_norm = None
        row.company_norm = None
        batch.updated_by_id = actor_id
        self._session.flush()
        logger.info(
            "staging_row_corrected",
            extra={"batch_id": str(batch.id), "row_id": str(row.id), "fields": sorted(values)},
        )
        return row.to_dto()

    def reject_batch(self, batch_id: UUID, actor_id: UUID) -> UploadBatch:
        batch = self._load_batch(batch_id, lock=True)
        batch.status = next_status(batch.id, batch.status, BatchAction.REJECT).value
        batch.rejected_at = self._clock.now()
        batch.updated_by_id = actor_id
        self._session.flush()
        logger.info("batch_rejected", extra={"batch_id": str(batch.id)})
        return batch.to_dto()
