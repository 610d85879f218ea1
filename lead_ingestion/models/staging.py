"""
Staging ORM models for CSV uploads.

Contract:
    LeadUploadBatch persists one upload and its lifecycle counters;
    LeadUploadStagingRow persists one parsed row, its derived identity keys
    and its validation outcome.  Staging rows are frozen once merged
    (db/immutability.py).

Architecture: lead_ingestion/models. Imports from lead_kernel.db.base only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lead_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from lead_ingestion.domain.types import StagingRow, UploadBatch

# Staging columns filled from CSV cells, in canonical order.
ROW_FIELDS: tuple[str, ...] = (
    "full_contact_name",
    "title_role",
    "validated_corporate_email",
    "phone_number",
    "company_name",
    "website",
    "state",
    "regulation_type",
    "filing_date",
    "sec_filing_url",
)


class LeadUploadBatch(TrackedBase):
    """One uploaded file and its lifecycle."""

    __tablename__ = "lead_upload_batches"

    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="csv_upload")
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    total_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    valid_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    invalid_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    inserted_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    insert_errors: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    merged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rows: Mapped[list["LeadUploadStagingRow"]] = relationship(
        "LeadUploadStagingRow",
        back_populates="batch",
        order_by="LeadUploadStagingRow.source_row",
    )

    @property
    def uploaded_by(self) -> UUID:
        return self.created_by_id

    def to_dto(self) -> UploadBatch:
        from lead_ingestion.domain.types import BatchStatus, UploadBatch

        return UploadBatch(
            batch_id=self.id,
            filename=self.filename,
            source=self.source,
            status=BatchStatus(self.status),
            total_rows=self.total_rows,
            valid_rows=self.valid_rows,
            invalid_rows=self.invalid_rows,
            inserted_rows=self.inserted_rows,
            skipped_rows=self.skipped_rows,
            insert_errors=self.insert_errors,
            uploaded_by=self.uploaded_by,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            merged_at=self.merged_at,
            rejected_at=self.rejected_at,
            created_at=self.created_at,
        )


class LeadUploadStagingRow(Base):
    """Single staged row within a batch."""

    __tablename__ = "lead_upload_staging"

    __table_args__ = (
        Index("ix_lead_upload_staging_batch_row", "batch_id", "source_row"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("lead_upload_batches.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_row: Mapped[int] = mapped_column(Integer, nullable=False)

    full_contact_name: Mapped[str | None] = mapped_column(String(300))
    title_role: Mapped[str | None] = mapped_column(String(300))
    validated_corporate_email: Mapped[str | None] = mapped_column(String(320))
    phone_number: Mapped[str | None] = mapped_column(String(64))
    company_name: Mapped[str | None] = mapped_column(String(300))
    website: Mapped[str | None] = mapped_column(String(500))
    state: Mapped[str | None] = mapped_column(String(64))
    regulation_type: Mapped[str | None] = mapped_column(String(100))
    filing_date: Mapped[str | None] = mapped_column(String(10))
    sec_filing_url: Mapped[str | None] = mapped_column(Text)

    email_norm: Mapped[str | None] = mapped_column(String(320))
    company_norm: Mapped[str | None] = mapped_column(String(300))
    validation_errors: Mapped[str | None] = mapped_column(Text)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    merged_lead_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    batch: Mapped["LeadUploadBatch"] = relationship(
        "LeadUploadBatch",
        back_populates="rows",
        foreign_keys=[batch_id],
    )

    def row_fields(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in ROW_FIELDS}

    def to_dto(self) -> StagingRow:
        from lead_ingestion.domain.types import StagingRow

        return StagingRow(
            row_id=self.id,
            batch_id=self.batch_id,
            source_row=self.source_row,
            fields=self.row_fields(),
            email_norm=self.email_norm,
            company_norm=self.company_norm,
            validation_errors=self.validation_errors,
            is_valid=self.is_valid,
            merged_lead_id=self.merged_lead_id,
        )
