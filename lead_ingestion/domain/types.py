"""
lead_ingestion.domain.types -- Pure frozen dataclasses for the staging pipeline.

ZERO I/O. Imports only from lead_kernel/domain/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID


class BatchStatus(StrEnum):
    """Batch-level lifecycle status."""

    UPLOADED = "uploaded"  # Staging rows inserted, not yet checked
    VALIDATED = "validated"  # Every row checked (some may be invalid)
    APPROVED = "approved"  # Admin approved; merge in progress or resumable
    MERGED = "merged"  # New rows copied into leads
    REJECTED = "rejected"  # Abandoned by an admin


@dataclass(frozen=True)
class ParsedRow:
    """One data row after header aliasing. ``source_row`` is 1-based."""

    source_row: int
    fields: dict[str, str | None]


@dataclass(frozen=True)
class UploadBatch:
    batch_id: UUID
    filename: str
    source: str
    status: BatchStatus
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    inserted_rows: int = 0
    skipped_rows: int = 0
    insert_errors: int = 0
    uploaded_by: UUID | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    merged_at: datetime | None = None
    rejected_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class StagingRow:
    row_id: UUID
    batch_id: UUID
    source_row: int
    fields: dict[str, str | None]
    email_norm: str | None = None
    company_norm: str | None = None
    validation_errors: str | None = None
    is_valid: bool = False
    merged_lead_id: UUID | None = None


@dataclass(frozen=True)
class StagingSummary:
    """Result of staging one uploaded file."""

    batch_id: UUID
    total_rows: int
    staged_rows: int
    insert_errors: int


@dataclass(frozen=True)
class ValidationSummary:
    batch_id: UUID
    total_rows: int
    valid_rows: int
    invalid_rows: int


@dataclass(frozen=True)
class MergeResult:
    batch_id: UUID
    valid_rows: int
    inserted_rows: int
    skipped_rows: int
    inserted_lead_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class RowValidation:
    """Outcome of validating one staging row."""

    errors: tuple[Any, ...] = ()
    email_norm: str | None = None
    company_norm: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors
