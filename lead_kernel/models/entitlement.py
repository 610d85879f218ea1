"""Durable dataset access grants: one row per (user, dataset, record)."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from lead_kernel.db.base import Base, UUIDString


class DatasetAccess(Base):
    """
    Permanent entitlement of one user to one record.

    The unique constraint makes grant creation idempotent; rows are never
    updated or deleted (db/immutability.py).
    """

    __tablename__ = "dataset_access"

    __table_args__ = (
        UniqueConstraint("user_id", "dataset", "record_id", name="uq_dataset_access_grant"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    dataset: Mapped[str] = mapped_column(String(50), nullable=False)
    record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    ledger_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("credit_ledger.id"),
        nullable=True,
    )
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<DatasetAccess {self.user_id} {self.dataset}:{self.record_id}>"
