"""
Credit ledger ORM model.

Append-only: a user's balance is SUM(delta) over their rows and is never
stored.  UPDATE and DELETE are rejected by db/immutability.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lead_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from lead_kernel.domain.dtos import LedgerEntryView


class CreditLedgerEntry(TrackedBase):
    """One signed credit movement for one user."""

    __tablename__ = "credit_ledger"

    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_credit_ledger_delta_nonzero"),
        Index("ix_credit_ledger_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def to_dto(self) -> LedgerEntryView:
        from lead_kernel.domain.dtos import LedgerEntryView

        return LedgerEntryView(
            entry_id=self.id,
            user_id=self.user_id,
            delta=self.delta,
            reason=self.reason,
            meta=dict(self.meta or {}),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<CreditLedgerEntry {self.user_id} {self.delta:+d} {self.reason}>"
