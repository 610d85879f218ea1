"""
Module: lead_kernel.selectors.ledger_selector
Responsibility: Read-only credit ledger queries.  A balance is a derived
    view over CreditLedgerEntry rows -- there are no stored balances.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - balance(user) == SUM(delta) over the user's entries, 0 when none.
"""

from uuid import UUID

from sqlalchemy import func, select

from lead_kernel.domain.dtos import LedgerEntryView, LedgerReason
from lead_kernel.models.ledger import CreditLedgerEntry
from lead_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):

    def balance(self, user_id: UUID) -> int:
        """Derived balance: SUM(delta) over every entry of ``user_id``."""
        total = self.session.execute(
            select(func.coalesce(func.sum(CreditLedgerEntry.delta), 0)).where(
                CreditLedgerEntry.user_id == user_id
            )
        ).scalar_one()
        return int(total)

    def history(self, user_id: UUID, limit: int | None = None) -> list[LedgerEntryView]:
        """Entries for ``user_id``, newest first."""
        stmt = (
            select(CreditLedgerEntry)
            .where(CreditLedgerEntry.user_id == user_id)
            .order_by(CreditLedgerEntry.created_at.desc(), CreditLedgerEntry.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [entry.to_dto() for entry in self.session.scalars(stmt)]

    def unlock_debit_total(self, user_id: UUID) -> int:
        """SUM(delta) over the user's unlock debits (always <= 0)."""
        total = self.session.execute(
            select(func.coalesce(func.sum(CreditLedgerEntry.delta), 0)).where(
                CreditLedgerEntry.user_id == user_id,
                CreditLedgerEntry.reason == LedgerReason.UNLOCK.value,
            )
        ).scalar_one()
        return int(total)
