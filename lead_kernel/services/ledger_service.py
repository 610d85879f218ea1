"""
LedgerService -- append-only credit movements.

Responsibility:
    Writes CreditLedgerEntry rows.  Grants (positive or corrective negative
    deltas) come from administrators; unlock debits come from UnlockService.
    Balances are never stored; see LedgerSelector.

Invariants enforced:
    - delta is a nonzero integer.
    - Entries are never updated or deleted (ORM listeners).

Failure modes:
    - InvalidInputError for a zero/non-integer amount or an empty reason.
"""

from typing import Any
from uuid import UUID

from lead_kernel.domain.dtos import LedgerEntryView, LedgerReason
from lead_kernel.exceptions import InvalidInputError
from lead_kernel.logging_config import get_logger
from lead_kernel.models.ledger import CreditLedgerEntry
from lead_kernel.services.base import BaseService

logger = get_logger("services.ledger")

_MAX_REASON_LENGTH = 50


class LedgerService(BaseService):

    def append_entry(
        self,
        user_id: UUID,
        delta: int,
        reason: str,
        actor_id: UUID,
        meta: dict[str, Any] | None = None,
    ) -> CreditLedgerEntry:
        """Append one entry and flush. The caller owns the transaction."""
        entry = CreditLedgerEntry(
            user_id=user_id,
            delta=delta,
            reason=reason,
            meta=meta or {},
            created_at=self.clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(
            "ledger_entry_appended",
            extra={
                "entry_id": str(entry.id),
                "user_id": str(user_id),
                "delta": delta,
                "reason": reason,
            },
        )
        return entry

    def grant_credits(
        self,
        user_id: UUID,
        amount: int,
        actor_id: UUID,
        reason: str = LedgerReason.ADMIN_GRANT.value,
        meta: dict[str, Any] | None = None,
    ) -> LedgerEntryView:
        """
        Credit (or, with a negative amount, correct) a user's balance.

        Raises:
            InvalidInputError: amount is zero or not an integer, or reason
                is empty / too long.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise InvalidInputError("amount must be a nonzero integer", field="amount")
        reason = (reason or "").strip()
        if not reason or len(reason) > _MAX_REASON_LENGTH:
            raise InvalidInputError(
                f"reason must be 1-{_MAX_REASON_LENGTH} characters", field="reason"
            )
        grant_meta = {"granted_by": str(actor_id)}
        grant_meta.update(meta or {})
        return self.append_entry(user_id, amount, reason, actor_id, grant_meta).to_dto()
