"""
UnlockService -- the atomic grant-and-debit unit.

Responsibility:
    Decides, under concurrent callers, whether a user may unlock a set of
    records; charges the balance exactly once per first-time unlock; keeps
    the claims rollup in step with the grants.

Architecture position:
    Kernel > Services.  Called by the gateway inside one store transaction.

Invariants enforced:
    - A grant exists iff a matching debit was written in the same
      transaction; SUM of unlock debits == -(grants) * cost_per_record.
    - Claimants never exceed the cap for the caller's mode: the rollup rows
      are locked in lead-id order, re-evaluated, then incremented by a
      conditional UPDATE bounded by the cap.
    - Calls made by one user serialize on that user's profile row, so two
      concurrent unlocks cannot both pass the balance check.
    - Re-requesting already entitled records charges nothing.

Failure modes:
    - InvalidInputError: empty request or unknown dataset.
    - UnknownRecordError: an id names no lead.
    - RecordLockedError: any candidate is at its cap (nothing is written).
    - InsufficientCreditsError: balance < cost (nothing is written).
    - NoEntitledRecordsError: nothing entitled among the request afterwards.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from lead_kernel.domain.business_rules import (
    DEFAULT_CLAIM_POLICY,
    BusinessMode,
    ClaimPolicy,
    evaluate,
)
from lead_kernel.domain.clock import Clock
from lead_kernel.domain.dtos import Dataset, LedgerReason, UnlockResult
from lead_kernel.exceptions import (
    InsufficientCreditsError,
    InvalidInputError,
    NoEntitledRecordsError,
    RecordLockedError,
    UnknownRecordError,
)
from lead_kernel.logging_config import get_logger
from lead_kernel.models.claims import LeadClaimsRollup
from lead_kernel.models.entitlement import DatasetAccess
from lead_kernel.models.lead import Lead
from lead_kernel.selectors.entitlement_selector import EntitlementSelector
from lead_kernel.selectors.ledger_selector import LedgerSelector
from lead_kernel.services.base import BaseService
from lead_kernel.services.ledger_service import LedgerService
from lead_kernel.services.profile_service import ProfileService

logger = get_logger("services.unlock")


def _parse_dataset(dataset: Dataset | str) -> Dataset:
    try:
        return Dataset(dataset)
    except ValueError:
        raise InvalidInputError(f"unknown dataset: {dataset}", field="dataset") from None


class UnlockService(BaseService):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        policy: ClaimPolicy = DEFAULT_CLAIM_POLICY,
    ):
        super().__init__(session, clock)
        self.policy = policy
        self._ledger = LedgerService(session, self.clock)
        self._profiles = ProfileService(session, self.clock)
        self._entitlements = EntitlementSelector(session)

    def unlock(
        self,
        user_id: UUID,
        record_ids: Iterable[UUID],
        dataset: Dataset | str = Dataset.LEADS,
    ) -> UnlockResult:
        dataset = _parse_dataset(dataset)
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            raise InvalidInputError("record_ids must not be empty", field="record_ids")

        # Serializes every unlock of this user, including the balance check.
        profile = self._profiles.ensure_profile(user_id, lock=True)
        mode = profile.mode

        self._require_existing(ids)

        already = self._entitlements.entitled_ids(user_id, dataset, ids)
        candidates = sorted((i for i in ids if i not in already), key=str)

        cost = 0
        entry_id = None
        if candidates:
            caps = self._check_claimable(user_id, mode, candidates)
            cost = self.policy.cost_per_record * len(candidates)
            balance = LedgerSelector(self.session).balance(user_id)
            if balance < cost:
                logger.info(
                    "unlock_insufficient_credits",
                    extra={"user_id": str(user_id), "required": cost, "available": balance},
                )
                raise InsufficientCreditsError(user_id, cost, balance)

            entry = self._ledger.append_entry(
                user_id,
                -cost,
                LedgerReason.UNLOCK.value,
                actor_id=user_id,
                meta={
                    "dataset": dataset.value,
                    "record_ids": [str(i) for i in candidates],
                },
            )
            entry_id = entry.id
            granted_at = self.clock.now()
            for lead_id in candidates:
                self.session.add(
                    DatasetAccess(
                        user_id=user_id,
                        dataset=dataset.value,
                        record_id=lead_id,
                        ledger_entry_id=entry.id,
                        granted_at=granted_at,
                    )
                )
                self._increment_claimants(lead_id, caps[lead_id])
            self.session.flush()

        entitled = self._entitlements.entitled_ids(user_id, dataset, ids)
        if not entitled:
            raise NoEntitledRecordsError(user_id, dataset.value)

        balance_after = LedgerSelector(self.session).balance(user_id)
        logger.info(
            "unlock_committed",
            extra={
                "user_id": str(user_id),
                "dataset": dataset.value,
                "mode": mode.value,
                "requested": len(ids),
                "newly_granted": len(candidates),
                "cost": cost,
                "balance_after": balance_after,
            },
        )
        return UnlockResult(
            user_id=user_id,
            dataset=dataset,
            newly_granted=tuple(candidates),
            cost_charged=cost,
            balance_after=balance_after,
            entitled_ids=tuple(i for i in ids if i in entitled),
            ledger_entry_id=entry_id,
        )

    def _require_existing(self, ids: list[UUID]) -> None:
        found = set(self.session.scalars(select(Lead.id).where(Lead.id.in_(ids))))
        missing = [i for i in ids if i not in found]
        if missing:
            raise UnknownRecordError(missing)

    def _check_claimable(
        self,
        user_id: UUID,
        mode: BusinessMode,
        candidates: list[UUID],
    ) -> dict[UUID, int]:
        """Lock the candidates' rollups, re-evaluate, and return each cap."""
        self._ensure_rollups(candidates)
        rollups = self.session.scalars(
            select(LeadClaimsRollup)
            .where(LeadClaimsRollup.lead_id.in_(candidates))
            .order_by(LeadClaimsRollup.lead_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).all()

        caps: dict[UUID, int] = {}
        locked: list[UUID] = []
        for rollup in rollups:
            decision = evaluate(mode, rollup.is_premium, rollup.claimants, False, self.policy)
            caps[rollup.lead_id] = decision.cap
            if not decision.is_claimable:
                locked.append(rollup.lead_id)

        if locked:
            logger.info(
                "unlock_rejected_locked",
                extra={
                    "user_id": str(user_id),
                    "mode": mode.value,
                    "locked": [str(i) for i in locked],
                },
            )
            raise RecordLockedError(locked)
        return caps

    def _ensure_rollups(self, lead_ids: list[UUID]) -> None:
        """Create missing rollup rows, seeded from existing grants."""
        present = set(
            self.session.scalars(
                select(LeadClaimsRollup.lead_id).where(LeadClaimsRollup.lead_id.in_(lead_ids))
            )
        )
        for lead_id in lead_ids:
            if lead_id in present:
                continue
            is_premium, grants = self.session.execute(
                select(
                    Lead.is_premium,
                    select(func.count(func.distinct(DatasetAccess.user_id)))
                    .where(DatasetAccess.record_id == lead_id)
                    .scalar_subquery(),
                ).where(Lead.id == lead_id)
            ).one()
            savepoint = self.session.begin_nested()
            try:
                self.session.add(
                    LeadClaimsRollup(lead_id=lead_id, claimants=grants, is_premium=is_premium)
                )
                self.session.flush()
                savepoint.commit()
                logger.debug("claims_rollup_created", extra={"lead_id": str(lead_id)})
            except IntegrityError:
                logger.debug("claims_rollup_race_retry", extra={"lead_id": str(lead_id)})
                savepoint.rollback()

    def _increment_claimants(self, lead_id: UUID, cap: int) -> None:
        """Compare-and-swap increment; a miss means the cap was reached."""
        result = self.session.execute(
            update(LeadClaimsRollup)
            .where(
                LeadClaimsRollup.lead_id == lead_id,
                LeadClaimsRollup.claimants < cap,
            )
            .values(claimants=LeadClaimsRollup.claimants + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("claims_rollup_cas_miss", extra={"lead_id": str(lead_id), "cap": cap})
            raise RecordLockedError([lead_id])
