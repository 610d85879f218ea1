"""
Module: lead_kernel.selectors.entitlement_selector
Responsibility: Read-only views over grants and claim counts, and the
    per-viewer lead catalog (rule status, capacity label, masked preview).
Architecture position: Kernel > Selectors.

The catalog status is advisory display only; the unlock service re-evaluates
the business rule against locked rows before granting anything.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from lead_kernel.domain.business_rules import (
    DEFAULT_CLAIM_POLICY,
    BusinessMode,
    ClaimPolicy,
    evaluate,
)
from lead_kernel.domain.dtos import Dataset, LeadView
from lead_kernel.domain.masking import mask_email, mask_name, mask_phone
from lead_kernel.models.claims import LeadClaimsRollup
from lead_kernel.models.entitlement import DatasetAccess
from lead_kernel.models.lead import Lead
from lead_kernel.models.profile import UserProfile
from lead_kernel.selectors.base import BaseSelector


class EntitlementSelector(BaseSelector):

    def entitled_ids(
        self,
        user_id: UUID,
        dataset: Dataset = Dataset.LEADS,
        record_ids: Iterable[UUID] | None = None,
    ) -> set[UUID]:
        """Record ids ``user_id`` holds a grant for, optionally restricted."""
        stmt = select(DatasetAccess.record_id).where(
            DatasetAccess.user_id == user_id,
            DatasetAccess.dataset == dataset.value,
        )
        if record_ids is not None:
            ids = list(record_ids)
            if not ids:
                return set()
            stmt = stmt.where(DatasetAccess.record_id.in_(ids))
        return set(self.session.scalars(stmt))

    def grant_count(self, user_id: UUID, dataset: Dataset = Dataset.LEADS) -> int:
        return self.session.execute(
            select(func.count(DatasetAccess.id)).where(
                DatasetAccess.user_id == user_id,
                DatasetAccess.dataset == dataset.value,
            )
        ).scalar_one()

    def claimants(self, lead_id: UUID) -> int:
        """Rolled-up claimant count; 0 when the rollup row does not exist yet."""
        value = self.session.execute(
            select(LeadClaimsRollup.claimants).where(LeadClaimsRollup.lead_id == lead_id)
        ).scalar_one_or_none()
        return value or 0

    def distinct_grantees(self, lead_id: UUID, dataset: Dataset = Dataset.LEADS) -> int:
        """Claimant count recomputed from grants, for reconciling the rollup."""
        return self.session.execute(
            select(func.count(func.distinct(DatasetAccess.user_id))).where(
                DatasetAccess.record_id == lead_id,
                DatasetAccess.dataset == dataset.value,
            )
        ).scalar_one()


class LeadCatalogSelector(BaseSelector):
    """Lead listing as one viewer sees it."""

    def __init__(self, session, policy: ClaimPolicy = DEFAULT_CLAIM_POLICY):
        super().__init__(session)
        self.policy = policy

    def _viewer_mode(self, user_id: UUID) -> BusinessMode:
        rule = self.session.execute(
            select(UserProfile.business_rule).where(UserProfile.id == user_id)
        ).scalar_one_or_none()
        return BusinessMode(rule) if rule else BusinessMode.HYBRID

    def list_leads(
        self,
        user_id: UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LeadView]:
        mode = self._viewer_mode(user_id)
        rows = self.session.execute(
            select(Lead, LeadClaimsRollup.claimants)
            .outerjoin(LeadClaimsRollup, LeadClaimsRollup.lead_id == Lead.id)
            .order_by(Lead.created_at.desc(), Lead.id)
            .limit(limit)
            .offset(offset)
        ).all()
        entitled = EntitlementSelector(self.session).entitled_ids(
            user_id, Dataset.LEADS, [lead.id for lead, _ in rows]
        )

        views = []
        for lead, claimants in rows:
            claimants = claimants or 0
            owned = lead.id in entitled
            decision = evaluate(mode, lead.is_premium, claimants, owned, self.policy)
            views.append(
                LeadView(
                    lead_id=lead.id,
                    company=lead.company,
                    contact_name=lead.contact_name if owned else mask_name(lead.contact_name),
                    contact_title=lead.contact_title,
                    email=lead.email if owned else mask_email(lead.email),
                    phone=lead.phone if owned else mask_phone(lead.phone),
                    state=lead.state,
                    is_premium=lead.is_premium,
                    status=decision.status,
                    capacity_label=decision.capacity_label,
                    claimants=claimants,
                    masked=not owned,
                )
            )
        return views
