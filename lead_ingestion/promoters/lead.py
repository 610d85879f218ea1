"""
Lead promoter: valid staging row -> Lead + LeadClaimsRollup.

Duplicate rule: a row matches an existing lead by email_norm first, then by
company_norm when no email match exists.  Leads inserted earlier in the
same merge are visible to later rows, so duplicates inside one batch are
caught too.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lead_ingestion.models.staging import LeadUploadStagingRow
from lead_ingestion.promoters.base import PromoteResult
from lead_kernel.domain.clock import Clock
from lead_kernel.logging_config import get_logger
from lead_kernel.models.claims import LeadClaimsRollup
from lead_kernel.models.lead import Lead

logger = get_logger("ingestion.promoters.lead")


class LeadPromoter:

    def find_duplicate(self, staging_row: LeadUploadStagingRow, session: Session) -> UUID | None:
        if staging_row.email_norm:
            match = session.scalars(
                select(Lead.id).where(Lead.email_norm == staging_row.email_norm).limit(1)
            ).first()
            if match is not None:
                return match
        if staging_row.company_norm:
            return session.scalars(
                select(Lead.id).where(Lead.company_norm == staging_row.company_norm).limit(1)
            ).first()
        return None

    def promote(
        self,
        staging_row: LeadUploadStagingRow,
        session: Session,
        actor_id: UUID,
        clock: Clock,
    ) -> PromoteResult:
        lead = Lead(
            company=staging_row.company_name,
            contact_name=staging_row.full_contact_name,
            contact_title=staging_row.title_role,
            email=staging_row.validated_corporate_email,
            phone=staging_row.phone_number,
            website=staging_row.website,
            state=staging_row.state,
            regulation_type=staging_row.regulation_type,
            filing_date=staging_row.filing_date,
            sec_filing_url=staging_row.sec_filing_url,
            is_premium=False,
            meta={
                "batch_id": str(staging_row.batch_id),
                "source_row": staging_row.source_row,
            },
            email_norm=staging_row.email_norm,
            company_norm=staging_row.company_norm,
            source_batch_id=staging_row.batch_id,
            created_at=clock.now(),
            created_by_id=actor_id,
        )
        session.add(lead)
        session.flush()
        session.add(LeadClaimsRollup(lead_id=lead.id, claimants=0, is_premium=lead.is_premium))
        session.flush()
        logger.debug(
            "lead_promoted",
            extra={"lead_id": str(lead.id), "source_row": staging_row.source_row},
        )
        return PromoteResult(success=True, entity_id=lead.id)
