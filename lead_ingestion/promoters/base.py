"""
EntityPromoter protocol and PromoteResult.

A promoter turns one validated staging row into a live row.  MergeService
wraps each call in a SAVEPOINT and asks ``find_duplicate`` first, so a
promoter never has to deduplicate inside ``promote``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from lead_ingestion.models.staging import LeadUploadStagingRow
    from lead_kernel.domain.clock import Clock


@dataclass(frozen=True)
class PromoteResult:
    success: bool
    entity_id: UUID | None = None
    error: str | None = None


class EntityPromoter(Protocol):

    def find_duplicate(self, row: LeadUploadStagingRow, session: Session) -> UUID | None:
        """Id of an existing live row with the same identity keys, if any."""
        ...

    def promote(
        self,
        row: LeadUploadStagingRow,
        session: Session,
        actor_id: UUID,
        clock: Clock,
    ) -> PromoteResult:
        ...
