"""Per-lead claims rollup: how many distinct users hold a grant."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from lead_kernel.db.base import Base, UUIDString


class LeadClaimsRollup(Base):
    """
    Claimant counter for one lead.

    Created alongside the lead with claimants=0 and incremented only inside
    the unlock transaction, by a conditional UPDATE bounded by the cap.
    """

    __tablename__ = "leads_claims_rollup"

    __table_args__ = (
        CheckConstraint("claimants >= 0", name="ck_claims_rollup_nonnegative"),
    )

    lead_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    claimants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
