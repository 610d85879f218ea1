"""Production lead records."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lead_kernel.db.base import TrackedBase, UUIDString

# Column order for CSV export of unlocked leads.
LEAD_EXPORT_COLUMNS: tuple[str, ...] = (
    "id",
    "company",
    "contact_name",
    "contact_title",
    "email",
    "phone",
    "website",
    "industry",
    "state",
    "city",
    "regulation_type",
    "filing_date",
    "sec_filing_url",
    "is_premium",
    "intelligence_score",
    "created_at",
)


class Lead(TrackedBase):
    """
    One contact lead.

    email_norm / company_norm are the dedup identity keys written by the
    merge engine; they are indexed because every merged staging row probes
    them.
    """

    __tablename__ = "leads"

    __table_args__ = (
        Index("ix_leads_email_norm", "email_norm"),
        Index("ix_leads_company_norm", "company_norm"),
    )

    company: Mapped[str | None] = mapped_column(String(300))
    contact_name: Mapped[str | None] = mapped_column(String(300))
    contact_title: Mapped[str | None] = mapped_column(String(300))
    email: Mapped[str | None] = mapped_column(String(320))
    phone: Mapped[str | None] = mapped_column(String(64))
    website: Mapped[str | None] = mapped_column(String(500))
    industry: Mapped[str | None] = mapped_column(String(200))
    state: Mapped[str | None] = mapped_column(String(64))
    city: Mapped[str | None] = mapped_column(String(200))
    regulation_type: Mapped[str | None] = mapped_column(String(100))
    filing_date: Mapped[str | None] = mapped_column(String(10))
    sec_filing_url: Mapped[str | None] = mapped_column(Text)
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    intelligence_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    email_norm: Mapped[str | None] = mapped_column(String(320))
    company_norm: Mapped[str | None] = mapped_column(String(300))
    source_batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def export_row(self) -> dict[str, Any]:
        return {column: getattr(self, column) for column in LEAD_EXPORT_COLUMNS}

    def __repr__(self) -> str:
        return f"<Lead {self.company!r} {self.email!r}>"
