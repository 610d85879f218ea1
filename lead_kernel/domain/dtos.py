"""
Immutable value objects passed between kernel services, selectors and the
gateway.  No ORM types leak past this boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from lead_kernel.domain.business_rules import BusinessMode, ClaimStatus


class Role(StrEnum):
    USER = "user"
    ADMIN = "admin"


class Dataset(StrEnum):
    """Datasets that can be unlocked. Only ``leads`` exists."""

    LEADS = "leads"


class LedgerReason(StrEnum):
    ADMIN_GRANT = "admin_grant"
    DEMO_PURCHASE = "demo_purchase"
    UNLOCK = "unlock"


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Carries a machine-readable code, a human-readable message and the
    field it applies to.  Does NOT raise -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class LedgerEntryView:
    entry_id: UUID
    user_id: UUID
    delta: int
    reason: str
    meta: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class UserProfileView:
    user_id: UUID
    role: Role
    business_rule: BusinessMode


@dataclass(frozen=True)
class UnlockResult:
    """
    Outcome of one unlock call.

    ``newly_granted`` are the ids charged for in this call;
    ``entitled_ids`` are every requested id the caller holds afterwards.
    """

    user_id: UUID
    dataset: Dataset
    newly_granted: tuple[UUID, ...]
    cost_charged: int
    balance_after: int
    entitled_ids: tuple[UUID, ...]
    ledger_entry_id: UUID | None = None

    @property
    def already_entitled(self) -> tuple[UUID, ...]:
        granted = set(self.newly_granted)
        return tuple(i for i in self.entitled_ids if i not in granted)


@dataclass(frozen=True)
class LeadView:
    """Catalog row as one viewer sees it."""

    lead_id: UUID
    company: str | None
    contact_name: str | None
    contact_title: str | None
    email: str | None
    phone: str | None
    state: str | None
    is_premium: bool
    status: ClaimStatus
    capacity_label: str
    claimants: int
    masked: bool = field(default=True)
