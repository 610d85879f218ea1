"""
Business Rule Engine -- claim caps per seller business mode.

Responsibility:
    Pure decision function mapping (mode, premium flag, current claimants,
    caller already entitled) to a claim status and a capacity label.
Architecture position:
    Kernel > Domain -- zero I/O.  The unlock service re-evaluates it against
    locked, fresh claimant counts; display callers use it for labels only.

Rules, evaluated in order:
    1. Caller already entitled     -> downloaded, label "unlocked".
    2. exclusive_only              -> locked once anyone has claimed (cap 1).
    3. hybrid and premium          -> locked once anyone has claimed (cap 1).
    4. hybrid and not premium      -> locked at the shared cap (3).
"""

from dataclasses import dataclass
from enum import StrEnum

from lead_kernel.exceptions import InvalidInputError


class BusinessMode(StrEnum):
    """Per-seller mode governing claim caps."""

    HYBRID = "hybrid"
    EXCLUSIVE_ONLY = "exclusive_only"

    @classmethod
    def parse(cls, value: "str | BusinessMode") -> "BusinessMode":
        """Parse a boundary string; unknown values raise InvalidInputError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise InvalidInputError(
                f"business_rule must be one of: {allowed}",
                field="business_rule",
            ) from None


class ClaimStatus(StrEnum):
    DOWNLOADED = "downloaded"
    AVAILABLE = "available"
    LOCKED = "locked"


@dataclass(frozen=True)
class ClaimPolicy:
    """Claim caps and unlock price. Defaults mirror the shipped configuration."""

    exclusive_cap: int = 1
    premium_cap: int = 1
    shared_cap: int = 3
    cost_per_record: int = 1

    def __post_init__(self) -> None:
        for name in ("exclusive_cap", "premium_cap", "shared_cap", "cost_per_record"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")


DEFAULT_CLAIM_POLICY = ClaimPolicy()


@dataclass(frozen=True)
class RuleEvaluation:
    status: ClaimStatus
    capacity_label: str
    cap: int

    @property
    def is_claimable(self) -> bool:
        return self.status is ClaimStatus.AVAILABLE


def claim_cap(
    mode: BusinessMode,
    is_premium: bool,
    policy: ClaimPolicy = DEFAULT_CLAIM_POLICY,
) -> int:
    """Maximum distinct claimants a record may have under ``mode``."""
    if mode is BusinessMode.EXCLUSIVE_ONLY:
        return policy.exclusive_cap
    if is_premium:
        return policy.premium_cap
    return policy.shared_cap


def evaluate(
    mode: BusinessMode,
    is_premium: bool,
    claimants: int,
    already_entitled: bool,
    policy: ClaimPolicy = DEFAULT_CLAIM_POLICY,
) -> RuleEvaluation:
    """Decide whether the caller may claim a record."""
    cap = claim_cap(mode, is_premium, policy)
    if already_entitled:
        return RuleEvaluation(ClaimStatus.DOWNLOADED, "unlocked", cap)
    if claimants >= cap:
        return RuleEvaluation(ClaimStatus.LOCKED, f"{cap}/{cap}", cap)
    return RuleEvaluation(ClaimStatus.AVAILABLE, f"{max(claimants, 0)}/{cap}", cap)
