"""Tests for the claim-cap business rule engine."""

import pytest

from lead_kernel.domain.business_rules import (
    DEFAULT_CLAIM_POLICY,
    BusinessMode,
    ClaimPolicy,
    ClaimStatus,
    claim_cap,
    evaluate,
)
from lead_kernel.exceptions import InvalidInputError


class TestBusinessModeParse:

    @pytest.mark.parametrize("raw", ["hybrid", "HYBRID", "  Hybrid "])
    def test_hybrid_spellings(self, raw):
        assert BusinessMode.parse(raw) is BusinessMode.HYBRID

    def test_exclusive_only(self):
        assert BusinessMode.parse("exclusive_only") is BusinessMode.EXCLUSIVE_ONLY

    def test_enum_passthrough(self):
        assert BusinessMode.parse(BusinessMode.EXCLUSIVE_ONLY) is BusinessMode.EXCLUSIVE_ONLY

    @pytest.mark.parametrize("raw", ["exclusive", "", "shared", "premium"])
    def test_unknown_mode_rejected(self, raw):
        with pytest.raises(InvalidInputError) as exc_info:
            BusinessMode.parse(raw)
        assert exc_info.value.field == "business_rule"
        assert exc_info.value.code == "INVALID_INPUT"


class TestClaimCap:

    def test_exclusive_only_ignores_premium(self):
        assert claim_cap(BusinessMode.EXCLUSIVE_ONLY, False) == 1
        assert claim_cap(BusinessMode.EXCLUSIVE_ONLY, True) == 1

    def test_hybrid_premium_is_exclusive(self):
        assert claim_cap(BusinessMode.HYBRID, True) == 1

    def test_hybrid_shared(self):
        assert claim_cap(BusinessMode.HYBRID, False) == 3

    def test_custom_policy(self):
        policy = ClaimPolicy(shared_cap=5, premium_cap=2)
        assert claim_cap(BusinessMode.HYBRID, False, policy) == 5
        assert claim_cap(BusinessMode.HYBRID, True, policy) == 2


class TestEvaluate:

    def test_already_entitled_is_downloaded(self):
        result = evaluate(BusinessMode.EXCLUSIVE_ONLY, False, claimants=1, already_entitled=True)
        assert result.status is ClaimStatus.DOWNLOADED
        assert result.capacity_label == "unlocked"
        assert not result.is_claimable

    def test_exclusive_unclaimed_available(self):
        result = evaluate(BusinessMode.EXCLUSIVE_ONLY, False, claimants=0, already_entitled=False)
        assert result.status is ClaimStatus.AVAILABLE
        assert result.capacity_label == "0/1"
        assert result.is_claimable

    def test_exclusive_claimed_locked(self):
        result = evaluate(BusinessMode.EXCLUSIVE_ONLY, False, claimants=1, already_entitled=False)
        assert result.status is ClaimStatus.LOCKED
        assert result.capacity_label == "1/1"

    def test_hybrid_premium_locked_after_one(self):
        result = evaluate(BusinessMode.HYBRID, True, claimants=1, already_entitled=False)
        assert result.status is ClaimStatus.LOCKED

    @pytest.mark.parametrize("claimants,label", [(0, "0/3"), (1, "1/3"), (2, "2/3")])
    def test_hybrid_shared_available_below_cap(self, claimants, label):
        result = evaluate(BusinessMode.HYBRID, False, claimants, already_entitled=False)
        assert result.status is ClaimStatus.AVAILABLE
        assert result.capacity_label == label

    def test_hybrid_shared_locked_at_cap(self):
        result = evaluate(BusinessMode.HYBRID, False, claimants=3, already_entitled=False)
        assert result.status is ClaimStatus.LOCKED
        assert result.capacity_label == "3/3"

    def test_over_cap_label_is_clamped(self):
        # Counts above the cap can exist after a policy change.
        result = evaluate(BusinessMode.EXCLUSIVE_ONLY, False, claimants=3, already_entitled=False)
        assert result.status is ClaimStatus.LOCKED
        assert result.capacity_label == "1/1"

    def test_cap_reported(self):
        assert evaluate(BusinessMode.HYBRID, False, 0, False).cap == 3


class TestClaimPolicy:

    def test_defaults(self):
        assert DEFAULT_CLAIM_POLICY == ClaimPolicy(1, 1, 3, 1)

    @pytest.mark.parametrize("field", ["exclusive_cap", "premium_cap", "shared_cap", "cost_per_record"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValueError):
            ClaimPolicy(**{field: 0})
