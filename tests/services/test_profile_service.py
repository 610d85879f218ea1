"""Tests for ProfileService."""

import pytest

from lead_kernel.domain.business_rules import BusinessMode
from lead_kernel.domain.dtos import Role
from lead_kernel.exceptions import InvalidInputError
from lead_kernel.models.profile import UserProfile
from lead_kernel.services.profile_service import ProfileService


@pytest.fixture
def profiles(session, deterministic_clock):
    return ProfileService(session, deterministic_clock)


class TestEnsureProfile:

    def test_creates_defaults(self, profiles, buyer_id):
        profile = profiles.ensure_profile(buyer_id)
        assert profile.id == buyer_id
        assert profile.role == Role.USER.value
        assert profile.mode is BusinessMode.HYBRID
        assert not profile.is_admin

    def test_idempotent(self, session, profiles, buyer_id):
        first = profiles.ensure_profile(buyer_id)
        second = profiles.ensure_profile(buyer_id, lock=True)
        assert first is second
        assert session.query(UserProfile).filter_by(id=buyer_id).count() == 1


class TestSetBusinessRule:

    def test_switch_mode(self, profiles, buyer_id):
        view = profiles.set_business_rule(buyer_id, "exclusive_only")
        assert view.business_rule is BusinessMode.EXCLUSIVE_ONLY
        assert profiles.ensure_profile(buyer_id).mode is BusinessMode.EXCLUSIVE_ONLY

    def test_unknown_mode(self, profiles, buyer_id):
        with pytest.raises(InvalidInputError):
            profiles.set_business_rule(buyer_id, "exclusive")

    def test_logs_change(self, profiles, buyer_id, captured_logs):
        profiles.set_business_rule(buyer_id, BusinessMode.EXCLUSIVE_ONLY)
        records = [r for r in captured_logs() if r["message"] == "business_rule_changed"]
        assert records and records[0]["to"] == "exclusive_only"


class TestSetRole:

    def test_promote_to_admin(self, profiles, buyer_id):
        view = profiles.set_role(buyer_id, Role.ADMIN)
        assert view.role is Role.ADMIN
        assert profiles.ensure_profile(buyer_id).is_admin
