"""Append-only ORM listeners on ledger entries, grants and merged staging rows."""

import pytest
from sqlalchemy import event, select

from lead_kernel.db.immutability import (
    _LISTENERS,
    _models,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from lead_kernel.exceptions import ImmutabilityViolationError
from lead_kernel.models.entitlement import DatasetAccess
from lead_kernel.models.ledger import CreditLedgerEntry


def _registered() -> list[bool]:
    models = _models()
    return [event.contains(models[name], evt, fn) for name, evt, fn in _LISTENERS]


@pytest.fixture
def granted(session, make_lead, fund, buyer_id, deterministic_clock, claim_policy):
    from lead_kernel.services.unlock_service import UnlockService

    lead = make_lead()
    fund(buyer_id, 1)
    UnlockService(session, deterministic_clock, claim_policy).unlock(buyer_id, [lead.id])
    return session.scalars(select(DatasetAccess).where(DatasetAccess.user_id == buyer_id)).one()


class TestRegistration:

    def test_registered_by_create_tables(self, db_tables):
        assert all(_registered())

    def test_register_is_idempotent(self, db_tables):
        register_immutability_listeners()
        register_immutability_listeners()
        assert all(_registered())

    def test_unregister_then_register(self, db_tables):
        try:
            unregister_immutability_listeners()
            assert not any(_registered())
        finally:
            register_immutability_listeners()
        assert all(_registered())


class TestBlockedWrites:

    def test_grant_update_blocked(self, session, granted):
        granted.dataset = "other"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "DatasetAccess"

    def test_ledger_entry_update_blocked(self, session, fund, buyer_id):
        fund(buyer_id, 5)
        entry = session.scalars(
            select(CreditLedgerEntry).where(CreditLedgerEntry.user_id == buyer_id)
        ).one()
        entry.delta = 500
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, session, granted, captured_logs):
        session.delete(granted)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        record = next(r for r in captured_logs() if r["message"] == "immutability_violation_blocked")
        assert record["operation"] == "DELETE"
        assert record["entity_id"] == str(granted.id)
