"""
Pytest fixtures for the lead distribution test suite.

Provides:
- A file-backed SQLite database (or DATABASE_URL) created once per session
- Per-test rollback sessions for service/selector tests
- A committed LeadStore for gateway and concurrency tests
- Builders for leads, profiles and credits

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL).  In-memory
  SQLite is not supported.

Do not mix the rollback ``session`` fixture with ``store`` / ``gateway`` in
one test: on SQLite the rollback session holds the write lock until teardown.
"""

import json
import logging
import os
import threading
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from lead_config import get_active_config
from lead_config.bridges import build_claim_policy
from lead_kernel.db.base import Base
from lead_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from lead_kernel.db.immutability import unregister_immutability_listeners
from lead_kernel.db.store import LeadStore
from lead_kernel.domain.clock import DeterministicClock
from lead_kernel.domain.dtos import Role
from lead_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from lead_kernel.models.claims import LeadClaimsRollup
from lead_kernel.models.lead import Lead
from lead_kernel.services.ledger_service import LedgerService
from lead_kernel.services.profile_service import ProfileService
from lead_services.gateway import LeadsGateway
from lead_services.identity import StaticTokenVerifier

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

ADMIN_ID = UUID("00000000-0000-4000-8000-0000000000a1")
USER_ID = UUID("00000000-0000-4000-8000-0000000000b1")
OTHER_USER_ID = UUID("00000000-0000-4000-8000-0000000000b2")

ADMIN_TOKEN = "admin-token"
USER_TOKEN = "user-token"
OTHER_TOKEN = "other-token"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture lead_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            logs = captured_logs()
            assert any(r["message"] == "unlock_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("lead_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


def get_database_url(tmp_dir) -> str:
    """DATABASE_URL from the environment, or a SQLite file in ``tmp_dir``."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_dir / 'leads_test.db'}"


@pytest.fixture(scope="session")
def db_engine(tmp_path_factory):
    """Single engine for the entire test session."""
    db_url = get_database_url(tmp_path_factory.mktemp("db"))
    eng = init_engine_from_url(
        db_url, echo=False,
        pool_size=30, max_overflow=20, pool_timeout=10, busy_timeout=15,
    )
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    unregister_immutability_listeners()
    drop_tables()


def _delete_all_rows(engine):
    """Core DELETE of every table (bypasses the ORM immutability listeners)."""
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection; any
    ``session.commit()`` inside the test releases a savepoint only, and the
    outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Committed-data fixtures (real commits + DELETE cleanup)
# =============================================================================


@pytest.fixture(scope="function")
def store(db_engine, db_tables) -> Generator[LeadStore, None, None]:
    """LeadStore over the session engine. Data is deleted at teardown."""
    yield LeadStore.from_engine(db_engine, backoff_seconds=0.01)
    _delete_all_rows(db_engine)


@pytest.fixture(scope="function")
def session_factory(db_engine, db_tables):
    """Tracked session factory for sessions opened in concurrent threads.

    On teardown: blocks new sessions, closes every tracked session, then
    deletes all data.
    """
    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()
    closed = False

    def tracked_factory():
        nonlocal closed
        with lock:
            if closed:
                raise RuntimeError("session_factory closed (fixture teardown)")
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    with lock:
        closed = True
    for s in created_sessions:
        if s.in_transaction():
            s.rollback()
        s.close()
    _delete_all_rows(db_engine)


# =============================================================================
# Configuration, clock and actors
# =============================================================================


@pytest.fixture(scope="session")
def leads_config():
    return get_active_config()


@pytest.fixture
def ingestion_schema(leads_config):
    return leads_config.ingestion


@pytest.fixture
def claim_policy(leads_config):
    return build_claim_policy(leads_config)


@pytest.fixture
def deterministic_clock():
    """Deterministic clock that ticks one second per read, so rows order strictly."""
    return DeterministicClock(auto_tick=True)


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def buyer_id() -> UUID:
    """A fresh end-user id per test."""
    return uuid4()


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_lead(session, deterministic_clock, test_actor_id):
    """
    Insert a lead and (by default) its claims rollup.

    Usage::

        lead = make_lead(company="Acme", is_premium=True)
    """
    counter = {"n": 0}

    def _make(
        company: str | None = None,
        email: str | None = None,
        phone: str | None = "555-0100",
        contact_name: str | None = "Jane Doe",
        is_premium: bool = False,
        claimants: int = 0,
        with_rollup: bool = True,
    ) -> Lead:
        counter["n"] += 1
        n = counter["n"]
        company = company or f"Company {n}"
        email = email if email is not None else f"contact{n}@company{n}.com"
        lead = Lead(
            company=company,
            contact_name=contact_name,
            contact_title="CFO",
            email=email,
            phone=phone,
            state="CA",
            is_premium=is_premium,
            meta={},
            email_norm=email.lower() if email else None,
            company_norm=company.lower(),
            created_at=deterministic_clock.now(),
            created_by_id=test_actor_id,
        )
        session.add(lead)
        session.flush()
        if with_rollup:
            session.add(
                LeadClaimsRollup(lead_id=lead.id, claimants=claimants, is_premium=is_premium)
            )
            session.flush()
        return lead

    return _make


@pytest.fixture
def fund(session, deterministic_clock, test_actor_id):
    """Grant ``amount`` credits to ``user_id``."""

    def _fund(user_id: UUID, amount: int):
        ProfileService(session, deterministic_clock).ensure_profile(user_id)
        return LedgerService(session, deterministic_clock).grant_credits(
            user_id, amount, actor_id=test_actor_id
        )

    return _fund


# =============================================================================
# Gateway fixtures
# =============================================================================


@pytest.fixture
def verifier() -> StaticTokenVerifier:
    return StaticTokenVerifier(
        {
            ADMIN_TOKEN: ADMIN_ID,
            USER_TOKEN: USER_ID,
            OTHER_TOKEN: OTHER_USER_ID,
        }
    )


@pytest.fixture
def gateway(store, verifier, leads_config, deterministic_clock) -> LeadsGateway:
    """Gateway over committed storage, with ADMIN_ID holding the admin role."""
    store.run(
        lambda s: ProfileService(s, deterministic_clock).set_role(ADMIN_ID, Role.ADMIN),
        "seed_admin",
    )
    return LeadsGateway(store, verifier, leads_config, deterministic_clock)
