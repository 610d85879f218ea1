"""
Module: lead_kernel.db.store
Responsibility: The explicitly constructed, request-scoped store handle.
    Owns a session factory and hands each unit of work a fresh session in
    its own transaction, retrying the whole unit on transient conflicts.
Architecture position: Kernel > DB.  Used by lead_services.gateway; never a
    process-wide singleton.

Invariants enforced:
    - A unit of work commits entirely or not at all.
    - Retried units always start from a fresh session; nothing from a failed
      attempt is reused.

Failure modes:
    - ConcurrencyConflictError once transient conflicts exhaust max_attempts.
    - Any other exception from the unit propagates after rollback.
"""

import time
from collections.abc import Callable
from contextlib import contextmanager
from typing import Generator, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from lead_kernel.exceptions import ConcurrencyConflictError
from lead_kernel.logging_config import get_logger

logger = get_logger("db.store")

T = TypeVar("T")

# SQLSTATE serialization_failure / deadlock_detected
_TRANSIENT_PG_CODES = frozenset({"40001", "40P01"})
_TRANSIENT_MARKERS = ("database is locked", "deadlock", "could not serialize")


def is_transient_conflict(exc: BaseException) -> bool:
    """True when the database error is worth retrying with a fresh transaction."""
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in _TRANSIENT_PG_CODES:
        return True
    if isinstance(exc, OperationalError):
        text = str(exc.orig).lower()
        return any(marker in text for marker in _TRANSIENT_MARKERS)
    return False


class LeadStore:
    """
    Request-scoped store handle.

    Construct one per engine (or session factory) and pass it explicitly to
    whatever orchestrates units of work.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        max_attempts: int = 5,
        backoff_seconds: float = 0.05,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds

    @classmethod
    def from_engine(cls, engine: Engine, **kwargs) -> "LeadStore":
        return cls(sessionmaker(bind=engine, expire_on_commit=False), **kwargs)

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """One session, one transaction: commit on success, rollback on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def run(self, work: Callable[[Session], T], operation: str) -> T:
        """
        Execute ``work(session)`` inside a transaction, retrying transient
        conflicts with linear back-off.
        """
        for attempt in range(1, self._max_attempts + 1):
            try:
                with self.transaction() as session:
                    return work(session)
            except DBAPIError as exc:
                if not is_transient_conflict(exc):
                    raise
                logger.warning(
                    "transaction_conflict_retry",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                    },
                )
                if attempt < self._max_attempts:
                    time.sleep(self._backoff_seconds * attempt)

        logger.error(
            "transaction_conflict_exhausted",
            extra={"operation": operation, "attempts": self._max_attempts},
        )
        raise ConcurrencyConflictError(operation, self._max_attempts)
