"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every service in
    the kernel and ingestion layers.  Services receive a SQLAlchemy
    ``Session`` and use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller (the gateway's
    store handle, a script, or the test harness) owns commit/rollback.
    SAVEPOINTs opened with ``session.begin_nested()`` are the only partial
    rollbacks a service may perform.
"""

from abc import ABC

from sqlalchemy.orm import Session

from lead_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Does NOT manage transaction lifecycle and does NOT provide read-only
    queries -- those belong in ``lead_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
