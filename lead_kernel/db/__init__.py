from lead_kernel.db.base import Base, TrackedBase, UUIDString
from lead_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    is_sqlite,
    reset_engine,
    session_scope,
)
from lead_kernel.db.store import LeadStore

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "LeadStore",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "is_postgres",
    "is_sqlite",
    "reset_engine",
    "session_scope",
]
