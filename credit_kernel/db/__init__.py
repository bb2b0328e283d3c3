"""Database layer - engine, base classes, types, and integrity listeners."""

from credit_kernel.db.base import UUID, Base, UTCDateTime, UUIDString
from credit_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)
from credit_kernel.db.types import Credits, Money, round_money

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "Money",
    "Credits",
    "round_money",
]
