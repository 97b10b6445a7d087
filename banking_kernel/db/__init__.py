"""Database layer - engine and base classes."""

from banking_kernel.db.base import UUID, Base, UUIDString
from banking_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "UUIDString",
    "UUID",
]
