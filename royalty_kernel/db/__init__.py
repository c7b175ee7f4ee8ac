"""Database layer - engine, base classes, types, and immutability listeners."""

from royalty_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from royalty_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
