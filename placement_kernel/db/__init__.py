"""Database layer - engine, base classes, column types."""

from placement_kernel.db.base import Base, StringList, TrackedBase, UUIDString
from placement_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "StringList",
    "UUIDString",
]
