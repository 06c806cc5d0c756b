"""Database layer - engine, base classes, and column types."""

from yield_kernel.db.base import Base, TrackedBase
from yield_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from yield_kernel.db.types import ADDRESS_LENGTH, RayAmount, UUIDString

__all__ = [
    "build_engine",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
    "Base",
    "TrackedBase",
    "UUIDString",
    "RayAmount",
    "ADDRESS_LENGTH",
]
