"""Database layer - engine, base classes, types."""

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.db.engine import (
    create_database_engine,
    create_session_factory,
    create_tables,
    drop_tables,
    session_scope,
)
from stock_kernel.db.types import Money, Quantity, Sequence

__all__ = [
    "create_database_engine",
    "create_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "Money",
    "Quantity",
    "Sequence",
]
