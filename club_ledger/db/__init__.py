"""Database layer: declarative base, column types and the Store handle."""

from club_ledger.db.base import Base, TimestampedBase, TrackedBase, UUIDString
from club_ledger.db.engine import Store

__all__ = [
    "Base",
    "Store",
    "TimestampedBase",
    "TrackedBase",
    "UUIDString",
]
