"""
Module: club_ledger.selectors.base
Responsibility: Base class and shared helpers for the read-only selectors.
Architecture position: Ledger > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: frozen dataclasses, never ORM instances.
    - Portable grouping: calendar-month buckets are computed in Python from
      fetched dates, so the same selector runs on PostgreSQL and SQLite.
"""

from __future__ import annotations

from abc import ABC
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

from club_ledger.db.types import ZERO, round_money
from club_ledger.domain.dtos import DateRange, GroupTotal

T = TypeVar("T")


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session from the caller, performs read-only queries and
        returns DTOs.  The caller owns the session and its scope.
    """

    def __init__(self, session: Session):
        self.session = session


def month_key(day: date) -> str:
    """Calendar month bucket, ``YYYY-MM``."""
    return f"{day.year:04d}-{day.month:02d}"


def apply_date_range(stmt: Select, column, date_range: DateRange) -> Select:
    """Restrict ``stmt`` to rows whose ``column`` falls inside the window."""
    if date_range.start is not None:
        stmt = stmt.where(column >= date_range.start)
    if date_range.end is not None:
        stmt = stmt.where(column <= date_range.end)
    return stmt


def group_totals(
    rows: Iterable[T],
    key: Callable[[T], str],
    amount: Callable[[T], Decimal],
    order_by_amount: bool = False,
) -> tuple[GroupTotal, ...]:
    """
    Count and sum ``rows`` per key.

    Ordered by key, or by descending amount when ``order_by_amount``.
    """
    counts: dict[str, int] = defaultdict(int)
    sums: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for row in rows:
        k = key(row)
        counts[k] += 1
        sums[k] += amount(row)

    groups = [
        GroupTotal(key=k, count=counts[k], amount=round_money(sums[k]))
        for k in counts
    ]
    if order_by_amount:
        groups.sort(key=lambda g: (-g.amount, g.key))
    else:
        groups.sort(key=lambda g: g.key)
    return tuple(groups)
