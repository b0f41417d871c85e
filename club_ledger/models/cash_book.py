"""
Module: club_ledger.models.cash_book
Responsibility: ORM persistence for the cash book -- the flat list of income
    and expense rows used for financial reporting.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced (by LedgerWriter):
    - A payment mirror has entry_type == income and
      reference == "payment_id:<payment id>"; its amount and
      transaction_date track the payment's.
    - Manual rows (expenses, donations) carry any free-text reference.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.db.base import TrackedBase


class EntryType(str, Enum):
    """Direction of a cash book row."""

    INCOME = "income"
    EXPENSE = "expense"


class CashBookEntry(TrackedBase):
    """A single cash book row."""

    __tablename__ = "cash_book"

    __table_args__ = (
        Index("idx_cash_book_date", "transaction_date"),
        Index("idx_cash_book_type", "entry_type"),
        Index("idx_cash_book_reference", "reference"),
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    entry_type: Mapped[str] = mapped_column(String(10), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
