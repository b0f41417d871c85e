"""
Module: club_ledger.models.dues
Responsibility: ORM persistence for recurring monthly dues.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE (member_id, month, year): the natural key used by the
      recurring dues batch for duplicate detection.  A concurrent writer
      that races past the batch's check is stopped here.
    - status == paid  <=>  payment_date is set.  Both are written together
      by ReferenceResolver.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.db.base import TimestampedBase, UUIDString


class MonthlyFeeStatus(str, Enum):
    """Lifecycle of a monthly fee."""

    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"


class MonthlyFee(TimestampedBase):
    """One member's dues for one calendar month."""

    __tablename__ = "monthly_fees"

    __table_args__ = (
        UniqueConstraint("member_id", "month", "year", name="uq_monthly_fee_period"),
        Index("idx_monthly_fees_period", "year", "month"),
        Index("idx_monthly_fees_status", "status"),
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=MonthlyFeeStatus.PENDING.value,
        nullable=False,
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
