"""
Module: club_ledger.models.payment
Responsibility: ORM persistence for individual payments.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced (by PaymentReconciler, not at the ORM level):
    - amount > 0.
    - reference_kind in {registration, monthly_fee, event} implies
      reference_id resolves to an existing row of that kind, owned by
      member_id when both are set (registration / monthly_fee only).
    - Exactly one income CashBookEntry tagged ``payment_id:<id>`` exists
      for every payment.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.db.base import TrackedBase, UUIDString


class PaymentMethod(str, Enum):
    """How the money was received."""

    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class Payment(TrackedBase):
    """
    A single received payment.

    Contract:
        ``reference_kind`` / ``reference_id`` form a polymorphic reference
        to the business record the payment settles.  The pair is resolved
        through the closed dispatch table in ReferenceResolver; no column
        here is a foreign key because the target table depends on the kind.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_member", "member_id"),
        Index("idx_payments_date", "payment_date"),
        Index("idx_payments_reference", "reference_kind", "reference_id"),
    )

    member_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(20),
        default=PaymentMethod.CASH.value,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    @property
    def ledger_tag(self) -> str:
        """Cash book reference tag of this payment's mirror row."""
        return payment_ledger_tag(self.id)


def payment_ledger_tag(payment_id: UUID) -> str:
    """The ``reference`` value carried by a payment's cash book mirror."""
    return f"payment_id:{payment_id}"
