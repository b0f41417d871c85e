"""
Module: club_ledger.models.membership
Responsibility: ORM persistence for club members and their membership
    registrations.  Only the columns the reconciler and the batch engine
    read or mutate are modelled here; member CRUD lives outside the ledger.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced:
    - Registration.payment_status is denormalized settlement state: it is
      ``paid`` iff a payment referencing the registration exists (maintained
      by ReferenceResolver, never written directly by the reconciler).
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.db.base import TimestampedBase, UUIDString


class PaymentStatus(str, Enum):
    """Settlement status shared by registrations and event participation."""

    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"


class RegistrationStatus(str, Enum):
    """Approval lifecycle of a membership registration."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Member(TimestampedBase):
    """
    A club member.

    Contract:
        ``is_active`` selects the candidate set for recurring dues
        generation; inactive members keep their history but receive no new
        dues.
    """

    __tablename__ = "members"

    __table_args__ = (
        Index("idx_members_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Member {self.name}>"


class Registration(TimestampedBase):
    """Membership registration, settleable by a payment of kind ``registration``."""

    __tablename__ = "registrations"

    __table_args__ = (
        Index("idx_registrations_member", "member_id"),
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )
    registration_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=RegistrationStatus.PENDING.value,
        nullable=False,
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
