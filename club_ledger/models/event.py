"""
Module: club_ledger.models.event
Responsibility: ORM persistence for club events and per-member participation.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE (event_id, member_id) on participation.
    - Settlement touches only EventParticipation.payment_status;
      attendance_status is owned by attendance intake and never reverted by
      a payment reversal.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.db.base import TimestampedBase, UUIDString
from club_ledger.models.membership import PaymentStatus


class ParticipationAttendance(str, Enum):
    """Attendance state of an event participant."""

    REGISTERED = "registered"
    ATTENDED = "attended"
    ABSENT = "absent"


class Event(TimestampedBase):
    """A club event; payments of kind ``event`` reference this row."""

    __tablename__ = "events"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    fee: Mapped[Decimal | None] = mapped_column(nullable=True)
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)


class EventParticipation(TimestampedBase):
    """A member's enrolment in an event."""

    __tablename__ = "event_participants"

    __table_args__ = (
        UniqueConstraint("event_id", "member_id", name="uq_event_participant"),
    )

    event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("events.id"),
        nullable=False,
    )
    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )
    registration_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
    )
    attendance_status: Mapped[str] = mapped_column(
        String(20),
        default=ParticipationAttendance.REGISTERED.value,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
