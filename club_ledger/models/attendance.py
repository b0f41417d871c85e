"""
Module: club_ledger.models.attendance
Responsibility: ORM persistence for attendance sheets.
Architecture position: Ledger > Models.  May import from db/base.py only.

Invariants enforced (by AttendanceService and BulkAttendanceTask):
    - At most one record per (member, event kind, event id) when an event id
      is present.  Records without an event id are never de-duplicated.
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.db.base import TimestampedBase, UUIDString


class AttendanceStatus(str, Enum):
    """Attendance outcome for one member at one meeting or event."""

    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"
    LATE = "late"


class AttendanceRecord(TimestampedBase):
    """One member's attendance at one meeting or event."""

    __tablename__ = "attendance_records"

    __table_args__ = (
        Index("idx_attendance_member", "member_id"),
        Index("idx_attendance_event", "event_kind", "event_id"),
        Index("idx_attendance_date", "event_date"),
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    event_kind: Mapped[str] = mapped_column(String(50), nullable=False)
    event_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    recorded_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
