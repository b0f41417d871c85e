"""
AttendanceService -- attendance record intake.

Responsibility:
    Duplicate lookup on (member, event kind, event id) and record
    insertion, shared by the bulk attendance batch task and the single
    record path.

Architecture position:
    Ledger > Services.  Flushes within the caller's transaction.

Invariants enforced:
    - Duplicates are only defined when an event id is present; records for
      ad-hoc meetings (no event id) are always inserted.
    - Every record names a known member; a missing member raises
      MemberNotFoundError, which aborts an enclosing batch.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from club_ledger.exceptions import DuplicateAttendanceError, MemberNotFoundError
from club_ledger.logging_config import get_logger
from club_ledger.models.attendance import AttendanceRecord, AttendanceStatus
from club_ledger.models.membership import Member
from club_ledger.services.base import BaseService, coerce_choice

logger = get_logger("services.attendance")


class AttendanceService(BaseService):
    """Attendance writes."""

    def find_duplicate(
        self,
        member_id: UUID,
        event_kind: str,
        event_id: UUID | None,
    ) -> AttendanceRecord | None:
        if event_id is None:
            return None
        return self.session.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.member_id == member_id,
                AttendanceRecord.event_kind == event_kind,
                AttendanceRecord.event_id == event_id,
            )
        ).scalars().first()

    def insert(
        self,
        member_id: UUID,
        event_date: date,
        event_kind: str,
        event_id: UUID | None,
        status: str,
        actor_id: UUID,
        notes: str | None = None,
    ) -> AttendanceRecord:
        """
        Insert one record.  No duplicate check; callers check first.

        Raises:
            MemberNotFoundError: Unknown member.
            InvalidStatusError: Status outside present/absent/excused/late.
        """
        status_value = coerce_choice("status", status, AttendanceStatus)
        if self.session.get(Member, member_id) is None:
            raise MemberNotFoundError(str(member_id))

        record = AttendanceRecord(
            member_id=member_id,
            event_date=event_date,
            event_kind=event_kind,
            event_id=event_id,
            status=status_value,
            recorded_by_id=actor_id,
            notes=notes,
        )
        self.session.add(record)
        self.session.flush()
        return record

    def record(
        self,
        member_id: UUID,
        event_date: date,
        event_kind: str,
        status: str,
        actor_id: UUID,
        event_id: UUID | None = None,
        notes: str | None = None,
    ) -> UUID:
        """
        Record a single attendance outcome.

        Raises:
            DuplicateAttendanceError: A record exists for this member and event.
        """
        if self.find_duplicate(member_id, event_kind, event_id) is not None:
            raise DuplicateAttendanceError(str(member_id), event_kind, str(event_id))

        record = self.insert(
            member_id, event_date, event_kind, event_id, status, actor_id, notes,
        )
        logger.info(
            "attendance_recorded",
            extra={
                "record_id": str(record.id),
                "member_id": str(member_id),
                "event_kind": event_kind,
                "status": record.status,
            },
        )
        return record.id
