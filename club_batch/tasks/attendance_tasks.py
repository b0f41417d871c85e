"""
Batch task: bulk attendance intake.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from club_ledger.domain.dtos import AttendanceInput
from club_ledger.exceptions import BatchTooLargeError, EmptyBatchError
from club_ledger.models.attendance import AttendanceStatus
from club_ledger.services.attendance_service import AttendanceService
from club_ledger.services.base import coerce_choice

from club_batch.domain.types import BatchCandidate

DEFAULT_MAX_BATCH_SIZE = 500


class BulkAttendanceTask:
    """Record one attendance sheet (one date, one event) in a single batch.

    When ``event_id`` is set, members already recorded for that event are
    skipped.  An unknown member aborts the whole sheet.
    """

    def __init__(
        self,
        event_date: date,
        event_kind: str,
        records: Sequence[AttendanceInput],
        event_id: UUID | None = None,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ):
        if not records:
            raise EmptyBatchError(self.task_type)
        if len(records) > max_batch_size:
            raise BatchTooLargeError(self.task_type, len(records), max_batch_size)
        for record in records:
            coerce_choice("status", record.status, AttendanceStatus)

        self.event_date = event_date
        self.event_kind = event_kind
        self.event_id = event_id
        self.records = tuple(records)

    @property
    def task_type(self) -> str:
        return "attendance.bulk_insert"

    @property
    def description(self) -> str:
        return f"Record {self.event_kind} attendance for {self.event_date.isoformat()}"

    def prepare_candidates(self, session: Session) -> tuple[BatchCandidate, ...]:
        return tuple(
            BatchCandidate(
                index=i,
                key=str(record.member_id),
                payload={"record": record},
            )
            for i, record in enumerate(self.records)
        )

    def find_duplicate(self, session: Session, candidate: BatchCandidate) -> bool:
        record = candidate.payload["record"]
        existing = AttendanceService(session).find_duplicate(
            record.member_id, self.event_kind, self.event_id,
        )
        return existing is not None

    def insert(self, session: Session, candidate: BatchCandidate, actor_id: UUID) -> UUID:
        record = candidate.payload["record"]
        row = AttendanceService(session).insert(
            member_id=record.member_id,
            event_date=self.event_date,
            event_kind=self.event_kind,
            event_id=self.event_id,
            status=record.status,
            actor_id=actor_id,
            notes=record.notes,
        )
        return row.id
