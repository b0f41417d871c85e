"""
Batch task: recurring monthly dues.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from club_ledger.db.types import require_positive
from club_ledger.exceptions import NoMembersError
from club_ledger.models.membership import Member
from club_ledger.services.dues_service import (
    DEFAULT_MAX_YEAR,
    DEFAULT_MIN_YEAR,
    DuesService,
    generated_fee_note,
    validate_period,
)

from club_batch.domain.types import BatchCandidate


class RecurringDuesTask:
    """Create one pending monthly fee per active member for a period.

    Period and amount are validated at construction, before the engine
    opens a transaction.  Members who already have a fee for the period
    are skipped.
    """

    def __init__(
        self,
        month: int,
        year: int,
        amount,
        due_date_note: str | None = None,
        min_year: int = DEFAULT_MIN_YEAR,
        max_year: int = DEFAULT_MAX_YEAR,
    ):
        validate_period(month, year, min_year, max_year)
        self.month = month
        self.year = year
        self.amount = require_positive(amount)
        self.notes = generated_fee_note(month, year, due_date_note)

    @property
    def task_type(self) -> str:
        return "dues.generate_monthly"

    @property
    def description(self) -> str:
        return f"Generate monthly dues for {self.month}/{self.year}"

    def prepare_candidates(self, session: Session) -> tuple[BatchCandidate, ...]:
        member_ids = list(
            session.execute(
                select(Member.id)
                .where(Member.is_active.is_(True))
                .order_by(Member.name, Member.id)
            ).scalars()
        )
        if not member_ids:
            raise NoMembersError()

        return tuple(
            BatchCandidate(
                index=i,
                key=str(member_id),
                payload={"member_id": member_id},
            )
            for i, member_id in enumerate(member_ids)
        )

    def find_duplicate(self, session: Session, candidate: BatchCandidate) -> bool:
        existing = DuesService(session).find_fee(
            candidate.payload["member_id"], self.month, self.year,
        )
        return existing is not None

    def insert(self, session: Session, candidate: BatchCandidate, actor_id: UUID) -> UUID:
        fee = DuesService(session).insert_fee(
            candidate.payload["member_id"],
            self.month,
            self.year,
            self.amount,
            self.notes,
        )
        return fee.id
