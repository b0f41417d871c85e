"""
DuesService -- monthly fee creation and amendment.

Responsibility:
    Period validation, duplicate lookup on the (member, month, year)
    natural key, fee insertion and typed partial updates.  Insertion is
    used row-by-row by the recurring dues batch task, and directly for a
    single fee.

Architecture position:
    Ledger > Services.  Flushes within the caller's transaction.

Invariants enforced:
    - month in 1..12 and year inside the configured window, checked before
      anything is read.
    - One fee per (member, month, year).  The batch path skips existing
      periods; the single-fee and update paths raise
      DuplicateMonthlyFeeError.
    - A fee carries a payment date exactly when it is paid.  Updating a fee
      to paid without a date stamps today; leaving paid clears the date,
      and a date on an unpaid fee is rejected as InvalidStatusError.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from club_ledger.db.types import require_positive
from club_ledger.domain.dtos import MonthlyFeePatch, MonthlyFeeRecord
from club_ledger.exceptions import (
    DuplicateMonthlyFeeError,
    InvalidDateRangeError,
    InvalidDuesPeriodError,
    InvalidStatusError,
    MemberNotFoundError,
    MonthlyFeeNotFoundError,
)
from club_ledger.logging_config import get_logger
from club_ledger.models.dues import MonthlyFee, MonthlyFeeStatus
from club_ledger.models.membership import Member
from club_ledger.services.base import BaseService, coerce_choice

logger = get_logger("services.dues")

DEFAULT_MIN_YEAR = 2000
DEFAULT_MAX_YEAR = 2100


def validate_period(
    month: int,
    year: int,
    min_year: int = DEFAULT_MIN_YEAR,
    max_year: int = DEFAULT_MAX_YEAR,
) -> None:
    """
    Raises:
        InvalidDuesPeriodError: month outside 1..12 or year outside the window.
    """
    if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
        raise InvalidDuesPeriodError("month", month, 1, 12)
    if not isinstance(year, int) or isinstance(year, bool) or not min_year <= year <= max_year:
        raise InvalidDuesPeriodError("year", year, min_year, max_year)


def generated_fee_note(month: int, year: int, due_date_note: str | None) -> str:
    return (
        f"Auto-generated fee for {month}/{year}. "
        f"Due date: {due_date_note or 'Not specified'}"
    )


class DuesService(BaseService):
    """Monthly fee writes."""

    def find_fee(self, member_id: UUID, month: int, year: int) -> MonthlyFee | None:
        return self.session.execute(
            select(MonthlyFee).where(
                MonthlyFee.member_id == member_id,
                MonthlyFee.month == month,
                MonthlyFee.year == year,
            )
        ).scalar_one_or_none()

    def insert_fee(
        self,
        member_id: UUID,
        month: int,
        year: int,
        amount: Decimal,
        notes: str | None = None,
    ) -> MonthlyFee:
        """Insert a pending fee.  No duplicate check; callers check first."""
        fee = MonthlyFee(
            member_id=member_id,
            month=month,
            year=year,
            amount=amount,
            status=MonthlyFeeStatus.PENDING.value,
            notes=notes,
        )
        self.session.add(fee)
        self.session.flush()
        return fee

    def create_fee(
        self,
        member_id: UUID,
        month: int,
        year: int,
        amount: Decimal | int | str,
        notes: str | None = None,
        min_year: int = DEFAULT_MIN_YEAR,
        max_year: int = DEFAULT_MAX_YEAR,
    ) -> UUID:
        """
        Create one member's fee for one period.

        Raises:
            InvalidDuesPeriodError, InvalidAmountError: Rejected input.
            MemberNotFoundError: Unknown member.
            DuplicateMonthlyFeeError: The period already has a fee.
        """
        validate_period(month, year, min_year, max_year)
        fee_amount = require_positive(amount)
        if self.session.get(Member, member_id) is None:
            raise MemberNotFoundError(str(member_id))
        if self.find_fee(member_id, month, year) is not None:
            raise DuplicateMonthlyFeeError(str(member_id), month, year)

        fee = self.insert_fee(member_id, month, year, fee_amount, notes)
        logger.info(
            "monthly_fee_created",
            extra={
                "fee_id": str(fee.id),
                "member_id": str(member_id),
                "month": month,
                "year": year,
                "amount": str(fee_amount),
            },
        )
        return fee.id

    def update_fee(
        self,
        fee_id: UUID,
        patch: MonthlyFeePatch,
        today: date,
        min_year: int = DEFAULT_MIN_YEAR,
        max_year: int = DEFAULT_MAX_YEAR,
    ) -> MonthlyFeeRecord:
        """
        Apply the present fields of ``patch`` to a fee.

        This is the manual override path (waiving a fee, correcting its
        period or amount).  It does not touch payments that reference the
        fee.

        Raises:
            MonthlyFeeNotFoundError: Unknown fee.
            MemberNotFoundError: The new member does not exist.
            InvalidDuesPeriodError, InvalidAmountError, InvalidStatusError:
                Rejected field values.
            InvalidDateRangeError: A paid fee with its payment date cleared.
            DuplicateMonthlyFeeError: The new period is taken by another fee.
        """
        fee = self.session.get(MonthlyFee, fee_id)
        if fee is None:
            raise MonthlyFeeNotFoundError(str(fee_id))
        changes = patch.present_fields()
        if not changes:
            return MonthlyFeeRecord.from_model(fee)

        if "amount" in changes:
            changes["amount"] = require_positive(changes["amount"])
        if "status" in changes:
            changes["status"] = coerce_choice("status", changes["status"], MonthlyFeeStatus)
        changes.update(self._settlement_date(fee, changes, today))

        if patch.touches_period:
            member_id = changes.get("member_id", fee.member_id)
            month = changes.get("month", fee.month)
            year = changes.get("year", fee.year)
            validate_period(month, year, min_year, max_year)
            if member_id is None or self.session.get(Member, member_id) is None:
                raise MemberNotFoundError(str(member_id))
            existing = self.find_fee(member_id, month, year)
            if existing is not None and existing.id != fee.id:
                raise DuplicateMonthlyFeeError(str(member_id), month, year)

        for name, value in changes.items():
            setattr(fee, name, value)
        self.session.flush()

        logger.info(
            "monthly_fee_updated",
            extra={
                "fee_id": str(fee_id),
                "fields": sorted(patch.present_fields()),
                "status": fee.status,
            },
        )
        return MonthlyFeeRecord.from_model(fee)

    @staticmethod
    def _settlement_date(fee: MonthlyFee, changes: dict, today: date) -> dict:
        status = changes.get("status", fee.status)
        if status != MonthlyFeeStatus.PAID.value:
            if changes.get("payment_date") is not None:
                raise InvalidStatusError(
                    "status", status, (MonthlyFeeStatus.PAID.value,),
                )
            return {"payment_date": None}

        if "payment_date" in changes:
            if changes["payment_date"] is None:
                raise InvalidDateRangeError(None, None, "a paid fee needs a payment date")
            return {}
        return {"payment_date": fee.payment_date or today}
