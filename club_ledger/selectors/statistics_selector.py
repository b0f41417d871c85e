"""
Module: club_ledger.selectors.statistics_selector
Responsibility: Aggregate reports -- the financial report over a closed
    window, monthly fee collection statistics, per-member attendance
    statistics and the attendance roll-up of one event.
Architecture position: Ledger > Selectors.  Read-only.

Invariants enforced:
    - Collection rate = paid amount / total amount, as a two-decimal
      percentage string; "0" when the total is zero.
    - Attendance rate counts late arrivals as attended:
      (present + late) / total.

Failure modes:
    - InvalidDateRangeError when a financial report is missing a bound.
    - MemberNotFoundError for attendance statistics of an unknown member.
    - ReferenceNotFoundError for the roll-up of an unknown club event.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from club_ledger.db.types import format_percentage, round_money, sum_money
from club_ledger.domain.dtos import (
    DateRange,
    DuesPeriodStatistics,
    DuesStatistics,
    EventAttendanceStatistics,
    FinancialReport,
    MemberAttendanceStatistics,
)
from club_ledger.domain.references import ReferenceKind
from club_ledger.exceptions import (
    InvalidDateRangeError,
    MemberNotFoundError,
    ReferenceNotFoundError,
)
from club_ledger.models.attendance import AttendanceRecord, AttendanceStatus
from club_ledger.models.cash_book import CashBookEntry, EntryType
from club_ledger.models.dues import MonthlyFee, MonthlyFeeStatus
from club_ledger.models.event import Event
from club_ledger.models.membership import Member
from club_ledger.selectors.base import (
    BaseSelector,
    apply_date_range,
    group_totals,
    month_key,
)
from club_ledger.selectors.cash_book_selector import (
    UNCATEGORIZED,
    month_totals,
    validate_group_by,
)


class StatisticsSelector(BaseSelector):
    """Read-only aggregate reports."""

    def financial_report(
        self,
        start_date: date | None,
        end_date: date | None,
        group_by: str = "month",
    ) -> FinancialReport:
        """
        Income and expense between two dates, grouped by category (largest
        first) or by month (chronological), plus the monthly series.

        Raises:
            InvalidDateRangeError: A bound is missing or start > end.
            InvalidStatusError: Unknown group_by.
        """
        if start_date is None or end_date is None:
            raise InvalidDateRangeError(
                start_date, end_date, "start date and end date are required",
            )
        validate_group_by(group_by)
        window = DateRange(start_date, end_date)

        stmt = apply_date_range(
            select(CashBookEntry), CashBookEntry.transaction_date, window,
        )
        entries = list(self.session.execute(stmt).scalars())
        incomes = [e for e in entries if e.entry_type == EntryType.INCOME.value]
        expenses = [e for e in entries if e.entry_type == EntryType.EXPENSE.value]

        if group_by == "category":
            def key(e):
                return e.category or UNCATEGORIZED
        else:
            def key(e):
                return month_key(e.transaction_date)
        by_amount = group_by == "category"

        total_income = sum_money(e.amount for e in incomes)
        total_expense = sum_money(e.amount for e in expenses)
        return FinancialReport(
            start_date=start_date,
            end_date=end_date,
            group_by=group_by,
            income=group_totals(incomes, key, lambda e: e.amount, by_amount),
            expense=group_totals(expenses, key, lambda e: e.amount, by_amount),
            total_income=total_income,
            total_expense=total_expense,
            balance=round_money(total_income - total_expense),
            monthly=month_totals(entries),
        )

    def dues_statistics(self, year: int | None = None) -> DuesStatistics:
        """
        Monthly fee totals by status, overall and per (year, month).

        Periods are ordered newest year first, months ascending within a year.
        """
        stmt = select(MonthlyFee)
        if year is not None:
            stmt = stmt.where(MonthlyFee.year == year)
        fees = list(self.session.execute(stmt).scalars())

        def by_status(status: MonthlyFeeStatus) -> list[MonthlyFee]:
            return [f for f in fees if f.status == status.value]

        paid = by_status(MonthlyFeeStatus.PAID)
        pending = by_status(MonthlyFeeStatus.PENDING)
        waived = by_status(MonthlyFeeStatus.WAIVED)
        total_amount = sum_money(f.amount for f in fees)
        paid_amount = sum_money(f.amount for f in paid)

        periods: dict[tuple[int, int], list[MonthlyFee]] = defaultdict(list)
        for fee in fees:
            periods[(fee.year, fee.month)].append(fee)

        return DuesStatistics(
            total_count=len(fees),
            total_amount=total_amount,
            paid_count=len(paid),
            paid_amount=paid_amount,
            pending_count=len(pending),
            pending_amount=sum_money(f.amount for f in pending),
            waived_count=len(waived),
            waived_amount=sum_money(f.amount for f in waived),
            collection_rate=format_percentage(paid_amount, total_amount),
            by_period=tuple(
                _period_statistics(y, m, periods[(y, m)])
                for (y, m) in sorted(periods, key=lambda p: (-p[0], p[1]))
            ),
        )

    def member_attendance(
        self,
        member_id: UUID,
        date_range: DateRange = DateRange(),
    ) -> MemberAttendanceStatistics:
        """Attendance counts and rate for one member."""
        if self.session.get(Member, member_id) is None:
            raise MemberNotFoundError(str(member_id))

        stmt = apply_date_range(
            select(AttendanceRecord.status).where(AttendanceRecord.member_id == member_id),
            AttendanceRecord.event_date,
            date_range,
        )
        counts: dict[str, int] = defaultdict(int)
        total = 0
        for status in self.session.execute(stmt).scalars():
            counts[status] += 1
            total += 1

        present = counts[AttendanceStatus.PRESENT.value]
        late = counts[AttendanceStatus.LATE.value]
        return MemberAttendanceStatistics(
            member_id=member_id,
            total=total,
            present=present,
            absent=counts[AttendanceStatus.ABSENT.value],
            excused=counts[AttendanceStatus.EXCUSED.value],
            late=late,
            attendance_rate=format_percentage(Decimal(present + late), Decimal(total)),
        )

    def event_attendance(self, event_kind: str, event_id: UUID) -> EventAttendanceStatistics:
        """
        Status counts for one (event kind, event id) sheet against the roster.

        For kind ``event`` the id must name a club event.  Other kinds
        (meetings, outings) carry an opaque id and are not checked.
        """
        if event_kind == ReferenceKind.EVENT.value and self.session.get(Event, event_id) is None:
            raise ReferenceNotFoundError(ReferenceKind.EVENT.value, str(event_id))

        rows = self.session.execute(
            select(AttendanceRecord.member_id, AttendanceRecord.status).where(
                AttendanceRecord.event_kind == event_kind,
                AttendanceRecord.event_id == event_id,
            )
        ).all()
        counts: dict[str, int] = defaultdict(int)
        for _, status in rows:
            counts[status] += 1

        recorded_members = {member_id for member_id, _ in rows}
        active_members = set(
            self.session.execute(
                select(Member.id).where(Member.is_active.is_(True))
            ).scalars()
        )
        roster = active_members | recorded_members

        present = counts[AttendanceStatus.PRESENT.value]
        late = counts[AttendanceStatus.LATE.value]
        return EventAttendanceStatistics(
            event_kind=event_kind,
            event_id=event_id,
            roster_size=len(roster),
            recorded=len(rows),
            present=present,
            absent=counts[AttendanceStatus.ABSENT.value],
            excused=counts[AttendanceStatus.EXCUSED.value],
            late=late,
            not_recorded=len(roster - recorded_members),
            attendance_rate=format_percentage(Decimal(present + late), Decimal(len(roster))),
        )


def _period_statistics(year: int, month: int, fees: list[MonthlyFee]) -> DuesPeriodStatistics:
    total = sum_money(f.amount for f in fees)
    paid = sum_money(f.amount for f in fees if f.status == MonthlyFeeStatus.PAID.value)
    pending = sum_money(
        f.amount for f in fees if f.status == MonthlyFeeStatus.PENDING.value
    )
    return DuesPeriodStatistics(
        year=year,
        month=month,
        count=len(fees),
        total_amount=total,
        paid_amount=paid,
        pending_amount=pending,
        collection_rate=format_percentage(paid, total),
    )
