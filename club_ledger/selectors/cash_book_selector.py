"""
Module: club_ledger.selectors.cash_book_selector
Responsibility: Cash book summaries and listings.
Architecture position: Ledger > Selectors.  Read-only.

Invariants enforced:
    - balance == total income - total expense over exactly the rows in the
      window; month rows satisfy the same identity per month.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select

from club_ledger.db.types import ZERO, round_money, sum_money
from club_ledger.domain.dtos import (
    CashBookEntryRecord,
    CashBookFilter,
    CashBookListing,
    CashBookSummary,
    DateRange,
    MonthTotals,
)
from club_ledger.exceptions import InvalidStatusError
from club_ledger.models.cash_book import CashBookEntry, EntryType
from club_ledger.selectors.base import (
    BaseSelector,
    apply_date_range,
    group_totals,
    month_key,
)

GROUP_BY_CHOICES = ("category", "month")
UNCATEGORIZED = "uncategorized"


def validate_group_by(group_by: str | None) -> None:
    if group_by is not None and group_by not in GROUP_BY_CHOICES:
        raise InvalidStatusError("group_by", group_by, GROUP_BY_CHOICES)


def month_totals(entries: Iterable[CashBookEntry]) -> tuple[MonthTotals, ...]:
    """Income, expense and balance per ``YYYY-MM``, ascending."""
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expense: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for entry in entries:
        key = month_key(entry.transaction_date)
        if entry.entry_type == EntryType.INCOME.value:
            income[key] += entry.amount
        else:
            expense[key] += entry.amount

    return tuple(
        MonthTotals(
            month=key,
            income=round_money(income[key]),
            expense=round_money(expense[key]),
            balance=round_money(income[key] - expense[key]),
        )
        for key in sorted(set(income) | set(expense))
    )


class CashBookSelector(BaseSelector):
    """Read-only cash book queries."""

    def _entries(self, date_range: DateRange) -> list[CashBookEntry]:
        stmt = apply_date_range(
            select(CashBookEntry), CashBookEntry.transaction_date, date_range,
        )
        return list(self.session.execute(stmt).scalars())

    def summary(
        self,
        date_range: DateRange = DateRange(),
        group_by: str | None = None,
    ) -> CashBookSummary:
        """
        Total income, expense and balance inside ``date_range``.

        ``group_by="category"`` adds income and expense per category;
        ``group_by="month"`` adds income, expense and balance per month.

        Raises:
            InvalidStatusError: group_by is not None, "category" or "month".
        """
        validate_group_by(group_by)
        entries = self._entries(date_range)
        incomes = [e for e in entries if e.entry_type == EntryType.INCOME.value]
        expenses = [e for e in entries if e.entry_type == EntryType.EXPENSE.value]
        total_income = sum_money(e.amount for e in incomes)
        total_expense = sum_money(e.amount for e in expenses)

        income_by_category = expense_by_category = ()
        by_month = ()
        if group_by == "category":
            income_by_category = group_totals(
                incomes, lambda e: e.category or UNCATEGORIZED, lambda e: e.amount,
            )
            expense_by_category = group_totals(
                expenses, lambda e: e.category or UNCATEGORIZED, lambda e: e.amount,
            )
        elif group_by == "month":
            by_month = month_totals(entries)

        return CashBookSummary(
            total_income=total_income,
            total_expense=total_expense,
            balance=round_money(total_income - total_expense),
            group_by=group_by,
            income_by_category=income_by_category,
            expense_by_category=expense_by_category,
            by_month=by_month,
        )

    def list(self, filters: CashBookFilter = CashBookFilter()) -> CashBookListing:
        """Rows matching ``filters`` (newest first) with their totals."""
        stmt = select(CashBookEntry)
        if filters.entry_type is not None:
            stmt = stmt.where(CashBookEntry.entry_type == filters.entry_type)
        if filters.category is not None:
            stmt = stmt.where(CashBookEntry.category == filters.category)
        stmt = apply_date_range(stmt, CashBookEntry.transaction_date, filters.date_range)
        stmt = stmt.order_by(CashBookEntry.transaction_date.desc(), CashBookEntry.id)
        entries = [CashBookEntryRecord.from_model(e) for e in self.session.execute(stmt).scalars()]

        total_income = sum_money(
            e.amount for e in entries if e.entry_type == EntryType.INCOME.value
        )
        total_expense = sum_money(
            e.amount for e in entries if e.entry_type == EntryType.EXPENSE.value
        )
        return CashBookListing(
            entries=tuple(entries),
            total_income=total_income,
            total_expense=total_expense,
            balance=round_money(total_income - total_expense),
        )
