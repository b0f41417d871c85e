"""
DTOs -- Pure data transfer objects for the club ledger.

Responsibility:
    Defines the immutable inputs accepted by the reconciliation services
    (PaymentInput, PaymentPatch, CashBookEntryInput, ...), the records they
    return (PaymentRecord, CashBookEntryRecord), and the read models built
    by the selectors (PaymentStatistics, CashBookSummary, DuesStatistics,
    ...).

Architecture position:
    Ledger > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from services and selectors.

Invariants enforced:
    - Services accept and return DTOs, never ORM entities.
    - Partial updates are typed: every patch field defaults to ``UNSET`` and
      only fields that are present are applied.  ``None`` is a value
      ("clear this field"), distinct from ``UNSET`` ("leave it alone").
    - DateRange rejects start > end at construction.

Failure modes:
    - InvalidDateRangeError on an inverted DateRange.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from club_ledger.exceptions import InvalidDateRangeError

if TYPE_CHECKING:
    from club_ledger.models.cash_book import CashBookEntry
    from club_ledger.models.dues import MonthlyFee
    from club_ledger.models.payment import Payment


class _Unset:
    """Marker for a patch field the caller did not supply."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def _present_fields(patch: Any) -> dict[str, Any]:
    return {
        f.name: getattr(patch, f.name)
        for f in fields(patch)
        if getattr(patch, f.name) is not UNSET
    }


# =============================================================================
# Shared
# =============================================================================


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive calendar window.  Either bound may be open.

    Raises:
        InvalidDateRangeError: If both bounds are set and start > end.
    """

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidDateRangeError(
                self.start, self.end, "start date is after end date",
            )

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None


@dataclass(frozen=True)
class GroupTotal:
    """Count and amount for one group key (method, kind, category, month)."""

    key: str
    count: int
    amount: Decimal


@dataclass(frozen=True)
class MonthTotals:
    """Income, expense and net balance of one ``YYYY-MM`` month."""

    month: str
    income: Decimal
    expense: Decimal
    balance: Decimal


@dataclass(frozen=True)
class Actor:
    """Authenticated caller identity, as handed to the facade."""

    actor_id: UUID
    role: str
    origin: str | None = None


# =============================================================================
# Payments
# =============================================================================


@dataclass(frozen=True)
class PaymentInput:
    """
    Inbound payment.

    ``reference_kind`` may be a ReferenceKind or its string value; the
    reconciler parses it against the closed set.
    """

    amount: Decimal | int | str
    payment_date: date | None = None
    payment_method: str = "cash"
    member_id: UUID | None = None
    description: str | None = None
    reference_kind: Any = None
    reference_id: UUID | None = None


@dataclass(frozen=True)
class PaymentPatch:
    """Typed partial update of a payment.  Absent fields are ``UNSET``."""

    amount: Any = UNSET
    payment_date: Any = UNSET
    payment_method: Any = UNSET
    member_id: Any = UNSET
    description: Any = UNSET
    reference_kind: Any = UNSET
    reference_id: Any = UNSET

    def present_fields(self) -> dict[str, Any]:
        return _present_fields(self)

    def is_empty(self) -> bool:
        return not self.present_fields()

    @property
    def touches_reference(self) -> bool:
        """True when kind, id or member is present (re-resolution needed)."""
        return any(
            getattr(self, name) is not UNSET
            for name in ("reference_kind", "reference_id", "member_id")
        )


@dataclass(frozen=True)
class PaymentRecord:
    """Immutable snapshot of a persisted payment."""

    id: UUID
    amount: Decimal
    payment_date: date
    payment_method: str
    member_id: UUID | None
    description: str | None
    reference_kind: str | None
    reference_id: UUID | None
    created_by_id: UUID
    updated_by_id: UUID | None = None

    @classmethod
    def from_model(cls, payment: Payment) -> PaymentRecord:
        return cls(
            id=payment.id,
            amount=payment.amount,
            payment_date=payment.payment_date,
            payment_method=payment.payment_method,
            member_id=payment.member_id,
            description=payment.description,
            reference_kind=payment.reference_kind,
            reference_id=payment.reference_id,
            created_by_id=payment.created_by_id,
            updated_by_id=payment.updated_by_id,
        )


@dataclass(frozen=True)
class PaymentDetail:
    """A payment with its member name and the resolved reference's status."""

    payment: PaymentRecord
    member_name: str | None = None
    reference_status: str | None = None
    reference_label: str | None = None


@dataclass(frozen=True)
class PaymentFilter:
    member_id: UUID | None = None
    reference_kind: str | None = None
    payment_method: str | None = None
    date_range: DateRange = DateRange()


@dataclass(frozen=True)
class PaymentStatistics:
    """Totals over a window, broken down by method, kind and month."""

    total_count: int
    total_amount: Decimal
    by_method: tuple[GroupTotal, ...] = ()
    by_reference_kind: tuple[GroupTotal, ...] = ()
    by_month: tuple[GroupTotal, ...] = ()


# =============================================================================
# Cash book
# =============================================================================


@dataclass(frozen=True)
class CashBookEntryInput:
    """Manual (non-payment) cash book row."""

    transaction_date: date
    amount: Decimal | int | str
    entry_type: str
    description: str | None = None
    category: str | None = None
    reference: str | None = None


@dataclass(frozen=True)
class CashBookEntryPatch:
    transaction_date: Any = UNSET
    amount: Any = UNSET
    entry_type: Any = UNSET
    description: Any = UNSET
    category: Any = UNSET
    reference: Any = UNSET

    def present_fields(self) -> dict[str, Any]:
        return _present_fields(self)

    def is_empty(self) -> bool:
        return not self.present_fields()


@dataclass(frozen=True)
class CashBookEntryRecord:
    id: UUID
    transaction_date: date
    amount: Decimal
    entry_type: str
    description: str | None
    category: str | None
    reference: str | None

    @classmethod
    def from_model(cls, entry: CashBookEntry) -> CashBookEntryRecord:
        return cls(
            id=entry.id,
            transaction_date=entry.transaction_date,
            amount=entry.amount,
            entry_type=entry.entry_type,
            description=entry.description,
            category=entry.category,
            reference=entry.reference,
        )


@dataclass(frozen=True)
class CashBookFilter:
    entry_type: str | None = None
    category: str | None = None
    date_range: DateRange = DateRange()


@dataclass(frozen=True)
class CashBookListing:
    """Filtered rows plus the totals over exactly those rows."""

    entries: tuple[CashBookEntryRecord, ...]
    total_income: Decimal
    total_expense: Decimal
    balance: Decimal


@dataclass(frozen=True)
class CashBookSummary:
    """
    Cash book totals over a window.

    ``income_by_category`` / ``expense_by_category`` are filled when grouped
    by category; ``by_month`` when grouped by month.
    """

    total_income: Decimal
    total_expense: Decimal
    balance: Decimal
    group_by: str | None = None
    income_by_category: tuple[GroupTotal, ...] = ()
    expense_by_category: tuple[GroupTotal, ...] = ()
    by_month: tuple[MonthTotals, ...] = ()


@dataclass(frozen=True)
class FinancialReport:
    """Income and expense over a closed window, grouped by category or month."""

    start_date: date
    end_date: date
    group_by: str
    income: tuple[GroupTotal, ...]
    expense: tuple[GroupTotal, ...]
    total_income: Decimal
    total_expense: Decimal
    balance: Decimal
    monthly: tuple[MonthTotals, ...] = ()


# =============================================================================
# Dues and attendance
# =============================================================================


@dataclass(frozen=True)
class DuesPeriodStatistics:
    year: int
    month: int
    count: int
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    collection_rate: str


@dataclass(frozen=True)
class DuesStatistics:
    """
    Monthly fee totals by status.

    ``collection_rate`` is paid amount over total amount as a percentage
    string with two decimals, ``"0"`` when nothing is due.
    """

    total_count: int
    total_amount: Decimal
    paid_count: int
    paid_amount: Decimal
    pending_count: int
    pending_amount: Decimal
    waived_count: int
    waived_amount: Decimal
    collection_rate: str
    by_period: tuple[DuesPeriodStatistics, ...] = ()


@dataclass(frozen=True)
class MonthlyFeePatch:
    """
    Typed partial update of a monthly fee.  Absent fields are ``UNSET``.

    ``payment_date`` is only meaningful for a paid fee; leaving the paid
    state clears it.
    """

    member_id: Any = UNSET
    month: Any = UNSET
    year: Any = UNSET
    amount: Any = UNSET
    status: Any = UNSET
    payment_date: Any = UNSET
    notes: Any = UNSET

    def present_fields(self) -> dict[str, Any]:
        return _present_fields(self)

    def is_empty(self) -> bool:
        return not self.present_fields()

    @property
    def touches_period(self) -> bool:
        return any(
            getattr(self, name) is not UNSET for name in ("member_id", "month", "year")
        )


@dataclass(frozen=True)
class MonthlyFeeRecord:
    id: UUID
    member_id: UUID
    month: int
    year: int
    amount: Decimal
    status: str
    payment_date: date | None
    notes: str | None

    @classmethod
    def from_model(cls, fee: MonthlyFee) -> MonthlyFeeRecord:
        return cls(
            id=fee.id,
            member_id=fee.member_id,
            month=fee.month,
            year=fee.year,
            amount=fee.amount,
            status=fee.status,
            payment_date=fee.payment_date,
            notes=fee.notes,
        )


@dataclass(frozen=True)
class AttendanceInput:
    """One line of an attendance sheet."""

    member_id: UUID
    status: str
    notes: str | None = None


@dataclass(frozen=True)
class MemberAttendanceStatistics:
    member_id: UUID
    total: int
    present: int
    absent: int
    excused: int
    late: int
    attendance_rate: str


@dataclass(frozen=True)
class EventAttendanceStatistics:
    """
    Roll-up of one event's attendance sheet.

    ``roster_size`` counts active members plus any other member with a
    record for the event.  ``attendance_rate`` is (present + late) over the
    roster, so members nobody recorded count against the rate.
    """

    event_kind: str
    event_id: UUID
    roster_size: int
    recorded: int
    present: int
    absent: int
    excused: int
    late: int
    not_recorded: int
    attendance_rate: str
