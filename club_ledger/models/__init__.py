"""Domain models for the club ledger."""

from club_ledger.models.attendance import AttendanceRecord, AttendanceStatus
from club_ledger.models.cash_book import CashBookEntry, EntryType
from club_ledger.models.dues import MonthlyFee, MonthlyFeeStatus
from club_ledger.models.event import Event, EventParticipation, ParticipationAttendance
from club_ledger.models.membership import (
    Member,
    PaymentStatus,
    Registration,
    RegistrationStatus,
)
from club_ledger.models.payment import Payment, PaymentMethod, payment_ledger_tag

__all__ = [
    "AttendanceRecord",
    "AttendanceStatus",
    "CashBookEntry",
    "EntryType",
    "Event",
    "EventParticipation",
    "Member",
    "MonthlyFee",
    "MonthlyFeeStatus",
    "ParticipationAttendance",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Registration",
    "RegistrationStatus",
    "import_all_models",
    "payment_ledger_tag",
]


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata is complete."""
    from club_ledger.models import (  # noqa: F401
        attendance,
        cash_book,
        dues,
        event,
        membership,
        payment,
    )
