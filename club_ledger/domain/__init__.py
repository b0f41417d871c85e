"""Pure domain types for the club ledger: clock, reference kinds, DTOs."""

from club_ledger.domain.clock import Clock, DeterministicClock, SystemClock
from club_ledger.domain.dtos import UNSET, DateRange
from club_ledger.domain.references import ReferenceKind, parse_reference_kind

__all__ = [
    "Clock",
    "DateRange",
    "DeterministicClock",
    "ReferenceKind",
    "SystemClock",
    "UNSET",
    "parse_reference_kind",
]
