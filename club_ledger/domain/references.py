"""
Reference kinds -- the closed set of business records a payment can settle.

Architecture position:
    Ledger > Domain.  Pure; imports only exceptions.

Invariants enforced:
    - Any string outside {registration, monthly_fee, event, other} is
      rejected with InvalidReferenceKindError before anything is read or
      written.
"""

from enum import Enum

from club_ledger.exceptions import InvalidReferenceKindError


class ReferenceKind(str, Enum):
    """What a payment pays for."""

    REGISTRATION = "registration"
    MONTHLY_FEE = "monthly_fee"
    EVENT = "event"
    OTHER = "other"

    @property
    def is_settleable(self) -> bool:
        """True when a payment of this kind mutates a referenced row."""
        return self is not ReferenceKind.OTHER


def parse_reference_kind(value: "ReferenceKind | str | None") -> ReferenceKind | None:
    """
    Coerce an inbound reference kind.

    ``None`` stays ``None`` (a payment with no reference).

    Raises:
        InvalidReferenceKindError: If value is not one of the closed set.
    """
    if value is None or isinstance(value, ReferenceKind):
        return value
    try:
        return ReferenceKind(value)
    except ValueError:
        raise InvalidReferenceKindError(str(value)) from None


def ledger_category(kind: ReferenceKind | None) -> str:
    """Cash book category for a payment mirror: the kind, or ``other``."""
    return (kind or ReferenceKind.OTHER).value
