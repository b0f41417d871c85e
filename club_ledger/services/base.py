"""
BaseService -- abstract base for all ledger write services.

Responsibility:
    Common constructor and session contract.  Every write service receives
    a SQLAlchemy ``Session`` and persists through ``session.flush()``,
    never ``session.commit()``.

Architecture position:
    Ledger > Services.

Invariants enforced:
    - Transaction boundaries belong to the caller (the facade's or the
      batch engine's ``session_scope()``).  A service never commits or
      rolls back, so multi-step operations (payment + settlement + ledger
      mirror) are atomic.
"""

from abc import ABC

from sqlalchemy.orm import Session

from club_ledger.exceptions import InvalidStatusError


class BaseService(ABC):
    """
    Abstract base class for all ledger services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read models -- those live in
          ``club_ledger/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session


def coerce_choice(field: str, value, choices) -> str:
    """
    Validate an enum-valued field and return its string value.

    Raises:
        InvalidStatusError: If value is not one of ``choices``.
    """
    allowed = tuple(c.value for c in choices)
    raw = getattr(value, "value", value)
    if raw not in allowed:
        raise InvalidStatusError(field, str(raw), allowed)
    return raw
