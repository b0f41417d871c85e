"""
Typed Exception Hierarchy for the Club Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the ledger can surface to a caller has its own class with:
  1. A static ``code`` attribute (machine-readable, API-safe)
  2. Structured attributes carrying the offending values
  3. A human-readable message

Callers catch by type and answer with ``e.code``; they never parse
message strings.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ClubLedgerError (base)
    |
    +-- ValidationError                 -- rejected before any write
    |   +-- InvalidAmountError
    |   +-- InvalidDateRangeError
    |   +-- InvalidDuesPeriodError
    |   +-- InvalidReferenceKindError
    |   +-- MissingReferenceIdError
    |   +-- InvalidStatusError
    |   +-- EmptyBatchError
    |   +-- BatchTooLargeError
    |
    +-- NotFoundError                   -- 404-equivalent, no partial state
    |   +-- PaymentNotFoundError
    |   +-- ReferenceNotFoundError
    |   +-- MemberNotFoundError
    |   +-- MonthlyFeeNotFoundError
    |   +-- NoMembersError
    |   +-- CashBookEntryNotFoundError
    |
    +-- ConflictError                   -- duplicate natural key, no write
    |   +-- DuplicateMonthlyFeeError
    |   +-- DuplicateAttendanceError
    |
    +-- ReferenceOwnershipMismatchError -- no write
    |
    +-- PermissionDeniedError           -- authorization gate refused
    |
    +-- PersistenceFailure              -- store fault, transaction rolled back

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|------------------------------------
Validation   | INVALID_AMOUNT               | Amount missing, zero or negative
             | INVALID_DATE_RANGE           | start date after end date
             | INVALID_DUES_PERIOD          | month not 1-12 / year out of window
             | INVALID_REFERENCE_KIND       | kind outside the closed set
             | MISSING_REFERENCE_ID         | settleable kind without an id
             | INVALID_STATUS               | enum value outside its set
             | EMPTY_BATCH                  | bulk call with no records
             | BATCH_TOO_LARGE              | bulk call above max_batch_size
-------------|------------------------------|------------------------------------
Not found    | PAYMENT_NOT_FOUND            | payment id doesn't exist
             | REFERENCE_NOT_FOUND          | referenced row doesn't exist
             | MEMBER_NOT_FOUND             | member id doesn't exist
             | NO_MEMBERS                   | dues generation with no members
             | CASH_BOOK_ENTRY_NOT_FOUND    | ledger row id doesn't exist
-------------|------------------------------|------------------------------------
Conflict     | DUPLICATE_MONTHLY_FEE        | (member, month, year) exists
             | DUPLICATE_ATTENDANCE         | (member, kind, event id) exists
-------------|------------------------------|------------------------------------
Ownership    | REFERENCE_OWNERSHIP_MISMATCH | reference owned by another member
Permission   | PERMISSION_DENIED            | gate refused (actor, resource, action)
Persistence  | PERSISTENCE_FAILURE          | store fault; retryable

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Map categories, not messages:

    except NotFoundError as e:
        return 404, {"error": e.code, "message": str(e)}
    except ValidationError as e:
        return 400, {"error": e.code, "message": str(e)}

2. Batch skips are NOT errors.  A large ``BatchResult.skipped`` is a normal
   outcome of re-running a generation; only a raised exception means the
   batch was rolled back.

3. PersistenceFailure is retryable.  The active transaction has already
   been rolled back when the caller sees it.
"""

from datetime import date
from decimal import Decimal


class ClubLedgerError(Exception):
    """
    Base exception for all club ledger errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CLUB_LEDGER_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(ClubLedgerError):
    """Input rejected before any write."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Monetary amount is missing, not a finite number, zero or negative."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal | None):
        self.amount = amount
        super().__init__(f"Amount must be greater than zero, got {amount}")


class InvalidDateRangeError(ValidationError):
    """Date window is inverted or incomplete."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: date | None, end_date: date | None, reason: str = ""):
        self.start_date = start_date
        self.end_date = end_date
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Invalid date range {start_date} .. {end_date}{detail}"
        )


class InvalidDuesPeriodError(ValidationError):
    """Month or year outside the accepted window for dues generation."""

    code: str = "INVALID_DUES_PERIOD"

    def __init__(self, field: str, value: int, minimum: int, maximum: int):
        self.field = field
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"{field.capitalize()} must be between {minimum} and {maximum}, got {value}"
        )


class InvalidReferenceKindError(ValidationError):
    """Reference kind is not one of the closed set."""

    code: str = "INVALID_REFERENCE_KIND"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Invalid reference type: {kind!r}")


class MissingReferenceIdError(ValidationError):
    """A settleable reference kind was given without a reference id."""

    code: str = "MISSING_REFERENCE_ID"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Reference type {kind!r} requires a reference id")


class InvalidStatusError(ValidationError):
    """Enum-valued field outside its allowed values."""

    code: str = "INVALID_STATUS"

    def __init__(self, field: str, value: str, allowed: tuple[str, ...]):
        self.field = field
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid {field} {value!r}; expected one of {', '.join(allowed)}"
        )


class EmptyBatchError(ValidationError):
    """Bulk operation called without any records."""

    code: str = "EMPTY_BATCH"

    def __init__(self, task_type: str):
        self.task_type = task_type
        super().__init__(f"Records array is required for {task_type}")


class BatchTooLargeError(ValidationError):
    """Bulk operation exceeds the configured batch size."""

    code: str = "BATCH_TOO_LARGE"

    def __init__(self, task_type: str, size: int, max_size: int):
        self.task_type = task_type
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"Batch {task_type} has {size} records; the maximum is {max_size}"
        )


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(ClubLedgerError):
    """Requested record does not exist."""

    code: str = "NOT_FOUND"


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"No payment found with ID {payment_id}")


class ReferenceNotFoundError(NotFoundError):
    """Referenced registration / monthly fee / event was not found."""

    code: str = "REFERENCE_NOT_FOUND"

    def __init__(self, kind: str, reference_id: str):
        self.kind = kind
        self.reference_id = reference_id
        super().__init__(f"No {kind} found with ID {reference_id}")


class MemberNotFoundError(NotFoundError):
    """Member with given ID was not found."""

    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(f"Member with ID {member_id} not found")


class NoMembersError(NotFoundError):
    """Dues generation found no active members."""

    code: str = "NO_MEMBERS"

    def __init__(self):
        super().__init__("No active members found")


class MonthlyFeeNotFoundError(NotFoundError):
    """Monthly fee with given ID was not found."""

    code: str = "MONTHLY_FEE_NOT_FOUND"

    def __init__(self, fee_id: str):
        self.fee_id = fee_id
        super().__init__(f"No monthly fee found with ID {fee_id}")


class CashBookEntryNotFoundError(NotFoundError):
    """Cash book entry with given ID was not found."""

    code: str = "CASH_BOOK_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"No cash book entry found with ID {entry_id}")


# =============================================================================
# Conflict
# =============================================================================


class ConflictError(ClubLedgerError):
    """Natural-key duplicate encountered outside the batch skip path."""

    code: str = "CONFLICT"


class DuplicateMonthlyFeeError(ConflictError):
    """A monthly fee already exists for (member, month, year)."""

    code: str = "DUPLICATE_MONTHLY_FEE"

    def __init__(self, member_id: str, month: int, year: int):
        self.member_id = member_id
        self.month = month
        self.year = year
        super().__init__(
            f"A monthly fee for member {member_id}, {month}/{year} already exists"
        )


class DuplicateAttendanceError(ConflictError):
    """An attendance record already exists for (member, event kind, event id)."""

    code: str = "DUPLICATE_ATTENDANCE"

    def __init__(self, member_id: str, event_kind: str, event_id: str):
        self.member_id = member_id
        self.event_kind = event_kind
        self.event_id = event_id
        super().__init__(
            f"Attendance record already exists for member {member_id} "
            f"and {event_kind} {event_id}"
        )


# =============================================================================
# Ownership / permission / persistence
# =============================================================================


class ReferenceOwnershipMismatchError(ClubLedgerError):
    """The referenced row belongs to a different member than the payment."""

    code: str = "REFERENCE_OWNERSHIP_MISMATCH"

    def __init__(
        self,
        kind: str,
        reference_id: str,
        owner_id: str,
        member_id: str,
    ):
        self.kind = kind
        self.reference_id = reference_id
        self.owner_id = owner_id
        self.member_id = member_id
        super().__init__(
            f"This {kind} does not belong to the specified member "
            f"(owner {owner_id}, payment member {member_id})"
        )


class PermissionDeniedError(ClubLedgerError):
    """Authorization gate refused the action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: str, resource: str, action: str):
        self.actor_id = actor_id
        self.resource = resource
        self.action = action
        super().__init__(
            f"Actor {actor_id} may not {action} {resource}"
        )


class PersistenceFailure(ClubLedgerError):
    """
    Store-level fault.

    Always raised after the active transaction has been rolled back.
    Retryable from the caller's point of view.
    """

    code: str = "PERSISTENCE_FAILURE"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")
