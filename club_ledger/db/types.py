"""
Module: club_ledger.db.types
Responsibility: Money helpers shared by models, services and selectors.
Architecture position: Ledger > DB.  MUST NOT import from models/, services/
    or selectors/.

Invariants enforced:
    - No floats anywhere in the ledger.  Monetary amounts are Decimal with
      two decimal places; round_money() is the only sanctioned rounding
      function and format_percentage() the only percentage formatter.

Failure modes:
    - InvalidAmountError from to_money() on non-numeric or non-finite input.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from club_ledger.exceptions import InvalidAmountError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for money in the ledger.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_money(value: Decimal | int | str | None) -> Decimal:
    """
    Coerce an inbound amount into a rounded Decimal.

    Floats are rejected: callers pass Decimal, int or a numeric string.

    Raises:
        InvalidAmountError: If value is None, a float, not numeric, NaN,
            infinite, or too large to carry two decimal places.
    """
    if value is None or isinstance(value, (float, bool)):
        raise InvalidAmountError(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(value) from None
    if not amount.is_finite():
        raise InvalidAmountError(value)
    try:
        return round_money(amount)
    except InvalidOperation:
        raise InvalidAmountError(value) from None


def require_positive(value: Decimal | int | str | None) -> Decimal:
    """Coerce with to_money() and reject zero or negative amounts."""
    amount = to_money(value)
    if amount <= 0:
        raise InvalidAmountError(amount)
    return amount


def sum_money(values) -> Decimal:
    """Sum an iterable of Decimals (None treated as zero), rounded."""
    total = ZERO
    for v in values:
        if v is not None:
            total += Decimal(v)
    return round_money(total)


def format_percentage(numerator: Decimal, denominator: Decimal) -> str:
    """
    Percentage of numerator over denominator with two decimals.

    Returns "0" when the denominator is zero.
    """
    if not denominator:
        return "0"
    pct = Decimal(numerator) / Decimal(denominator) * 100
    return str(round_money(pct))
