"""Read-only selectors over the club ledger."""

from club_ledger.selectors.base import BaseSelector
from club_ledger.selectors.cash_book_selector import CashBookSelector
from club_ledger.selectors.payment_selector import PaymentSelector
from club_ledger.selectors.statistics_selector import StatisticsSelector

__all__ = [
    "BaseSelector",
    "CashBookSelector",
    "PaymentSelector",
    "StatisticsSelector",
]
