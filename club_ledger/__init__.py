"""
Club Ledger - financial kernel for the club administration backend.

Keeps the cash book consistent with individual payments and with the
business records those payments settle:
- Polymorphic reference resolution (registration, monthly fee, event)
- Payment reconciliation across payment, ledger mirror and settlement
- Atomic reversal on payment deletion
- Read-only income/expense and dues statistics
"""

__version__ = "0.1.0"
