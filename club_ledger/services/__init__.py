"""Ledger write services.  All flush within the caller's transaction."""

from club_ledger.services.attendance_service import AttendanceService
from club_ledger.services.base import BaseService
from club_ledger.services.dues_service import DuesService
from club_ledger.services.ledger_writer import LedgerWriter
from club_ledger.services.payment_reconciler import PaymentReconciler
from club_ledger.services.reference_resolver import ReferenceResolver, ResolvedReference

__all__ = [
    "AttendanceService",
    "BaseService",
    "DuesService",
    "LedgerWriter",
    "PaymentReconciler",
    "ReferenceResolver",
    "ResolvedReference",
]
