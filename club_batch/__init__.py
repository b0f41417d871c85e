"""
club_batch -- Transactional batch inserts for the club ledger.

Runs set-based inserts (recurring monthly dues, bulk attendance sheets)
inside a single transaction: existing natural keys are skipped, new rows
are inserted, and any failure rolls back the whole batch.

Architecture:
    club_batch/ is a top-level package.  Nothing in club_ledger/ imports
    from club_batch; the facade in club_services/ composes both.
"""

from club_batch.domain.types import BatchCandidate, BatchResult
from club_batch.services.engine import BatchTransactionEngine
from club_batch.tasks.attendance_tasks import BulkAttendanceTask
from club_batch.tasks.base import BatchTask
from club_batch.tasks.dues_tasks import RecurringDuesTask

__all__ = [
    "BatchCandidate",
    "BatchResult",
    "BatchTask",
    "BatchTransactionEngine",
    "BulkAttendanceTask",
    "RecurringDuesTask",
]
