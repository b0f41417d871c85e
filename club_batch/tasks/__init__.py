"""
club_batch.tasks -- Task protocol and the concrete batch tasks.
"""

from club_batch.tasks.attendance_tasks import BulkAttendanceTask
from club_batch.tasks.base import BatchTask
from club_batch.tasks.dues_tasks import RecurringDuesTask

__all__ = [
    "BatchTask",
    "BulkAttendanceTask",
    "RecurringDuesTask",
]
