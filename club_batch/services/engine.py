"""
BatchTransactionEngine -- all-or-nothing, duplicate-skipping batch inserts.

Contract:
    Runs a BatchTask inside exactly one transaction: candidates are
    processed sequentially, existing natural keys are skipped, new rows are
    inserted, and the transaction commits once at the end.

Architecture: club_batch/services.  Imports from club_batch.domain,
    club_batch.tasks and the ledger's Store / Clock / logging.

Invariants enforced:
    - Atomicity: any exception from prepare, duplicate check or insert
      rolls back every row of the batch and is re-raised to the caller.
    - Idempotence: re-running a task over the same inputs creates nothing
      and reports every candidate as skipped.
    - created + skipped == total.
"""

from __future__ import annotations

import time
from uuid import UUID

from club_ledger.db.engine import Store
from club_ledger.domain.clock import Clock, SystemClock
from club_ledger.logging_config import LogContext, get_logger

from club_batch.domain.types import BatchResult
from club_batch.tasks.base import BatchTask

logger = get_logger("batch.engine")


class BatchTransactionEngine:
    """Single-transaction batch executor.

    Contract:
        - ``run()`` opens its own ``session_scope()``; callers never pass a
          session in.
        - The store's bounded pool is held by one connection for the whole
          loop; batches are expected to be club-sized (hundreds of rows).

    Non-goals:
        - No per-item isolation: a failing row aborts the batch.
        - No job persistence, scheduling or retry.
    """

    def __init__(self, store: Store, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    def run(self, task: BatchTask, actor_id: UUID) -> BatchResult:
        """Execute ``task`` atomically.

        Returns:
            BatchResult with the created / skipped / total counts and the
            ids of the inserted rows.

        Raises:
            Whatever the task raises, after the batch has been rolled back.
        """
        start_time = time.monotonic()

        with LogContext.bind(batch_task=task.task_type):
            logger.info(
                "batch_started",
                extra={
                    "task_type": task.task_type,
                    "actor_id": str(actor_id),
                    "started_at": self._clock.now(),
                },
            )

            created_ids: list[UUID] = []
            skipped = 0
            total = 0
            try:
                with self._store.session_scope(f"batch:{task.task_type}") as session:
                    candidates = task.prepare_candidates(session)
                    total = len(candidates)

                    for candidate in candidates:
                        if task.find_duplicate(session, candidate):
                            skipped += 1
                            logger.debug(
                                "batch_item_skipped",
                                extra={"index": candidate.index, "key": candidate.key},
                            )
                            continue
                        created_ids.append(task.insert(session, candidate, actor_id))
            except Exception as exc:
                logger.error(
                    "batch_failed",
                    extra={
                        "task_type": task.task_type,
                        "processed": len(created_ids) + skipped,
                        "total": total,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                    },
                )
                raise

            result = BatchResult(
                task_type=task.task_type,
                created=len(created_ids),
                skipped=skipped,
                total=total,
                created_ids=tuple(created_ids),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

            logger.info(
                "batch_completed",
                extra={
                    "task_type": task.task_type,
                    "created_count": result.created,
                    "skipped_count": result.skipped,
                    "total": result.total,
                    "duration_ms": result.duration_ms,
                },
            )
        return result
