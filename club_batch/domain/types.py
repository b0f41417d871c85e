"""
club_batch.domain.types -- Pure frozen dataclasses for the batch engine.

ZERO I/O.

Invariants enforced:
    - created + skipped == total for every BatchResult.
    - len(created_ids) == created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class BatchCandidate:
    """One row a batch task proposes to insert.

    Created by ``BatchTask.prepare_candidates()``.
    """

    index: int  # 0-indexed position in the batch
    key: str  # Business identifier for logs (e.g. member id)
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchResult:
    """Immutable outcome of a committed batch.

    Returned by ``BatchTransactionEngine.run()``.  A batch that raised has
    no result: it was rolled back in full.
    """

    task_type: str
    created: int
    skipped: int
    total: int
    created_ids: tuple[UUID, ...] = ()
    duration_ms: int = 0

    def __post_init__(self) -> None:
        if self.created + self.skipped != self.total:
            raise ValueError(
                f"created ({self.created}) + skipped ({self.skipped}) "
                f"!= total ({self.total})"
            )
        if len(self.created_ids) != self.created:
            raise ValueError(
                f"{len(self.created_ids)} created ids for {self.created} created rows"
            )
