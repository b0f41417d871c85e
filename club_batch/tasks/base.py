"""
BatchTask protocol.

Contract:
    ``BatchTask`` defines the interface every batch task implements.  The
    engine owns the transaction; a task only reads, checks duplicates and
    inserts through the session it is handed.

Architecture:
    club_batch/tasks.  Imports from club_batch.domain and the ledger
    services it delegates to.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session

from club_batch.domain.types import BatchCandidate


@runtime_checkable
class BatchTask(Protocol):
    """Protocol for set-based, duplicate-skipping inserts.

    Contract:
        - ``task_type``: stable string key, used in logs and audit records.
        - ``description``: human-readable label.
        - ``prepare_candidates()``: the ordered candidate rows.  May raise to
          abort before anything is written (e.g. no members).
        - ``find_duplicate()``: True when the candidate's natural key
          already exists.  Sees rows inserted earlier in the same batch.
        - ``insert()``: writes ONE row and returns its id.  Raising aborts
          and rolls back the whole batch.

    Non-goals:
        - Does NOT manage transactions -- the engine owns the scope.
        - Does NOT retry.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_candidates(self, session: Session) -> tuple[BatchCandidate, ...]:
        ...

    def find_duplicate(self, session: Session, candidate: BatchCandidate) -> bool:
        ...

    def insert(self, session: Session, candidate: BatchCandidate, actor_id: UUID) -> UUID:
        ...
