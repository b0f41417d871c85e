"""
Audit sink for committed finance mutations.

The facade hands every committed create / update / delete to an AuditSink
after its transaction has committed.  Sinks are best-effort: the facade
logs a sink failure and carries on; the mutation stays committed.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from club_ledger.logging_config import get_logger

logger = get_logger("audit")


@runtime_checkable
class AuditSink(Protocol):
    """Receives one record per committed mutation."""

    def record(
        self,
        actor_id: UUID,
        action: str,
        entity_kind: str,
        entity_id: UUID | None,
        details: dict[str, Any],
        origin: str | None,
    ) -> None: ...


class LoggingAuditSink:
    """Writes each audit record as a structured ``audit_recorded`` log line."""

    def record(
        self,
        actor_id: UUID,
        action: str,
        entity_kind: str,
        entity_id: UUID | None,
        details: dict[str, Any],
        origin: str | None,
    ) -> None:
        logger.info(
            "audit_recorded",
            extra={
                "audit_actor_id": str(actor_id),
                "audit_action": action,
                "entity_kind": entity_kind,
                "entity_id": str(entity_id) if entity_id is not None else None,
                "details": details,
                "audit_origin": origin,
            },
        )
