"""
ClubFinanceService -- application-facing facade over the club ledger.

Responsibility:
    The single entry point callers (HTTP handlers, scripts, tests) use for
    finance operations.  Each call runs the same pipeline:

        permission check -> session_scope() -> ledger service / batch engine
        -> commit -> audit record

Architecture position:
    Services -- imperative shell.  Composes club_ledger services and
    selectors, the club_batch engine, an AuthorizationGate and an
    AuditSink.  Owns transaction boundaries; the services it calls only
    flush.

Invariants enforced:
    - A denied permission raises PermissionDeniedError before any session
      is opened.
    - Every mutation commits exactly once or not at all.
    - The audit sink is called only after commit.  A sink failure is logged
      (``audit_record_failed``) and never undoes the committed mutation.

Failure modes:
    - Every ClubLedgerError raised by the ledger propagates unchanged, after
      the transaction has been rolled back.
    - PersistenceFailure for store faults (retryable).
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator, Sequence
from uuid import UUID, uuid4

from club_batch.domain.types import BatchResult
from club_batch.services.engine import BatchTransactionEngine
from club_batch.tasks.attendance_tasks import DEFAULT_MAX_BATCH_SIZE, BulkAttendanceTask
from club_batch.tasks.dues_tasks import RecurringDuesTask
from club_ledger.db.engine import Store
from club_ledger.domain.clock import Clock, SystemClock
from club_ledger.domain.dtos import (
    Actor,
    AttendanceInput,
    CashBookEntryInput,
    CashBookEntryPatch,
    CashBookEntryRecord,
    CashBookFilter,
    CashBookListing,
    CashBookSummary,
    DateRange,
    DuesStatistics,
    EventAttendanceStatistics,
    FinancialReport,
    MemberAttendanceStatistics,
    MonthlyFeePatch,
    MonthlyFeeRecord,
    PaymentDetail,
    PaymentFilter,
    PaymentInput,
    PaymentPatch,
    PaymentRecord,
    PaymentStatistics,
)
from club_ledger.logging_config import LogContext, get_logger
from club_ledger.selectors.cash_book_selector import CashBookSelector
from club_ledger.selectors.payment_selector import PaymentSelector
from club_ledger.selectors.statistics_selector import StatisticsSelector
from club_ledger.services.attendance_service import AttendanceService
from club_ledger.services.dues_service import (
    DEFAULT_MAX_YEAR,
    DEFAULT_MIN_YEAR,
    DuesService,
)
from club_ledger.services.ledger_writer import LedgerWriter
from club_ledger.services.payment_reconciler import PaymentReconciler
from club_services.audit import AuditSink, LoggingAuditSink
from club_services.authorization import (
    Action,
    AuthorizationGate,
    Resource,
    RolePermissionGate,
    require,
)

logger = get_logger("services.finance")


class ClubFinanceService:
    """
    Finance facade.

    Contract:
        Every public method takes the calling ``Actor`` first.  Mutations
        return the committed record (or, for deletes, the deleted
        snapshot); reads return selector DTOs.

    Non-goals:
        - Authentication: the caller resolves the Actor.
        - Generic CRUD for members, events and registrations.
    """

    def __init__(
        self,
        store: Store,
        clock: Clock | None = None,
        gate: AuthorizationGate | None = None,
        audit_sink: AuditSink | None = None,
        dues_min_year: int = DEFAULT_MIN_YEAR,
        dues_max_year: int = DEFAULT_MAX_YEAR,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._gate = gate or RolePermissionGate()
        self._audit_sink = audit_sink or LoggingAuditSink()
        self._batch_engine = BatchTransactionEngine(store, self._clock)
        self._dues_min_year = dues_min_year
        self._dues_max_year = dues_max_year
        self._max_batch_size = max_batch_size

    @classmethod
    def from_settings(cls, store: Store, settings, **kwargs) -> ClubFinanceService:
        """Build the facade with the dues window and batch size from settings."""
        return cls(
            store,
            dues_min_year=settings.dues_min_year,
            dues_max_year=settings.dues_max_year,
            max_batch_size=settings.max_batch_size,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Pipeline helpers
    # -------------------------------------------------------------------------

    @contextmanager
    def _operation(
        self,
        actor: Actor,
        resource: Resource,
        action: Action,
    ) -> Iterator[None]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.actor_id),
            origin=actor.origin,
        ):
            require(self._gate, actor, resource, action)
            yield

    def _audit(
        self,
        actor: Actor,
        action: str,
        entity_kind: str,
        entity_id: UUID | None,
        details: dict[str, Any],
    ) -> None:
        try:
            self._audit_sink.record(
                actor_id=actor.actor_id,
                action=action,
                entity_kind=entity_kind,
                entity_id=entity_id,
                details=details,
                origin=actor.origin,
            )
        except Exception:
            logger.exception(
                "audit_record_failed",
                extra={
                    "audit_action": action,
                    "entity_kind": entity_kind,
                    "entity_id": str(entity_id) if entity_id is not None else None,
                },
            )

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def create_payment(self, actor: Actor, data: PaymentInput) -> PaymentRecord:
        with self._operation(actor, Resource.PAYMENT, Action.CREATE):
            with self._store.session_scope("create_payment") as session:
                record = PaymentReconciler(session, self._clock).create(data, actor.actor_id)
            self._audit(actor, "create", "payment", record.id, {
                "amount": record.amount,
                "reference_kind": record.reference_kind,
                "reference_id": record.reference_id,
                "member_id": record.member_id,
            })
            return record

    def update_payment(
        self,
        actor: Actor,
        payment_id: UUID,
        patch: PaymentPatch,
    ) -> PaymentRecord:
        with self._operation(actor, Resource.PAYMENT, Action.UPDATE):
            with self._store.session_scope("update_payment") as session:
                record = PaymentReconciler(session, self._clock).update(
                    payment_id, patch, actor.actor_id,
                )
            self._audit(actor, "update", "payment", payment_id, {
                "fields": sorted(patch.present_fields()),
            })
            return record

    def delete_payment(self, actor: Actor, payment_id: UUID) -> PaymentRecord:
        with self._operation(actor, Resource.PAYMENT, Action.DELETE):
            with self._store.session_scope("delete_payment") as session:
                snapshot = PaymentReconciler(session, self._clock).delete(payment_id)
            self._audit(actor, "delete", "payment", payment_id, {
                "amount": snapshot.amount,
                "reference_kind": snapshot.reference_kind,
                "reference_id": snapshot.reference_id,
            })
            return snapshot

    def get_payment(self, actor: Actor, payment_id: UUID) -> PaymentDetail:
        with self._operation(actor, Resource.PAYMENT, Action.READ):
            with self._store.session_scope("get_payment") as session:
                return PaymentSelector(session).get(payment_id)

    def list_payments(
        self,
        actor: Actor,
        filters: PaymentFilter = PaymentFilter(),
    ) -> tuple[PaymentRecord, ...]:
        with self._operation(actor, Resource.PAYMENT, Action.READ):
            with self._store.session_scope("list_payments") as session:
                return PaymentSelector(session).list(filters)

    def get_payment_statistics(
        self,
        actor: Actor,
        date_range: DateRange = DateRange(),
    ) -> PaymentStatistics:
        with self._operation(actor, Resource.PAYMENT, Action.READ):
            with self._store.session_scope("payment_statistics") as session:
                return PaymentSelector(session).statistics(date_range)

    # -------------------------------------------------------------------------
    # Dues and attendance
    # -------------------------------------------------------------------------

    def generate_recurring_dues(
        self,
        actor: Actor,
        month: int,
        year: int,
        amount,
        due_date_note: str | None = None,
    ) -> BatchResult:
        with self._operation(actor, Resource.MONTHLY_FEE, Action.CREATE):
            task = RecurringDuesTask(
                month,
                year,
                amount,
                due_date_note,
                min_year=self._dues_min_year,
                max_year=self._dues_max_year,
            )
            result = self._batch_engine.run(task, actor.actor_id)
            self._audit(actor, "generate", "monthly_fee", None, {
                "month": month,
                "year": year,
                "amount": task.amount,
                "created": result.created,
                "skipped": result.skipped,
                "total": result.total,
            })
            return result

    def create_monthly_fee(
        self,
        actor: Actor,
        member_id: UUID,
        month: int,
        year: int,
        amount,
        notes: str | None = None,
    ) -> UUID:
        with self._operation(actor, Resource.MONTHLY_FEE, Action.CREATE):
            with self._store.session_scope("create_monthly_fee") as session:
                fee_id = DuesService(session).create_fee(
                    member_id,
                    month,
                    year,
                    amount,
                    notes,
                    min_year=self._dues_min_year,
                    max_year=self._dues_max_year,
                )
            self._audit(actor, "create", "monthly_fee", fee_id, {
                "member_id": member_id,
                "month": month,
                "year": year,
            })
            return fee_id

    def update_monthly_fee(
        self,
        actor: Actor,
        fee_id: UUID,
        patch: MonthlyFeePatch,
    ) -> MonthlyFeeRecord:
        with self._operation(actor, Resource.MONTHLY_FEE, Action.UPDATE):
            with self._store.session_scope("update_monthly_fee") as session:
                record = DuesService(session).update_fee(
                    fee_id,
                    patch,
                    self._clock.today(),
                    min_year=self._dues_min_year,
                    max_year=self._dues_max_year,
                )
            self._audit(actor, "update", "monthly_fee", fee_id, {
                "fields": sorted(patch.present_fields()),
                "status": record.status,
            })
            return record

    def bulk_insert_attendance(
        self,
        actor: Actor,
        event_date: date,
        event_kind: str,
        records: Sequence[AttendanceInput],
        event_id: UUID | None = None,
    ) -> BatchResult:
        with self._operation(actor, Resource.ATTENDANCE, Action.CREATE):
            task = BulkAttendanceTask(
                event_date,
                event_kind,
                records,
                event_id=event_id,
                max_batch_size=self._max_batch_size,
            )
            result = self._batch_engine.run(task, actor.actor_id)
            self._audit(actor, "bulk_create", "attendance", event_id, {
                "event_kind": event_kind,
                "event_date": event_date,
                "created": result.created,
                "skipped": result.skipped,
                "total": result.total,
            })
            return result

    def record_attendance(
        self,
        actor: Actor,
        member_id: UUID,
        event_date: date,
        event_kind: str,
        status: str,
        event_id: UUID | None = None,
        notes: str | None = None,
    ) -> UUID:
        with self._operation(actor, Resource.ATTENDANCE, Action.CREATE):
            with self._store.session_scope("record_attendance") as session:
                record_id = AttendanceService(session).record(
                    member_id,
                    event_date,
                    event_kind,
                    status,
                    actor.actor_id,
                    event_id=event_id,
                    notes=notes,
                )
            self._audit(actor, "create", "attendance", record_id, {
                "member_id": member_id,
                "event_kind": event_kind,
                "status": status,
            })
            return record_id

    # -------------------------------------------------------------------------
    # Cash book
    # -------------------------------------------------------------------------

    def record_cash_book_entry(
        self,
        actor: Actor,
        data: CashBookEntryInput,
    ) -> CashBookEntryRecord:
        with self._operation(actor, Resource.CASH_BOOK, Action.CREATE):
            with self._store.session_scope("record_cash_book_entry") as session:
                record = LedgerWriter(session).record_entry(data, actor.actor_id)
            self._audit(actor, "create", "cash_book", record.id, {
                "entry_type": record.entry_type,
                "amount": record.amount,
            })
            return record

    def update_cash_book_entry(
        self,
        actor: Actor,
        entry_id: UUID,
        patch: CashBookEntryPatch,
    ) -> CashBookEntryRecord:
        with self._operation(actor, Resource.CASH_BOOK, Action.UPDATE):
            with self._store.session_scope("update_cash_book_entry") as session:
                record = LedgerWriter(session).update_entry(entry_id, patch, actor.actor_id)
            self._audit(actor, "update", "cash_book", entry_id, {
                "fields": sorted(patch.present_fields()),
            })
            return record

    def delete_cash_book_entry(self, actor: Actor, entry_id: UUID) -> CashBookEntryRecord:
        with self._operation(actor, Resource.CASH_BOOK, Action.DELETE):
            with self._store.session_scope("delete_cash_book_entry") as session:
                snapshot = LedgerWriter(session).delete_entry(entry_id)
            self._audit(actor, "delete", "cash_book", entry_id, {
                "entry_type": snapshot.entry_type,
                "amount": snapshot.amount,
            })
            return snapshot

    def list_cash_book_entries(
        self,
        actor: Actor,
        filters: CashBookFilter = CashBookFilter(),
    ) -> CashBookListing:
        with self._operation(actor, Resource.CASH_BOOK, Action.READ):
            with self._store.session_scope("list_cash_book_entries") as session:
                return CashBookSelector(session).list(filters)

    def get_cash_book_summary(
        self,
        actor: Actor,
        date_range: DateRange = DateRange(),
        group_by: str | None = None,
    ) -> CashBookSummary:
        with self._operation(actor, Resource.CASH_BOOK, Action.READ):
            with self._store.session_scope("cash_book_summary") as session:
                return CashBookSelector(session).summary(date_range, group_by)

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def get_financial_report(
        self,
        actor: Actor,
        start_date: date | None,
        end_date: date | None,
        group_by: str = "month",
    ) -> FinancialReport:
        with self._operation(actor, Resource.REPORT, Action.READ):
            with self._store.session_scope("financial_report") as session:
                return StatisticsSelector(session).financial_report(
                    start_date, end_date, group_by,
                )

    def get_dues_statistics(self, actor: Actor, year: int | None = None) -> DuesStatistics:
        with self._operation(actor, Resource.MONTHLY_FEE, Action.READ):
            with self._store.session_scope("dues_statistics") as session:
                return StatisticsSelector(session).dues_statistics(year)

    def get_member_attendance(
        self,
        actor: Actor,
        member_id: UUID,
        date_range: DateRange = DateRange(),
    ) -> MemberAttendanceStatistics:
        with self._operation(actor, Resource.ATTENDANCE, Action.READ):
            with self._store.session_scope("member_attendance") as session:
                return StatisticsSelector(session).member_attendance(member_id, date_range)

    def get_event_attendance(
        self,
        actor: Actor,
        event_kind: str,
        event_id: UUID,
    ) -> EventAttendanceStatistics:
        with self._operation(actor, Resource.ATTENDANCE, Action.READ):
            with self._store.session_scope("event_attendance") as session:
                return StatisticsSelector(session).event_attendance(event_kind, event_id)
