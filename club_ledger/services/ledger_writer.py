"""
LedgerWriter -- the cash book's only writer.

Responsibility:
    Keeps the income mirror of every payment in step with the payment
    (insert on create, field sync on update, removal on delete), and
    records manual income / expense rows that have no payment behind them.

Architecture position:
    Ledger > Services.  Called by PaymentReconciler for mirrors and by the
    facade for manual rows.  Flushes within the caller's transaction.

Invariants enforced:
    - A payment mirror is located by its tag ``payment_id:<id>`` and
      ``entry_type == income``; manual rows never carry that tag form.
    - Mirror updates write only the supplied fields.
    - Manual row amounts are positive decimals; the direction is carried
      by ``entry_type``, never by the sign.

Failure modes:
    - A missing mirror on update is logged (``payment_mirror_missing``) and
      treated as a no-op.
    - CashBookEntryNotFoundError for unknown manual row ids.
    - InvalidAmountError / InvalidStatusError on bad manual input.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from club_ledger.db.types import require_positive
from club_ledger.domain.dtos import (
    UNSET,
    CashBookEntryInput,
    CashBookEntryPatch,
    CashBookEntryRecord,
)
from club_ledger.domain.references import ledger_category, parse_reference_kind
from club_ledger.exceptions import CashBookEntryNotFoundError
from club_ledger.logging_config import get_logger
from club_ledger.models.cash_book import CashBookEntry, EntryType
from club_ledger.models.payment import Payment, payment_ledger_tag
from club_ledger.services.base import BaseService, coerce_choice

logger = get_logger("services.ledger_writer")


def mirror_description(payment: Payment) -> str:
    """Payment description, or a default naming where the money came from."""
    if payment.description:
        return payment.description
    if payment.member_id is not None:
        return "Payment from member"
    return "Payment from external source"


class LedgerWriter(BaseService):
    """Maintain payment mirrors and manual cash book rows."""

    # -------------------------------------------------------------------------
    # Payment mirrors
    # -------------------------------------------------------------------------

    def record_payment_mirror(self, payment: Payment, actor_id: UUID) -> CashBookEntry:
        """Insert the income row mirroring ``payment``."""
        kind = parse_reference_kind(payment.reference_kind)
        entry = CashBookEntry(
            transaction_date=payment.payment_date,
            description=mirror_description(payment),
            amount=payment.amount,
            entry_type=EntryType.INCOME.value,
            category=ledger_category(kind),
            reference=payment_ledger_tag(payment.id),
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "payment_mirror_recorded",
            extra={
                "payment_id": str(payment.id),
                "entry_id": str(entry.id),
                "amount": str(payment.amount),
                "category": entry.category,
            },
        )
        return entry

    def find_payment_mirrors(self, payment_id: UUID) -> list[CashBookEntry]:
        return list(
            self.session.execute(
                select(CashBookEntry).where(
                    CashBookEntry.reference == payment_ledger_tag(payment_id),
                    CashBookEntry.entry_type == EntryType.INCOME.value,
                )
            ).scalars()
        )

    def update_payment_mirror(
        self,
        payment_id: UUID,
        *,
        amount: Decimal = UNSET,
        transaction_date: date = UNSET,
        description: str | None = UNSET,
        category: str = UNSET,
        actor_id: UUID | None = None,
    ) -> int:
        """
        Sync the supplied fields onto the payment's mirror.

        Returns:
            Number of mirror rows updated (0 when the mirror is missing).
        """
        changes = {
            name: value
            for name, value in (
                ("amount", amount),
                ("transaction_date", transaction_date),
                ("description", description),
                ("category", category),
            )
            if value is not UNSET
        }
        if not changes:
            return 0

        mirrors = self.find_payment_mirrors(payment_id)
        if not mirrors:
            logger.warning(
                "payment_mirror_missing",
                extra={"payment_id": str(payment_id), "fields": sorted(changes)},
            )
            return 0

        for entry in mirrors:
            for name, value in changes.items():
                setattr(entry, name, value)
            if actor_id is not None:
                entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "payment_mirror_updated",
            extra={"payment_id": str(payment_id), "fields": sorted(changes)},
        )
        return len(mirrors)

    def remove_payment_mirror(self, payment_id: UUID) -> int:
        """Delete the payment's mirror row(s).  Returns rows removed."""
        mirrors = self.find_payment_mirrors(payment_id)
        for entry in mirrors:
            self.session.delete(entry)
        self.session.flush()

        if not mirrors:
            logger.warning(
                "payment_mirror_missing",
                extra={"payment_id": str(payment_id), "fields": ["delete"]},
            )
        else:
            logger.info(
                "payment_mirror_removed",
                extra={"payment_id": str(payment_id), "rows": len(mirrors)},
            )
        return len(mirrors)

    # -------------------------------------------------------------------------
    # Manual rows
    # -------------------------------------------------------------------------

    def record_entry(self, data: CashBookEntryInput, actor_id: UUID) -> CashBookEntryRecord:
        """Insert a manual income or expense row."""
        entry = CashBookEntry(
            transaction_date=data.transaction_date,
            description=data.description,
            amount=require_positive(data.amount),
            entry_type=coerce_choice("entry_type", data.entry_type, EntryType),
            category=data.category,
            reference=data.reference,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "cash_book_entry_recorded",
            extra={
                "entry_id": str(entry.id),
                "entry_type": entry.entry_type,
                "amount": str(entry.amount),
            },
        )
        return CashBookEntryRecord.from_model(entry)

    def _get_entry(self, entry_id: UUID) -> CashBookEntry:
        entry = self.session.get(CashBookEntry, entry_id)
        if entry is None:
            raise CashBookEntryNotFoundError(str(entry_id))
        return entry

    def update_entry(
        self,
        entry_id: UUID,
        patch: CashBookEntryPatch,
        actor_id: UUID,
    ) -> CashBookEntryRecord:
        """Apply the present fields of ``patch`` to a cash book row."""
        entry = self._get_entry(entry_id)
        changes = patch.present_fields()
        if not changes:
            return CashBookEntryRecord.from_model(entry)

        if "amount" in changes:
            changes["amount"] = require_positive(changes["amount"])
        if "entry_type" in changes:
            changes["entry_type"] = coerce_choice(
                "entry_type", changes["entry_type"], EntryType,
            )

        for name, value in changes.items():
            setattr(entry, name, value)
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "cash_book_entry_updated",
            extra={"entry_id": str(entry_id), "fields": sorted(changes)},
        )
        return CashBookEntryRecord.from_model(entry)

    def delete_entry(self, entry_id: UUID) -> CashBookEntryRecord:
        """Delete a cash book row and return its last state."""
        entry = self._get_entry(entry_id)
        snapshot = CashBookEntryRecord.from_model(entry)
        self.session.delete(entry)
        self.session.flush()

        logger.info("cash_book_entry_deleted", extra={"entry_id": str(entry_id)})
        return snapshot
