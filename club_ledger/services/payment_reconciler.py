"""
PaymentReconciler -- payments, their settlement effects and their ledger
mirror, kept consistent as one unit.

Responsibility:
    Create, update and delete payments.  Each operation validates first,
    then writes the payment, the settlement mutation on the referenced row
    and the cash book mirror inside the caller's transaction.

Architecture position:
    Ledger > Services.  Composes ReferenceResolver and LedgerWriter.  The
    facade owns the ``session_scope()``; this service only flushes.

Invariants enforced:
    - A payment always has exactly one income mirror tagged with its id.
    - A settleable reference named by a payment is marked settled; deleting
      the payment marks it pending again.
    - Changing the reference (kind, id or paying member) on update
      unsettles the old row before settling the new one, and the mirror
      category follows the new kind.
    - All validation (amount, method, kind, member, reference existence and
      ownership) happens before the first write.

Failure modes:
    - InvalidAmountError, InvalidStatusError, InvalidReferenceKindError,
      MissingReferenceIdError: rejected input, nothing written.
    - MemberNotFoundError, ReferenceNotFoundError, PaymentNotFoundError.
    - ReferenceOwnershipMismatchError.
    Any exception leaves the enclosing transaction to be rolled back by its
    owner, so no partial payment is ever committed.
"""

from __future__ import annotations

from uuid import UUID

from club_ledger.db.types import require_positive
from club_ledger.domain.clock import Clock, SystemClock
from club_ledger.domain.dtos import UNSET, PaymentInput, PaymentPatch, PaymentRecord
from club_ledger.domain.references import ledger_category, parse_reference_kind
from club_ledger.exceptions import (
    InvalidDateRangeError,
    MemberNotFoundError,
    PaymentNotFoundError,
)
from club_ledger.logging_config import LogContext, get_logger
from club_ledger.models.membership import Member
from club_ledger.models.payment import Payment, PaymentMethod
from club_ledger.services.base import BaseService, coerce_choice
from club_ledger.services.ledger_writer import LedgerWriter, mirror_description
from club_ledger.services.reference_resolver import ReferenceResolver

logger = get_logger("services.payment_reconciler")


class PaymentReconciler(BaseService):
    """
    Payment write path.

    Contract:
        ``create`` / ``update`` / ``delete`` either complete every effect
        (payment row, settlement, mirror) or raise before the caller
        commits.

    Non-goals:
        - Partial payments: a payment settles its reference outright.
        - Read models -- see PaymentSelector.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._resolver = ReferenceResolver(session)
        self._ledger = LedgerWriter(session)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(self, data: PaymentInput, actor_id: UUID) -> PaymentRecord:
        """Record a payment, settle its reference and mirror it to the ledger."""
        amount = require_positive(data.amount)
        method = coerce_choice("payment_method", data.payment_method, PaymentMethod)
        kind = parse_reference_kind(data.reference_kind)
        if data.member_id is not None:
            self._require_member(data.member_id)
        resolved = self._resolver.resolve(kind, data.reference_id, data.member_id)

        payment = Payment(
            member_id=data.member_id,
            amount=amount,
            payment_date=data.payment_date or self._clock.today(),
            payment_method=method,
            description=data.description,
            reference_kind=kind.value if kind is not None else None,
            reference_id=data.reference_id,
            created_by_id=actor_id,
        )
        self.session.add(payment)
        self.session.flush()

        with LogContext.bind(payment_id=str(payment.id)):
            self._resolver.mark_settled(resolved, payment.payment_date)
            self._ledger.record_payment_mirror(payment, actor_id)

            logger.info(
                "payment_created",
                extra={
                    "amount": str(amount),
                    "reference_kind": payment.reference_kind,
                    "reference_id": str(payment.reference_id) if payment.reference_id else None,
                    "member_id": str(payment.member_id) if payment.member_id else None,
                },
            )
        return PaymentRecord.from_model(payment)

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def update(self, payment_id: UUID, patch: PaymentPatch, actor_id: UUID) -> PaymentRecord:
        """
        Apply the present fields of ``patch``.

        An empty patch returns the current payment unchanged.
        """
        payment = self._get_payment(payment_id)
        if patch.is_empty():
            return PaymentRecord.from_model(payment)

        changes = self._validated_changes(patch)

        old_kind = parse_reference_kind(payment.reference_kind)
        old_key = (old_kind, payment.reference_id, payment.member_id)
        new_kind = changes.get("reference_kind", old_kind)
        new_key = (
            new_kind,
            changes.get("reference_id", payment.reference_id),
            changes.get("member_id", payment.member_id),
        )
        reference_changed = patch.touches_reference and new_key != old_key

        new_resolved = None
        if patch.touches_reference:
            if "member_id" in changes and new_key[2] is not None:
                self._require_member(new_key[2])
            new_resolved = self._resolver.resolve(*new_key)

        with LogContext.bind(payment_id=str(payment_id)):
            if reference_changed:
                self._resolver.mark_unsettled(self._resolver.locate(*old_key))

            for name, value in changes.items():
                if name == "reference_kind":
                    value = value.value if value is not None else None
                setattr(payment, name, value)
            payment.updated_by_id = actor_id
            self.session.flush()

            if reference_changed:
                self._resolver.mark_settled(new_resolved, payment.payment_date)
            elif "payment_date" in changes:
                self._resolver.mark_settled(
                    self._resolver.locate(*old_key), payment.payment_date,
                )

            self._sync_mirror(payment, changes, reference_changed, actor_id)

            logger.info(
                "payment_updated",
                extra={
                    "fields": sorted(changes),
                    "reference_changed": reference_changed,
                },
            )
        return PaymentRecord.from_model(payment)

    def _validated_changes(self, patch: PaymentPatch) -> dict:
        changes = patch.present_fields()
        if "amount" in changes:
            changes["amount"] = require_positive(changes["amount"])
        if "payment_method" in changes:
            changes["payment_method"] = coerce_choice(
                "payment_method", changes["payment_method"], PaymentMethod,
            )
        if "reference_kind" in changes:
            changes["reference_kind"] = parse_reference_kind(changes["reference_kind"])
        if "payment_date" in changes and changes["payment_date"] is None:
            raise InvalidDateRangeError(None, None, "payment date is required")
        return changes

    def _sync_mirror(
        self,
        payment: Payment,
        changes: dict,
        reference_changed: bool,
        actor_id: UUID,
    ) -> None:
        self._ledger.update_payment_mirror(
            payment.id,
            amount=payment.amount if "amount" in changes else UNSET,
            transaction_date=(
                payment.payment_date if "payment_date" in changes else UNSET
            ),
            description=(
                mirror_description(payment)
                if "description" in changes or "member_id" in changes
                else UNSET
            ),
            category=(
                ledger_category(parse_reference_kind(payment.reference_kind))
                if reference_changed
                else UNSET
            ),
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete(self, payment_id: UUID) -> PaymentRecord:
        """
        Remove a payment, its mirror and its settlement effect.

        Returns:
            The payment as it was before deletion.
        """
        payment = self._get_payment(payment_id)
        snapshot = PaymentRecord.from_model(payment)

        with LogContext.bind(payment_id=str(payment_id)):
            self._ledger.remove_payment_mirror(payment_id)
            self._resolver.mark_unsettled(
                self._resolver.locate(
                    parse_reference_kind(payment.reference_kind),
                    payment.reference_id,
                    payment.member_id,
                )
            )
            self.session.delete(payment)
            self.session.flush()

            logger.info(
                "payment_deleted",
                extra={
                    "amount": str(snapshot.amount),
                    "reference_kind": snapshot.reference_kind,
                },
            )
        return snapshot

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _get_payment(self, payment_id: UUID) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def _require_member(self, member_id: UUID) -> Member:
        member = self.session.get(Member, member_id)
        if member is None:
            raise MemberNotFoundError(str(member_id))
        return member
