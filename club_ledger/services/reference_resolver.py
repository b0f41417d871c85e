"""
ReferenceResolver -- polymorphic payment references, resolved and settled.

Responsibility:
    Maps a (reference kind, reference id, member) triple onto the business
    row a payment pays for, checks that the row exists and belongs to the
    paying member, and applies or reverses the settlement mutation on it.

Architecture position:
    Ledger > Services.  Used only by PaymentReconciler; flushes within the
    caller's transaction.

Invariants enforced:
    - Closed dispatch: each settleable kind maps to exactly one
      ReferencePolicy.  No table name is ever built from input.
    - Ownership: a registration or monthly fee referenced together with a
      member must belong to that member.  Events are shared rows and carry
      no owner.
    - Settlement symmetry: ``mark_unsettled`` reverts exactly the fields
      ``mark_settled`` wrote (monthly fee payment_date included).  Event
      participation attendance is never touched.

Failure modes:
    - MissingReferenceIdError: settleable kind with no reference id.
    - ReferenceNotFoundError: no row of that kind with that id.
    - ReferenceOwnershipMismatchError: row owned by a different member.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable
from uuid import UUID

from sqlalchemy import select

from club_ledger.domain.references import ReferenceKind
from club_ledger.exceptions import (
    MissingReferenceIdError,
    ReferenceNotFoundError,
    ReferenceOwnershipMismatchError,
)
from club_ledger.logging_config import get_logger
from club_ledger.models.dues import MonthlyFee, MonthlyFeeStatus
from club_ledger.models.event import Event, EventParticipation
from club_ledger.models.membership import PaymentStatus, Registration
from club_ledger.services.base import BaseService

logger = get_logger("services.reference_resolver")


@dataclass(frozen=True)
class ReferencePolicy:
    """
    How one reference kind is looked up, owned and settled.

    ``owner_of`` returns the owning member id, or None for shared rows.
    """

    model: type
    owner_of: Callable[[object], UUID | None]
    settle: Callable[[ReferenceResolver, ResolvedReference, date], None]
    unsettle: Callable[[ReferenceResolver, ResolvedReference], None]


@dataclass(frozen=True)
class ResolvedReference:
    """A reference that passed existence and ownership checks."""

    kind: ReferenceKind
    reference_id: UUID
    member_id: UUID | None
    row: object


# -----------------------------------------------------------------------------
# Settlement mutations
# -----------------------------------------------------------------------------


def _settle_registration(resolver, resolved, payment_date):
    resolved.row.payment_status = PaymentStatus.PAID.value


def _unsettle_registration(resolver, resolved):
    resolved.row.payment_status = PaymentStatus.PENDING.value


def _settle_monthly_fee(resolver, resolved, payment_date):
    resolved.row.status = MonthlyFeeStatus.PAID.value
    resolved.row.payment_date = payment_date


def _unsettle_monthly_fee(resolver, resolved):
    resolved.row.status = MonthlyFeeStatus.PENDING.value
    resolved.row.payment_date = None


def _settle_event(resolver, resolved, payment_date):
    participation = resolver.participation_for(resolved)
    if participation is not None:
        participation.payment_status = PaymentStatus.PAID.value


def _unsettle_event(resolver, resolved):
    participation = resolver.participation_for(resolved)
    if participation is not None:
        participation.payment_status = PaymentStatus.PENDING.value


_POLICIES: dict[ReferenceKind, ReferencePolicy] = {
    ReferenceKind.REGISTRATION: ReferencePolicy(
        model=Registration,
        owner_of=lambda row: row.member_id,
        settle=_settle_registration,
        unsettle=_unsettle_registration,
    ),
    ReferenceKind.MONTHLY_FEE: ReferencePolicy(
        model=MonthlyFee,
        owner_of=lambda row: row.member_id,
        settle=_settle_monthly_fee,
        unsettle=_unsettle_monthly_fee,
    ),
    ReferenceKind.EVENT: ReferencePolicy(
        model=Event,
        owner_of=lambda row: None,
        settle=_settle_event,
        unsettle=_unsettle_event,
    ),
}


class ReferenceResolver(BaseService):
    """
    Resolve and settle payment references.

    Contract:
        ``resolve()`` performs every check before any mutation, so a
        failure leaves the session untouched.

    Guarantees:
        - ``other`` and ``None`` resolve to ``None``: no row, no mutation.
    """

    def resolve(
        self,
        kind: ReferenceKind | None,
        reference_id: UUID | None,
        member_id: UUID | None,
    ) -> ResolvedReference | None:
        """
        Look up and validate the referenced row.

        Raises:
            MissingReferenceIdError: Settleable kind without an id.
            ReferenceNotFoundError: No row with that id.
            ReferenceOwnershipMismatchError: Row owned by another member.
        """
        if kind is None or not kind.is_settleable:
            return None
        if reference_id is None:
            raise MissingReferenceIdError(kind.value)

        policy = _POLICIES[kind]
        row = self.session.get(policy.model, reference_id)
        if row is None:
            raise ReferenceNotFoundError(kind.value, str(reference_id))

        owner_id = policy.owner_of(row)
        if member_id is not None and owner_id is not None and owner_id != member_id:
            logger.warning(
                "reference_ownership_mismatch",
                extra={
                    "reference_kind": kind.value,
                    "reference_id": str(reference_id),
                    "owner_id": str(owner_id),
                    "member_id": str(member_id),
                },
            )
            raise ReferenceOwnershipMismatchError(
                kind.value, str(reference_id), str(owner_id), str(member_id),
            )

        return ResolvedReference(
            kind=kind,
            reference_id=reference_id,
            member_id=member_id,
            row=row,
        )

    def locate(
        self,
        kind: ReferenceKind | None,
        reference_id: UUID | None,
        member_id: UUID | None,
    ) -> ResolvedReference | None:
        """
        Find a previously resolved reference without re-checking it.

        Used to reverse an existing settlement.  Returns None when the row
        has since disappeared, so a reversal never fails on a stale
        reference.
        """
        if kind is None or not kind.is_settleable or reference_id is None:
            return None
        row = self.session.get(_POLICIES[kind].model, reference_id)
        if row is None:
            logger.warning(
                "reference_row_missing",
                extra={"reference_kind": kind.value, "reference_id": str(reference_id)},
            )
            return None
        return ResolvedReference(
            kind=kind,
            reference_id=reference_id,
            member_id=member_id,
            row=row,
        )

    def mark_settled(self, resolved: ResolvedReference | None, payment_date: date) -> None:
        """Apply the kind's settlement mutation."""
        if resolved is None:
            return
        _POLICIES[resolved.kind].settle(self, resolved, payment_date)
        self.session.flush()
        logger.debug(
            "reference_settled",
            extra={
                "reference_kind": resolved.kind.value,
                "reference_id": str(resolved.reference_id),
            },
        )

    def mark_unsettled(self, resolved: ResolvedReference | None) -> None:
        """Revert the kind's settlement mutation to pending."""
        if resolved is None:
            return
        _POLICIES[resolved.kind].unsettle(self, resolved)
        self.session.flush()
        logger.debug(
            "reference_unsettled",
            extra={
                "reference_kind": resolved.kind.value,
                "reference_id": str(resolved.reference_id),
            },
        )

    def participation_for(self, resolved: ResolvedReference) -> EventParticipation | None:
        """
        The paying member's participation row for an event reference.

        None when the payment has no member or the member is not enrolled;
        an event payment in that case settles nothing.
        """
        if resolved.member_id is None:
            return None
        participation = self.session.execute(
            select(EventParticipation).where(
                EventParticipation.event_id == resolved.reference_id,
                EventParticipation.member_id == resolved.member_id,
            )
        ).scalar_one_or_none()
        if participation is None:
            logger.info(
                "event_participation_missing",
                extra={
                    "event_id": str(resolved.reference_id),
                    "member_id": str(resolved.member_id),
                },
            )
        return participation
