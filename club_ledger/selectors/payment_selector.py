"""
Module: club_ledger.selectors.payment_selector
Responsibility: Read models over payments -- single payment detail,
    filtered listings and payment statistics.
Architecture position: Ledger > Selectors.  Read-only.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from club_ledger.db.types import sum_money
from club_ledger.domain.dtos import (
    DateRange,
    PaymentDetail,
    PaymentFilter,
    PaymentRecord,
    PaymentStatistics,
)
from club_ledger.domain.references import ReferenceKind, parse_reference_kind
from club_ledger.exceptions import PaymentNotFoundError
from club_ledger.models.dues import MonthlyFee
from club_ledger.models.event import Event, EventParticipation
from club_ledger.models.membership import Member, Registration
from club_ledger.models.payment import Payment
from club_ledger.selectors.base import (
    BaseSelector,
    apply_date_range,
    group_totals,
    month_key,
)


class PaymentSelector(BaseSelector):
    """Read-only payment queries."""

    def get(self, payment_id: UUID) -> PaymentDetail:
        """
        A payment with its member name and reference status.

        Raises:
            PaymentNotFoundError: Unknown payment id.
        """
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))

        member_name = None
        if payment.member_id is not None:
            member = self.session.get(Member, payment.member_id)
            member_name = member.name if member is not None else None

        status, label = self._reference_state(payment)
        return PaymentDetail(
            payment=PaymentRecord.from_model(payment),
            member_name=member_name,
            reference_status=status,
            reference_label=label,
        )

    def _reference_state(self, payment: Payment) -> tuple[str | None, str | None]:
        kind = parse_reference_kind(payment.reference_kind)
        if kind is None or payment.reference_id is None:
            return None, None

        if kind is ReferenceKind.REGISTRATION:
            row = self.session.get(Registration, payment.reference_id)
            if row is not None:
                return row.payment_status, f"Registration {row.registration_date.isoformat()}"
        elif kind is ReferenceKind.MONTHLY_FEE:
            row = self.session.get(MonthlyFee, payment.reference_id)
            if row is not None:
                return row.status, f"Monthly fee {row.month}/{row.year}"
        elif kind is ReferenceKind.EVENT:
            event = self.session.get(Event, payment.reference_id)
            if event is not None:
                status = None
                if payment.member_id is not None:
                    status = self.session.execute(
                        select(EventParticipation.payment_status).where(
                            EventParticipation.event_id == event.id,
                            EventParticipation.member_id == payment.member_id,
                        )
                    ).scalar_one_or_none()
                return status, event.name
        return None, None

    def list(self, filters: PaymentFilter = PaymentFilter()) -> tuple[PaymentRecord, ...]:
        """Payments matching ``filters``, newest payment date first."""
        stmt = select(Payment)
        if filters.member_id is not None:
            stmt = stmt.where(Payment.member_id == filters.member_id)
        if filters.reference_kind is not None:
            stmt = stmt.where(Payment.reference_kind == filters.reference_kind)
        if filters.payment_method is not None:
            stmt = stmt.where(Payment.payment_method == filters.payment_method)
        stmt = apply_date_range(stmt, Payment.payment_date, filters.date_range)
        stmt = stmt.order_by(Payment.payment_date.desc(), Payment.id)

        return tuple(
            PaymentRecord.from_model(p) for p in self.session.execute(stmt).scalars()
        )

    def statistics(self, date_range: DateRange = DateRange()) -> PaymentStatistics:
        """Count and total of payments by method, reference kind and month."""
        stmt = apply_date_range(select(Payment), Payment.payment_date, date_range)
        payments = list(self.session.execute(stmt).scalars())

        return PaymentStatistics(
            total_count=len(payments),
            total_amount=sum_money(p.amount for p in payments),
            by_method=group_totals(
                payments, lambda p: p.payment_method, lambda p: p.amount,
            ),
            by_reference_kind=group_totals(
                payments,
                lambda p: p.reference_kind or ReferenceKind.OTHER.value,
                lambda p: p.amount,
            ),
            by_month=group_totals(
                payments, lambda p: month_key(p.payment_date), lambda p: p.amount,
            ),
        )
