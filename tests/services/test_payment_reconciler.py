"""
Tests for PaymentReconciler create / update / delete.

All writes go through one session that is never committed; assertions read
the same session, so these tests check what the reconciler flushes.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from club_ledger.domain.dtos import PaymentInput, PaymentPatch
from club_ledger.exceptions import (
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidReferenceKindError,
    InvalidStatusError,
    MemberNotFoundError,
    MissingReferenceIdError,
    PaymentNotFoundError,
    ReferenceNotFoundError,
    ReferenceOwnershipMismatchError,
)
from club_ledger.models import (
    CashBookEntry,
    EventParticipation,
    MonthlyFee,
    Payment,
    Registration,
    payment_ledger_tag,
)
from club_ledger.services.payment_reconciler import PaymentReconciler

ACTOR_ID = uuid4()


@pytest.fixture
def reconciler(session, clock, club):
    return PaymentReconciler(session, clock=clock)


def _mirror(session, payment_id):
    return session.query(CashBookEntry).filter_by(
        reference=payment_ledger_tag(payment_id),
    ).one()


def _fee_payment(club, **overrides):
    values = dict(
        amount=Decimal("25.00"),
        payment_date=date(2024, 3, 20),
        member_id=club.alice_id,
        reference_kind="monthly_fee",
        reference_id=club.fee_id,
    )
    values.update(overrides)
    return PaymentInput(**values)


class TestCreate:

    def test_amount_rounded_and_actor_recorded(self, reconciler, club):
        record = reconciler.create(
            PaymentInput(amount="12.345", payment_date=date(2024, 3, 1)), ACTOR_ID,
        )
        assert record.amount == Decimal("12.35")
        assert record.created_by_id == ACTOR_ID
        assert record.reference_kind is None

    def test_date_defaults_to_clock_today(self, reconciler):
        record = reconciler.create(PaymentInput(amount=5), ACTOR_ID)
        assert record.payment_date == date(2024, 3, 15)

    def test_event_payment_settles_participation(self, reconciler, session, club):
        record = reconciler.create(PaymentInput(
            amount=40,
            member_id=club.alice_id,
            reference_kind="event",
            reference_id=club.event_id,
        ), ACTOR_ID)

        participation = session.get(EventParticipation, club.participation_id)
        assert participation.payment_status == "paid"
        assert _mirror(session, record.id).category == "event"

    def test_other_kind_writes_mirror_only(self, reconciler, session, club):
        record = reconciler.create(PaymentInput(
            amount=15, reference_kind="other", description="Uniform sale",
        ), ACTOR_ID)

        mirror = _mirror(session, record.id)
        assert mirror.category == "other"
        assert mirror.description == "Uniform sale"
        assert session.get(MonthlyFee, club.fee_id).status == "pending"

    @pytest.mark.parametrize("amount", [0, -1, "abc", None])
    def test_invalid_amount(self, reconciler, session, amount):
        with pytest.raises(InvalidAmountError):
            reconciler.create(PaymentInput(amount=amount), ACTOR_ID)
        assert session.query(Payment).count() == 0

    def test_invalid_method(self, reconciler):
        with pytest.raises(InvalidStatusError) as exc_info:
            reconciler.create(PaymentInput(amount=5, payment_method="cheque"), ACTOR_ID)
        assert exc_info.value.field == "payment_method"

    def test_invalid_kind(self, reconciler):
        with pytest.raises(InvalidReferenceKindError):
            reconciler.create(PaymentInput(amount=5, reference_kind="donation"), ACTOR_ID)

    def test_settleable_kind_without_id(self, reconciler):
        with pytest.raises(MissingReferenceIdError):
            reconciler.create(PaymentInput(amount=5, reference_kind="registration"), ACTOR_ID)

    def test_unknown_member(self, reconciler, session):
        with pytest.raises(MemberNotFoundError):
            reconciler.create(PaymentInput(amount=5, member_id=uuid4()), ACTOR_ID)
        assert session.query(CashBookEntry).count() == 0

    def test_unknown_reference(self, reconciler, session, club):
        with pytest.raises(ReferenceNotFoundError):
            reconciler.create(_fee_payment(club, reference_id=uuid4()), ACTOR_ID)
        assert session.query(Payment).count() == 0


class TestUpdate:

    def test_empty_patch_returns_current(self, reconciler, club):
        record = reconciler.create(_fee_payment(club), ACTOR_ID)
        assert reconciler.update(record.id, PaymentPatch(), ACTOR_ID) == record

    def test_date_change_restamps_fee_and_mirror(self, reconciler, session, club):
        record = reconciler.create(_fee_payment(club), ACTOR_ID)

        reconciler.update(record.id, PaymentPatch(payment_date=date(2024, 3, 22)), ACTOR_ID)

        fee = session.get(MonthlyFee, club.fee_id)
        assert (fee.status, fee.payment_date) == ("paid", date(2024, 3, 22))
        assert _mirror(session, record.id).transaction_date == date(2024, 3, 22)

    def test_null_date_rejected(self, reconciler, club):
        record = reconciler.create(_fee_payment(club), ACTOR_ID)
        with pytest.raises(InvalidDateRangeError):
            reconciler.update(record.id, PaymentPatch(payment_date=None), ACTOR_ID)

    def test_reference_move_unsettles_old_and_settles_new(self, reconciler, session, club):
        record = reconciler.create(_fee_payment(club), ACTOR_ID)

        updated = reconciler.update(record.id, PaymentPatch(
            reference_kind="registration", reference_id=club.registration_id,
        ), ACTOR_ID)

        assert updated.reference_kind == "registration"
        fee = session.get(MonthlyFee, club.fee_id)
        assert (fee.status, fee.payment_date) == ("pending", None)
        assert session.get(Registration, club.registration_id).payment_status == "paid"
        assert _mirror(session, record.id).category == "registration"

    def test_member_change_checked_against_reference_owner(self, reconciler, session, club):
        record = reconciler.create(_fee_payment(club), ACTOR_ID)

        with pytest.raises(ReferenceOwnershipMismatchError):
            reconciler.update(record.id, PaymentPatch(member_id=club.bob_id), ACTOR_ID)

        assert session.get(MonthlyFee, club.fee_id).status == "paid"

    def test_member_cleared_updates_description(self, reconciler, session, club):
        record = reconciler.create(_fee_payment(club), ACTOR_ID)
        assert _mirror(session, record.id).description == "Payment from member"

        reconciler.update(record.id, PaymentPatch(member_id=None), ACTOR_ID)

        assert _mirror(session, record.id).description == "Payment from external source"

    def test_updated_by_recorded(self, reconciler, session, club):
        record = reconciler.create(_fee_payment(club), ACTOR_ID)
        editor = uuid4()

        updated = reconciler.update(record.id, PaymentPatch(description="March dues"), editor)

        assert updated.updated_by_id == editor
        assert _mirror(session, record.id).description == "March dues"

    def test_unknown_payment(self, reconciler):
        with pytest.raises(PaymentNotFoundError):
            reconciler.update(uuid4(), PaymentPatch(amount=1), ACTOR_ID)


class TestDelete:

    def test_event_payment_reversal(self, reconciler, session, club):
        record = reconciler.create(PaymentInput(
            amount=40,
            member_id=club.alice_id,
            reference_kind="event",
            reference_id=club.event_id,
        ), ACTOR_ID)

        snapshot = reconciler.delete(record.id)

        assert snapshot == record
        assert session.get(EventParticipation, club.participation_id).payment_status == "pending"
        assert session.get(Payment, record.id) is None

    def test_reference_row_gone_still_deletes(self, reconciler, session, club, captured_logs):
        record = reconciler.create(PaymentInput(
            amount=30, reference_kind="registration", reference_id=club.bob_registration_id,
        ), ACTOR_ID)
        session.delete(session.get(Registration, club.bob_registration_id))
        session.flush()

        reconciler.delete(record.id)

        assert session.get(Payment, record.id) is None
        assert any(r["message"] == "reference_row_missing" for r in captured_logs())

    def test_unknown_payment(self, reconciler):
        with pytest.raises(PaymentNotFoundError):
            reconciler.delete(uuid4())
