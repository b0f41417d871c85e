"""
Rollback guarantees for single-payment mutations and the store's
transaction scope.

A store fault part-way through create / update / delete must surface as
PersistenceFailure and leave the payment, its cash book mirror and the
settlement of the referenced row exactly as they were before the call.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from club_ledger.domain.dtos import PaymentInput, PaymentPatch
from club_ledger.exceptions import PersistenceFailure, ReferenceOwnershipMismatchError
from club_ledger.models import (
    CashBookEntry,
    Member,
    MonthlyFee,
    Payment,
    Registration,
)
from club_ledger.models.payment import payment_ledger_tag
from club_ledger.services.ledger_writer import LedgerWriter
from club_ledger.services.reference_resolver import ReferenceResolver


def _store_fault(*args, **kwargs):
    raise OperationalError("UPDATE ...", {}, Exception("disk I/O error"))


@pytest.fixture
def fee_payment(finance, admin_actor, club):
    return finance.create_payment(admin_actor, PaymentInput(
        amount="25.00",
        member_id=club.alice_id,
        reference_kind="monthly_fee",
        reference_id=club.fee_id,
    ))


def _mirror(store, payment_id) -> CashBookEntry:
    with store.new_session() as session:
        return session.execute(
            select(CashBookEntry).where(
                CashBookEntry.reference == payment_ledger_tag(payment_id),
            )
        ).scalar_one()


def _mirror_count(count_rows, payment_id) -> int:
    return count_rows(CashBookEntry, CashBookEntry.reference == payment_ledger_tag(payment_id))


class TestCreateRollback:

    def test_mirror_fault_undoes_payment_and_settlement(
        self, finance, admin_actor, club, count_rows, reload, audit_sink, monkeypatch,
    ):
        monkeypatch.setattr(LedgerWriter, "record_payment_mirror", _store_fault)

        with pytest.raises(PersistenceFailure) as exc_info:
            finance.create_payment(admin_actor, PaymentInput(
                amount="25.00",
                member_id=club.alice_id,
                reference_kind="monthly_fee",
                reference_id=club.fee_id,
            ))

        assert exc_info.value.operation == "create_payment"
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
        assert count_rows(Payment) == 0
        assert count_rows(CashBookEntry) == 0
        fee = reload(MonthlyFee, club.fee_id)
        assert (fee.status, fee.payment_date) == ("pending", None)
        assert audit_sink.records == []

    def test_settlement_fault_undoes_payment(
        self, finance, admin_actor, club, count_rows, reload, monkeypatch,
    ):
        monkeypatch.setattr(ReferenceResolver, "mark_settled", _store_fault)

        with pytest.raises(PersistenceFailure):
            finance.create_payment(admin_actor, PaymentInput(
                amount="15.00",
                member_id=club.alice_id,
                reference_kind="registration",
                reference_id=club.registration_id,
            ))

        assert count_rows(Payment) == 0
        assert reload(Registration, club.registration_id).payment_status == "pending"


class TestUpdateRollback:

    def test_fault_while_settling_new_reference(
        self, store, finance, admin_actor, club, fee_payment, reload, monkeypatch,
    ):
        mirror_before = _mirror(store, fee_payment.id)
        monkeypatch.setattr(ReferenceResolver, "mark_settled", _store_fault)

        with pytest.raises(PersistenceFailure):
            finance.update_payment(admin_actor, fee_payment.id, PaymentPatch(
                reference_kind="registration",
                reference_id=club.registration_id,
            ))

        payment = reload(Payment, fee_payment.id)
        assert (payment.reference_kind, payment.reference_id) == ("monthly_fee", club.fee_id)
        assert reload(MonthlyFee, club.fee_id).status == "paid"
        assert reload(Registration, club.registration_id).payment_status == "pending"
        mirror_after = reload(CashBookEntry, mirror_before.id)
        assert mirror_after.category == mirror_before.category

    def test_ledger_error_rolls_back_without_wrapping(
        self, finance, admin_actor, club, fee_payment, reload,
    ):
        with pytest.raises(ReferenceOwnershipMismatchError):
            finance.update_payment(admin_actor, fee_payment.id, PaymentPatch(
                reference_kind="registration",
                reference_id=club.bob_registration_id,
            ))

        assert reload(Payment, fee_payment.id).reference_kind == "monthly_fee"
        assert reload(MonthlyFee, club.fee_id).status == "paid"


class TestDeleteRollback:

    def test_unsettle_fault_keeps_payment_mirror_and_settlement(
        self, finance, admin_actor, club, fee_payment, count_rows, reload, audit_sink,
        monkeypatch,
    ):
        monkeypatch.setattr(ReferenceResolver, "mark_unsettled", _store_fault)
        audited_before = len(audit_sink.records)

        with pytest.raises(PersistenceFailure) as exc_info:
            finance.delete_payment(admin_actor, fee_payment.id)

        assert exc_info.value.operation == "delete_payment"
        assert count_rows(Payment, Payment.id == fee_payment.id) == 1
        assert _mirror_count(count_rows, fee_payment.id) == 1
        fee = reload(MonthlyFee, club.fee_id)
        assert fee.status == "paid"
        assert fee.payment_date is not None
        assert len(audit_sink.records) == audited_before


class TestSessionScope:

    def test_sqlalchemy_error_wrapped_and_rolled_back(self, store, count_rows):
        with pytest.raises(PersistenceFailure) as exc_info:
            with store.session_scope("seed_member") as session:
                session.add(Member(name="Eve Transient"))
                session.flush()
                raise SQLAlchemyError("connection reset")

        assert exc_info.value.operation == "seed_member"
        assert exc_info.value.code == "PERSISTENCE_FAILURE"
        assert "connection reset" in exc_info.value.detail
        assert count_rows(Member, Member.name == "Eve Transient") == 0

    def test_unique_violation_surfaces_as_persistence_failure(self, store, club, count_rows):
        with pytest.raises(PersistenceFailure) as exc_info:
            with store.session_scope("insert_fee") as session:
                session.add(MonthlyFee(
                    member_id=club.alice_id, month=3, year=2024, amount=Decimal("25.00"),
                ))

        assert exc_info.value.__cause__ is not None
        assert count_rows(MonthlyFee) == 1

    def test_other_errors_propagate_unchanged(self, store, count_rows):
        with pytest.raises(KeyError):
            with store.session_scope("lookup") as session:
                session.add(Member(name="Frank Partial"))
                session.flush()
                raise KeyError("missing")

        assert count_rows(Member, Member.name == "Frank Partial") == 0

    def test_rollback_logged(self, store, captured_logs):
        with pytest.raises(PersistenceFailure):
            with store.session_scope("doomed"):
                raise SQLAlchemyError("boom")

        rolled_back = [
            r for r in captured_logs() if r["message"] == "transaction_rolled_back"
        ]
        assert rolled_back[-1]["operation"] == "doomed"
