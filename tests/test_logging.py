"""Tests for the structured logging system (club_ledger/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from club_ledger.domain.dtos import PaymentInput
from club_ledger.exceptions import InvalidAmountError
from club_ledger.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
    resolve_level,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "club_ledger.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("payment_created", extra={"amount": "25.00", "rows": 1})

        record = _parse_log(stream)
        assert record["amount"] == "25.00"
        assert record["rows"] == 1

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", payment_id="pay-456")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["payment_id"] == "pay-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_ledger_exception_fields_extracted(self):
        """Ledger exceptions carry a .code and their structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from club_ledger.exceptions import DuplicateMonthlyFeeError

        try:
            raise DuplicateMonthlyFeeError("member-1", 3, 2024)
        except DuplicateMonthlyFeeError:
            logger.error("fee_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "DUPLICATE_MONTHLY_FEE"
        assert record["exc_type"] == "DuplicateMonthlyFeeError"
        assert record["exc_member_id"] == "member-1"
        assert record["exc_month"] == 3

    def test_context_wins_over_same_named_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(payment_id="from-context"):
            get_logger("test").info("clash", extra={"payment_id": "from-extra"})

        assert _parse_log(stream)["payment_id"] == "from-context"

    def test_ownership_error_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from club_ledger.exceptions import ReferenceOwnershipMismatchError

        try:
            raise ReferenceOwnershipMismatchError("registration", "reg-1", "bob", "alice")
        except ReferenceOwnershipMismatchError:
            get_logger("test").warning("payment_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "REFERENCE_OWNERSHIP_MISMATCH"
        assert (record["exc_owner_id"], record["exc_member_id"]) == ("bob", "alice")
        assert record["exc_kind"] == "registration"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "payment_id" not in record

    def test_uuid_date_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("typed", extra={
            "entry_id": uid,
            "day": date(2024, 3, 1),
            "amount": Decimal("12.50"),
        })

        record = _parse_log(stream)
        assert record["entry_id"] == str(uid)
        assert record["day"] == "2024-03-01"
        assert record["amount"] == "12.50"

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", batch_task="dues.generate_monthly")
        assert LogContext.get_all() == {
            "correlation_id": "x",
            "batch_task": "dues.generate_monthly",
        }

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner"):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all()["actor_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(origin="10.0.0.1"):
            assert LogContext.get_all()["origin"] == "10.0.0.1"
        assert "origin" not in LogContext.get_all()

    def test_bind_ignores_none_values(self):
        LogContext.set(origin="kept")
        with LogContext.bind(origin=None):
            assert LogContext.get_all()["origin"] == "kept"

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="event_id"):
            LogContext.set(event_id="x")
        with pytest.raises(TypeError, match="member"):
            with LogContext.bind(member="m"):
                pass

    def test_nested_binds_unwind_in_order(self):
        with LogContext.bind(actor_id="a", correlation_id="c1"):
            with LogContext.bind(payment_id="p", correlation_id="c2"):
                assert LogContext.get_all() == {
                    "actor_id": "a", "correlation_id": "c2", "payment_id": "p",
                }
            assert LogContext.get_all() == {"actor_id": "a", "correlation_id": "c1"}
        assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            payment_id="p",
            batch_task="b",
            origin="o",
        )
        assert tuple(LogContext.get_all()) == LogContext.FIELDS


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)

        handlers = logging.getLogger("club_ledger").handlers
        assert h1 in handlers
        assert h2 not in handlers
        assert [h for h in handlers if isinstance(h.formatter, StructuredFormatter)] == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("services.payment_reconciler").name == (
            "club_ledger.services.payment_reconciler"
        )

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "club_ledger.deep.nested.module"

    def test_second_call_reports_no_change(self):
        h1, _ = _make_handler()
        assert configure_logging(handler=h1) is True
        assert configure_logging(level="ERROR") is False
        assert logging.getLogger("club_ledger").level == logging.INFO


class TestResolveLevel:

    @pytest.mark.parametrize("level, expected", [
        ("info", logging.INFO),
        ("WARNING", logging.WARNING),
        (logging.DEBUG, logging.DEBUG),
    ])
    def test_names_and_numbers(self, level, expected):
        assert resolve_level(level) == expected

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="LOUD"):
            resolve_level("LOUD")


# ---------------------------------------------------------------------------
# Records emitted by the ledger
# ---------------------------------------------------------------------------


class TestLedgerRecords:
    """The context the facade, reconciler and batch engine bind reaches the JSON lines."""

    @pytest.fixture
    def stream(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        return stream

    def test_payment_created_carries_request_and_payment_ids(
        self, stream, finance, admin_actor, club,
    ):
        record = finance.create_payment(admin_actor, PaymentInput(
            amount="25.00",
            member_id=club.alice_id,
            reference_kind="monthly_fee",
            reference_id=club.fee_id,
        ))

        logs = _parse_all_logs(stream)
        created = [r for r in logs if r["message"] == "payment_created"][0]
        assert created["payment_id"] == str(record.id)
        assert created["actor_id"] == str(admin_actor.actor_id)
        assert created["origin"] == "127.0.0.1"
        assert created["reference_kind"] == "monthly_fee"
        assert created["amount"] == "25.00"

        mirror = [r for r in logs if r["message"] == "payment_mirror_recorded"][0]
        assert mirror["correlation_id"] == created["correlation_id"]
        assert LogContext.get_all() == {}

    def test_batch_records_carry_task_type(self, stream, finance, admin_actor, club):
        finance.generate_recurring_dues(admin_actor, 6, 2024, "20")

        batch_logs = [r for r in _parse_all_logs(stream) if r["message"].startswith("batch_")]
        assert [r["message"] for r in batch_logs] == ["batch_started", "batch_completed"]
        assert {r["batch_task"] for r in batch_logs} == {"dues.generate_monthly"}
        assert batch_logs[-1]["created_count"] == 3

    def test_nan_amount_rejected_before_any_write(self, stream, finance, admin_actor, club):
        with pytest.raises(InvalidAmountError):
            finance.create_payment(admin_actor, PaymentInput(amount="NaN"))

        assert not [r for r in _parse_all_logs(stream) if r["message"] == "payment_created"]
