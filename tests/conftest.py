"""
Pytest fixtures for the club finance ledger test suite.

Provides:
- An in-memory SQLite Store (StaticPool, one shared connection) per test
- A deterministic clock
- A seeded club: members, a registration, a monthly fee, an event
- Actors for every role, a recording audit sink and the finance facade
- Structured log capture
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from club_ledger.db.engine import Store
from club_ledger.domain.clock import DeterministicClock
from club_ledger.domain.dtos import Actor
from club_ledger.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from club_ledger.models import (
    Event,
    EventParticipation,
    Member,
    MonthlyFee,
    Registration,
)
from club_services.finance_service import ClubFinanceService


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture club_ledger logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, finance):
            finance.create_payment(...)
            logs = captured_logs()
            assert any(r["message"] == "payment_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("club_ledger")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Store, clock, session
# =============================================================================


@pytest.fixture
def store():
    """Fresh in-memory SQLite store with every table created."""
    s = Store.from_url("sqlite://")
    s.create_tables()
    yield s
    s.dispose()


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def session(store):
    """A plain session for direct service / selector tests and assertions.

    Tests that use it commit or roll back explicitly; it is closed on
    teardown.
    """
    sess = store.new_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def reload(store):
    """Load a row in a fresh session, so committed state is what is seen."""

    def _reload(model, pk):
        with store.new_session() as sess:
            return sess.get(model, pk)

    return _reload


@pytest.fixture
def count_rows(store):
    """Count rows of a model matching optional criteria, in a fresh session."""
    from sqlalchemy import func, select

    def _count(model, *criteria) -> int:
        with store.new_session() as sess:
            stmt = select(func.count()).select_from(model)
            for criterion in criteria:
                stmt = stmt.where(criterion)
            return sess.execute(stmt).scalar_one()

    return _count


# =============================================================================
# Seeded club
# =============================================================================


@dataclass(frozen=True)
class SeededClub:
    alice_id: UUID
    bob_id: UUID
    carol_id: UUID
    inactive_id: UUID
    registration_id: UUID
    bob_registration_id: UUID
    fee_id: UUID
    event_id: UUID
    participation_id: UUID


def seed_club(store: Store) -> SeededClub:
    """Three active members, one inactive, and one settleable row of each kind."""
    with store.session_scope("seed") as sess:
        alice = Member(name="Alice Ndlovu", email="alice@example.org")
        bob = Member(name="Bob Mensah")
        carol = Member(name="Carol Okafor")
        inactive = Member(name="Dan Former", is_active=False)
        sess.add_all([alice, bob, carol, inactive])
        sess.flush()

        registration = Registration(member_id=alice.id, registration_date=date(2024, 1, 10))
        bob_registration = Registration(member_id=bob.id, registration_date=date(2024, 1, 12))
        fee = MonthlyFee(member_id=alice.id, month=3, year=2024, amount=Decimal("25.00"))
        event = Event(name="Spring Camporee", start_date=date(2024, 4, 5), fee=Decimal("40.00"))
        sess.add_all([registration, bob_registration, fee, event])
        sess.flush()

        participation = EventParticipation(
            event_id=event.id,
            member_id=alice.id,
            registration_date=date(2024, 3, 1),
        )
        sess.add(participation)
        sess.flush()

        return SeededClub(
            alice_id=alice.id,
            bob_id=bob.id,
            carol_id=carol.id,
            inactive_id=inactive.id,
            registration_id=registration.id,
            bob_registration_id=bob_registration.id,
            fee_id=fee.id,
            event_id=event.id,
            participation_id=participation.id,
        )


@pytest.fixture
def club(store) -> SeededClub:
    return seed_club(store)


# =============================================================================
# Actors, audit sink, facade
# =============================================================================


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(actor_id=TEST_ACTOR_ID, role="admin", origin="127.0.0.1")


@pytest.fixture
def director_actor() -> Actor:
    return Actor(actor_id=uuid4(), role="director", origin="10.0.0.2")


@pytest.fixture
def leader_actor() -> Actor:
    return Actor(actor_id=uuid4(), role="leader", origin="10.0.0.3")


@pytest.fixture
def user_actor() -> Actor:
    return Actor(actor_id=uuid4(), role="user", origin="10.0.0.4")


class RecordingAuditSink:
    """Audit sink that keeps every record in memory."""

    def __init__(self):
        self.records: list[dict] = []

    def record(self, actor_id, action, entity_kind, entity_id, details, origin):
        self.records.append({
            "actor_id": actor_id,
            "action": action,
            "entity_kind": entity_kind,
            "entity_id": entity_id,
            "details": details,
            "origin": origin,
        })


class FailingAuditSink:
    """Audit sink that always raises."""

    def __init__(self):
        self.calls = 0

    def record(self, actor_id, action, entity_kind, entity_id, details, origin):
        self.calls += 1
        raise RuntimeError("audit store unavailable")


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def finance(store, clock, audit_sink) -> ClubFinanceService:
    return ClubFinanceService(store, clock=clock, audit_sink=audit_sink)


@pytest.fixture
def failing_audit_sink() -> FailingAuditSink:
    return FailingAuditSink()
