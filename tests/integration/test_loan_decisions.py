"""Integration tests for the loan decision engine"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from consumer_finance.domain.exceptions import Conflict, NotFound
from consumer_finance.domain.models import (
    LoanApplicationApproved,
    LoanApplicationRejected,
    LoanApplicationStatus,
    LoanDecision,
)
from consumer_finance.infrastructure.database.models import LoanApplicationDecision
from consumer_finance.services.loan_applications import LoanApplicationService
from consumer_finance.services.loan_decisions import LoanDecisionEngine


@pytest.fixture
def application(db, consumer):
    """A PENDING application for $10,000 over 12 months"""
    return LoanApplicationService(db).submit(consumer.id, 1_000_000, 12)


@pytest.fixture
def decision_events(relay, recorder):
    relay.subscribe(LoanApplicationApproved, recorder)
    relay.subscribe(LoanApplicationRejected, recorder)
    return recorder


def test_approve_records_decision_and_publishes(db, relay, application, decision_events):
    engine = LoanDecisionEngine(db, relay)

    record = engine.submit(application.id, LoanDecision.APPROVED, "staff-7", reason="verified")

    assert engine.status(application.id) == LoanApplicationStatus.APPROVED
    assert record.decision == LoanDecision.APPROVED
    assert record.staff_id == "staff-7"
    assert record.reason == "verified"
    assert record.created_at is not None

    [event] = decision_events.events
    assert isinstance(event, LoanApplicationApproved)
    assert event.application_id == application.id
    assert event.consumer_id == application.consumer_id
    assert event.approved_amount_cents == 1_000_000
    assert event.approved_by == "staff-7"


def test_reject_publishes_rejection(db, relay, application, decision_events):
    engine = LoanDecisionEngine(db, relay)

    engine.submit(application.id, LoanDecision.REJECTED, "staff-2", reason="debt ratio")

    assert engine.status(application.id) == LoanApplicationStatus.REJECTED
    [event] = decision_events.events
    assert isinstance(event, LoanApplicationRejected)
    assert event.reason == "debt ratio"


def test_same_decision_twice_conflicts(db, relay, application, decision_events):
    engine = LoanDecisionEngine(db, relay)
    engine.submit(application.id, LoanDecision.APPROVED, "staff-1")

    with pytest.raises(Conflict):
        engine.submit(application.id, LoanDecision.APPROVED, "staff-2")

    assert db.query(LoanApplicationDecision).count() == 1
    assert len(decision_events.events) == 1


def test_opposite_decision_after_approval_conflicts(db, application):
    engine = LoanDecisionEngine(db)
    engine.submit(application.id, LoanDecision.APPROVED, "staff-1")

    with pytest.raises(Conflict, match="already decided"):
        engine.submit(application.id, LoanDecision.REJECTED, "staff-2")

    assert engine.status(application.id) == LoanApplicationStatus.APPROVED
    assert [d.decision for d in engine.decisions(application.id)] == [LoanDecision.APPROVED]


def test_unknown_application(db):
    with pytest.raises(NotFound):
        LoanDecisionEngine(db).submit("missing", LoanDecision.APPROVED, "staff-1")


def test_reason_length_limit(db, application):
    engine = LoanDecisionEngine(db)
    with pytest.raises(ValueError):
        engine.submit(application.id, LoanDecision.APPROVED, "staff-1", reason="x" * 501)

    engine.submit(application.id, LoanDecision.APPROVED, "staff-1", reason="x" * 500)
    assert engine.status(application.id) == LoanApplicationStatus.APPROVED


def test_staff_id_required(db, application):
    with pytest.raises(ValueError):
        LoanDecisionEngine(db).submit(application.id, LoanDecision.APPROVED, "")


def _race(session_factory, relay, application_id, decisions):
    """Submit each decision from its own thread and session, released together"""
    barrier = threading.Barrier(len(decisions))

    def submit(decision):
        with session_factory() as session:
            barrier.wait()
            try:
                LoanDecisionEngine(session, relay).submit(application_id, decision, f"staff-{decision.value}")
                return "decided"
            except Conflict:
                return "conflict"

    with ThreadPoolExecutor(max_workers=len(decisions)) as pool:
        return list(pool.map(submit, decisions))


def test_concurrent_identical_decisions(db, session_factory, relay, application, decision_events):
    """Test racing identical decisions persist once and report exactly one Conflict"""
    outcomes = _race(session_factory, relay, application.id, [LoanDecision.APPROVED, LoanDecision.APPROVED])

    assert sorted(outcomes) == ["conflict", "decided"]
    assert db.query(LoanApplicationDecision).filter_by(application_id=application.id).count() == 1
    assert len(decision_events.of_type(LoanApplicationApproved)) == 1


def test_concurrent_opposite_decisions(db, session_factory, relay, application, decision_events):
    """Test racing approve/reject: one wins, the winner's decision is never overwritten"""
    outcomes = _race(session_factory, relay, application.id, [LoanDecision.APPROVED, LoanDecision.REJECTED])

    assert sorted(outcomes) == ["conflict", "decided"]
    with session_factory() as fresh:
        [record] = fresh.query(LoanApplicationDecision).filter_by(application_id=application.id).all()
        expected_status = (
            LoanApplicationStatus.APPROVED if record.decision == LoanDecision.APPROVED else LoanApplicationStatus.REJECTED
        )
        assert LoanDecisionEngine(fresh).status(application.id) == expected_status
    assert len(decision_events.events) == 1


def test_status_reflects_decision_made_in_another_session(db, session_factory, application):
    """Test status reloads the row instead of trusting the caller's cached copy"""
    engine = LoanDecisionEngine(db)
    assert engine.status(application.id) == LoanApplicationStatus.PENDING

    with session_factory() as other:
        LoanDecisionEngine(other).submit(application.id, LoanDecision.REJECTED, "staff-9")

    assert engine.status(application.id) == LoanApplicationStatus.REJECTED


def test_unknown_application_leaves_no_open_transaction(db):
    with pytest.raises(NotFound):
        LoanDecisionEngine(db).submit("missing", LoanDecision.APPROVED, "staff-1")
    assert not db.in_transaction()
