"""Integration tests for loan application submission and cancellation"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from consumer_finance.domain.exceptions import Conflict, NotFound
from consumer_finance.domain.models import LoanApplicationCancelled, LoanApplicationStatus, LoanDecision
from consumer_finance.infrastructure.database.models import LoanApplication
from consumer_finance.services.loan_applications import LoanApplicationService
from consumer_finance.services.loan_decisions import LoanDecisionEngine


def test_submit_creates_pending_application(db, consumer):
    application = LoanApplicationService(db).submit(consumer.id, 1_000_000, 12, purpose="Home repair")

    assert application.status == LoanApplicationStatus.PENDING
    assert application.requested_amount_cents == 1_000_000
    assert application.term_in_months == 12
    assert application.purpose == "Home repair"


def test_second_pending_application_conflicts(db, consumer):
    service = LoanApplicationService(db)
    service.submit(consumer.id, 1_000_000, 12)

    with pytest.raises(Conflict, match="pending"):
        service.submit(consumer.id, 500_000, 6)
    assert db.query(LoanApplication).count() == 1


def test_new_application_allowed_after_terminal_state(db, consumer):
    service = LoanApplicationService(db)
    first = service.submit(consumer.id, 1_000_000, 12)
    LoanDecisionEngine(db).submit(first.id, LoanDecision.REJECTED, "staff-1", reason="income unverified")

    second = service.submit(consumer.id, 500_000, 6)

    assert second.status == LoanApplicationStatus.PENDING
    assert service.has_pending(consumer.id)
    assert {a.id for a in service.list_for_consumer(consumer.id)} == {first.id, second.id}


def test_submit_unknown_consumer(db):
    with pytest.raises(NotFound):
        LoanApplicationService(db).submit("missing", 1_000_000, 12)


def test_submit_rejects_non_positive_amount(db, consumer):
    with pytest.raises(ValueError):
        LoanApplicationService(db).submit(consumer.id, 0, 12)


def test_concurrent_submissions_leave_one_pending(db, session_factory, consumer):
    """Test racing submissions for one consumer produce exactly one PENDING application"""
    workers = 6
    barrier = threading.Barrier(workers)

    def submit(_):
        with session_factory() as session:
            barrier.wait()
            try:
                LoanApplicationService(session).submit(consumer.id, 1_000_000, 12)
                return "submitted"
            except Conflict:
                return "conflict"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(submit, range(workers)))

    assert outcomes.count("submitted") == 1
    assert outcomes.count("conflict") == workers - 1
    assert db.query(LoanApplication).filter_by(status=LoanApplicationStatus.PENDING).count() == 1


def test_cancel_by_owner(db, consumer, relay, recorder):
    relay.subscribe(LoanApplicationCancelled, recorder)
    service = LoanApplicationService(db, relay)
    application = service.submit(consumer.id, 1_000_000, 12)

    cancelled = service.cancel(application.id, consumer.id)

    assert cancelled.status == LoanApplicationStatus.CANCELLED
    assert not service.has_pending(consumer.id)
    [event] = recorder.of_type(LoanApplicationCancelled)
    assert event.application_id == application.id


def test_cancel_by_other_consumer_is_not_found(db, consumer):
    service = LoanApplicationService(db)
    application = service.submit(consumer.id, 1_000_000, 12)

    with pytest.raises(NotFound):
        service.cancel(application.id, "someone-else")
    assert not db.in_transaction()
    assert service.get(application.id).status == LoanApplicationStatus.PENDING


def test_cancel_decided_application_conflicts(db, consumer):
    service = LoanApplicationService(db)
    application = service.submit(consumer.id, 1_000_000, 12)
    LoanDecisionEngine(db).submit(application.id, LoanDecision.APPROVED, "staff-1")

    with pytest.raises(Conflict, match="already decided"):
        service.cancel(application.id, consumer.id)
    assert not db.in_transaction()
    assert service.get(application.id).status == LoanApplicationStatus.APPROVED


def test_cancelled_application_cannot_be_decided(db, consumer):
    service = LoanApplicationService(db)
    application = service.submit(consumer.id, 1_000_000, 12)
    service.cancel(application.id, consumer.id)

    with pytest.raises(Conflict):
        LoanDecisionEngine(db).submit(application.id, LoanDecision.APPROVED, "staff-1")


def test_get_unknown_application(db):
    with pytest.raises(NotFound):
        LoanApplicationService(db).get("missing")
