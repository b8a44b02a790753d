"""Loan decision engine - lifecycle state machine with an append-only audit trail"""

import logging
import time
from typing import List, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from consumer_finance.domain.exceptions import Conflict, NotFound
from consumer_finance.domain.lifecycle import DECISION_OUTCOMES, require_pending
from consumer_finance.domain.models import (
    LoanApplicationApproved,
    LoanApplicationRejected,
    LoanApplicationStatus,
    LoanDecision,
)
from consumer_finance.infrastructure.database.models import LoanApplication, LoanApplicationDecision
from consumer_finance.infrastructure.database.repositories import DecisionRepository, LoanApplicationRepository
from consumer_finance.infrastructure.events.relay import EventRelay
from consumer_finance.infrastructure.observability.logging import log_decision
from consumer_finance.infrastructure.observability.metrics import loan_decision_counter

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 500


class LoanDecisionEngine:
    def __init__(self, db: Session, relay: Optional[EventRelay] = None):
        self.db = db
        self.relay = relay
        self.applications = LoanApplicationRepository(db)
        self.decisions_repo = DecisionRepository(db)

    def submit(
        self,
        application_id: str,
        decision: LoanDecision,
        staff_id: str,
        reason: Optional[str] = None,
    ) -> LoanApplicationDecision:
        """
        Record a staff decision and move the application to its terminal status.

        Flow:
        1. Load the application (row-locked where the store supports it)
        2. Require status PENDING
        3. Require no earlier decision of the same type
        4. Insert the decision and flip the status in one transaction; the
           status UPDATE is conditional on PENDING and must touch exactly one row
        5. After commit, publish the approval or rejection event

        Two concurrent submissions are serialized by the store: the loser
        trips the unique (application, decision) constraint or finds the
        status already changed, and gets Conflict. The winner's decision is
        never overwritten.

        Raises:
            NotFound: application does not exist
            Conflict: already decided, or a concurrent decision won
        """
        if not staff_id:
            raise ValueError("staff_id is required")
        if reason is not None and len(reason) > MAX_REASON_LENGTH:
            raise ValueError(f"reason must be at most {MAX_REASON_LENGTH} characters")

        start_time = time.time()
        decision = LoanDecision(decision)
        target = DECISION_OUTCOMES[decision]

        # 1-3. Preconditions
        application = self.applications.get_for_update(application_id)
        if application is None:
            self.db.rollback()
            raise NotFound("LoanApplication", application_id)
        try:
            require_pending(application.status, application_id)
            if self.decisions_repo.find(application_id, decision) is not None:
                raise Conflict(
                    f"A {decision.value} decision already exists for loan application '{application_id}'"
                )
        except Conflict:
            self.db.rollback()
            loan_decision_counter.labels(decision="conflict").inc()
            raise

        # 4. Decision record and status change commit together
        try:
            record = self.decisions_repo.add(application_id, decision, staff_id, reason)
            if not self.applications.transition(application_id, LoanApplicationStatus.PENDING, target):
                raise Conflict(f"Loan application '{application_id}' was decided concurrently")
            self.db.commit()
        except sa_exc.IntegrityError as e:
            self.db.rollback()
            loan_decision_counter.labels(decision="conflict").inc()
            raise Conflict(
                f"A {decision.value} decision already exists for loan application '{application_id}'"
            ) from e
        except Conflict:
            self.db.rollback()
            loan_decision_counter.labels(decision="conflict").inc()
            raise

        # 5. Side effects
        duration_ms = (time.time() - start_time) * 1000
        loan_decision_counter.labels(decision=decision.value).inc()
        log_decision(application_id, application.consumer_id, decision.value, staff_id, duration_ms)

        if self.relay is not None:
            self.relay.publish(self._event_for(application, record))
        return record

    def status(self, application_id: str) -> LoanApplicationStatus:
        application = self.applications.get_current(application_id)
        if application is None:
            raise NotFound("LoanApplication", application_id)
        return application.status

    def decisions(self, application_id: str) -> List[LoanApplicationDecision]:
        """Audit trail for an application, oldest first"""
        if self.applications.get(application_id) is None:
            raise NotFound("LoanApplication", application_id)
        return self.decisions_repo.list_for_application(application_id)

    @staticmethod
    def _event_for(application: LoanApplication, record: LoanApplicationDecision):
        if record.decision == LoanDecision.APPROVED:
            return LoanApplicationApproved(
                application_id=application.id,
                consumer_id=application.consumer_id,
                approved_amount_cents=application.requested_amount_cents,
                approved_by=record.staff_id,
                approved_at=record.created_at,
            )
        return LoanApplicationRejected(
            application_id=application.id,
            consumer_id=application.consumer_id,
            rejected_by=record.staff_id,
            reason=record.reason,
            rejected_at=record.created_at,
        )
