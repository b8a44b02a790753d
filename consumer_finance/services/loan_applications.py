"""Loan application submission and cancellation"""

import logging
from typing import List, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from consumer_finance.domain.exceptions import Conflict, NotFound
from consumer_finance.domain.lifecycle import require_pending
from consumer_finance.domain.models import LoanApplicationCancelled, LoanApplicationStatus
from consumer_finance.infrastructure.database.models import LoanApplication
from consumer_finance.infrastructure.database.repositories import ConsumerRepository, LoanApplicationRepository
from consumer_finance.infrastructure.events.relay import EventRelay
from consumer_finance.infrastructure.observability.metrics import loan_application_counter
from consumer_finance.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class LoanApplicationService:
    """A consumer holds at most one PENDING application at a time"""

    def __init__(self, db: Session, relay: Optional[EventRelay] = None):
        self.db = db
        self.relay = relay
        self.applications = LoanApplicationRepository(db)
        self.consumers = ConsumerRepository(db)

    def submit(
        self,
        consumer_id: str,
        requested_amount_cents: int,
        term_in_months: Optional[int],
        purpose: Optional[str] = None,
    ) -> LoanApplication:
        """
        Create a PENDING application.

        The pre-check gives a readable error; the partial unique index on
        pending applications is what holds under concurrent submissions.

        Raises:
            NotFound: consumer does not exist
            Conflict: consumer already has a PENDING application
        """
        if requested_amount_cents <= 0:
            raise ValueError("requested_amount_cents must be positive")
        if not self.consumers.exists(consumer_id):
            raise NotFound("Consumer", consumer_id)

        pending = self.applications.find_pending(consumer_id)
        if pending is not None:
            loan_application_counter.labels(outcome="conflict").inc()
            raise Conflict(
                f"Consumer '{consumer_id}' already has a pending loan application '{pending.id}'"
            )

        try:
            application = self.applications.add(consumer_id, requested_amount_cents, term_in_months, purpose)
            self.db.commit()
        except sa_exc.IntegrityError as e:
            self.db.rollback()
            loan_application_counter.labels(outcome="conflict").inc()
            raise Conflict(f"Consumer '{consumer_id}' already has a pending loan application") from e

        loan_application_counter.labels(outcome="submitted").inc()
        logger.info(
            "Loan application submitted",
            extra={"application_id": application.id, "consumer_id": consumer_id},
        )
        return application

    def get(self, application_id: str) -> LoanApplication:
        application = self.applications.get(application_id)
        if application is None:
            raise NotFound("LoanApplication", application_id)
        return application

    def list_for_consumer(self, consumer_id: str, limit: int = 20) -> List[LoanApplication]:
        if not self.consumers.exists(consumer_id):
            raise NotFound("Consumer", consumer_id)
        return self.applications.list_by_consumer(consumer_id, limit=limit)

    def has_pending(self, consumer_id: str) -> bool:
        return self.applications.find_pending(consumer_id) is not None

    def cancel(self, application_id: str, consumer_id: str) -> LoanApplication:
        """
        Withdraw a PENDING application on behalf of the consumer who submitted it.

        Another consumer's application is reported as not found.

        Raises:
            NotFound: application does not exist or belongs to someone else
            Conflict: application is no longer PENDING
        """
        application = self.applications.get_for_update(application_id)
        if application is None or application.consumer_id != consumer_id:
            self.db.rollback()
            raise NotFound("LoanApplication", application_id)
        try:
            require_pending(application.status, application_id)
        except Conflict:
            self.db.rollback()
            raise

        if not self.applications.transition(
            application_id, LoanApplicationStatus.PENDING, LoanApplicationStatus.CANCELLED
        ):
            self.db.rollback()
            raise Conflict(f"Loan application '{application_id}' was decided concurrently")
        self.db.commit()

        loan_application_counter.labels(outcome="cancelled").inc()
        logger.info(
            "Loan application cancelled",
            extra={"application_id": application_id, "consumer_id": consumer_id},
        )

        if self.relay is not None:
            self.relay.publish(
                LoanApplicationCancelled(
                    application_id=application_id,
                    consumer_id=consumer_id,
                    cancelled_at=utcnow(),
                )
            )
        return application
