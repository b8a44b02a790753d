"""Consumer onboarding and profile management"""

import logging
import time
from typing import Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from consumer_finance.config import settings
from consumer_finance.domain.exceptions import Conflict, NotFound
from consumer_finance.domain.models import (
    AccountStatus,
    ConsumerProfile,
    OnboardingCompleted,
    OnboardingRequest,
    ProfileUpdate,
)
from consumer_finance.infrastructure.crypto.cipher import Cipher
from consumer_finance.infrastructure.database.models import Consumer
from consumer_finance.infrastructure.database.repositories import ConsumerRepository
from consumer_finance.infrastructure.events.relay import EventRelay
from consumer_finance.infrastructure.observability.logging import log_onboarding
from consumer_finance.infrastructure.observability.metrics import onboarding_counter
from consumer_finance.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class ConsumerService:
    def __init__(self, db: Session, cipher: Cipher, relay: Optional[EventRelay] = None):
        self.db = db
        self.relay = relay
        self.consumers = ConsumerRepository(db, cipher)

    def onboard(self, request: OnboardingRequest, created_by: str = "system") -> ConsumerProfile:
        """
        Register a new consumer.

        Flow:
        1. Reject the request if any unique identifier is already taken
        2. Encrypt sensitive fields and persist the consumer
        3. After commit, publish OnboardingCompleted so listeners provision accounts

        Raises:
            Conflict: email, phone, national id or document number already registered
            CryptoFailure: encryption failed
        """
        start_time = time.time()

        field_name = self.consumers.find_conflicting_field(
            email=request.email,
            phone=request.phone,
            national_id=request.national_id,
            document_number=request.document_number,
        )
        if field_name:
            onboarding_counter.labels(outcome="conflict").inc()
            raise Conflict(f"A consumer with this {field_name} already exists")

        try:
            record = self.consumers.create(request, created_by=created_by)
            self.db.commit()
        except sa_exc.IntegrityError as e:
            self.db.rollback()
            onboarding_counter.labels(outcome="conflict").inc()
            raise Conflict("A consumer with these identifiers already exists") from e

        profile = self.consumers.to_profile(record)

        if self.relay is not None:
            self.relay.publish(
                OnboardingCompleted(
                    consumer_id=profile.id,
                    email=profile.email,
                    consumer_name=profile.full_name,
                    completed_at=utcnow(),
                    source=settings.onboarding_event_source,
                )
            )

        duration_ms = (time.time() - start_time) * 1000
        onboarding_counter.labels(outcome="onboarded").inc()
        log_onboarding(profile.id, settings.onboarding_event_source, duration_ms)
        return profile

    def get(self, consumer_id: str) -> ConsumerProfile:
        return self.consumers.to_profile(self._load(consumer_id))

    def update_profile(
        self,
        consumer_id: str,
        changes: ProfileUpdate,
        updated_by: str = "system",
    ) -> ConsumerProfile:
        """
        Apply a partial profile update.

        Raises:
            NotFound: consumer does not exist
            Conflict: consumer is archived, or a changed unique field is taken
        """
        record = self._load(consumer_id)
        if record.status == AccountStatus.ARCHIVED:
            raise Conflict(f"Consumer '{consumer_id}' is archived")

        field_name = self.consumers.find_conflicting_field(
            email=changes.email,
            phone=changes.phone,
            national_id=changes.national_id,
            exclude_id=consumer_id,
        )
        if field_name:
            raise Conflict(f"A consumer with this {field_name} already exists")

        try:
            self.consumers.apply_update(record, changes, updated_by=updated_by)
            self.db.commit()
        except sa_exc.IntegrityError as e:
            self.db.rollback()
            raise Conflict("A consumer with these identifiers already exists") from e

        return self.consumers.to_profile(record)

    def archive(self, consumer_id: str, updated_by: str = "system") -> ConsumerProfile:
        """Soft-delete a consumer; archiving twice is a no-op"""
        record = self._load(consumer_id)
        if record.status != AccountStatus.ARCHIVED:
            record.status = AccountStatus.ARCHIVED
            record.updated_by = updated_by
            self.db.commit()
            logger.info("Consumer archived", extra={"consumer_id": consumer_id})
        return self.consumers.to_profile(record)

    def _load(self, consumer_id: str) -> Consumer:
        record = self.consumers.get(consumer_id)
        if record is None:
            raise NotFound("Consumer", consumer_id)
        return record
