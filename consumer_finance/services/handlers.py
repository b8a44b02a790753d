"""Event handlers wired onto the relay at startup

Each handler opens its own session: the publishing transaction has
already committed, and a handler failure must not touch it.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from consumer_finance.domain.models import AccountStatus, LoanApplicationApproved, OnboardingCompleted
from consumer_finance.infrastructure.clients.disbursement import DisbursementClient
from consumer_finance.infrastructure.database.repositories import VendorRepository
from consumer_finance.infrastructure.events.relay import EventRelay
from consumer_finance.infrastructure.observability.metrics import vendor_link_failure_counter
from consumer_finance.services.accounts import DEFAULT_ACCOUNT_TYPE, AccountService

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class PrincipalAccountProvisioner:
    """Opens the PRIMARY principal account for a newly onboarded consumer"""

    def __init__(self, session_factory: SessionFactory, account_type: str = DEFAULT_ACCOUNT_TYPE):
        self.session_factory = session_factory
        self.account_type = account_type

    def __call__(self, event: OnboardingCompleted) -> None:
        with self.session_factory() as db:
            AccountService(db).open_principal_account(
                event.consumer_id,
                account_type=self.account_type,
                status=AccountStatus.ACTIVE,
            )


class VendorAccountProvisioner:
    """
    Links a newly onboarded consumer to every ACTIVE vendor.

    Vendors are independent: a failed link is logged and counted, and the
    remaining vendors are still processed.
    """

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def __call__(self, event: OnboardingCompleted) -> None:
        with self.session_factory() as db:
            vendor_ids = [vendor.id for vendor in VendorRepository(db).list_active()]
            accounts = AccountService(db)
            linked = 0
            for vendor_id in vendor_ids:
                try:
                    accounts.link_vendor_account(event.consumer_id, vendor_id)
                    linked += 1
                except Exception:
                    db.rollback()
                    vendor_link_failure_counter.inc()
                    logger.error(
                        "Vendor link failed",
                        exc_info=True,
                        extra={"consumer_id": event.consumer_id, "vendor_id": vendor_id},
                    )

            logger.info(
                "Vendor accounts provisioned",
                extra={"consumer_id": event.consumer_id, "linked": linked, "vendors": len(vendor_ids)},
            )


class DisbursementNotifier:
    """Forwards approvals to the downstream disbursement webhook"""

    def __init__(self, client: DisbursementClient):
        self.client = client

    def __call__(self, event: LoanApplicationApproved) -> None:
        self.client.send_approval_event(
            {
                "event": "LOAN_APPLICATION_APPROVED",
                "event_id": event.event_id,
                "application_id": event.application_id,
                "consumer_id": event.consumer_id,
                "amount_cents": event.approved_amount_cents,
                "approved_by": event.approved_by,
                "approved_at": event.approved_at.isoformat() if event.approved_at else None,
            }
        )


def register_handlers(
    relay: EventRelay,
    session_factory: SessionFactory,
    disbursement_client: Optional[DisbursementClient] = None,
) -> EventRelay:
    """Subscribe the standard handlers; principal account is provisioned before vendor links"""
    relay.subscribe(OnboardingCompleted, PrincipalAccountProvisioner(session_factory), name="principal_account")
    relay.subscribe(OnboardingCompleted, VendorAccountProvisioner(session_factory), name="vendor_accounts")

    if disbursement_client is not None and disbursement_client.webhook_url:
        relay.subscribe(LoanApplicationApproved, DisbursementNotifier(disbursement_client), name="disbursement")
    return relay
