"""Principal and vendor-linked account provisioning

Both account kinds are created idempotently: a second create for the same
natural key returns the existing record (``LinkResult.created`` is False)
instead of failing. This holds for the onboarding listeners and for
explicit API calls alike.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from consumer_finance.domain.exceptions import NotFound
from consumer_finance.domain.lifecycle import require_account_transition
from consumer_finance.domain.models import AccountStatus, LinkResult
from consumer_finance.infrastructure.database.models import PrincipalAccount, VendorLinkedAccount
from consumer_finance.infrastructure.database.repositories import (
    ConsumerRepository,
    PrincipalAccountRepository,
    VendorLinkedAccountRepository,
    VendorRepository,
)
from consumer_finance.infrastructure.observability.logging import log_link
from consumer_finance.infrastructure.observability.metrics import record_link
from consumer_finance.services.linker import link_or_get

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_TYPE = "PRIMARY"


class AccountService:
    """Creates, reads and transitions principal and vendor-linked accounts"""

    def __init__(self, db: Session):
        self.db = db
        self.principal_accounts = PrincipalAccountRepository(db)
        self.vendor_accounts = VendorLinkedAccountRepository(db)
        self.vendors = VendorRepository(db)

    def open_principal_account(
        self,
        consumer_id: str,
        account_type: str = DEFAULT_ACCOUNT_TYPE,
        status: AccountStatus = AccountStatus.ACTIVE,
    ) -> LinkResult[PrincipalAccount]:
        """
        Create the consumer's principal account, or return the one that exists.

        Raises:
            NotFound: consumer does not exist
        """
        self._require_consumer(consumer_id)

        result = link_or_get(
            self.db,
            find=lambda: self.principal_accounts.find_by_consumer(consumer_id),
            build=lambda: self.principal_accounts.build(consumer_id, account_type or DEFAULT_ACCOUNT_TYPE, status),
            natural_key=f"principal_account:{consumer_id}",
        )

        record_link("principal_account", result.created)
        log_link("principal_account", consumer_id, result.resource.id, result.created)
        return result

    def get_principal_account(self, consumer_id: str) -> PrincipalAccount:
        self._require_consumer(consumer_id)
        account = self.principal_accounts.find_by_consumer(consumer_id)
        if account is None:
            raise NotFound("PrincipalAccount", consumer_id)
        return account

    def link_vendor_account(
        self,
        consumer_id: str,
        vendor_id: str,
        external_account_ref: Optional[str] = None,
        linkage_id: Optional[str] = None,
    ) -> LinkResult[VendorLinkedAccount]:
        """
        Link a consumer to a vendor, or return the existing link for the pair.

        Raises:
            NotFound: consumer or vendor does not exist
        """
        self._require_consumer(consumer_id)
        if self.vendors.get(vendor_id) is None:
            raise NotFound("Vendor", vendor_id)

        principal = self.principal_accounts.find_by_consumer(consumer_id)
        result = link_or_get(
            self.db,
            find=lambda: self.vendor_accounts.find(consumer_id, vendor_id),
            build=lambda: self.vendor_accounts.build(
                consumer_id,
                vendor_id,
                principal_account_id=principal.id if principal else None,
                external_account_ref=external_account_ref,
                linkage_id=linkage_id,
            ),
            natural_key=f"vendor_linked_account:{consumer_id}:{vendor_id}",
        )

        record_link("vendor_linked_account", result.created)
        log_link("vendor_linked_account", consumer_id, result.resource.id, result.created, vendor_id=vendor_id)
        return result

    def get_vendor_account(self, account_id: str) -> VendorLinkedAccount:
        account = self.vendor_accounts.get(account_id)
        if account is None:
            raise NotFound("VendorLinkedAccount", account_id)
        return account

    def list_vendor_accounts(self, consumer_id: str) -> List[VendorLinkedAccount]:
        self._require_consumer(consumer_id)
        return self.vendor_accounts.list_by_consumer(consumer_id)

    def update_vendor_account_status(
        self,
        account_id: str,
        status: AccountStatus,
        updated_by: Optional[str] = None,
    ) -> VendorLinkedAccount:
        """
        Move a vendor-linked account to ``status``.

        ARCHIVED is terminal; asking for the current status is a no-op.

        Raises:
            NotFound: account does not exist
            Conflict: transition not allowed
        """
        account = self.get_vendor_account(account_id)
        current = account.status
        if not require_account_transition(current, status, "vendor-linked account"):
            return account

        account.status = status
        account.updated_by = updated_by
        self.db.commit()
        logger.info(
            "Vendor-linked account status changed",
            extra={"account_id": account_id, "from_status": current.value, "to_status": status.value},
        )
        return account

    def _require_consumer(self, consumer_id: str) -> None:
        if not ConsumerRepository(self.db).exists(consumer_id):
            raise NotFound("Consumer", consumer_id)
