"""Data access layer for the identity store

Repositories never commit; the calling service owns the unit of work.
"""

from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from consumer_finance.domain.models import (
    AccountStatus,
    ConsumerProfile,
    LoanApplicationStatus,
    LoanDecision,
    OnboardingRequest,
    ProfileUpdate,
    VendorStatus,
)
from consumer_finance.infrastructure.crypto.cipher import Cipher
from consumer_finance.infrastructure.database.models import (
    Consumer,
    LoanApplication,
    LoanApplicationDecision,
    PrincipalAccount,
    Vendor,
    VendorLinkedAccount,
)
from consumer_finance.utils.date_utils import utcnow


class ConsumerRepository:
    """Repository for consumers; encrypts sensitive fields on write, decrypts on read"""

    def __init__(self, db: Session, cipher: Optional[Cipher] = None):
        self.db = db
        self.cipher = cipher

    def get(self, consumer_id: str) -> Optional[Consumer]:
        return self.db.get(Consumer, consumer_id)

    def exists(self, consumer_id: str) -> bool:
        return self.db.query(Consumer.id).filter(Consumer.id == consumer_id).first() is not None

    def find_conflicting_field(
        self,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        national_id: Optional[str] = None,
        document_number: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Name of the first unique field already taken by another consumer.

        Encrypted identifiers are compared through their fingerprints.
        """
        checks = [
            ("email", Consumer.email, email),
            ("phone", Consumer.phone, phone),
            ("national_id", Consumer.national_id_fingerprint, self.cipher.fingerprint(national_id)),
            ("document_number", Consumer.document_number_fingerprint, self.cipher.fingerprint(document_number)),
        ]
        for field_name, column, value in checks:
            if not value:
                continue
            query = self.db.query(Consumer.id).filter(column == value)
            if exclude_id is not None:
                query = query.filter(Consumer.id != exclude_id)
            if query.first() is not None:
                return field_name
        return None

    def create(self, request: OnboardingRequest, created_by: str) -> Consumer:
        """Stage a new consumer with its sensitive fields encrypted"""
        record = Consumer(
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            phone=request.phone or None,
            date_of_birth=request.date_of_birth,
            document_type=request.document_type,
            employment_type=request.employment_type,
            position=request.position,
            industry=request.industry,
            years_of_experience=request.years_of_experience,
            currency=request.currency or "USD",
            status=AccountStatus.ACTIVE,
            created_by=created_by,
            updated_by=created_by,
        )
        self._set_national_id(record, request.national_id)
        self._set_document_number(record, request.document_number)
        record.employer_name = self._seal(request.employer_name)
        record.monthly_income = self._seal_cents(request.monthly_income_cents)
        record.annual_income = self._seal_cents(request.annual_income_cents)
        record.income_source = self._seal(request.income_source)

        self.db.add(record)
        self.db.flush()
        return record

    def apply_update(self, record: Consumer, changes: ProfileUpdate, updated_by: str) -> Consumer:
        """Apply the non-None fields of ``changes``, re-encrypting sensitive ones"""
        for plain_field in ("first_name", "last_name", "email", "date_of_birth", "position"):
            value = getattr(changes, plain_field)
            if value is not None:
                setattr(record, plain_field, value)

        # Unique and optional: "" clears it, stored as NULL like on create
        if changes.phone is not None:
            record.phone = changes.phone or None

        if changes.national_id is not None:
            self._set_national_id(record, changes.national_id)
        if changes.employer_name is not None:
            record.employer_name = self._seal(changes.employer_name)
        if changes.monthly_income_cents is not None:
            record.monthly_income = self._seal_cents(changes.monthly_income_cents)
        if changes.annual_income_cents is not None:
            record.annual_income = self._seal_cents(changes.annual_income_cents)

        record.updated_by = updated_by
        self.db.flush()
        return record

    def to_profile(self, record: Consumer) -> ConsumerProfile:
        """Decrypt a stored consumer; CryptoFailure propagates"""
        return ConsumerProfile(
            id=record.id,
            first_name=record.first_name,
            last_name=record.last_name,
            email=record.email,
            status=record.status,
            national_id=self._open(record.national_id),
            document_type=record.document_type,
            phone=record.phone,
            date_of_birth=record.date_of_birth,
            document_number=self._open(record.document_number),
            employer_name=self._open(record.employer_name),
            employment_type=record.employment_type,
            position=record.position,
            industry=record.industry,
            years_of_experience=record.years_of_experience,
            monthly_income_cents=self._open_cents(record.monthly_income),
            annual_income_cents=self._open_cents(record.annual_income),
            income_source=self._open(record.income_source),
            currency=record.currency,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def _set_national_id(self, record: Consumer, national_id: Optional[str]) -> None:
        record.national_id = self._seal(national_id)
        record.national_id_fingerprint = self.cipher.fingerprint(national_id)

    def _set_document_number(self, record: Consumer, document_number: Optional[str]) -> None:
        record.document_number = self._seal(document_number)
        record.document_number_fingerprint = self.cipher.fingerprint(document_number)

    def _seal(self, value: Optional[str]) -> Optional[str]:
        return self.cipher.encrypt(value) or None

    def _seal_cents(self, cents: Optional[int]) -> Optional[str]:
        return None if cents is None else self.cipher.encrypt(str(cents))

    def _open(self, blob: Optional[str]) -> Optional[str]:
        # Absent values are stored as NULL, never as ciphertext
        return None if not blob else self.cipher.decrypt(blob)

    def _open_cents(self, blob: Optional[str]) -> Optional[int]:
        value = self._open(blob)
        return None if value is None else int(value)


class PrincipalAccountRepository:
    """Repository for principal accounts"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_consumer(self, consumer_id: str) -> Optional[PrincipalAccount]:
        return self.db.query(PrincipalAccount).filter(PrincipalAccount.consumer_id == consumer_id).first()

    def build(self, consumer_id: str, account_type: str, status: AccountStatus) -> PrincipalAccount:
        return PrincipalAccount(consumer_id=consumer_id, account_type=account_type, status=status)


class VendorRepository:
    """Repository for vendors"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, vendor_id: str) -> Optional[Vendor]:
        return self.db.get(Vendor, vendor_id)

    def list_active(self) -> List[Vendor]:
        return self.db.query(Vendor).filter(Vendor.status == VendorStatus.ACTIVE).order_by(Vendor.name).all()

    def add(self, name: str, status: VendorStatus = VendorStatus.ACTIVE) -> Vendor:
        vendor = Vendor(name=name, status=status)
        self.db.add(vendor)
        self.db.flush()
        return vendor


class VendorLinkedAccountRepository:
    """Repository for vendor-linked accounts"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: str) -> Optional[VendorLinkedAccount]:
        return self.db.get(VendorLinkedAccount, account_id)

    def find(self, consumer_id: str, vendor_id: str) -> Optional[VendorLinkedAccount]:
        return (
            self.db.query(VendorLinkedAccount)
            .filter(VendorLinkedAccount.consumer_id == consumer_id, VendorLinkedAccount.vendor_id == vendor_id)
            .first()
        )

    def list_by_consumer(self, consumer_id: str) -> List[VendorLinkedAccount]:
        return (
            self.db.query(VendorLinkedAccount)
            .filter(VendorLinkedAccount.consumer_id == consumer_id)
            .order_by(VendorLinkedAccount.created_at)
            .all()
        )

    def build(
        self,
        consumer_id: str,
        vendor_id: str,
        principal_account_id: Optional[str] = None,
        external_account_ref: Optional[str] = None,
        linkage_id: Optional[str] = None,
    ) -> VendorLinkedAccount:
        return VendorLinkedAccount(
            consumer_id=consumer_id,
            vendor_id=vendor_id,
            principal_account_id=principal_account_id,
            status=AccountStatus.ACTIVE,
            external_account_ref=external_account_ref,
            linkage_id=linkage_id,
        )


class LoanApplicationRepository:
    """Repository for loan applications"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, application_id: str) -> Optional[LoanApplication]:
        return self.db.get(LoanApplication, application_id)

    def get_current(self, application_id: str) -> Optional[LoanApplication]:
        """Reload from the store, replacing any state cached in the session"""
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.id == application_id)
            .populate_existing()
            .first()
        )

    def get_for_update(self, application_id: str) -> Optional[LoanApplication]:
        """Load and row-lock an application (the lock is a no-op on SQLite)"""
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.id == application_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def find_pending(self, consumer_id: str) -> Optional[LoanApplication]:
        return (
            self.db.query(LoanApplication)
            .filter(
                LoanApplication.consumer_id == consumer_id,
                LoanApplication.status == LoanApplicationStatus.PENDING,
            )
            .first()
        )

    def list_by_consumer(self, consumer_id: str, limit: int = 20) -> List[LoanApplication]:
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.consumer_id == consumer_id)
            .order_by(LoanApplication.created_at.desc())
            .limit(limit)
            .all()
        )

    def add(
        self,
        consumer_id: str,
        requested_amount_cents: int,
        term_in_months: Optional[int],
        purpose: Optional[str],
    ) -> LoanApplication:
        application = LoanApplication(
            consumer_id=consumer_id,
            status=LoanApplicationStatus.PENDING,
            requested_amount_cents=requested_amount_cents,
            term_in_months=term_in_months,
            purpose=purpose,
        )
        self.db.add(application)
        self.db.flush()
        return application

    def transition(
        self,
        application_id: str,
        expected: LoanApplicationStatus,
        target: LoanApplicationStatus,
    ) -> bool:
        """
        Compare-and-set the status in a single UPDATE.

        Returns False when the row was not in ``expected`` status, i.e. a
        concurrent writer got there first. Loaded instances are not
        synchronized; they refresh on the next commit.
        """
        result = self.db.execute(
            update(LoanApplication)
            .where(LoanApplication.id == application_id, LoanApplication.status == expected)
            .values(status=target, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class DecisionRepository:
    """Repository for the append-only decision audit trail"""

    def __init__(self, db: Session):
        self.db = db

    def find(self, application_id: str, decision: LoanDecision) -> Optional[LoanApplicationDecision]:
        return (
            self.db.query(LoanApplicationDecision)
            .filter(
                LoanApplicationDecision.application_id == application_id,
                LoanApplicationDecision.decision == decision,
            )
            .first()
        )

    def list_for_application(self, application_id: str) -> List[LoanApplicationDecision]:
        return (
            self.db.query(LoanApplicationDecision)
            .filter(LoanApplicationDecision.application_id == application_id)
            .order_by(LoanApplicationDecision.created_at)
            .all()
        )

    def add(
        self,
        application_id: str,
        decision: LoanDecision,
        staff_id: str,
        reason: Optional[str],
    ) -> LoanApplicationDecision:
        """Stage the decision record; a duplicate (application, decision) fails on flush"""
        record = LoanApplicationDecision(
            application_id=application_id,
            decision=decision,
            staff_id=staff_id,
            reason=reason,
        )
        self.db.add(record)
        self.db.flush()
        return record
