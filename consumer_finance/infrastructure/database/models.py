"""SQLAlchemy ORM models for the identity store

Columns holding ciphertext are plain Text: encryption happens in the
repositories, which own the Cipher, not in a column type.
"""

import uuid
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from consumer_finance.domain.models import AccountStatus, LoanApplicationStatus, LoanDecision, VendorStatus
from consumer_finance.utils.date_utils import utcnow

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _status(enum_cls):
    return Enum(enum_cls, native_enum=False, length=20)


class Consumer(Base):
    """Onboarded consumer; starred columns in the docs hold ciphertext blobs"""

    __tablename__ = "consumers"

    id = Column(String(36), primary_key=True, default=_new_id)

    # Personal
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(20), nullable=True, unique=True)
    date_of_birth = Column(Date, nullable=True)

    # Identity (encrypted, uniqueness on HMAC fingerprint)
    national_id = Column(Text, nullable=True)
    national_id_fingerprint = Column(String(64), nullable=True, unique=True)
    document_type = Column(String(50), nullable=True)
    document_number = Column(Text, nullable=True)
    document_number_fingerprint = Column(String(64), nullable=True, unique=True)

    # Employment (employer_name encrypted)
    employer_name = Column(Text, nullable=True)
    employment_type = Column(String(50), nullable=True)
    position = Column(String(100), nullable=True)
    industry = Column(String(100), nullable=True)
    years_of_experience = Column(Integer, nullable=True)

    # Income (amounts and source encrypted)
    monthly_income = Column(Text, nullable=True)
    annual_income = Column(Text, nullable=True)
    income_source = Column(Text, nullable=True)
    currency = Column(String(3), nullable=True, default="USD")

    status = Column(_status(AccountStatus), nullable=False, default=AccountStatus.ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    created_by = Column(String(100), nullable=True)
    updated_by = Column(String(100), nullable=True)


class PrincipalAccount(Base):
    """Exactly one per consumer"""

    __tablename__ = "principal_accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    consumer_id = Column(String(36), ForeignKey("consumers.id"), nullable=False, unique=True)
    account_type = Column(String(50), nullable=False, default="PRIMARY")
    status = Column(_status(AccountStatus), nullable=False, default=AccountStatus.ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False, unique=True)
    status = Column(_status(VendorStatus), nullable=False, default=VendorStatus.ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class VendorLinkedAccount(Base):
    """At most one per (consumer, vendor) pair"""

    __tablename__ = "vendor_linked_accounts"
    __table_args__ = (UniqueConstraint("consumer_id", "vendor_id", name="uq_vendor_linked_consumer_vendor"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    consumer_id = Column(String(36), ForeignKey("consumers.id"), nullable=False, index=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False, index=True)
    principal_account_id = Column(String(36), ForeignKey("principal_accounts.id"), nullable=True)
    status = Column(_status(AccountStatus), nullable=False, default=AccountStatus.ACTIVE, index=True)
    external_account_ref = Column(String(255), nullable=True)
    linkage_id = Column(String(255), nullable=True)
    updated_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    vendor = relationship("Vendor", lazy="joined")

    @property
    def vendor_name(self):
        return self.vendor.name if self.vendor is not None else None


class LoanApplication(Base):
    """Loan request moving through PENDING -> {APPROVED, REJECTED, CANCELLED}"""

    __tablename__ = "loan_applications"
    __table_args__ = (
        # At most one PENDING application per consumer, enforced by the store
        Index(
            "uq_loan_applications_consumer_pending",
            "consumer_id",
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
        Index("ix_loan_applications_consumer_status", "consumer_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    consumer_id = Column(String(36), ForeignKey("consumers.id"), nullable=False)
    status = Column(_status(LoanApplicationStatus), nullable=False, default=LoanApplicationStatus.PENDING)
    requested_amount_cents = Column(BigInteger, nullable=False)
    term_in_months = Column(Integer, nullable=True)
    purpose = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    decisions = relationship(
        "LoanApplicationDecision",
        back_populates="application",
        order_by="LoanApplicationDecision.created_at",
    )


class LoanApplicationDecision(Base):
    """Append-only audit record of one decision; never updated or deleted"""

    __tablename__ = "loan_application_decisions"
    __table_args__ = (UniqueConstraint("application_id", "decision", name="uq_loan_decision_application_decision"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    application_id = Column(String(36), ForeignKey("loan_applications.id"), nullable=False, index=True)
    decision = Column(_status(LoanDecision), nullable=False)
    staff_id = Column(String(100), nullable=False, index=True)
    reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    application = relationship("LoanApplication", back_populates="decisions")
