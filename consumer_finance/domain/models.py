"""Domain models - pure Python dataclasses representing business entities"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class AccountStatus(str, enum.Enum):
    """Lifecycle of consumers, principal accounts and vendor-linked accounts"""

    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    ARCHIVED = "ARCHIVED"


class VendorStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class LoanApplicationStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LoanDecision(str, enum.Enum):
    """Decision a staff member can record against a pending application"""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass
class OnboardingRequest:
    """Validated consumer onboarding input (plaintext)"""

    first_name: str
    last_name: str
    email: str
    national_id: str
    document_type: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    document_number: Optional[str] = None
    employer_name: Optional[str] = None
    employment_type: Optional[str] = None
    position: Optional[str] = None
    industry: Optional[str] = None
    years_of_experience: Optional[int] = None
    monthly_income_cents: Optional[int] = None
    annual_income_cents: Optional[int] = None
    income_source: Optional[str] = None
    currency: str = "USD"


@dataclass
class ProfileUpdate:
    """Partial profile update; None means "leave unchanged" """

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    national_id: Optional[str] = None
    employer_name: Optional[str] = None
    position: Optional[str] = None
    monthly_income_cents: Optional[int] = None
    annual_income_cents: Optional[int] = None


@dataclass
class ConsumerProfile:
    """Consumer as seen by callers, sensitive fields decrypted"""

    id: str
    first_name: str
    last_name: str
    email: str
    status: AccountStatus
    national_id: Optional[str]
    document_type: Optional[str]
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    document_number: Optional[str] = None
    employer_name: Optional[str] = None
    employment_type: Optional[str] = None
    position: Optional[str] = None
    industry: Optional[str] = None
    years_of_experience: Optional[int] = None
    monthly_income_cents: Optional[int] = None
    annual_income_cents: Optional[int] = None
    income_source: Optional[str] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class LinkResult(Generic[T]):
    """Outcome of an idempotent create: the record, and whether this call created it"""

    resource: T
    created: bool


# Lifecycle events published through the event relay


@dataclass(frozen=True)
class OnboardingCompleted:
    consumer_id: str
    email: str
    consumer_name: str
    completed_at: datetime
    source: str = "api"
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class LoanApplicationApproved:
    application_id: str
    consumer_id: str
    approved_amount_cents: int
    approved_by: str
    approved_at: datetime
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class LoanApplicationRejected:
    application_id: str
    consumer_id: str
    rejected_by: str
    reason: Optional[str]
    rejected_at: datetime
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class LoanApplicationCancelled:
    application_id: str
    consumer_id: str
    cancelled_at: datetime
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
