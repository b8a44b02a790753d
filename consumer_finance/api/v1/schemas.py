"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from consumer_finance.domain.models import (
    AccountStatus,
    ConsumerProfile,
    LoanApplicationStatus,
    LoanDecision,
    OnboardingRequest,
    ProfileUpdate,
)


def mask(value: Optional[str], visible: int = 4) -> Optional[str]:
    """Keep only the last ``visible`` characters of an identifier"""
    if not value:
        return value
    return "*" * max(len(value) - visible, 0) + value[-visible:]


# Consumers


class ConsumerCreate(BaseModel):
    """Request body for POST /v1/consumers"""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    national_id: str = Field(..., min_length=1, max_length=50, description="Stored encrypted")
    document_type: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    document_number: Optional[str] = Field(None, max_length=50, description="Stored encrypted")
    employer_name: Optional[str] = Field(None, max_length=200)
    employment_type: Optional[str] = Field(None, max_length=50)
    position: Optional[str] = Field(None, max_length=100)
    industry: Optional[str] = Field(None, max_length=100)
    years_of_experience: Optional[int] = Field(None, ge=0)
    monthly_income_cents: Optional[int] = Field(None, ge=0)
    annual_income_cents: Optional[int] = Field(None, ge=0)
    income_source: Optional[str] = Field(None, max_length=100)
    currency: str = Field("USD", min_length=3, max_length=3)

    def to_domain(self) -> OnboardingRequest:
        return OnboardingRequest(**self.model_dump())


class ConsumerUpdate(BaseModel):
    """Request body for PATCH /v1/consumers/{consumer_id}; omitted fields are unchanged"""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    national_id: Optional[str] = Field(None, min_length=1, max_length=50)
    employer_name: Optional[str] = Field(None, max_length=200)
    position: Optional[str] = Field(None, max_length=100)
    monthly_income_cents: Optional[int] = Field(None, ge=0)
    annual_income_cents: Optional[int] = Field(None, ge=0)

    def to_domain(self) -> ProfileUpdate:
        return ProfileUpdate(**self.model_dump())


class ConsumerResponse(BaseModel):
    """Consumer profile; identifiers are masked"""

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

    @classmethod
    def from_profile(cls, profile: ConsumerProfile) -> "ConsumerResponse":
        response = cls.model_validate(profile, from_attributes=True)
        response.national_id = mask(profile.national_id)
        response.document_number = mask(profile.document_number)
        return response


# Accounts


class PrincipalAccountCreate(BaseModel):
    """Request body for POST /v1/principal-accounts"""

    consumer_id: str = Field(..., min_length=1)
    account_type: str = Field("PRIMARY", min_length=1, max_length=50)


class PrincipalAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    consumer_id: str
    account_type: str
    status: AccountStatus
    created_at: datetime
    updated_at: datetime


class VendorAccountCreate(BaseModel):
    """Request body for POST /v1/vendor-accounts"""

    consumer_id: str = Field(..., min_length=1)
    vendor_id: str = Field(..., min_length=1)
    external_account_ref: Optional[str] = Field(None, max_length=100)
    linkage_id: Optional[str] = Field(None, max_length=100)


class VendorAccountStatusUpdate(BaseModel):
    """Request body for PATCH /v1/vendor-accounts/{account_id}/status"""

    status: AccountStatus
    updated_by: Optional[str] = Field(None, max_length=100)


class VendorAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    consumer_id: str
    vendor_id: str
    vendor_name: Optional[str] = None
    principal_account_id: Optional[str] = None
    status: AccountStatus
    external_account_ref: Optional[str] = None
    linkage_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# Loan applications


class LoanApplicationCreate(BaseModel):
    """Request body for POST /v1/loan-applications"""

    consumer_id: str = Field(..., min_length=1)
    requested_amount_cents: int = Field(..., gt=0, description="Requested loan amount in cents")
    term_in_months: int = Field(..., ge=3, le=360)
    purpose: Optional[str] = Field(None, max_length=200)


class LoanApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    consumer_id: str
    status: LoanApplicationStatus
    requested_amount_cents: int
    term_in_months: Optional[int] = None
    purpose: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DecisionCreate(BaseModel):
    """Request body for POST /v1/loan-applications/{application_id}/decisions"""

    decision: LoanDecision
    reason: Optional[str] = Field(None, max_length=500)


class DecisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    application_id: str
    decision: LoanDecision
    staff_id: str
    reason: Optional[str] = None
    created_at: datetime


class DecisionHistoryResponse(BaseModel):
    """Response for GET /v1/loan-applications/{application_id}/decisions"""

    application_id: str
    status: LoanApplicationStatus
    decisions: List[DecisionResponse]
