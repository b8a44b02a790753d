"""/v1/consumers - onboarding, profile and per-consumer listings"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from consumer_finance.api.dependencies import (
    get_account_service,
    get_consumer_service,
    get_loan_application_service,
)
from consumer_finance.api.v1.schemas import (
    ConsumerCreate,
    ConsumerResponse,
    ConsumerUpdate,
    LoanApplicationResponse,
    PrincipalAccountResponse,
    VendorAccountResponse,
)
from consumer_finance.services.accounts import AccountService
from consumer_finance.services.consumers import ConsumerService
from consumer_finance.services.loan_applications import LoanApplicationService

router = APIRouter()


@router.post("/consumers", response_model=ConsumerResponse, status_code=status.HTTP_201_CREATED)
def onboard_consumer(request_body: ConsumerCreate, service: ConsumerService = Depends(get_consumer_service)):
    """
    Onboard a consumer.

    Sensitive fields are encrypted before storage. The principal account and
    vendor links are provisioned by onboarding listeners after the commit.
    """
    profile = service.onboard(request_body.to_domain())
    return ConsumerResponse.from_profile(profile)


@router.get("/consumers/{consumer_id}", response_model=ConsumerResponse)
def get_consumer(consumer_id: str, service: ConsumerService = Depends(get_consumer_service)):
    return ConsumerResponse.from_profile(service.get(consumer_id))


@router.patch("/consumers/{consumer_id}", response_model=ConsumerResponse)
def update_consumer(
    consumer_id: str,
    request_body: ConsumerUpdate,
    service: ConsumerService = Depends(get_consumer_service),
):
    return ConsumerResponse.from_profile(service.update_profile(consumer_id, request_body.to_domain()))


@router.post("/consumers/{consumer_id}/archive", response_model=ConsumerResponse)
def archive_consumer(consumer_id: str, service: ConsumerService = Depends(get_consumer_service)):
    return ConsumerResponse.from_profile(service.archive(consumer_id))


@router.get("/consumers/{consumer_id}/principal-account", response_model=PrincipalAccountResponse)
def get_principal_account(consumer_id: str, service: AccountService = Depends(get_account_service)):
    return PrincipalAccountResponse.model_validate(service.get_principal_account(consumer_id))


@router.get("/consumers/{consumer_id}/vendor-accounts", response_model=List[VendorAccountResponse])
def list_vendor_accounts(consumer_id: str, service: AccountService = Depends(get_account_service)):
    return [VendorAccountResponse.model_validate(a) for a in service.list_vendor_accounts(consumer_id)]


@router.get("/consumers/{consumer_id}/loan-applications", response_model=List[LoanApplicationResponse])
def list_loan_applications(
    consumer_id: str,
    limit: int = Query(20, ge=1, le=100),
    service: LoanApplicationService = Depends(get_loan_application_service),
):
    """Most recent applications first"""
    return [LoanApplicationResponse.model_validate(a) for a in service.list_for_consumer(consumer_id, limit=limit)]
