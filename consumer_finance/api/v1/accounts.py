"""/v1/principal-accounts and /v1/vendor-accounts

Creation is idempotent: 201 when this request created the account, 200
with the existing account otherwise.
"""

from fastapi import APIRouter, Depends, Response, status

from consumer_finance.api.dependencies import get_account_service
from consumer_finance.api.v1.schemas import (
    PrincipalAccountCreate,
    PrincipalAccountResponse,
    VendorAccountCreate,
    VendorAccountResponse,
    VendorAccountStatusUpdate,
)
from consumer_finance.services.accounts import AccountService

router = APIRouter()


def _created_or_ok(response: Response, created: bool) -> None:
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK


@router.post("/principal-accounts", response_model=PrincipalAccountResponse, status_code=status.HTTP_201_CREATED)
def open_principal_account(
    request_body: PrincipalAccountCreate,
    response: Response,
    service: AccountService = Depends(get_account_service),
):
    result = service.open_principal_account(request_body.consumer_id, account_type=request_body.account_type)
    _created_or_ok(response, result.created)
    return PrincipalAccountResponse.model_validate(result.resource)


@router.post("/vendor-accounts", response_model=VendorAccountResponse, status_code=status.HTTP_201_CREATED)
def link_vendor_account(
    request_body: VendorAccountCreate,
    response: Response,
    service: AccountService = Depends(get_account_service),
):
    result = service.link_vendor_account(
        request_body.consumer_id,
        request_body.vendor_id,
        external_account_ref=request_body.external_account_ref,
        linkage_id=request_body.linkage_id,
    )
    _created_or_ok(response, result.created)
    return VendorAccountResponse.model_validate(result.resource)


@router.get("/vendor-accounts/{account_id}", response_model=VendorAccountResponse)
def get_vendor_account(account_id: str, service: AccountService = Depends(get_account_service)):
    return VendorAccountResponse.model_validate(service.get_vendor_account(account_id))


@router.patch("/vendor-accounts/{account_id}/status", response_model=VendorAccountResponse)
def update_vendor_account_status(
    account_id: str,
    request_body: VendorAccountStatusUpdate,
    service: AccountService = Depends(get_account_service),
):
    """ACTIVE and DISABLED are interchangeable; ARCHIVED is final"""
    account = service.update_vendor_account_status(account_id, request_body.status, updated_by=request_body.updated_by)
    return VendorAccountResponse.model_validate(account)
