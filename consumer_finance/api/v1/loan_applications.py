"""/v1/loan-applications - submission, lookup and cancellation"""

from fastapi import APIRouter, Depends, status

from consumer_finance.api.dependencies import get_consumer_id, get_loan_application_service
from consumer_finance.api.v1.schemas import LoanApplicationCreate, LoanApplicationResponse
from consumer_finance.services.loan_applications import LoanApplicationService

router = APIRouter()


@router.post("/loan-applications", response_model=LoanApplicationResponse, status_code=status.HTTP_201_CREATED)
def submit_loan_application(
    request_body: LoanApplicationCreate,
    service: LoanApplicationService = Depends(get_loan_application_service),
):
    """Submit a PENDING application; 409 while another one is still pending"""
    application = service.submit(
        request_body.consumer_id,
        request_body.requested_amount_cents,
        request_body.term_in_months,
        purpose=request_body.purpose,
    )
    return LoanApplicationResponse.model_validate(application)


@router.get("/loan-applications/{application_id}", response_model=LoanApplicationResponse)
def get_loan_application(
    application_id: str,
    service: LoanApplicationService = Depends(get_loan_application_service),
):
    return LoanApplicationResponse.model_validate(service.get(application_id))


@router.post("/loan-applications/{application_id}/cancel", response_model=LoanApplicationResponse)
def cancel_loan_application(
    application_id: str,
    consumer_id: str = Depends(get_consumer_id),
    service: LoanApplicationService = Depends(get_loan_application_service),
):
    return LoanApplicationResponse.model_validate(service.cancel(application_id, consumer_id))
