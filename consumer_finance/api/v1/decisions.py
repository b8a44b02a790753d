"""/v1/loan-applications/{application_id}/decisions - staff decisions and audit trail"""

from fastapi import APIRouter, Depends, status

from consumer_finance.api.dependencies import get_decision_engine, get_staff_id
from consumer_finance.api.v1.schemas import DecisionCreate, DecisionHistoryResponse, DecisionResponse
from consumer_finance.services.loan_decisions import LoanDecisionEngine

router = APIRouter()


@router.post(
    "/loan-applications/{application_id}/decisions",
    response_model=DecisionResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_decision(
    application_id: str,
    request_body: DecisionCreate,
    staff_id: str = Depends(get_staff_id),
    engine: LoanDecisionEngine = Depends(get_decision_engine),
):
    """
    Approve or reject a PENDING application.

    Returns:
        The recorded decision; 409 if the application is already decided
    """
    record = engine.submit(application_id, request_body.decision, staff_id, reason=request_body.reason)
    return DecisionResponse.model_validate(record)


@router.get("/loan-applications/{application_id}/decisions", response_model=DecisionHistoryResponse)
def get_decisions(application_id: str, engine: LoanDecisionEngine = Depends(get_decision_engine)):
    decisions = engine.decisions(application_id)
    return DecisionHistoryResponse(
        application_id=application_id,
        status=engine.status(application_id),
        decisions=[DecisionResponse.model_validate(d) for d in decisions],
    )
