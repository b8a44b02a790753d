"""Dependency injection for FastAPI endpoints"""

from typing import Generator

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from consumer_finance.infrastructure.crypto.cipher import Cipher
from consumer_finance.infrastructure.events.relay import EventRelay
from consumer_finance.services.accounts import AccountService
from consumer_finance.services.consumers import ConsumerService
from consumer_finance.services.loan_applications import LoanApplicationService
from consumer_finance.services.loan_decisions import LoanDecisionEngine


def get_db(request: Request) -> Generator[Session, None, None]:
    """Session per request, from the factory the app was built with"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_cipher(request: Request) -> Cipher:
    return request.app.state.cipher


def get_relay(request: Request) -> EventRelay:
    return request.app.state.relay


def get_staff_id(x_staff_id: str = Header(..., min_length=1)) -> str:
    """Identity of the staff member making a decision"""
    return x_staff_id


def get_consumer_id(x_consumer_id: str = Header(..., min_length=1)) -> str:
    """Identity of the consumer acting on their own application"""
    return x_consumer_id


def get_consumer_service(
    db: Session = Depends(get_db),
    cipher: Cipher = Depends(get_cipher),
    relay: EventRelay = Depends(get_relay),
) -> ConsumerService:
    return ConsumerService(db, cipher, relay)


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(db)


def get_loan_application_service(
    db: Session = Depends(get_db),
    relay: EventRelay = Depends(get_relay),
) -> LoanApplicationService:
    return LoanApplicationService(db, relay)


def get_decision_engine(
    db: Session = Depends(get_db),
    relay: EventRelay = Depends(get_relay),
) -> LoanDecisionEngine:
    return LoanDecisionEngine(db, relay)
