"""Pytest fixtures for testing"""

import base64
import os

# Settings and the default engine are built at import time
os.environ.setdefault("ENCRYPTION_KEY", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault("DATABASE_URL", "sqlite:///./consumer_finance_test.db")
os.environ.pop("DISBURSEMENT_WEBHOOK_URL", None)

import itertools
from typing import Any, Callable, Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from consumer_finance.api.main import create_app
from consumer_finance.domain.models import ConsumerProfile, OnboardingRequest
from consumer_finance.infrastructure.crypto.cipher import Cipher
from consumer_finance.infrastructure.database.models import Vendor
from consumer_finance.infrastructure.database.repositories import VendorRepository
from consumer_finance.infrastructure.database.session import build_engine, build_session_factory, init_db
from consumer_finance.infrastructure.events.relay import EventRelay
from consumer_finance.services.consumers import ConsumerService

_sequence = itertools.count(1)


@pytest.fixture
def cipher() -> Cipher:
    return Cipher.from_base64_key(Cipher.generate_new_key())


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """File-backed SQLite so concurrent sessions see each other's commits"""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine, vendor_names=[])
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create test database session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def relay() -> EventRelay:
    return EventRelay(max_attempts=1)


class EventRecorder:
    """Subscriber that keeps every event it receives"""

    def __init__(self):
        self.events: List[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[Any]:
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def vendors(db: Session) -> List[Vendor]:
    """Two active vendors"""
    repo = VendorRepository(db)
    created = [repo.add("Acme Retail"), repo.add("Globex Electronics")]
    db.commit()
    return created


@pytest.fixture
def make_request() -> Callable[..., OnboardingRequest]:
    """Factory for onboarding requests with unique identifiers"""

    def _make(**overrides) -> OnboardingRequest:
        n = next(_sequence)
        fields = dict(
            first_name="Test",
            last_name=f"Consumer{n}",
            email=f"consumer{n}@example.com",
            national_id=f"NID-{n:06d}",
            document_type="PASSPORT",
            phone=f"+1555{n:07d}",
            document_number=f"P{n:08d}",
            employer_name="Initech",
            employment_type="FULL_TIME",
            monthly_income_cents=650_000,
            annual_income_cents=7_800_000,
            income_source="SALARY",
        )
        fields.update(overrides)
        return OnboardingRequest(**fields)

    return _make


@pytest.fixture
def consumer(db: Session, cipher: Cipher, make_request) -> ConsumerProfile:
    """An onboarded consumer with no listeners attached"""
    return ConsumerService(db, cipher).onboard(make_request())


@pytest.fixture
def client(session_factory: sessionmaker, cipher: Cipher, relay: EventRelay) -> TestClient:
    """Create FastAPI test client bound to the per-test database"""
    app = create_app(session_factory=session_factory, cipher=cipher, relay=relay)
    return TestClient(app)
