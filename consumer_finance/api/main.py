"""FastAPI application factory"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import sessionmaker
from starlette.responses import Response

from consumer_finance.api.error_handlers import register_error_handlers
from consumer_finance.api.middleware import MetricsMiddleware, RequestIDMiddleware
from consumer_finance.api.v1 import accounts, consumers, decisions, loan_applications
from consumer_finance.config import settings
from consumer_finance.infrastructure.clients.disbursement import DisbursementClient
from consumer_finance.infrastructure.crypto.cipher import Cipher
from consumer_finance.infrastructure.database.session import SessionLocal, engine, init_db
from consumer_finance.infrastructure.events.relay import EventRelay
from consumer_finance.infrastructure.observability.logging import setup_logging
from consumer_finance.services.handlers import register_handlers

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.engine is not None:
        init_db(app.state.engine)
    yield


def create_app(
    session_factory: Optional[sessionmaker] = None,
    cipher: Optional[Cipher] = None,
    relay: Optional[EventRelay] = None,
    disbursement_client: Optional[DisbursementClient] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Collaborators default to the configured ones. The Cipher is built once
    from ENCRYPTION_KEY; a missing or malformed key fails here with
    CryptoFailure rather than on the first request.
    """
    app = FastAPI(
        title="Consumer Finance",
        description="Consumer onboarding, account linking and loan decisions",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.engine = None
    if session_factory is None:
        session_factory = SessionLocal
        app.state.engine = engine

    if disbursement_client is None and settings.disbursement_webhook_url:
        disbursement_client = DisbursementClient()

    app.state.session_factory = session_factory
    app.state.cipher = cipher or Cipher.from_base64_key(settings.encryption_key)
    app.state.relay = register_handlers(
        relay or EventRelay(max_attempts=settings.event_handler_max_attempts),
        session_factory,
        disbursement_client,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(consumers.router, prefix="/v1", tags=["consumers"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(loan_applications.router, prefix="/v1", tags=["loan-applications"])
    app.include_router(decisions.router, prefix="/v1", tags=["decisions"])

    return app


app = create_app()
