"""Global exception handlers mapping the domain error taxonomy to HTTP

Invariants:
    - NotFound -> 404, Conflict -> 409
    - CryptoFailure, IntegrityError -> 500 with a generic message; details are logged only
    - RequestValidationError, ValueError -> 422 with field-level details
    - Exception (catch-all) -> 500, never leaks internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from consumer_finance.domain.exceptions import Conflict, CryptoFailure, IntegrityError, NotFound

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_domain_error_handlers(app)
    _register_validation_error_handlers(app)
    _register_generic_error_handler(app)


def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    body = {"error": {"code": code, "message": message, **extra}}
    return JSONResponse(status_code=status_code, content=body)


def _register_domain_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        logger.info(str(exc), extra={"path": request.url.path, "entity": exc.entity})
        return _error(status.HTTP_404_NOT_FOUND, "NOT_FOUND", str(exc))

    @app.exception_handler(Conflict)
    async def conflict_handler(request: Request, exc: Conflict):
        logger.info(f"Conflict: {exc}", extra={"path": request.url.path})
        return _error(status.HTTP_409_CONFLICT, "CONFLICT", str(exc))

    @app.exception_handler(CryptoFailure)
    async def crypto_failure_handler(request: Request, exc: CryptoFailure):
        logger.error(f"Crypto failure: {exc}", extra={"path": request.url.path})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "CRYPTO_FAILURE", "Stored data could not be processed")

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.error(f"Integrity error: {exc}", extra={"path": request.url.path})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTEGRITY_ERROR", "Store is in an inconsistent state")


def _register_validation_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return _error(
            422,
            "VALIDATION_ERROR",
            "Invalid request data",
            details=[
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning(f"Rejected input on {request.url.path}: {exc}")
        return _error(422, "VALIDATION_ERROR", str(exc))


def _register_generic_error_handler(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all - never leaks internal details."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "An unexpected error occurred")
