"""
FastAPI application factory.

The app holds one LedgerEngine for the life of the process. On startup
the ledger is loaded from storage (seeding defaults into empty
collections); every request then runs against that in-memory ledger.

Errors from the ledger are answered as {success: false, error: message}:
- NotFoundError     -> 404
- ValidationError   -> 422
- ParseError        -> 400
- PersistenceError  -> 503
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from finance_tracker import __version__
from finance_tracker.api.routes import router
from finance_tracker.audit import AuditLogger, configure_logging
from finance_tracker.config import Settings, get_settings
from finance_tracker.errors import (
    FinanceTrackerError,
    NotFoundError,
    ParseError,
    PersistenceError,
    ValidationError,
)
from finance_tracker.ledger import LedgerEngine
from finance_tracker.services.storage import create_storage


logger = structlog.get_logger(__name__)

ERROR_STATUS = (
    (NotFoundError, 404),
    (ValidationError, 422),
    (ParseError, 400),
    (PersistenceError, 503),
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def handle_finance_error(request: Request, exc: FinanceTrackerError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        500,
    )
    log = logger.error if status_code >= 500 else logger.info
    log(
        "request_rejected",
        path=request.url.path,
        status_code=status_code,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return _error_response(status_code, str(exc))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}"
    else:
        message = "Invalid request"
    return _error_response(422, message)


def create_app(
    ledger: Optional[LedgerEngine] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        ledger: Ledger to serve; built from DATABASE_URL when omitted
        settings: Settings container; the cached one when omitted
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.app.log_level, settings.app.log_json)
        if app.state.ledger is None:
            storage = create_storage(settings.database)
            app.state.ledger = LedgerEngine(
                storage,
                audit_logger=AuditLogger(),
                settings=settings.ledger,
            )
        if not app.state.ledger.is_loaded:
            await app.state.ledger.load()
        logger.info(
            "api_started",
            environment=settings.app.app_environment,
            transactions=len(app.state.ledger.transactions),
        )
        yield
        logger.info("api_stopped")

    app = FastAPI(
        title="Finance Tracker API",
        version=__version__,
        debug=settings.app.debug_mode,
        lifespan=lifespan,
    )
    app.state.ledger = ledger
    app.state.settings = settings

    app.add_exception_handler(FinanceTrackerError, handle_finance_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.include_router(router)
    return app
