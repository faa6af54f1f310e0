"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bizledger import __version__
from bizledger.api.routes import access_router, advances_router, health_router, salaries_router
from bizledger.database import dispose_db, init_db
from bizledger.exceptions import (
    AccessDeniedError,
    BizLedgerError,
    DuplicateSalaryRecordError,
    ImmutableRecordError,
    ImpersonationError,
    InvalidTransitionError,
    RecordNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def error_status(exc: BizLedgerError) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, AccessDeniedError):
        if exc.unauthenticated:
            return status.HTTP_401_UNAUTHORIZED
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, ImpersonationError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, RecordNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (DuplicateSalaryRecordError, ImmutableRecordError, InvalidTransitionError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_CONTENT
    return status.HTTP_400_BAD_REQUEST


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="BizLedger API",
        description="Access control and salary reconciliation for multi-tenant businesses",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(BizLedgerError)
    async def domain_exception_handler(request: Request, exc: BizLedgerError) -> JSONResponse:
        """Map domain errors to their HTTP status with a displayable message."""
        return JSONResponse(
            status_code=error_status(exc),
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(access_router, prefix="/api/v1")
    app.include_router(salaries_router, prefix="/api/v1")
    app.include_router(advances_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
