"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paystub_engine import __version__
from paystub_engine.api.routes import (
    health_router,
    legal_parameters_router,
    pay_stubs_router,
    payroll_runs_router,
)
from paystub_engine.config import configure_logging
from paystub_engine.database import dispose_db, init_db
from paystub_engine.errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    PaystubEngineError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[PaystubEngineError], int] = {
    ValidationError: 422,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConfigurationError: 422,
    ConflictError: status.HTTP_409_CONFLICT,
}


def status_for(exc: PaystubEngineError) -> int:
    """HTTP status for an engine error, most specific class first."""
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Paystub Engine API",
        description="Pay stub calculation and payroll run aggregation",
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
    @app.exception_handler(PaystubEngineError)
    async def engine_error_handler(
        request: Request, exc: PaystubEngineError
    ) -> JSONResponse:
        """Map engine errors to their HTTP status."""
        return JSONResponse(
            status_code=status_for(exc),
            content={
                "detail": exc.message,
                "code": exc.code,
                "context": jsonable_encoder(exc.context),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
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
    app.include_router(pay_stubs_router, prefix="/api/v1")
    app.include_router(payroll_runs_router, prefix="/api/v1")
    app.include_router(legal_parameters_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
