"""
Maid Memory - FastAPI Application

Entry point for the memory extraction service. Sets up logging, the
database lifecycle, error handling and routes.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import structlog

from ..config.settings import settings
from ..db.database import init_db, close_db
from ..engine.errors import EmbeddingError, TransactionError, UpstreamModelError
from .models.responses import ErrorDetail, ErrorResponse
from .routes import memories_router, health_router


def configure_logging() -> None:
    """Configure structlog for JSON or console output."""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Creates tables (and the pgvector extension) on startup and disposes
    the connection pool on shutdown.
    """
    logger.info("starting_application", version=settings.app_version)

    try:
        await init_db()
        logger.info("database_initialized")
    except Exception as e:
        logger.error("database_init_failed", error=str(e))

    yield

    logger.info("shutting_down_application")
    await close_db()
    logger.info("application_shutdown_complete")


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function allows creating multiple app instances
    for testing or different configurations.
    """
    app = FastAPI(
        title=settings.app_name,
        description="Extracts facts from conversations and merges them into per-user memories.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware
    # ==========================================================================

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Attach a request id and start time used in response metadata."""
        request.state.start_time = time.time()
        request.state.request_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:16]}"
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors."""
        errors = exc.errors()
        first_error = errors[0] if errors else {}
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            first_error.get("msg", "Validation error"),
        )

    @app.exception_handler(UpstreamModelError)
    async def upstream_model_exception_handler(request: Request, exc: UpstreamModelError):
        logger.error("upstream_model_error", error=str(exc), path=request.url.path)
        return error_response(status.HTTP_502_BAD_GATEWAY, "UPSTREAM_MODEL_ERROR", str(exc))

    @app.exception_handler(EmbeddingError)
    async def embedding_exception_handler(request: Request, exc: EmbeddingError):
        logger.error("embedding_error", error=str(exc), path=request.url.path)
        return error_response(status.HTTP_502_BAD_GATEWAY, "EMBEDDING_ERROR", str(exc))

    @app.exception_handler(TransactionError)
    async def transaction_exception_handler(request: Request, exc: TransactionError):
        logger.error("transaction_error", error=str(exc), path=request.url.path)
        message = "Saving memories failed" if settings.is_production else str(exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "TRANSACTION_ERROR", message)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            method=request.method,
        )

        # Don't expose internal errors in production
        if settings.is_production:
            message = "An internal error occurred"
        else:
            message = str(exc)

        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message)

    # ==========================================================================
    # Routes
    # ==========================================================================

    app.include_router(health_router)
    app.include_router(memories_router, prefix=settings.api_prefix)

    return app


# Create the default app instance
app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "maid_memory.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.workers,
        log_level=settings.log_level.lower(),
    )
