"""FastAPI application entry point."""
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from jewelry_store.cache import cache
from jewelry_store.config import settings
from jewelry_store.exceptions import AppError
from jewelry_store.middleware.logging import LoggingMiddleware, setup_logging
from jewelry_store.middleware.metrics import MetricsMiddleware
from jewelry_store.middleware.rate_limit import RateLimitMiddleware
from jewelry_store.schemas.error import REMEDIATION_HINTS, ErrorCode, ErrorDetail
from jewelry_store.tracing import setup_tracing

# Setup structured logging
setup_logging()
logger = structlog.get_logger(__name__)

HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.BAD_REQUEST,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT_EXCEEDED,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("application_starting", env=settings.app_env)
    yield
    # Shutdown
    await cache.close()
    logger.info("application_shutting_down")


# Create FastAPI application
app = FastAPI(
    title="Jewelry Store API",
    description="Catalog, orders, expenses and cached business analytics for the jewelry store admin",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.rate_limit_enabled:
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )

# Add metrics middleware
app.add_middleware(MetricsMiddleware)

# Outermost, so every log line below carries the request id
app.add_middleware(LoggingMiddleware)

# Mount Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

setup_tracing(app)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get(
        "x-request-id", f"req_{uuid.uuid4().hex[:12]}"
    )


def error_response(
    request: Request,
    status_code: int,
    message: str,
    code: str,
    details: Optional[Any] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Build the ``{"success": false, ...}`` error envelope."""
    content: dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "requestId": _request_id(request),
    }
    if details is not None:
        content["details"] = details
    remediation = REMEDIATION_HINTS.get(code)
    if remediation:
        content["remediation"] = remediation
    return JSONResponse(status_code=status_code, content=content, headers=headers)


# Exception handlers with structured error responses
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Domain errors raised by services carry their own status and code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "app_error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        code=exc.code,
        error_message=exc.message,
    )
    headers = None
    if exc.status_code == status.HTTP_429_TOO_MANY_REQUESTS and isinstance(exc.details, dict):
        remaining_ms = exc.details.get("cooldownRemaining")
        if remaining_ms:
            headers = {"Retry-After": str(-(-remaining_ms // 1000))}
    return error_response(request, exc.status_code, exc.message, exc.code, exc.details, headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors with structured response.

    Returns 400 with field-level validation errors.
    """
    code_mapping = {
        "missing": ErrorCode.MISSING_REQUIRED_FIELD,
        "uuid_parsing": ErrorCode.INVALID_UUID,
        "uuid_type": ErrorCode.INVALID_UUID,
        "enum": ErrorCode.INVALID_ENUM_VALUE,
        "value_error": ErrorCode.VALIDATION_ERROR,
    }

    details = []
    for error in exc.errors():
        value = error.get("input")
        details.append(
            ErrorDetail(
                code=code_mapping.get(error["type"], ErrorCode.VALIDATION_ERROR),
                message=error["msg"],
                field=".".join(str(loc) for loc in error["loc"]),
                value=value if isinstance(value, (str, int, float, bool)) else None,
            ).model_dump()
        )

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        error_count=len(details),
    )
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Request validation failed",
        ErrorCode.VALIDATION_ERROR,
        details,
    )


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique and foreign key violations that slipped past service checks."""
    logger.warning("integrity_error", path=request.url.path, method=request.method, error_message=str(exc.orig))
    return error_response(
        request,
        status.HTTP_409_CONFLICT,
        "Resource conflicts with existing data",
        ErrorCode.CONFLICT,
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Handle database errors.

    Returns 503 Service Unavailable for database connection issues.
    """
    logger.error(
        "database_error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    # Don't expose internal database details in production
    message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)
    return error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        message,
        ErrorCode.DATABASE_ERROR,
        headers={"Retry-After": "30"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework HTTP errors (unknown routes, wrong methods) in the same envelope."""
    return error_response(
        request,
        exc.status_code,
        str(exc.detail),
        HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.BAD_REQUEST),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all other uncaught exceptions.

    Logs the full stack trace but returns a safe message to the client.
    """
    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
    )

    show_detail = settings.debug and settings.app_env != "production"
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        str(exc) if show_detail else "Internal server error",
        ErrorCode.INTERNAL_ERROR,
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "Jewelry Store API",
        "version": "1.0.0",
        "status": "operational",
        "docs": "/docs",
    }


# Include routers
from jewelry_store.api.v1 import analytics, auth, dashboard, expenses, health, orders, products, public  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/api")
app.include_router(analytics.router, prefix="/api")
app.include_router(orders.router, prefix="/api")
app.include_router(expenses.router, prefix="/api")
app.include_router(products.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(public.router, prefix="/api")
