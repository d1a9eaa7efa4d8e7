"""Structured error response schemas."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Field-level error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error envelope returned by every failing endpoint."""

    success: bool = Field(default=False, description="Always false for errors")
    error: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Machine-readable error code")
    details: Any | None = Field(default=None, description="Additional context (validation errors, cooldown)")
    remediation: str | None = Field(default=None, description="Suggestion for fixing the error")
    request_id: str | None = Field(default=None, alias="requestId", description="Request ID for tracing")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Cannot approve an order with status 'confirmed'",
                "code": "invalid_state_transition",
                "details": {"currentStatus": "confirmed", "action": "approve"},
            }
        },
    )


class ErrorCode:
    """Standard error codes used across the API."""

    # Validation errors (400)
    VALIDATION_ERROR = "validation_error"
    BAD_REQUEST = "bad_request"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_EMAIL = "invalid_email"
    INVALID_UUID = "invalid_uuid"
    INVALID_ENUM_VALUE = "invalid_enum_value"

    # Authentication errors (401)
    UNAUTHORIZED = "unauthorized"
    TOKEN_EXPIRED = "token_expired"

    # Not found errors (404)
    NOT_FOUND = "not_found"

    # Conflicts (409)
    CONFLICT = "conflict"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    ANALYTICS_COOLDOWN = "analytics_cooldown"

    # External service errors (503)
    DATABASE_ERROR = "database_error"

    # Internal errors (500)
    INTERNAL_ERROR = "internal_error"
    ANALYTICS_REFRESH_FAILED = "analytics_refresh_failed"


# Remediation hints for common errors
REMEDIATION_HINTS = {
    ErrorCode.VALIDATION_ERROR: "Check the API documentation for the correct request format at /docs",
    ErrorCode.INVALID_STATE_TRANSITION: "Reload the order and check which actions its current status allows",
    ErrorCode.UNAUTHORIZED: "Log in again to obtain a fresh access token",
    ErrorCode.TOKEN_EXPIRED: "Log in again to obtain a fresh access token",
    ErrorCode.CONFLICT: "Use a unique value or update the existing record instead",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests. Please slow down and try again after the retry period.",
    ErrorCode.ANALYTICS_COOLDOWN: "Cached analytics are still fresh. Retry once the cooldown has elapsed.",
    ErrorCode.DATABASE_ERROR: "Database temporarily unavailable. Please try again in a few moments.",
}
