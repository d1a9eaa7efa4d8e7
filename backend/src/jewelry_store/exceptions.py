"""Application exception hierarchy.

Services raise these; the handlers registered in main.py turn them into the
``{"success": false, "error": ..., "code": ...}`` envelope.
"""
from typing import Any, Optional

from jewelry_store.schemas.error import ErrorCode


class AppError(Exception):
    """Base class for errors with a known HTTP mapping."""

    status_code = 500
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR


class BadRequestError(AppError):
    status_code = 400
    code = ErrorCode.BAD_REQUEST


class InvalidStateTransitionError(AppError):
    """Raised when an order action is not allowed from the order's current status."""

    status_code = 400
    code = ErrorCode.INVALID_STATE_TRANSITION

    def __init__(self, current_status: str, action: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot {action.replace('_', ' ')} an order with status '{current_status}'",
            details={"currentStatus": current_status, "action": action},
        )
        self.current_status = current_status
        self.action = action


class UnauthorizedError(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED


class NotFoundError(AppError):
    status_code = 404
    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found" if identifier is None else f"{resource} {identifier} not found"
        super().__init__(message)
        self.resource = resource


class ConflictError(AppError):
    status_code = 409
    code = ErrorCode.CONFLICT


class RateLimitError(AppError):
    status_code = 429
    code = ErrorCode.RATE_LIMIT_EXCEEDED


class CooldownActiveError(RateLimitError):
    """Analytics recomputation requested before the cooldown elapsed."""

    code = ErrorCode.ANALYTICS_COOLDOWN

    def __init__(self, remaining_ms: int, message: Optional[str] = None):
        remaining_minutes = -(-remaining_ms // 60_000)
        super().__init__(
            message or f"Analytics can be refreshed again in {remaining_minutes} minute(s)",
            details={"cooldownRemaining": remaining_ms, "remainingMinutes": remaining_minutes},
        )
        self.remaining_ms = remaining_ms
        self.remaining_minutes = remaining_minutes


class AnalyticsRefreshError(AppError):
    """Recomputation failed; the previous cache is left in place."""

    status_code = 500
    code = ErrorCode.ANALYTICS_REFRESH_FAILED
