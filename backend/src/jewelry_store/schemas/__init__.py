"""Pydantic schemas for API request/response validation."""

from jewelry_store.schemas.common import ApiResponse, CamelModel, Pagination
from jewelry_store.schemas.error import ErrorCode, ErrorDetail, ErrorResponse

__all__ = [
    "ApiResponse",
    "CamelModel",
    "Pagination",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
]
