"""
Envelope schemas for standardized API responses.

Successful responses carry their payload under ``data``; failures carry an
``error`` object with ``code``, ``message`` and ``details``.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    """Standardized success response envelope."""

    data: T


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None
    error_id: str | None = None


class ErrorResponse(BaseModel):
    """Standardized error response envelope."""

    error: ErrorDetail
