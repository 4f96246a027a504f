"""Response helpers for the CAS API.

Successful responses are wrapped in a single ``{"data": ...}`` envelope; errors
are rendered by the exception handlers in ``cas.main``.
"""

from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def to_serializable(obj):
    """Recursively convert Pydantic models, lists, and dicts to serializable types."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, list):
        return [to_serializable(item) for item in obj]
    if isinstance(obj, dict):
        return {k: to_serializable(v) for k, v in obj.items()}
    return obj


class CASResponse:
    """Consistent response formatting for CAS API endpoints."""

    @staticmethod
    def success(
        data: Any, status_code: int = status.HTTP_200_OK, headers: dict[str, str] | None = None
    ) -> JSONResponse:
        """Create a successful response with single-envelope structure.

        Args:
            data: Pydantic models, dicts, lists or other JSON-serializable data
            status_code: HTTP status code (default: 200)
            headers: Optional response headers

        """
        response_content = jsonable_encoder({"data": to_serializable(data)})
        return JSONResponse(content=response_content, status_code=status_code, headers=headers)

    @staticmethod
    def created(data: Any, headers: dict[str, str] | None = None) -> JSONResponse:
        """Create a 201 Created response."""
        return CASResponse.success(data, status.HTTP_201_CREATED, headers)
