"""Custom exceptions for the CAS backend.

Every error raised by the registry, the access-control layer and the stores
derives from ``CASException`` so the API layer can render it with a single
handler.
"""

from typing import Any


class CASException(Exception):
    """Base exception class for the CAS backend."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Generic Exceptions
class NotFoundError(CASException):
    """Generic exception for when a resource is not found."""

    def __init__(self, message: str, details: dict[str, Any] | None = None, error_code: str = "NOT_FOUND"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=404,
            details=details,
        )


class ConflictError(CASException):
    """Generic exception for when a resource conflict occurs."""

    def __init__(self, message: str, details: dict[str, Any] | None = None, error_code: str = "CONFLICT"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=409,
            details=details,
        )


class AuthenticationError(CASException):
    """Raised when authentication fails."""

    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, message: str = "Authentication failed", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="AUTHENTICATION_ERROR",
            status_code=401,
            details=details,
        )


class AuthorizationError(CASException):
    """Raised when authorization fails."""

    def __init__(
        self,
        message: str = "Authorization failed",
        details: dict[str, Any] | None = None,
        error_code: str = "AUTHORIZATION_ERROR",
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=403,
            details=details,
        )


# Plugin registry exceptions
class PluginNotFoundError(NotFoundError):
    """Raised when a plugin id is not present in the registry."""

    def __init__(self, plugin_id: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Plugin '{plugin_id}' not found",
            details=details or {"plugin_id": plugin_id},
            error_code="PLUGIN_NOT_FOUND",
        )


class PluginAlreadyExistsError(ConflictError):
    """Raised when installing a plugin whose id is already registered."""

    def __init__(self, plugin_id: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Plugin '{plugin_id}' already exists",
            details=details or {"plugin_id": plugin_id},
            error_code="PLUGIN_ALREADY_EXISTS",
        )


class ForbiddenError(AuthorizationError):
    """Raised when the acting user lacks the capability required for a mutation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details, error_code="FORBIDDEN")


# Access control exceptions
class UnknownPermissionError(CASException):
    """Raised when a grant or revoke references a permission missing from the catalog."""

    def __init__(
        self,
        plugin_id: str,
        permission_name: str,
        resource_type: str,
        resource_id: str | None = None,
    ):
        target = f"{plugin_id}:{permission_name}:{resource_type}"
        if resource_id is not None:
            target += f":{resource_id}"
        super().__init__(
            message=f"Permission '{target}' is not declared",
            error_code="UNKNOWN_PERMISSION",
            status_code=422,
            details={
                "plugin_id": plugin_id,
                "permission_name": permission_name,
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )


# Infrastructure exceptions
class StoreUnavailableError(CASException):
    """Raised when the backing store cannot be reached or does not answer in time.

    This is an infrastructure failure and must never be read as a denial.
    """

    def __init__(self, operation: str, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Store unavailable during '{operation}': {reason}",
            error_code="STORE_UNAVAILABLE",
            status_code=503,
            details=details or {"operation": operation, "reason": reason},
        )
