"""Custom exception classes for ERP Insights."""

from typing import Optional

from fastapi import HTTPException, status


class ERPInsightsError(Exception):
    """Base exception for ERP Insights.

    Carries the HTTP status the gateway boundary should answer with and an
    optional ``details`` string for diagnostics.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "An error occurred", details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class AuthenticationError(ERPInsightsError):
    """Raised when there is no signed-in user."""
    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(ERPInsightsError):
    """Raised when a required field is missing or unknown."""
    status_code = status.HTTP_400_BAD_REQUEST


class ResourceNotFoundError(ERPInsightsError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(ERPInsightsError):
    """Raised when a resource already exists."""
    status_code = status.HTTP_409_CONFLICT


class ConfigurationError(ERPInsightsError):
    """Raised when operator configuration (e.g. SAP credentials) is missing."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UpstreamError(ERPInsightsError):
    """Raised when SAP answers with a non-2xx status.

    The upstream status is propagated verbatim.
    """

    def __init__(self, message: str, status_code: int, details: Optional[str] = None):
        super().__init__(message, details)
        self.status_code = status_code


class PermissionScopeError(RuntimeError):
    """Raised when permissions are queried outside a PermissionsProvider."""
    pass


# HTTP exception shortcuts
def not_found(detail: str = "Resource not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def forbidden(detail: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def bad_request(detail: str = "Bad request") -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
