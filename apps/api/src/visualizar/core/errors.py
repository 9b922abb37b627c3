"""
Service Errors

Exceptions raised by the service layer. Routers translate them into
HTTP responses with a structured `{"error": ..., "message": ...}` body.
"""

from typing import Any

from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 400,
        extra: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)


class UnauthorizedError(ServiceError):
    """Missing, invalid or unresolvable credentials."""

    def __init__(self, message: str = "Unauthorized", error_code: str = "UNAUTHORIZED", **extra):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_401_UNAUTHORIZED,
            extra=extra,
        )


class ForbiddenError(ServiceError):
    """Authenticated caller whose role is not allowed."""

    def __init__(self, message: str = "Forbidden resource", error_code: str = "FORBIDDEN"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class BadRequestError(ServiceError):
    def __init__(self, message: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class NotFoundError(ServiceError):
    def __init__(self, message: str, error_code: str = "NOT_FOUND"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class InternalServiceError(ServiceError):
    """Unexpected failure wrapped with a contextual message."""

    def __init__(self, message: str, error_code: str = "INTERNAL_ERROR"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


def to_http_exception(e: ServiceError) -> HTTPException:
    """Convert a service error to an HTTPException."""
    headers = {"WWW-Authenticate": "Bearer"} if e.status_code == 401 else None
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
            **e.extra,
        },
        headers=headers,
    )


def internal_error() -> HTTPException:
    """Generic 500 response for unexpected exceptions."""
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
