# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the service booking platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.

Taxonomy:
- ValidationException: malformed input (missing fields, bad dates, price <= 0)
- ConflictException: transition not legal from the current state
- ForbiddenException: actor lacks capability over the booking
- NotFoundException: unknown booking/discount id
- TransientException: store/network failure, safe to retry
"""

from typing import Any, Dict, NoReturn, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=self.to_payload(),
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=self.to_payload())


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=self.to_payload())


class ConflictException(DomainException):
    """Raised when a state change is not legal from the current state."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=self.to_payload())


class UnauthorizedException(DomainException):
    """Raised when the caller identity is missing."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=self.to_payload())


class ForbiddenException(DomainException):
    """Raised when an actor lacks permission for an action."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=self.to_payload())


class TransientException(DomainException):
    """Raised when the store is temporarily unavailable; callers may retry."""

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retry_after_seconds: int = 2,
    ) -> None:
        super().__init__(
            message=message or "Service temporarily unavailable. Please retry.",
            code=code or "TRANSIENT_FAILURE",
            details=details,
        )
        self.retry_after_seconds = retry_after_seconds

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=self.to_payload(),
            headers={"Retry-After": str(self.retry_after_seconds)},
        )


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InvalidTransitionException(ConflictException):
    """Raised when a booking cannot move from its current status."""

    def __init__(self, booking_id: str, action: str, current_status: str):
        super().__init__(
            message=f"Cannot {action} booking in status '{current_status}'",
            code="INVALID_TRANSITION",
            details={
                "booking_id": booking_id,
                "action": action,
                "current_status": current_status,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as query failures or constraint violations.
    """


def is_transient_store_error(exc: Exception) -> bool:
    """
    Check if an exception indicates a retryable store failure.

    Covers lock timeouts, dropped connections and pool exhaustion.
    """
    from sqlalchemy.exc import DBAPIError, OperationalError
    from sqlalchemy.exc import TimeoutError as PoolTimeoutError

    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    error_str = str(exc).lower()
    return "database is locked" in error_str or "queuepool" in error_str


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
