# marketplace/core/exceptions.py
"""
Domain-specific exceptions for the course marketplace.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


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

    def to_http_exception(self) -> HTTPException:
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class UnauthorizedException(DomainException):
    """Raised when a caller cannot be authenticated."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
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


# Payment webhook exceptions


class AuthenticationException(UnauthorizedException):
    """
    Raised when a webhook signature cannot be verified.

    The message is deliberately generic: callers must not learn whether the
    signature or the timestamp was rejected. Webhook endpoints answer 400.
    """

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message=message or "Invalid webhook signature",
            code="WEBHOOK_AUTHENTICATION_FAILED",
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": self.message, "code": self.code, "details": {}},
        )


class CourseNotFoundException(NotFoundException):
    """Raised when a completion event references a course that does not exist."""

    def __init__(self, course_id: str):
        super().__init__(
            message=f"Course {course_id} not found",
            code="COURSE_NOT_FOUND",
            details={"course_id": course_id},
        )


class AmountMismatchException(BusinessRuleException):
    """Raised when the paid amount or currency differs from the course price."""

    def __init__(
        self,
        *,
        expected_amount: int,
        received_amount: int,
        expected_currency: str,
        received_currency: str,
    ):
        super().__init__(
            message=(
                f"Paid {received_amount} {received_currency} but course costs "
                f"{expected_amount} {expected_currency}"
            ),
            code="AMOUNT_MISMATCH",
            details={
                "expected_amount": expected_amount,
                "received_amount": received_amount,
                "expected_currency": expected_currency,
                "received_currency": received_currency,
            },
        )


class AlreadyEnrolledException(ConflictException):
    """Raised when a student already holds an enrollment for the course."""

    def __init__(self, student_id: str, course_id: str):
        super().__init__(
            message=f"Student {student_id} is already enrolled in course {course_id}",
            code="ALREADY_ENROLLED",
            details={"student_id": student_id, "course_id": course_id},
        )


class InvalidPaymentEventException(ValidationException):
    """Raised when an authentic event lacks the fields needed to fulfil it."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_PAYMENT_EVENT", details=details or {})


class DuplicateTransactionException(ConflictException):
    """Raised when another delivery already claimed the transaction id."""

    def __init__(self, transaction_id: str):
        super().__init__(
            message=f"Transaction {transaction_id} was already processed",
            code="DUPLICATE_TRANSACTION",
            details={"transaction_id": transaction_id},
        )


class StorageException(ServiceException):
    """
    Raised when the durable store is unavailable.

    Transient: the webhook must not be acknowledged so the provider redelivers.
    """

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message=message or "Payment storage temporarily unavailable",
            code="STORAGE_UNAVAILABLE",
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": self.message, "code": self.code, "details": {}},
            headers={"Retry-After": "2"},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
