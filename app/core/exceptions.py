"""
Base exception classes for application-wide error handling.

Every domain error raised by the finance engine derives from
BaseApplicationError so that services and views can treat them uniformly:

- Consistent error payloads across the API
- Machine-readable error codes for the UI collaborators
- Structured details (field errors, balances, identifiers)

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures (never persisted)
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    └── ConflictError - State conflicts (races, stale versions, bad transitions)

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Payee name is required", error_code="MISSING_FIELD")

    raise ValidationError(
        "Validation failed",
        details={"customer_name": ["This field is required."]},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        http_status: Status code used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Account not found",
                "error_code": "ACCOUNT_NOT_FOUND",
                "details": {"account_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for missing required fields, malformed amounts and currency or
    account mismatches. Validation errors are recoverable by the caller and
    nothing is persisted when one is raised.

    Example:
        raise ValidationError(
            "Validation failed",
            details={"payee_name": ["This field is required."]},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        account = Account.objects.filter(id=account_id).first()
        if not account:
            raise NotFoundError(
                f"Account {account_id} not found",
                error_code="ACCOUNT_NOT_FOUND",
                details={"account_id": str(account_id)},
            )
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the acting user lacks permission for an operation.

    Example:
        if not user.has_perm("finance.approve_paymentvoucher"):
            raise PermissionDeniedError(
                "Voucher approval requires a manager",
                error_code="APPROVAL_NOT_PERMITTED",
            )

    Note:
        For authentication failures (missing/invalid token), DRF's
        AuthenticationFailed applies. This is for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Unique constraint races (document numbers, voucher settlement)
    - Concurrent modification conflicts (optimistic locking)
    - Invalid state transitions

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409
