"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (validation, business rules)
    - Exceptions: Use for unexpected or fatal failures (database errors,
      broken ledger invariants)

Usage:
    from core.services import BaseService, ServiceResult

    class AccountService(BaseService):
        @classmethod
        def deactivate(cls, account_id) -> ServiceResult[Account]:
            with cls.atomic():
                account = Account.objects.select_for_update().get(id=account_id)
                account.deactivate()

            cls.get_logger().info("Account deactivated", extra={"account_id": str(account_id)})
            return ServiceResult.success(account)

    # In view
    result = account_service.deactivate(account_id)
    if result.success:
        return Response(AccountSerializer(result.data).data)
    return Response(result.to_response(), status=result.http_status)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        details: Structured context carried over from a domain exception
        http_status: Suggested status code for the API layer

    Usage:
        return ServiceResult.success(statement)

        return ServiceResult.failure("Voucher is not approved", "VOUCHER_NOT_ISSUED")

        result = document_service.complete_voucher(params)
        if not result:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)
    http_status: int = 400

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """Alias for success() - use whichever reads better in context."""
        return cls(success=True, data=data, http_status=200)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data, http_status=200)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
        http_status: int = 400,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            details: Extra structured context
            http_status: Suggested HTTP status for the view layer

        Example:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"payee_name": ["This field is required."]},
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
            http_status=http_status,
        )

    @classmethod
    def from_error(cls, exc: BaseApplicationError) -> ServiceResult[T]:
        """
        Create a failed result from a domain error.

        Field errors (lists of messages keyed by field) are exposed as
        ``errors``; anything else is carried as ``details``.
        """
        field_errors = {
            key: value
            for key, value in exc.details.items()
            if isinstance(value, list)
        }
        return cls.failure(
            exc.message,
            error_code=exc.error_code,
            errors=field_errors or None,
            details=exc.details or None,
            http_status=exc.http_status,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Failure payloads use the same keys as BaseApplicationError.to_dict()
        so clients see one error shape regardless of where it originated.
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception handling patterns

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                document = Document.objects.create(...)
                LineItem.objects.bulk_create(items)
                # If line item creation fails, the document is rolled back too
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: BaseApplicationError,
        context: str = "",
        log_level: int = logging.WARNING,
    ) -> ServiceResult:
        """
        Convert a domain exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default WARNING)
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        logger.log(
            log_level,
            message,
            extra={"error_code": exc.error_code, "details": exc.details},
        )
        return ServiceResult.from_error(exc)

