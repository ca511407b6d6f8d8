"""
Concurrency control utilities for finance operations.

This module provides two complementary concurrency mechanisms:

1. **Bounded retry** (retry_on_conflict)
   - Re-runs a whole unit of work when the database reports a lock
     timeout, deadlock or busy database
   - Exponential backoff with jitter between attempts
   - Raises ConcurrencyConflict once the attempts are exhausted
   - Use for: the outermost unit of work (document save, voucher
     completion, ledger post, number minting)

2. **Optimistic Locking** (check_version)
   - Version-based conflict detection
   - No blocking - detect conflicts at write time
   - Use for: document edits coming from a UI that loaded an older copy

Row-level serialization itself comes from select_for_update() and
single-statement UPDATEs inside transaction.atomic(); these helpers only
decide what happens when that serialization makes a caller lose.

Usage:

    from finance.locks import check_version, retry_on_conflict

    @retry_on_conflict
    def post(params):
        with transaction.atomic():
            ...

    with transaction.atomic():
        document = check_version(Document, document_id, expected_version=3)
        document.notes = "Updated"
        document.save()  # Version auto-increments
"""

from __future__ import annotations

import functools
import logging
import random
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

from django.conf import settings
from django.db import OperationalError, connection, models, transaction

from core.exceptions import NotFoundError
from finance.exceptions import ConcurrencyConflict, StaleRecordError

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

logger = logging.getLogger(__name__)

# Type variable for model classes
T = TypeVar("T", bound=models.Model)


# =============================================================================
# Bounded Retry
# =============================================================================


def backoff_delay(attempt: int, base: float | None = None, max_delay: float = 2.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter keeps concurrent writers that lost the same race from retrying
    in lockstep.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: FINANCE_RETRY_BASE_DELAY)
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)
    """
    if base is None:
        base = settings.FINANCE_RETRY_BASE_DELAY
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


def retry_on_conflict(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Retry a unit of work that lost a database race.

    Retries OperationalError (lock wait timeout, deadlock, "database is
    locked") and ConcurrencyConflict raised by nested units, up to
    FINANCE_MAX_RETRIES extra attempts. Each attempt must run in its own
    transaction, so the decorated function owns its transaction.atomic().

    When called inside an enclosing transaction the failed transaction
    cannot be resumed here, so the error is surfaced immediately as
    ConcurrencyConflict for the outermost unit to retry.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if transaction.get_connection().in_atomic_block:
            try:
                return func(*args, **kwargs)
            except OperationalError as exc:
                raise ConcurrencyConflict(
                    f"{func.__qualname__} lost a database race",
                    details={"operation": func.__qualname__},
                ) from exc

        max_retries = settings.FINANCE_MAX_RETRIES
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except (OperationalError, ConcurrencyConflict) as exc:
                if attempt >= max_retries:
                    logger.warning(
                        "Giving up after repeated conflicts",
                        extra={"operation": func.__qualname__, "attempts": attempt + 1},
                    )
                    if isinstance(exc, ConcurrencyConflict):
                        raise
                    raise ConcurrencyConflict(
                        f"{func.__qualname__} failed after {attempt + 1} attempts",
                        details={"operation": func.__qualname__, "attempts": attempt + 1},
                    ) from exc

                delay = backoff_delay(attempt)
                logger.info(
                    "Retrying after conflict",
                    extra={
                        "operation": func.__qualname__,
                        "attempt": attempt + 1,
                        "delay": round(delay, 4),
                        "error": str(exc),
                    },
                )
                time.sleep(delay)
                attempt += 1

    return wrapper


@contextmanager
def lock_timeout(milliseconds: int | None = None) -> Generator[None, None, None]:
    """
    Bound how long the current transaction waits on row locks.

    PostgreSQL only; SQLite bounds waits through its busy timeout instead.
    A timeout raises OperationalError, which rolls back the transaction and
    feeds retry_on_conflict.
    """
    if milliseconds is None:
        milliseconds = settings.LEDGER_LOCK_TIMEOUT_MS
    if connection.vendor == "postgresql" and connection.in_atomic_block:
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL lock_timeout = '{int(milliseconds)}ms'")
    yield


# =============================================================================
# Optimistic Locking
# =============================================================================


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
) -> T:
    """
    Atomically check version and lock a record for update.

    Combines optimistic locking (version check) with pessimistic locking
    (select_for_update) for the actual update operation.

    Args:
        model_class: Django model class (must have 'version' field)
        pk: Primary key of the record
        expected_version: Version the caller expects

    Returns:
        The locked model instance

    Raises:
        StaleRecordError: If version doesn't match (concurrent modification)
        NotFoundError: If record doesn't exist

    Note:
        Must be called within a transaction context. The lock is held
        until the transaction commits or rolls back.
    """
    with transaction.atomic():
        instance = (
            model_class.objects.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )

        if instance is None:
            model_name = model_class.__name__
            current = model_class.objects.filter(pk=pk).values_list("version", flat=True).first()
            if current is None:
                raise NotFoundError(
                    f"{model_name} {pk} not found",
                    error_code=f"{model_name.upper()}_NOT_FOUND",
                    details={"pk": str(pk)},
                )

            raise StaleRecordError(
                f"{model_name} {pk} has been modified "
                f"(expected version {expected_version}, current {current})",
                details={
                    "pk": str(pk),
                    "expected_version": expected_version,
                    "current_version": current,
                },
            )

        return instance


__all__ = [
    "backoff_delay",
    "check_version",
    "lock_timeout",
    "retry_on_conflict",
]
