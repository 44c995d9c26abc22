"""
Bounded retry for operations that lose a concurrency race.

Responsibility:
    Re-run a whole unit of work (open session, read, decide, write, commit)
    when it fails with ConcurrencyConflictError.  The operation is re-run
    from scratch so every attempt re-reads the current state; a partial
    result from a failed attempt is never reused.

Invariants enforced:
    MAX_CONFLICT_RETRIES -- safety limit prevents unbounded retry loops.
    Only ConcurrencyConflictError is retried.  Validation, not-found,
    insufficient-quantity and invalid-state errors propagate on the first
    attempt.
"""

import time
from typing import Callable, TypeVar

from stock_kernel.exceptions import ConcurrencyConflictError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

MAX_CONFLICT_RETRIES = 3


def retry_on_conflict(
    operation: Callable[[], T],
    max_attempts: int = MAX_CONFLICT_RETRIES,
    backoff_seconds: float = 0.05,
    operation_name: str = "operation",
) -> T:
    """
    Call ``operation`` until it succeeds or ``max_attempts`` is exhausted.

    Raises:
        ValueError: max_attempts < 1.
        ConcurrencyConflictError: the last attempt also conflicted.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except ConcurrencyConflictError:
            if attempt >= max_attempts:
                logger.error(
                    "conflict_retries_exhausted",
                    extra={"operation": operation_name, "attempts": attempt},
                )
                raise
            logger.warning(
                "conflict_retry",
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                },
            )
            time.sleep(backoff_seconds * attempt)

    raise AssertionError("unreachable")
