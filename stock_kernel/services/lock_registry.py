"""
ProductLockRegistry -- in-process per-product mutual exclusion.

Responsibility:
    Serializes every mutation of one product's stock (batch add, consume,
    allocate-and-apply, soft delete, alert re-evaluation) inside a single
    process.  Different products proceed in parallel.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Owned by the
    InventoryService facade; acquired BEFORE the database transaction
    begins and released AFTER it commits or rolls back.

Invariants enforced:
    - Locks for several products are always taken in sorted id order, so
      two callers can never wait on each other in a cycle.
    - Acquisition is bounded: after ``timeout`` seconds the caller gets
      ConcurrencyConflictError instead of waiting forever.
    - The map holds one entry per product written since start-up; a
      deactivated product's entry is dropped by ``forget``.

Non-goals:
    - Cross-process exclusion.  Row-level ``SELECT ... FOR UPDATE`` and the
      optimistic version columns cover other processes sharing PostgreSQL.
"""

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator
from uuid import UUID

from stock_kernel.exceptions import ConcurrencyConflictError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.lock_registry")

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0


class ProductLockRegistry:
    """Thread-safe map of product id -> threading.Lock."""

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def _lock_for(self, product_id: UUID | str) -> threading.Lock:
        key = str(product_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _acquire(self, key: str, wait: float) -> threading.Lock:
        while True:
            lock = self._lock_for(key)
            if not lock.acquire(timeout=wait):
                logger.warning(
                    "product_lock_timeout",
                    extra={"product_id": key, "timeout_seconds": wait},
                )
                raise ConcurrencyConflictError(
                    "Product", key, reason=f"lock not acquired within {wait}s"
                )
            with self._guard:
                if self._locks.get(key) is lock:
                    return lock
            # Forgotten between lookup and acquire
            lock.release()

    def forget(self, product_id: UUID | str) -> bool:
        """
        Drop the lock of a product that is no longer written to.

        A lock that is currently held stays registered.

        Returns:
            True if an entry was removed.
        """
        key = str(product_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None or not lock.acquire(blocking=False):
                return False
            del self._locks[key]
            lock.release()
        return True

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(
        self,
        product_ids: Iterable[UUID | str],
        timeout: float | None = None,
    ) -> Iterator[None]:
        """
        Hold the locks for all given products for the duration of the block.

        Raises:
            ConcurrencyConflictError: A lock was not acquired within the
                timeout.  Locks already taken are released first.
        """
        wait = self._timeout if timeout is None else timeout
        keys = sorted({str(pid) for pid in product_ids})
        acquired: list[threading.Lock] = []
        try:
            for key in keys:
                acquired.append(self._acquire(key, wait))
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
