"""Kernel service infrastructure: base class, sequences, locks, retry."""

from stock_kernel.services.base import BaseService
from stock_kernel.services.lock_registry import ProductLockRegistry
from stock_kernel.services.retry import MAX_CONFLICT_RETRIES, retry_on_conflict
from stock_kernel.services.sequence_service import SequenceService

__all__ = [
    "BaseService",
    "SequenceService",
    "ProductLockRegistry",
    "retry_on_conflict",
    "MAX_CONFLICT_RETRIES",
]
