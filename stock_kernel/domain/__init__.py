"""Pure domain layer: clock, enumerations, DTOs."""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    AlertInfo,
    BatchInfo,
    ConsumeResult,
    ProductInfo,
    ReconciliationResult,
    ReorderSuggestion,
    TransactionInfo,
)
from stock_kernel.domain.values import (
    AlertPriority,
    AlertStatus,
    AlertType,
    AllocationPolicy,
    BatchStatus,
    QualityStatus,
    TransactionType,
    ValuationMethod,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ProductInfo",
    "BatchInfo",
    "ConsumeResult",
    "TransactionInfo",
    "AlertInfo",
    "ReconciliationResult",
    "ReorderSuggestion",
    "BatchStatus",
    "QualityStatus",
    "TransactionType",
    "AllocationPolicy",
    "ValuationMethod",
    "AlertType",
    "AlertPriority",
    "AlertStatus",
]
