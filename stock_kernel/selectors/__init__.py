"""Read-only selectors. All business reads apply the soft-delete filter here."""

from stock_kernel.selectors.alert_selector import AlertSelector, AlertSummary
from stock_kernel.selectors.base import BaseSelector, active_only
from stock_kernel.selectors.batch_selector import BatchSelector, BatchStats, FIFO_ORDER
from stock_kernel.selectors.product_selector import ProductSelector
from stock_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "BaseSelector",
    "active_only",
    "ProductSelector",
    "BatchSelector",
    "BatchStats",
    "FIFO_ORDER",
    "TransactionSelector",
    "AlertSelector",
    "AlertSummary",
]
