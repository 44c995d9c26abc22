"""
Stock Engines - pure calculation layer.

Zero I/O.  Engines take DTO snapshots and return frozen results:
- allocation   FIFO/LIFO batch allocation plans
- valuation    FIFO/LIFO/AVERAGE per-product valuation
- aging        receipt-age and expiry bucket totals
- alerts       stock-level and expiry alert conditions
- batch_rules  per-batch expiry, age, utilization and input validation
"""

from stock_engines.aging import AgeBucket, AgingCalculator, BucketTotal
from stock_engines.alerts import AlertCondition, AlertRules, AlertThresholds
from stock_engines.allocation import (
    AllocationEngine,
    AllocationLine,
    AllocationPlan,
    order_layers,
)
from stock_engines.valuation import ProductValuation, ValuationEngine

__all__ = [
    "AllocationEngine",
    "AllocationLine",
    "AllocationPlan",
    "order_layers",
    "ValuationEngine",
    "ProductValuation",
    "AgingCalculator",
    "AgeBucket",
    "BucketTotal",
    "AlertRules",
    "AlertThresholds",
    "AlertCondition",
]
