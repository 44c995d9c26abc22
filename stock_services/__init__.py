"""
stock_services -- Package init and public API.

Responsibility:
    Stateful orchestration services that compose the pure calculation
    engines (stock_engines/) with database sessions and the clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        stock_services/ -> stock_engines/   (allowed)
        stock_services/ -> stock_kernel/    (allowed)
        stock_engines/  -> stock_services/  (FORBIDDEN)
        stock_kernel/   -> stock_services/  (FORBIDDEN)

Invariants enforced:
    - Only InventoryService opens and commits transactions; every other
      service flushes inside the caller's session.
"""

from stock_services.alert_service import AlertService
from stock_services.allocation_service import AllocationService, AppliedAllocation
from stock_services.batch_ledger import BatchDetail, BatchLedger
from stock_services.inventory_service import InventoryService
from stock_services.product_service import ProductService
from stock_services.transaction_service import TransactionService
from stock_services.valuation_service import (
    ValuationReport,
    ValuationService,
    ValuationSnapshotInfo,
)

__all__ = [
    "AlertService",
    "AllocationService",
    "AppliedAllocation",
    "BatchDetail",
    "BatchLedger",
    "InventoryService",
    "ProductService",
    "TransactionService",
    "ValuationReport",
    "ValuationService",
    "ValuationSnapshotInfo",
]
