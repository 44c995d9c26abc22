"""ORM models for the stock kernel."""

from stock_kernel.models.batch import Batch
from stock_kernel.models.inventory_transaction import InventoryTransaction
from stock_kernel.models.product import Product
from stock_kernel.models.sequence_counter import SequenceCounter
from stock_kernel.models.stock_alert import StockAlert
from stock_kernel.models.stock_valuation import StockValuationSnapshot

__all__ = [
    "Product",
    "Batch",
    "InventoryTransaction",
    "StockAlert",
    "StockValuationSnapshot",
    "SequenceCounter",
    "import_all_models",
]


def import_all_models() -> list[type]:
    """Return every model class; importing this package registers them on Base."""
    return [
        Product,
        Batch,
        InventoryTransaction,
        StockAlert,
        StockValuationSnapshot,
        SequenceCounter,
    ]
