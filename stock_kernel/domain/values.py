"""
Values -- Enumerations shared by models, engines and services.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Models store these as String(20);
    str-valued enums compare equal to the stored string.
"""

from enum import Enum


class BatchStatus(str, Enum):
    """Lifecycle of a batch."""

    ACTIVE = "active"
    CONSUMED = "consumed"
    EXPIRED = "expired"
    DAMAGED = "damaged"
    RETURNED = "returned"


class QualityStatus(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    QUARANTINE = "quarantine"


class TransactionType(str, Enum):
    """Direction of an inventory movement. Quantity sign follows the type."""

    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class AllocationPolicy(str, Enum):
    FIFO = "fifo"
    LIFO = "lifo"


class ValuationMethod(str, Enum):
    FIFO = "fifo"
    LIFO = "lifo"
    AVERAGE = "average"


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    OVERSTOCK = "overstock"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"

    @property
    def is_batch_level(self) -> bool:
        return self in (AlertType.EXPIRING_SOON, AlertType.EXPIRED)


class AlertPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Sort key: higher is more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    AlertPriority.LOW: 1,
    AlertPriority.MEDIUM: 2,
    AlertPriority.HIGH: 3,
}


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"

    @property
    def is_open(self) -> bool:
        return self in (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)
