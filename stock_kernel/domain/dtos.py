"""
DTOs -- Immutable data transfer objects returned by services.

Responsibility:
    Frozen snapshots of products, batches, transactions and alerts.  Engines
    consume these; services return these.  No ORM object ever leaves a
    service.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods are
    boundary converters invoked only from the service layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from stock_kernel.domain.values import (
    AlertPriority,
    AlertStatus,
    AlertType,
    BatchStatus,
    QualityStatus,
    TransactionType,
)

if TYPE_CHECKING:
    from stock_kernel.models.batch import Batch
    from stock_kernel.models.inventory_transaction import InventoryTransaction
    from stock_kernel.models.product import Product
    from stock_kernel.models.stock_alert import StockAlert


@dataclass(frozen=True)
class ProductInfo:
    """Snapshot of a product and its stock thresholds."""

    id: UUID
    sku: str
    name: str
    unit_of_measure: str
    current_stock: Decimal
    reorder_level: Decimal
    reorder_quantity: Decimal
    minimum_stock_level: Decimal
    maximum_stock_level: Decimal | None
    last_unit_cost: Decimal | None
    average_unit_cost: Decimal | None
    is_active: bool

    @classmethod
    def from_model(cls, model: Product) -> ProductInfo:
        return cls(
            id=model.id,
            sku=model.sku,
            name=model.name,
            unit_of_measure=model.unit_of_measure,
            current_stock=model.current_stock,
            reorder_level=model.reorder_level,
            reorder_quantity=model.reorder_quantity,
            minimum_stock_level=model.minimum_stock_level,
            maximum_stock_level=model.maximum_stock_level,
            last_unit_cost=model.last_unit_cost,
            average_unit_cost=model.average_unit_cost,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class BatchInfo:
    """
    Snapshot of one cost layer.

    ledger_sequence is the insertion order within the ledger and breaks
    ties between batches received on the same date.
    """

    id: UUID
    product_id: UUID
    batch_number: str
    ledger_sequence: int
    quantity: Decimal
    remaining_quantity: Decimal
    cost_per_unit: Decimal
    received_date: date
    expiry_date: date | None
    manufacturing_date: date | None
    quality_status: QualityStatus
    status: BatchStatus
    is_active: bool

    @property
    def consumed_quantity(self) -> Decimal:
        return self.quantity - self.remaining_quantity

    @property
    def remaining_value(self) -> Decimal:
        return self.remaining_quantity * self.cost_per_unit

    @classmethod
    def from_model(cls, model: Batch) -> BatchInfo:
        return cls(
            id=model.id,
            product_id=model.product_id,
            batch_number=model.batch_number,
            ledger_sequence=model.ledger_sequence,
            quantity=model.quantity,
            remaining_quantity=model.remaining_quantity,
            cost_per_unit=model.cost_per_unit,
            received_date=model.received_date,
            expiry_date=model.expiry_date,
            manufacturing_date=model.manufacturing_date,
            quality_status=QualityStatus(model.quality_status),
            status=BatchStatus(model.status),
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class ConsumeResult:
    batch_id: UUID
    consumed_quantity: Decimal
    remaining_quantity: Decimal
    status: BatchStatus


@dataclass(frozen=True)
class TransactionInfo:
    id: UUID
    transaction_number: str
    product_id: UUID
    batch_id: UUID | None
    transaction_type: TransactionType
    quantity: Decimal
    unit_cost: Decimal | None
    total_cost: Decimal | None
    running_balance: Decimal
    transaction_date: date
    reference_type: str | None
    reference_id: str | None
    notes: str | None

    @classmethod
    def from_model(cls, model: InventoryTransaction) -> TransactionInfo:
        return cls(
            id=model.id,
            transaction_number=model.transaction_number,
            product_id=model.product_id,
            batch_id=model.batch_id,
            transaction_type=TransactionType(model.transaction_type),
            quantity=model.quantity,
            unit_cost=model.unit_cost,
            total_cost=model.total_cost,
            running_balance=model.running_balance,
            transaction_date=model.transaction_date,
            reference_type=model.reference_type,
            reference_id=model.reference_id,
            notes=model.notes,
        )


@dataclass(frozen=True)
class AlertInfo:
    id: UUID
    product_id: UUID
    batch_id: UUID | None
    alert_type: AlertType
    priority: AlertPriority
    status: AlertStatus
    message: str
    current_stock: Decimal | None
    threshold_value: Decimal | None
    days_to_expiry: int | None
    acknowledged_by: str | None
    acknowledged_at: datetime | None
    resolved_by: str | None
    resolved_at: datetime | None
    resolution_notes: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: StockAlert) -> AlertInfo:
        return cls(
            id=model.id,
            product_id=model.product_id,
            batch_id=model.batch_id,
            alert_type=AlertType(model.alert_type),
            priority=AlertPriority(model.priority),
            status=AlertStatus(model.status),
            message=model.message,
            current_stock=model.current_stock,
            threshold_value=model.threshold_value,
            days_to_expiry=model.days_to_expiry,
            acknowledged_by=model.acknowledged_by,
            acknowledged_at=model.acknowledged_at,
            resolved_by=model.resolved_by,
            resolved_at=model.resolved_at,
            resolution_notes=model.resolution_notes,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    """current_stock against the two independent derivations of it."""

    product_id: UUID
    current_stock: Decimal
    batch_total: Decimal
    transaction_total: Decimal

    @property
    def is_consistent(self) -> bool:
        return self.current_stock == self.batch_total == self.transaction_total


@dataclass(frozen=True)
class ReorderSuggestion:
    product_id: UUID
    sku: str
    current_stock: Decimal
    reorder_level: Decimal
    suggested_quantity: Decimal
