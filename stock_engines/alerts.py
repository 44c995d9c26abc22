"""
Module: stock_engines.alerts
Responsibility:
    Derive which alert conditions currently hold for a product and its
    batches, and how urgent each one is.  The AlertService reconciles these
    conditions against persisted alerts (create, re-prioritise, resolve).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "today" is an argument.

Rules:
    out_of_stock   current_stock <= 0                          HIGH
    low_stock      0 < current_stock <= reorder_level          by depth
                   ratio = stock / reorder_level
                   ratio <= low_stock_high_ratio      HIGH
                   ratio <= low_stock_medium_ratio    MEDIUM
                   otherwise                          LOW
    overstock      maximum_stock_level set and stock above it  LOW
    expired        batch expiry_date < today                   HIGH
    expiring_soon  today <= expiry_date <= today + window      by days left
                   days <= expiry_high_days           HIGH
                   days <= expiry_medium_days         MEDIUM
                   otherwise                          LOW

Invariants enforced:
    - out_of_stock and low_stock never hold together for one product.
    - expired and expiring_soon never hold together for one batch.
    - Batch rules only look at batches that still hold stock.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from stock_engines.batch_rules import days_until_expiry, is_expired, is_expiring_soon
from stock_engines.tracer import traced_engine
from stock_kernel.domain.dtos import BatchInfo, ProductInfo
from stock_kernel.domain.values import AlertPriority, AlertType, BatchStatus
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.alerts")


def _fmt(value: Decimal) -> str:
    """Plain digits without trailing zeros, so stored and recomputed text match."""
    return f"{value.normalize():f}"


@dataclass(frozen=True)
class AlertThresholds:
    expiry_warning_days: int = 30
    expiry_high_days: int = 7
    expiry_medium_days: int = 15
    low_stock_high_ratio: Decimal = Decimal("0.25")
    low_stock_medium_ratio: Decimal = Decimal("0.5")

    def __post_init__(self) -> None:
        if not 0 <= self.expiry_high_days <= self.expiry_medium_days <= self.expiry_warning_days:
            raise ValueError(
                "Expiry thresholds must satisfy 0 <= high <= medium <= warning"
            )
        if not 0 < self.low_stock_high_ratio <= self.low_stock_medium_ratio <= 1:
            raise ValueError(
                "Low stock ratios must satisfy 0 < high <= medium <= 1"
            )


@dataclass(frozen=True)
class AlertCondition:
    """
    A condition that currently holds.

    The (product_id, batch_id, alert_type) triple is the dedup key: at most
    one open alert may exist per key.
    """

    product_id: UUID
    batch_id: UUID | None
    alert_type: AlertType
    priority: AlertPriority
    message: str
    current_stock: Decimal | None = None
    threshold_value: Decimal | None = None
    days_to_expiry: int | None = None

    @property
    def key(self) -> tuple[UUID, UUID | None, AlertType]:
        return (self.product_id, self.batch_id, self.alert_type)


class AlertRules:
    """Pure evaluation of stock-level and expiry conditions."""

    def __init__(self, thresholds: AlertThresholds | None = None):
        self._thresholds = thresholds or AlertThresholds()

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds

    def low_stock_priority(
        self,
        current_stock: Decimal,
        reorder_level: Decimal,
    ) -> AlertPriority:
        ratio = current_stock / reorder_level
        if ratio <= self._thresholds.low_stock_high_ratio:
            return AlertPriority.HIGH
        if ratio <= self._thresholds.low_stock_medium_ratio:
            return AlertPriority.MEDIUM
        return AlertPriority.LOW

    def expiry_priority(self, days_left: int) -> AlertPriority:
        if days_left <= self._thresholds.expiry_high_days:
            return AlertPriority.HIGH
        if days_left <= self._thresholds.expiry_medium_days:
            return AlertPriority.MEDIUM
        return AlertPriority.LOW

    def product_conditions(self, product: ProductInfo) -> list[AlertCondition]:
        conditions: list[AlertCondition] = []
        stock = product.current_stock
        label = f'"{product.name}" ({product.sku})'

        if stock <= 0:
            conditions.append(
                AlertCondition(
                    product_id=product.id,
                    batch_id=None,
                    alert_type=AlertType.OUT_OF_STOCK,
                    priority=AlertPriority.HIGH,
                    message=f"Product {label} is out of stock",
                    current_stock=stock,
                    threshold_value=Decimal("0"),
                )
            )
        elif stock <= product.reorder_level:
            conditions.append(
                AlertCondition(
                    product_id=product.id,
                    batch_id=None,
                    alert_type=AlertType.LOW_STOCK,
                    priority=self.low_stock_priority(stock, product.reorder_level),
                    message=(
                        f"Product {label} is running low. Current: {_fmt(stock)}, "
                        f"reorder level: {_fmt(product.reorder_level)}"
                    ),
                    current_stock=stock,
                    threshold_value=product.reorder_level,
                )
            )

        if (
            product.maximum_stock_level is not None
            and stock > product.maximum_stock_level
        ):
            conditions.append(
                AlertCondition(
                    product_id=product.id,
                    batch_id=None,
                    alert_type=AlertType.OVERSTOCK,
                    priority=AlertPriority.LOW,
                    message=(
                        f"Product {label} is overstocked. Current: {_fmt(stock)}, "
                        f"maximum: {_fmt(product.maximum_stock_level)}"
                    ),
                    current_stock=stock,
                    threshold_value=product.maximum_stock_level,
                )
            )
        return conditions

    def batch_conditions(
        self,
        batch: BatchInfo,
        today: date,
    ) -> list[AlertCondition]:
        if (
            not batch.is_active
            or batch.remaining_quantity <= 0
            or batch.expiry_date is None
            or batch.status not in (BatchStatus.ACTIVE, BatchStatus.EXPIRED)
        ):
            return []

        days_left = days_until_expiry(batch, today)
        if is_expired(batch, today):
            return [
                AlertCondition(
                    product_id=batch.product_id,
                    batch_id=batch.id,
                    alert_type=AlertType.EXPIRED,
                    priority=AlertPriority.HIGH,
                    message=(
                        f'Batch "{batch.batch_number}" expired on '
                        f"{batch.expiry_date}. Remaining quantity: "
                        f"{_fmt(batch.remaining_quantity)}"
                    ),
                    current_stock=batch.remaining_quantity,
                    days_to_expiry=days_left,
                )
            ]
        if is_expiring_soon(batch, today, self._thresholds.expiry_warning_days):
            return [
                AlertCondition(
                    product_id=batch.product_id,
                    batch_id=batch.id,
                    alert_type=AlertType.EXPIRING_SOON,
                    priority=self.expiry_priority(days_left),
                    message=(
                        f'Batch "{batch.batch_number}" expires in {days_left} '
                        f"days ({batch.expiry_date}). Remaining quantity: "
                        f"{_fmt(batch.remaining_quantity)}"
                    ),
                    current_stock=batch.remaining_quantity,
                    days_to_expiry=days_left,
                )
            ]
        return []

    @traced_engine("alert_rules", "1.0", fingerprint_fields=("today",))
    def evaluate(
        self,
        *,
        product: ProductInfo,
        batches: Sequence[BatchInfo],
        today: date,
    ) -> list[AlertCondition]:
        """All conditions that hold for ``product`` and its ``batches`` today."""
        conditions = self.product_conditions(product)
        for batch in batches:
            conditions.extend(self.batch_conditions(batch, today))
        return conditions
