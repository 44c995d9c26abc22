"""
Module: stock_engines.batch_rules
Responsibility:
    Pure date and quantity rules for a single batch: expiry classification,
    age, utilization, and the validation applied before a batch is created.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "today" is always an
    argument; callers take it from the injected Clock.

Invariants enforced:
    - A batch is expired when expiry_date < today.  The expiry day itself
      still counts as usable.
    - A batch is expiring soon when today <= expiry_date <= today + window.
    - utilization is (quantity - remaining) / quantity * 100, and 0 for a
      zero-quantity batch.
    - A batch is consumable when it is live, ACTIVE, holds stock and is not
      past its expiry date.  Quality status does not block consumption.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.domain.values import BatchStatus
from stock_kernel.exceptions import ValidationError

DEFAULT_EXPIRY_WINDOW_DAYS = 30


def is_expired(batch: BatchInfo, today: date) -> bool:
    return batch.expiry_date is not None and batch.expiry_date < today


def is_consumable(batch: BatchInfo, today: date) -> bool:
    return (
        batch.is_active
        and batch.status == BatchStatus.ACTIVE
        and batch.remaining_quantity > 0
        and not is_expired(batch, today)
    )


def is_expiring_soon(
    batch: BatchInfo,
    today: date,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> bool:
    if batch.expiry_date is None:
        return False
    return today <= batch.expiry_date <= today + timedelta(days=window_days)


def days_until_expiry(batch: BatchInfo, today: date) -> int | None:
    """Whole days from today to expiry; negative once expired, None if no expiry."""
    if batch.expiry_date is None:
        return None
    return (batch.expiry_date - today).days


def age_days(batch: BatchInfo, today: date) -> int:
    return (today - batch.received_date).days


def utilization_percentage(batch: BatchInfo) -> Decimal:
    if batch.quantity == 0:
        return Decimal("0")
    return (batch.quantity - batch.remaining_quantity) / batch.quantity * Decimal("100")


def validate_new_batch(
    quantity: Decimal,
    cost_per_unit: Decimal,
    received_date: date,
    expiry_date: date | None = None,
    manufacturing_date: date | None = None,
) -> None:
    """
    Reject impossible batch input before any state is touched.

    Raises:
        ValidationError: quantity <= 0, negative cost, expiry not after
            manufacturing, or manufacturing after receipt.
    """
    if quantity <= 0:
        raise ValidationError(
            f"Batch quantity must be positive, got {quantity}", field="quantity"
        )
    if cost_per_unit < 0:
        raise ValidationError(
            f"Cost per unit cannot be negative, got {cost_per_unit}",
            field="cost_per_unit",
        )
    if manufacturing_date is not None:
        if expiry_date is not None and expiry_date <= manufacturing_date:
            raise ValidationError(
                f"Expiry date {expiry_date} must be after manufacturing date "
                f"{manufacturing_date}",
                field="expiry_date",
            )
        if manufacturing_date > received_date:
            raise ValidationError(
                f"Manufacturing date {manufacturing_date} is after received "
                f"date {received_date}",
                field="manufacturing_date",
            )
