"""
BatchLedger -- the only writer of batch quantities and product stock.

Responsibility:
    Create batches on receipt, decrement them on consumption, soft-delete
    or write them off, and keep Product.current_stock equal to the sum of
    active batch remainders.  Every mutation appends an InventoryTransaction
    in the same database transaction.

Architecture position:
    Services -- stateful orchestration.  Flushes, never commits.  Called by
    AllocationService (apply) and the InventoryService facade.

Invariants enforced:
    - 0 <= remaining_quantity <= quantity.
    - status becomes CONSUMED exactly when remaining_quantity reaches 0
      through consumption.
    - status becomes EXPIRED once an ACTIVE batch is past its expiry_date,
      whether found by mark_expired or by consume.
    - current_stock == sum(remaining_quantity) over active batches, and
      == sum(quantity) over active transactions, after every call.
    - Write path locks the product row, then the batch row
      (``SELECT ... FOR UPDATE``), always in that order.

Failure modes:
    - ValidationError: non-positive quantity, negative cost, bad dates,
      duplicate batch_number.
    - ProductNotFoundError / BatchNotFoundError: unknown or soft-deleted.
    - InvalidStateError: consuming a batch that is not ACTIVE or is past
      its expiry date, writing off an empty batch.
    - InsufficientQuantityError: consume more than remaining (with shortfall).

Usage:
    ledger = BatchLedger(session, clock)
    batch = ledger.add_batch(product_id, Decimal("100"), Decimal("10"), date(2024, 1, 1))
    ledger.consume(batch.id, Decimal("30"))
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_engines import batch_rules
from stock_kernel.db.types import to_decimal
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import BatchInfo, ConsumeResult
from stock_kernel.domain.values import (
    AllocationPolicy,
    BatchStatus,
    QualityStatus,
    TransactionType,
)
from stock_kernel.exceptions import (
    BatchNotFoundError,
    InsufficientQuantityError,
    InvalidStateError,
    ProductNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.batch import Batch
from stock_kernel.models.product import Product
from stock_kernel.selectors.base import active_only
from stock_kernel.selectors.batch_selector import BatchSelector
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService
from stock_services.transaction_service import TransactionService

logger = get_logger("services.batch_ledger")

WRITE_OFF_STATUSES = (BatchStatus.DAMAGED, BatchStatus.EXPIRED, BatchStatus.RETURNED)


@dataclass(frozen=True)
class BatchDetail:
    """A batch plus the date-dependent facts derived from it."""

    batch: BatchInfo
    as_of: date
    is_expired: bool
    is_expiring_soon: bool
    days_until_expiry: int | None
    age_days: int
    utilization_percentage: Decimal


class BatchLedger(BaseService):
    """
    Ledger of batches (cost layers).

    Non-goals:
        - Does NOT choose which batches to consume; AllocationService does.
        - Does NOT manage alerts; the InventoryService facade re-evaluates
          them in the same unit of work.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
        transactions: TransactionService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequences or SequenceService(session)
        self._transactions = transactions or TransactionService(
            session, self.clock, self._sequences
        )
        self._batches = BatchSelector(session)

    # ------------------------------------------------------------------
    # Locked reads
    # ------------------------------------------------------------------

    def _lock_product(self, product_id: UUID) -> Product:
        product = self.session.execute(
            active_only(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _lock_batch(self, batch_id: UUID) -> tuple[Product, Batch]:
        """Lock the owning product, then the batch."""
        product_id = self.session.execute(
            active_only(Batch, select(Batch.product_id)).where(Batch.id == batch_id)
        ).scalar_one_or_none()
        if product_id is None:
            raise BatchNotFoundError(str(batch_id))
        product = self._lock_product(product_id)
        batch = self.session.execute(
            active_only(Batch)
            .where(Batch.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return product, batch

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _expire(self, batch: Batch, now: datetime) -> None:
        batch.status = BatchStatus.EXPIRED.value
        batch.updated_at = now
        logger.info(
            "batch_expired",
            extra={
                "batch_id": str(batch.id),
                "product_id": str(batch.product_id),
                "expiry_date": batch.expiry_date.isoformat(),
                "remaining_quantity": str(batch.remaining_quantity),
            },
        )

    def add_batch(
        self,
        product_id: UUID,
        quantity: Decimal,
        cost_per_unit: Decimal,
        received_date: date,
        expiry_date: date | None = None,
        quality_status: QualityStatus = QualityStatus.PENDING,
        batch_number: str | None = None,
        manufacturing_date: date | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> BatchInfo:
        """
        Receive a new batch.

        Postconditions:
            - A new ACTIVE batch with remaining_quantity == quantity.
            - Product.current_stock increased by quantity; last and moving
              average unit cost updated.
            - One IN transaction dated ``received_date``.
        """
        t0 = time.monotonic()
        quantity = to_decimal(quantity)
        cost_per_unit = to_decimal(cost_per_unit)
        batch_rules.validate_new_batch(
            quantity, cost_per_unit, received_date, expiry_date, manufacturing_date
        )

        product = self._lock_product(product_id)
        sequence = self._sequences.next_value(SequenceService.BATCH_LEDGER)
        number = batch_number or f"B{received_date:%Y%m%d}-{sequence:04d}"

        duplicate = self.session.execute(
            select(Batch.id).where(
                Batch.product_id == product_id,
                Batch.batch_number == number,
            )
        ).first()
        if duplicate is not None:
            raise ValidationError(
                f"Batch number '{number}' already exists for product {product_id}",
                field="batch_number",
            )

        now = self.clock.now()
        batch = Batch(
            product_id=product_id,
            batch_number=number,
            ledger_sequence=sequence,
            quantity=quantity,
            remaining_quantity=quantity,
            cost_per_unit=cost_per_unit,
            total_cost=quantity * cost_per_unit,
            received_date=received_date,
            manufacturing_date=manufacturing_date,
            expiry_date=expiry_date,
            quality_status=QualityStatus(quality_status).value,
            status=BatchStatus.ACTIVE.value,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_at=now,
        )
        self.session.add(batch)

        old_stock = product.current_stock
        if product.average_unit_cost is None or old_stock <= 0:
            product.average_unit_cost = cost_per_unit
        else:
            product.average_unit_cost = (
                old_stock * product.average_unit_cost + quantity * cost_per_unit
            ) / (old_stock + quantity)
        product.last_unit_cost = cost_per_unit
        product.current_stock = old_stock + quantity
        product.updated_at = now
        self.session.flush()

        self._transactions.record(
            product_id=product_id,
            batch_id=batch.id,
            transaction_type=TransactionType.IN,
            quantity=quantity,
            unit_cost=cost_per_unit,
            running_balance=product.current_stock,
            transaction_date=received_date,
            reference_type=reference_type,
            reference_id=reference_id,
        )

        logger.info(
            "batch_added",
            extra={
                "batch_id": str(batch.id),
                "product_id": str(product_id),
                "batch_number": number,
                "ledger_sequence": sequence,
                "quantity": str(quantity),
                "cost_per_unit": str(cost_per_unit),
                "received_date": received_date.isoformat(),
                "current_stock": str(product.current_stock),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return BatchInfo.from_model(batch)

    def consume(
        self,
        batch_id: UUID,
        quantity: Decimal,
        reference_type: str | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> ConsumeResult:
        """
        Decrement one batch.

        Postconditions:
            - remaining_quantity decreased by quantity; CONSUMED at exactly 0.
            - A batch found past its expiry date is marked EXPIRED first and
              the call fails with InvalidStateError.
            - Product.current_stock decreased by quantity.
            - One OUT transaction with quantity -quantity.
        """
        quantity = to_decimal(quantity)
        if quantity <= 0:
            raise ValidationError(
                f"Consume quantity must be positive, got {quantity}", field="quantity"
            )

        product, batch = self._lock_batch(batch_id)
        if batch.status == BatchStatus.ACTIVE and batch_rules.is_expired(
            BatchInfo.from_model(batch), self.clock.today()
        ):
            self._expire(batch, self.clock.now())
            self.session.flush()
        if batch.status != BatchStatus.ACTIVE:
            raise InvalidStateError(
                "Batch", str(batch_id), BatchStatus(batch.status).value, "consume"
            )
        if quantity > batch.remaining_quantity:
            raise InsufficientQuantityError(
                str(batch_id), quantity, batch.remaining_quantity
            )

        now = self.clock.now()
        batch.remaining_quantity = batch.remaining_quantity - quantity
        if batch.remaining_quantity == 0:
            batch.status = BatchStatus.CONSUMED.value
        batch.updated_at = now
        product.current_stock = product.current_stock - quantity
        product.updated_at = now
        self.session.flush()

        self._transactions.record(
            product_id=product.id,
            batch_id=batch.id,
            transaction_type=TransactionType.OUT,
            quantity=-quantity,
            unit_cost=batch.cost_per_unit,
            running_balance=product.current_stock,
            transaction_date=self.clock.today(),
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
        )

        status = BatchStatus(batch.status)
        logger.info(
            "batch_consumed",
            extra={
                "batch_id": str(batch_id),
                "product_id": str(product.id),
                "consumed_quantity": str(quantity),
                "remaining_quantity": str(batch.remaining_quantity),
                "status": status.value,
                "current_stock": str(product.current_stock),
            },
        )
        return ConsumeResult(
            batch_id=batch.id,
            consumed_quantity=quantity,
            remaining_quantity=batch.remaining_quantity,
            status=status,
        )

    def soft_delete(self, batch_id: UUID, reason: str | None = None) -> BatchInfo:
        """
        Deactivate a batch and remove its remaining stock from the product.

        Postconditions:
            - is_active = false; the batch disappears from every business read.
            - Product.current_stock decreased by the batch's remaining_quantity.
            - One ADJUSTMENT transaction for -remaining (when remaining > 0).
        """
        product, batch = self._lock_batch(batch_id)
        remaining = batch.remaining_quantity
        now = self.clock.now()

        batch.is_active = False
        batch.updated_at = now
        if reason:
            batch.notes = f"{batch.notes}\n{reason}" if batch.notes else reason
        product.current_stock = product.current_stock - remaining
        product.updated_at = now
        self.session.flush()

        if remaining > 0:
            self._transactions.record(
                product_id=product.id,
                batch_id=batch.id,
                transaction_type=TransactionType.ADJUSTMENT,
                quantity=-remaining,
                unit_cost=batch.cost_per_unit,
                running_balance=product.current_stock,
                transaction_date=self.clock.today(),
                notes=reason or "batch deleted",
            )

        logger.info(
            "batch_soft_deleted",
            extra={
                "batch_id": str(batch_id),
                "product_id": str(product.id),
                "compensated_quantity": str(remaining),
                "current_stock": str(product.current_stock),
            },
        )
        return BatchInfo.from_model(batch)

    def write_off(
        self,
        batch_id: UUID,
        status: BatchStatus = BatchStatus.DAMAGED,
        notes: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> BatchInfo:
        """
        Dispose of a batch's remaining stock (damage, expiry, supplier return).

        Raises:
            ValidationError: status is not DAMAGED, EXPIRED or RETURNED.
            InvalidStateError: the batch holds no stock or is CONSUMED.
        """
        status = BatchStatus(status)
        if status not in WRITE_OFF_STATUSES:
            raise ValidationError(
                f"Write-off status must be one of "
                f"{[s.value for s in WRITE_OFF_STATUSES]}, got '{status.value}'",
                field="status",
            )

        product, batch = self._lock_batch(batch_id)
        if batch.remaining_quantity <= 0 or batch.status not in (
            BatchStatus.ACTIVE.value,
            BatchStatus.EXPIRED.value,
        ):
            raise InvalidStateError(
                "Batch", str(batch_id), BatchStatus(batch.status).value, "write off"
            )

        amount = batch.remaining_quantity
        now = self.clock.now()
        batch.remaining_quantity = Decimal("0")
        batch.status = status.value
        batch.updated_at = now
        if notes:
            batch.notes = f"{batch.notes}\n{notes}" if batch.notes else notes
        product.current_stock = product.current_stock - amount
        product.updated_at = now
        self.session.flush()

        self._transactions.record(
            product_id=product.id,
            batch_id=batch.id,
            transaction_type=TransactionType.ADJUSTMENT,
            quantity=-amount,
            unit_cost=batch.cost_per_unit,
            running_balance=product.current_stock,
            transaction_date=self.clock.today(),
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes or f"write-off: {status.value}",
        )

        logger.info(
            "batch_written_off",
            extra={
                "batch_id": str(batch_id),
                "product_id": str(product.id),
                "written_off_quantity": str(amount),
                "status": status.value,
            },
        )
        return BatchInfo.from_model(batch)

    def mark_expired(
        self,
        as_of: date | None = None,
        product_id: UUID | None = None,
    ) -> list[BatchInfo]:
        """
        Flip ACTIVE batches whose expiry_date has passed to EXPIRED.

        Stock is untouched: expired units stay on hand (and in valuation)
        until written off, but can no longer be consumed or allocated.
        """
        today = as_of or self.clock.today()
        stmt = (
            active_only(Batch)
            .where(
                Batch.status == BatchStatus.ACTIVE.value,
                Batch.expiry_date.is_not(None),
                Batch.expiry_date < today,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if product_id is not None:
            stmt = stmt.where(Batch.product_id == product_id)

        now = self.clock.now()
        expired = list(self.session.execute(stmt).scalars().all())
        for batch in expired:
            self._expire(batch, now)
        self.session.flush()

        if expired:
            logger.info(
                "batches_marked_expired",
                extra={"as_of": today.isoformat(), "count": len(expired)},
            )
        return [BatchInfo.from_model(b) for b in expired]

    def set_quality_status(
        self,
        batch_id: UUID,
        quality_status: QualityStatus,
    ) -> BatchInfo:
        _, batch = self._lock_batch(batch_id)
        batch.quality_status = QualityStatus(quality_status).value
        batch.updated_at = self.clock.now()
        self.session.flush()
        logger.info(
            "batch_quality_status_changed",
            extra={"batch_id": str(batch_id), "quality_status": batch.quality_status},
        )
        return BatchInfo.from_model(batch)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_batch(self, batch_id: UUID) -> BatchInfo:
        batch = self._batches.get(batch_id)
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch

    def get_active_batches(
        self,
        product_id: UUID,
        order: AllocationPolicy = AllocationPolicy.FIFO,
    ) -> list[BatchInfo]:
        """Consumable batches in FIFO or LIFO order, excluding any past expiry."""
        return self._batches.consumable(
            product_id, AllocationPolicy(order), as_of=self.clock.today()
        )

    def describe(
        self,
        batch_id: UUID,
        as_of: date | None = None,
        expiry_window_days: int = batch_rules.DEFAULT_EXPIRY_WINDOW_DAYS,
    ) -> BatchDetail:
        batch = self.get_batch(batch_id)
        today = as_of or self.clock.today()
        return BatchDetail(
            batch=batch,
            as_of=today,
            is_expired=batch_rules.is_expired(batch, today),
            is_expiring_soon=batch_rules.is_expiring_soon(batch, today, expiry_window_days),
            days_until_expiry=batch_rules.days_until_expiry(batch, today),
            age_days=batch_rules.age_days(batch, today),
            utilization_percentage=batch_rules.utilization_percentage(batch),
        )
