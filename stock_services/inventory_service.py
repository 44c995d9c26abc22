"""
InventoryService -- unit-of-work facade over the stock services.

Responsibility:
    The entry point for the outer (HTTP / CLI) layer.  Each write call runs
    as one unit of work:

        1. take the per-product lock(s)         (ProductLockRegistry)
        2. open a session_scope                 (commit or rollback)
        3. run the ledger / allocation work     (row locks, flush)
        4. re-evaluate the product's alerts     (same transaction)
        5. commit, release locks
        6. on ConcurrencyConflictError, repeat from 1 (bounded)

Architecture position:
    Services -- the only place that owns transaction boundaries and
    locking policy.  The services below it only flush.

Invariants enforced:
    - All-or-nothing: a multi-batch issue either consumes every planned
      line and writes every transaction row, or nothing.
    - Per-product serialization of every stock mutation.
    - Fail fast: insufficient stock raises immediately; nothing waits for
      stock to arrive.  Lock waits are bounded by lock_timeout_seconds.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from stock_config.schema import StockConfig
from stock_engines.aging import BucketTotal
from stock_engines.allocation import AllocationPlan
from stock_engines.valuation import ProductValuation
from stock_kernel.db.engine import session_scope
from stock_kernel.domain.clock import Clock, SystemClock
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
    AlertType,
    AllocationPolicy,
    BatchStatus,
    QualityStatus,
    ValuationMethod,
)
from stock_kernel.exceptions import BatchNotFoundError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.selectors.alert_selector import AlertSummary
from stock_kernel.selectors.batch_selector import BatchSelector, BatchStats
from stock_kernel.selectors.product_selector import ProductSelector
from stock_kernel.services.lock_registry import ProductLockRegistry
from stock_kernel.services.retry import retry_on_conflict
from stock_services.alert_service import AlertService
from stock_services.allocation_service import AllocationService, AppliedAllocation
from stock_services.batch_ledger import BatchDetail, BatchLedger
from stock_services.product_service import ProductService
from stock_services.transaction_service import TransactionService
from stock_services.valuation_service import (
    ValuationReport,
    ValuationService,
    ValuationSnapshotInfo,
)

logger = get_logger("services.inventory")

T = TypeVar("T")


class InventoryService:
    """
    Facade for batch-tracked inventory.

    Usage:
        inventory = InventoryService(session_factory, clock=SystemClock())
        product = inventory.create_product("SKU-1", "Widget", reorder_level=Decimal("20"))
        inventory.receive(product.id, Decimal("100"), Decimal("10"), date(2024, 1, 1))
        issued = inventory.issue(product.id, Decimal("30"), AllocationPolicy.FIFO)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: StockConfig | None = None,
        locks: ProductLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or StockConfig.with_defaults()
        self._locks = locks or ProductLockRegistry(self._config.lock_timeout_seconds)

    @property
    def config(self) -> StockConfig:
        return self._config

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _read(self, fn: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as session:
            return fn(session)

    def _write(
        self,
        operation: str,
        product_ids: Iterable[UUID],
        fn: Callable[[Session], T],
    ) -> T:
        ids = sorted({pid for pid in product_ids}, key=str)

        def attempt() -> T:
            with self._locks.hold(ids):
                with session_scope(self._session_factory) as session:
                    result = fn(session)
                    if self._config.auto_evaluate_alerts:
                        alerts = self._alerts(session)
                        for pid in ids:
                            alerts.evaluate_product(pid)
                    return result

        with LogContext.bind(operation=operation):
            return retry_on_conflict(
                attempt,
                max_attempts=self._config.max_conflict_retries,
                operation_name=operation,
            )

    def _ledger(self, session: Session) -> BatchLedger:
        return BatchLedger(session, self._clock)

    def _alerts(self, session: Session) -> AlertService:
        return AlertService(session, self._clock, self._config)

    def _product_of_batch(self, batch_id: UUID) -> UUID:
        batch = self._read(lambda s: BatchSelector(s).get(batch_id))
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch.product_id

    def _active_product_ids(self) -> list[UUID]:
        return self._read(lambda s: ProductSelector(s).active_ids())

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def create_product(self, sku: str, name: str, **thresholds) -> ProductInfo:
        with session_scope(self._session_factory) as session:
            return ProductService(session, self._clock).create_product(
                sku, name, **thresholds
            )

    def get_product(self, product_id: UUID) -> ProductInfo:
        return self._read(lambda s: ProductService(s, self._clock).get_product(product_id))

    def list_products(self) -> list[ProductInfo]:
        return self._read(lambda s: ProductSelector(s).list_active())

    def update_thresholds(self, product_id: UUID, **thresholds) -> ProductInfo:
        return self._write(
            "update_thresholds",
            [product_id],
            lambda s: ProductService(s, self._clock).update_thresholds(
                product_id, **thresholds
            ),
        )

    def deactivate_product(self, product_id: UUID, reason: str | None = None) -> ProductInfo:
        product = self._write(
            "deactivate_product",
            [product_id],
            lambda s: ProductService(s, self._clock).deactivate(product_id, reason),
        )
        self._locks.forget(product_id)
        return product

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def receive(
        self,
        product_id: UUID,
        quantity: Decimal,
        cost_per_unit: Decimal,
        received_date: date | None = None,
        expiry_date: date | None = None,
        quality_status: QualityStatus = QualityStatus.PENDING,
        batch_number: str | None = None,
        manufacturing_date: date | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> BatchInfo:
        """Goods receipt: purchase, production output or adjustment-in."""
        return self._write(
            "receive",
            [product_id],
            lambda s: self._ledger(s).add_batch(
                product_id,
                quantity,
                cost_per_unit,
                received_date or self._clock.today(),
                expiry_date=expiry_date,
                quality_status=quality_status,
                batch_number=batch_number,
                manufacturing_date=manufacturing_date,
                reference_type=reference_type,
                reference_id=reference_id,
                notes=notes,
            ),
        )

    def plan_issue(
        self,
        product_id: UUID,
        quantity: Decimal,
        policy: AllocationPolicy | None = None,
    ) -> AllocationPlan:
        """Read-only preview of what ``issue`` would consume."""
        policy = AllocationPolicy(policy or self._config.default_policy)
        return self._read(
            lambda s: AllocationService(s, self._clock).allocate(product_id, quantity, policy)
        )

    def issue(
        self,
        product_id: UUID,
        quantity: Decimal,
        policy: AllocationPolicy | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        allow_partial: bool = False,
    ) -> AppliedAllocation:
        """
        Goods issue (sale, production consumption, adjustment-out).

        Plans and applies in one transaction under the product lock.

        Raises:
            ValidationError: quantity <= 0.
            InsufficientQuantityError: not enough stock and allow_partial is
                False (nothing consumed).
            ConcurrencyConflictError: retries exhausted.
        """
        policy = AllocationPolicy(policy or self._config.default_policy)

        def work(session: Session) -> AppliedAllocation:
            ledger = self._ledger(session)
            ledger.mark_expired(product_id=product_id)
            service = AllocationService(session, self._clock, ledger=ledger)
            plan = service.allocate(product_id, quantity, policy)
            return service.apply(
                plan,
                reference_type=reference_type,
                reference_id=reference_id,
                allow_partial=allow_partial,
            )

        with LogContext.bind(product_id=str(product_id), reference_id=reference_id):
            return self._write("issue", [product_id], work)

    def consume_batch(
        self,
        batch_id: UUID,
        quantity: Decimal,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> ConsumeResult:
        product_id = self._product_of_batch(batch_id)
        return self._write(
            "consume_batch",
            [product_id],
            lambda s: self._ledger(s).consume(
                batch_id, quantity, reference_type=reference_type, reference_id=reference_id
            ),
        )

    def delete_batch(self, batch_id: UUID, reason: str | None = None) -> BatchInfo:
        product_id = self._product_of_batch(batch_id)
        return self._write(
            "delete_batch",
            [product_id],
            lambda s: self._ledger(s).soft_delete(batch_id, reason),
        )

    def write_off_batch(
        self,
        batch_id: UUID,
        status: BatchStatus = BatchStatus.DAMAGED,
        notes: str | None = None,
    ) -> BatchInfo:
        product_id = self._product_of_batch(batch_id)
        return self._write(
            "write_off_batch",
            [product_id],
            lambda s: self._ledger(s).write_off(batch_id, status, notes),
        )

    def set_quality_status(self, batch_id: UUID, quality_status: QualityStatus) -> BatchInfo:
        product_id = self._product_of_batch(batch_id)
        return self._write(
            "set_quality_status",
            [product_id],
            lambda s: self._ledger(s).set_quality_status(batch_id, quality_status),
        )

    def expire_batches(self, as_of: date | None = None) -> list[BatchInfo]:
        """Mark every past-expiry ACTIVE batch EXPIRED."""
        return self._write(
            "expire_batches",
            self._active_product_ids(),
            lambda s: self._ledger(s).mark_expired(as_of),
        )

    def get_active_batches(
        self,
        product_id: UUID,
        order: AllocationPolicy = AllocationPolicy.FIFO,
    ) -> list[BatchInfo]:
        return self._read(lambda s: self._ledger(s).get_active_batches(product_id, order))

    def describe_batch(self, batch_id: UUID, as_of: date | None = None) -> BatchDetail:
        return self._read(
            lambda s: self._ledger(s).describe(
                batch_id, as_of, self._config.expiry_warning_days
            )
        )

    def batch_stats(self, product_id: UUID | None = None) -> BatchStats:
        return self._read(
            lambda s: BatchSelector(s).stats(
                self._clock.today(), self._config.expiry_warning_days, product_id
            )
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def movements(
        self,
        product_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[TransactionInfo]:
        return self._read(
            lambda s: TransactionService(s, self._clock).movements(product_id, start, end)
        )

    def reconcile(self, product_id: UUID) -> ReconciliationResult:
        return self._read(lambda s: TransactionService(s, self._clock).reconcile(product_id))

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------

    def _valuation(self, session: Session) -> ValuationService:
        return ValuationService(session, self._clock, self._config)

    def valuate(
        self,
        as_of_date: date | None = None,
        method: ValuationMethod | None = None,
        product_id: UUID | None = None,
    ) -> ValuationReport:
        return self._read(lambda s: self._valuation(s).valuate(as_of_date, method, product_id))

    def compare_valuation_methods(
        self,
        product_id: UUID,
        as_of_date: date | None = None,
    ) -> dict[ValuationMethod, ProductValuation]:
        return self._read(lambda s: self._valuation(s).compare_methods(product_id, as_of_date))

    def expiry_profile(
        self,
        as_of_date: date | None = None,
        product_id: UUID | None = None,
    ) -> tuple[BucketTotal, ...]:
        return self._read(lambda s: self._valuation(s).expiry_profile(as_of_date, product_id))

    def record_valuation_snapshot(
        self,
        product_id: UUID,
        as_of_date: date | None = None,
        method: ValuationMethod | None = None,
    ) -> ValuationSnapshotInfo:
        with session_scope(self._session_factory) as session:
            return self._valuation(session).record_snapshot(product_id, as_of_date, method)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def sweep_alerts(self) -> list[AlertInfo]:
        """Re-evaluate every product's alerts under all product locks."""

        def attempt() -> list[AlertInfo]:
            with self._locks.hold(self._active_product_ids()):
                with session_scope(self._session_factory) as session:
                    return self._alerts(session).sweep()

        with LogContext.bind(operation="sweep_alerts"):
            return retry_on_conflict(
                attempt,
                max_attempts=self._config.max_conflict_retries,
                operation_name="sweep_alerts",
            )

    def acknowledge_alert(self, alert_id: UUID, by: str, notes: str | None = None) -> AlertInfo:
        with session_scope(self._session_factory) as session:
            return self._alerts(session).acknowledge(alert_id, by, notes)

    def resolve_alert(self, alert_id: UUID, by: str, notes: str | None = None) -> AlertInfo:
        with session_scope(self._session_factory) as session:
            return self._alerts(session).resolve(alert_id, by, notes)

    def bulk_acknowledge_alerts(self, alert_ids: Iterable[UUID], by: str) -> list[AlertInfo]:
        with session_scope(self._session_factory) as session:
            return self._alerts(session).bulk_acknowledge(alert_ids, by)

    def open_alerts(
        self,
        alert_type: AlertType | None = None,
        priority: AlertPriority | None = None,
        product_id: UUID | None = None,
    ) -> list[AlertInfo]:
        return self._read(lambda s: self._alerts(s).list_open(alert_type, priority, product_id))

    def alert_summary(self) -> AlertSummary:
        return self._read(lambda s: self._alerts(s).summary())

    def reorder_suggestions(self) -> list[ReorderSuggestion]:
        return self._read(lambda s: self._alerts(s).reorder_suggestions())
