"""
ValuationService -- point-in-time inventory valuation reports.

Responsibility:
    Gather, per product, the cost layers that existed on ``as_of_date`` and
    the stock on hand at the end of that day, and hand both to the pure
    ValuationEngine.  Adds receipt-age buckets, an expiry profile, a
    side-by-side method comparison and persisted snapshots.

Architecture position:
    Services -- read-mostly orchestration.  Only ``record_snapshot`` writes.

Invariants enforced:
    - Layers received after as_of_date are excluded BEFORE the FIFO/LIFO
      walk.
    - Stock on hand as of a date is the signed sum of movements dated on
      or before it, so historical reports do not depend on later activity.
    - An unknown or inactive product yields an empty report, not an error.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config.schema import StockConfig
from stock_engines.aging import AgingCalculator, BucketTotal
from stock_engines.valuation import ProductValuation, ValuationEngine
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import BatchInfo, ProductInfo
from stock_kernel.domain.values import ValuationMethod
from stock_kernel.exceptions import ProductNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_valuation import StockValuationSnapshot
from stock_kernel.selectors.batch_selector import BatchSelector
from stock_kernel.selectors.product_selector import ProductSelector
from stock_kernel.selectors.transaction_selector import TransactionSelector
from stock_kernel.services.base import BaseService
from stock_services.config_bridge import aging_buckets

logger = get_logger("services.valuation")


@dataclass(frozen=True)
class ValuationReport:
    as_of_date: date
    method: ValuationMethod
    items: tuple[ProductValuation, ...]
    aging: tuple[BucketTotal, ...]

    @property
    def total_value(self) -> Decimal:
        return sum((i.current_value for i in self.items), Decimal("0"))

    @property
    def total_stock(self) -> Decimal:
        return sum((i.current_stock for i in self.items), Decimal("0"))


@dataclass(frozen=True)
class ValuationSnapshotInfo:
    id: UUID
    product_id: UUID
    valuation_date: date
    valuation_method: ValuationMethod
    stock_balance: Decimal
    value_balance: Decimal
    unit_cost: Decimal


class ValuationService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: StockConfig | None = None,
        engine: ValuationEngine | None = None,
    ):
        super().__init__(session, clock)
        self._config = config or StockConfig.with_defaults()
        self._engine = engine or ValuationEngine()
        self._aging = AgingCalculator(receipt_buckets=aging_buckets(self._config))
        self._products = ProductSelector(session)
        self._batches = BatchSelector(session)
        self._transactions = TransactionSelector(session)

    def _products_in_scope(self, product_id: UUID | None) -> list[ProductInfo]:
        if product_id is None:
            return self._products.list_active()
        product = self._products.get(product_id)
        return [product] if product else []

    def _value(
        self,
        product: ProductInfo,
        layers: list[BatchInfo],
        as_of_date: date,
        method: ValuationMethod,
    ) -> ProductValuation:
        return self._engine.value_product(
            product_id=product.id,
            layers=layers,
            stock_on_hand=self._transactions.quantity_total(product.id, as_of_date),
            method=method,
        )

    def valuate(
        self,
        as_of_date: date | None = None,
        method: ValuationMethod | None = None,
        product_id: UUID | None = None,
    ) -> ValuationReport:
        """
        Value stock as of the end of ``as_of_date``.

        Args:
            as_of_date: defaults to today from the clock.
            method: defaults to the configured default_valuation_method.
            product_id: restrict to one product; unknown ids give no items.
        """
        t0 = time.monotonic()
        as_of_date = as_of_date or self.clock.today()
        method = ValuationMethod(method or self._config.default_valuation_method)

        items: list[ProductValuation] = []
        all_layers: list[BatchInfo] = []
        for product in self._products_in_scope(product_id):
            layers = self._batches.layers_as_of(product.id, as_of_date)
            all_layers.extend(layers)
            items.append(self._value(product, layers, as_of_date, method))

        report = ValuationReport(
            as_of_date=as_of_date,
            method=method,
            items=tuple(items),
            aging=self._aging.stock_aging(layers=all_layers, as_of_date=as_of_date),
        )

        logger.info(
            "valuation_completed",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "method": method.value,
                "product_count": len(items),
                "total_value": str(report.total_value),
                "total_stock": str(report.total_stock),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return report

    def compare_methods(
        self,
        product_id: UUID,
        as_of_date: date | None = None,
    ) -> dict[ValuationMethod, ProductValuation]:
        """FIFO, LIFO and AVERAGE side by side. Empty for an unknown product."""
        as_of_date = as_of_date or self.clock.today()
        product = self._products.get(product_id)
        if product is None:
            return {}
        layers = self._batches.layers_as_of(product_id, as_of_date)
        return {
            method: self._value(product, layers, as_of_date, method)
            for method in ValuationMethod
        }

    def expiry_profile(
        self,
        as_of_date: date | None = None,
        product_id: UUID | None = None,
    ) -> tuple[BucketTotal, ...]:
        """Remaining stock by days until expiry."""
        as_of_date = as_of_date or self.clock.today()
        layers: list[BatchInfo] = []
        for product in self._products_in_scope(product_id):
            layers.extend(self._batches.for_product(product.id))
        return self._aging.expiry_profile(layers=layers, as_of_date=as_of_date)

    def record_snapshot(
        self,
        product_id: UUID,
        as_of_date: date | None = None,
        method: ValuationMethod | None = None,
    ) -> ValuationSnapshotInfo:
        """
        Persist a valuation snapshot; recomputing the same key overwrites it.

        Raises:
            ProductNotFoundError: product unknown or inactive.
        """
        as_of_date = as_of_date or self.clock.today()
        method = ValuationMethod(method or self._config.default_valuation_method)
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))

        layers = self._batches.layers_as_of(product_id, as_of_date)
        valuation = self._value(product, layers, as_of_date, method)

        snapshot = self.session.execute(
            select(StockValuationSnapshot).where(
                StockValuationSnapshot.product_id == product_id,
                StockValuationSnapshot.valuation_date == as_of_date,
                StockValuationSnapshot.valuation_method == method.value,
            )
        ).scalar_one_or_none()
        created = snapshot is None
        if created:
            snapshot = StockValuationSnapshot(
                product_id=product_id,
                valuation_date=as_of_date,
                valuation_method=method.value,
                created_at=self.clock.now(),
            )
            self.session.add(snapshot)
        else:
            snapshot.updated_at = self.clock.now()
        snapshot.stock_balance = valuation.current_stock
        snapshot.value_balance = valuation.current_value
        snapshot.unit_cost = valuation.unit_cost_used
        self.session.flush()

        logger.info(
            "valuation_snapshot_recorded",
            extra={
                "product_id": str(product_id),
                "valuation_date": as_of_date.isoformat(),
                "method": method.value,
                "value_balance": str(valuation.current_value),
                "created": created,
            },
        )
        return ValuationSnapshotInfo(
            id=snapshot.id,
            product_id=product_id,
            valuation_date=as_of_date,
            valuation_method=method,
            stock_balance=valuation.current_stock,
            value_balance=valuation.current_value,
            unit_cost=valuation.unit_cost_used,
        )
