"""
Module: stock_engines.valuation
Responsibility:
    Value one product's stock on hand from its cost layers under FIFO,
    LIFO or weighted AVERAGE costing.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Costing conventions:
    FIFO     Consumption takes the oldest layers first, so the stock still
             on hand is made of the NEWEST layers.  Walk layers newest-first,
             covering stock_on_hand by each layer's received quantity, and
             take the weighted cost of the covered slices.
    LIFO     Symmetric: on-hand stock is the OLDEST layers.  Walk
             oldest-first.
    AVERAGE  Weighted average of cost_per_unit by remaining_quantity.  If
             nothing remains, weight by received quantity instead.

Invariants enforced:
    - current_value = stock_on_hand * unrounded unit cost, rounded to
      2 places.  unit_cost_used is reported at 2 places.  Rounding happens
      once at the edge, never mid-computation.
    - No stock or no layers means zero value and zero unit cost.
    - Layer order is (received_date, ledger_sequence); LIFO is its exact
      reverse.  The caller filters layers received after as_of_date before
      calling.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from stock_engines.allocation import order_layers
from stock_engines.tracer import traced_engine
from stock_kernel.db.types import round_money, round_quantity, round_unit_cost
from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.domain.values import AllocationPolicy, ValuationMethod
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.valuation")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ProductValuation:
    """One product's line in a valuation report."""

    product_id: UUID
    method: ValuationMethod
    current_stock: Decimal
    unit_cost_used: Decimal
    current_value: Decimal


def _covered_cost(
    walk: Sequence[BatchInfo],
    stock_on_hand: Decimal,
) -> Decimal:
    """Weighted unit cost of the first ``stock_on_hand`` units along ``walk``."""
    still_to_cover = stock_on_hand
    covered = ZERO
    cost = ZERO
    for layer in walk:
        if still_to_cover <= 0:
            break
        take = min(layer.quantity, still_to_cover)
        covered += take
        cost += take * layer.cost_per_unit
        still_to_cover -= take
    if covered == 0:
        return ZERO
    return cost / covered


def weighted_average_cost(layers: Sequence[BatchInfo]) -> Decimal:
    """Average cost weighted by remaining quantity, else by received quantity."""
    remaining = sum((b.remaining_quantity for b in layers), ZERO)
    if remaining > 0:
        return sum((b.remaining_quantity * b.cost_per_unit for b in layers), ZERO) / remaining
    received = sum((b.quantity for b in layers), ZERO)
    if received > 0:
        return sum((b.quantity * b.cost_per_unit for b in layers), ZERO) / received
    return ZERO


class ValuationEngine:
    """
    Pure per-product valuation.

    Non-goals:
        - Does not decide which layers existed on a date; ValuationService
          filters by received_date first.
        - Does not derive stock_on_hand; it is an input.
    """

    def unit_cost(
        self,
        layers: Sequence[BatchInfo],
        stock_on_hand: Decimal,
        method: ValuationMethod,
    ) -> Decimal:
        """Unrounded unit cost under ``method``."""
        method = ValuationMethod(method)
        if not layers:
            return ZERO
        if method == ValuationMethod.AVERAGE:
            return weighted_average_cost(layers)
        if stock_on_hand <= 0:
            return ZERO
        fifo = order_layers(layers, AllocationPolicy.FIFO)
        if method == ValuationMethod.FIFO:
            return _covered_cost(list(reversed(fifo)), stock_on_hand)
        return _covered_cost(fifo, stock_on_hand)

    @traced_engine(
        "valuation",
        "1.0",
        fingerprint_fields=("product_id", "stock_on_hand", "method", "layers"),
    )
    def value_product(
        self,
        *,
        product_id: UUID,
        layers: Sequence[BatchInfo],
        stock_on_hand: Decimal,
        method: ValuationMethod,
    ) -> ProductValuation:
        method = ValuationMethod(method)
        unit_cost = self.unit_cost(layers, stock_on_hand, method)
        stock = max(stock_on_hand, ZERO)
        value = stock * unit_cost
        return ProductValuation(
            product_id=product_id,
            method=method,
            current_stock=round_quantity(stock),
            unit_cost_used=round_unit_cost(unit_cost),
            current_value=round_money(value),
        )
