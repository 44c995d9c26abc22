"""
Module: stock_engines.allocation
Responsibility:
    Decide which batches satisfy a requested quantity under a FIFO or LIFO
    policy and how much to take from each.  Produces a plan; never mutates.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel/domain and stock_kernel/exceptions.

Invariants enforced:
    - Conservation: sum(line.amount) + shortfall == requested_quantity.
    - Per-line bound: 0 < line.amount <= that batch's remaining_quantity.
    - Ordering: FIFO walks (received_date ASC, ledger_sequence ASC); LIFO
      walks the exact reverse.  Only the last consumed line may be partial.
    - Determinism: the same layer snapshot and request always yield the
      same plan.

Failure modes:
    - ValidationError on requested_quantity <= 0.

Usage:
    engine = AllocationEngine()
    plan = engine.plan(
        layers=batches,
        requested_quantity=Decimal("15"),
        policy=AllocationPolicy.FIFO,
    )
    if not plan.fully_allocated:
        ...  # plan.shortfall units are missing
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from stock_engines import batch_rules
from stock_engines.tracer import traced_engine
from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.domain.values import AllocationPolicy, BatchStatus
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationLine:
    """Take ``amount`` units from one batch at that batch's unit cost."""

    batch_id: UUID
    batch_number: str
    amount: Decimal
    unit_cost: Decimal

    @property
    def cost(self) -> Decimal:
        return self.amount * self.unit_cost


@dataclass(frozen=True)
class AllocationPlan:
    """
    Outcome of planning one issue request.

    Guarantees:
        - ``allocated_quantity + shortfall == requested_quantity``.
        - ``lines`` are in the order the policy consumes them.
    """

    product_id: UUID | None
    policy: AllocationPolicy
    requested_quantity: Decimal
    lines: tuple[AllocationLine, ...]

    @property
    def allocated_quantity(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))

    @property
    def shortfall(self) -> Decimal:
        return self.requested_quantity - self.allocated_quantity

    @property
    def fully_allocated(self) -> bool:
        return self.shortfall == 0

    @property
    def total_cost(self) -> Decimal:
        return sum((line.cost for line in self.lines), Decimal("0"))


def order_layers(
    layers: Sequence[BatchInfo],
    policy: AllocationPolicy,
) -> list[BatchInfo]:
    """FIFO by (received_date, ledger_sequence); LIFO is its exact reverse."""
    fifo = sorted(layers, key=lambda b: (b.received_date, b.ledger_sequence))
    if AllocationPolicy(policy) == AllocationPolicy.LIFO:
        return list(reversed(fifo))
    return fifo


def _is_consumable(batch: BatchInfo, as_of: date | None) -> bool:
    if as_of is not None:
        return batch_rules.is_consumable(batch, as_of)
    return (
        batch.is_active
        and batch.status == BatchStatus.ACTIVE
        and batch.remaining_quantity > 0
    )


class AllocationEngine:
    """
    Pure allocation planner.

    Contract:
        Takes a snapshot of batches and returns an AllocationPlan.
        Batches that are inactive, not ACTIVE, or empty are skipped, and so
        are batches past their expiry date when ``as_of`` is given.

    Non-goals:
        - Does not lock or re-read anything.  The caller guarantees the
          snapshot is current (AllocationService reads it under the
          product lock).
    """

    @traced_engine(
        "allocation",
        "1.0",
        fingerprint_fields=("product_id", "requested_quantity", "policy", "layers"),
    )
    def plan(
        self,
        *,
        layers: Sequence[BatchInfo],
        requested_quantity: Decimal,
        policy: AllocationPolicy,
        product_id: UUID | None = None,
        as_of: date | None = None,
    ) -> AllocationPlan:
        if requested_quantity <= 0:
            raise ValidationError(
                f"Requested quantity must be positive, got {requested_quantity}",
                field="requested_quantity",
            )
        policy = AllocationPolicy(policy)

        ordered = order_layers([b for b in layers if _is_consumable(b, as_of)], policy)

        lines: list[AllocationLine] = []
        still_needed = requested_quantity
        for batch in ordered:
            if still_needed <= 0:
                break
            take = min(batch.remaining_quantity, still_needed)
            lines.append(
                AllocationLine(
                    batch_id=batch.id,
                    batch_number=batch.batch_number,
                    amount=take,
                    unit_cost=batch.cost_per_unit,
                )
            )
            still_needed -= take

        plan = AllocationPlan(
            product_id=product_id,
            policy=policy,
            requested_quantity=requested_quantity,
            lines=tuple(lines),
        )

        logger.info(
            "allocation_planned",
            extra={
                "product_id": str(product_id) if product_id else None,
                "policy": policy.value,
                "requested_quantity": str(requested_quantity),
                "allocated_quantity": str(plan.allocated_quantity),
                "shortfall": str(plan.shortfall),
                "line_count": len(lines),
            },
        )
        return plan
