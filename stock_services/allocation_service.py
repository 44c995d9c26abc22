"""
AllocationService -- plan and apply FIFO/LIFO issues against batches.

Responsibility:
    ``allocate`` reads the current consumable batches and asks the pure
    AllocationEngine for a plan.  ``apply`` executes a plan through the
    BatchLedger, line by line, inside the caller's transaction.

Architecture position:
    Services -- stateful orchestration.  Flushes, never commits.  The
    InventoryService facade wraps allocate+apply in one session_scope
    under the product lock so the plan cannot go stale between the two.

Invariants enforced:
    - A plan with a shortfall is rejected by ``apply`` unless
      allow_partial is set; nothing is consumed in that case.
    - Each line goes through BatchLedger.consume, so a line that no longer
      fits (a concurrent consume got there first) raises and the caller's
      transaction rolls back every line already applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from stock_engines.allocation import AllocationEngine, AllocationPlan
from stock_kernel.db.types import to_decimal
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import ConsumeResult
from stock_kernel.domain.values import AllocationPolicy
from stock_kernel.exceptions import InsufficientQuantityError, ProductNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.selectors.batch_selector import BatchSelector
from stock_kernel.selectors.product_selector import ProductSelector
from stock_kernel.services.base import BaseService
from stock_services.batch_ledger import BatchLedger

logger = get_logger("services.allocation")


@dataclass(frozen=True)
class AppliedAllocation:
    plan: AllocationPlan
    results: tuple[ConsumeResult, ...]

    @property
    def consumed_quantity(self) -> Decimal:
        return sum((r.consumed_quantity for r in self.results), Decimal("0"))

    @property
    def cost_of_issue(self) -> Decimal:
        return self.plan.total_cost


class AllocationService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: BatchLedger | None = None,
        engine: AllocationEngine | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger or BatchLedger(session, self.clock)
        self._engine = engine or AllocationEngine()
        self._batches = BatchSelector(session)
        self._products = ProductSelector(session)

    def allocate(
        self,
        product_id: UUID,
        requested_quantity: Decimal,
        policy: AllocationPolicy = AllocationPolicy.FIFO,
    ) -> AllocationPlan:
        """
        Plan an issue without mutating anything.  Batches past their expiry
        date are never planned, even before mark_expired has flipped them.

        Raises:
            ValidationError: requested_quantity <= 0.
            ProductNotFoundError: product unknown or inactive.
        """
        requested_quantity = to_decimal(requested_quantity)
        policy = AllocationPolicy(policy)
        if self._products.get(product_id) is None:
            raise ProductNotFoundError(str(product_id))
        today = self.clock.today()
        layers = self._batches.consumable(product_id, policy, as_of=today)
        return self._engine.plan(
            layers=layers,
            requested_quantity=requested_quantity,
            policy=policy,
            product_id=product_id,
            as_of=today,
        )

    def apply(
        self,
        plan: AllocationPlan,
        reference_type: str | None = None,
        reference_id: str | None = None,
        allow_partial: bool = False,
    ) -> AppliedAllocation:
        """
        Consume every line of ``plan`` through the ledger.

        Raises:
            InsufficientQuantityError: plan has a shortfall and allow_partial
                is False, or a batch no longer holds its planned amount.
            InvalidStateError: a planned batch is no longer ACTIVE.
        """
        if not plan.fully_allocated and not allow_partial:
            raise InsufficientQuantityError(
                str(plan.product_id),
                plan.requested_quantity,
                plan.allocated_quantity,
            )

        results = tuple(
            self._ledger.consume(
                line.batch_id,
                line.amount,
                reference_type=reference_type,
                reference_id=reference_id,
            )
            for line in plan.lines
        )

        logger.info(
            "allocation_applied",
            extra={
                "product_id": str(plan.product_id),
                "policy": plan.policy.value,
                "requested_quantity": str(plan.requested_quantity),
                "consumed_quantity": str(plan.allocated_quantity),
                "shortfall": str(plan.shortfall),
                "line_count": len(plan.lines),
                "reference_type": reference_type,
                "reference_id": reference_id,
            },
        )
        return AppliedAllocation(plan=plan, results=results)
