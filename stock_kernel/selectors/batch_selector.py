"""
Module: stock_kernel.selectors.batch_selector
Responsibility: Read-only batch queries, including the canonical FIFO and
    LIFO orderings.

Ordering contract:
    FIFO = (received_date ASC, ledger_sequence ASC)
    LIFO = the FIFO result, reversed.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import or_

from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.domain.values import AllocationPolicy, BatchStatus
from stock_kernel.models.batch import Batch
from stock_kernel.selectors.base import BaseSelector, active_only


FIFO_ORDER = (Batch.received_date.asc(), Batch.ledger_sequence.asc())


@dataclass(frozen=True)
class BatchStats:
    total: int
    active: int
    consumed: int
    expired: int
    expiring_soon: int


class BatchSelector(BaseSelector):
    def get(self, batch_id: UUID) -> BatchInfo | None:
        model = self.session.execute(
            active_only(Batch).where(Batch.id == batch_id)
        ).scalar_one_or_none()
        return BatchInfo.from_model(model) if model else None

    def consumable(
        self,
        product_id: UUID,
        policy: AllocationPolicy = AllocationPolicy.FIFO,
        as_of: date | None = None,
    ) -> list[BatchInfo]:
        """
        Batches that can satisfy an issue: status ACTIVE, remaining > 0 and,
        when ``as_of`` is given, not past their expiry date on that day.
        """
        stmt = active_only(Batch).where(
            Batch.product_id == product_id,
            Batch.status == BatchStatus.ACTIVE.value,
            Batch.remaining_quantity > 0,
        )
        if as_of is not None:
            stmt = stmt.where(
                or_(Batch.expiry_date.is_(None), Batch.expiry_date >= as_of)
            )
        rows = self.session.execute(stmt.order_by(*FIFO_ORDER)).scalars()
        batches = [BatchInfo.from_model(m) for m in rows]
        if AllocationPolicy(policy) == AllocationPolicy.LIFO:
            batches.reverse()
        return batches

    def layers_as_of(self, product_id: UUID, as_of: date) -> list[BatchInfo]:
        """
        All cost layers received on or before ``as_of``, in FIFO order.

        Status is deliberately not filtered: a consumed or expired batch was
        still part of the product's receipt history on that date.
        """
        rows = self.session.execute(
            active_only(Batch)
            .where(
                Batch.product_id == product_id,
                Batch.received_date <= as_of,
            )
            .order_by(*FIFO_ORDER)
        ).scalars()
        return [BatchInfo.from_model(m) for m in rows]

    def for_product(self, product_id: UUID) -> list[BatchInfo]:
        rows = self.session.execute(
            active_only(Batch)
            .where(Batch.product_id == product_id)
            .order_by(*FIFO_ORDER)
        ).scalars()
        return [BatchInfo.from_model(m) for m in rows]

    def with_stock_and_expiry(self, product_id: UUID | None = None) -> list[BatchInfo]:
        """Batches that still hold stock and carry an expiry date."""
        stmt = active_only(Batch).where(
            Batch.remaining_quantity > 0,
            Batch.expiry_date.is_not(None),
            Batch.status.in_([BatchStatus.ACTIVE.value, BatchStatus.EXPIRED.value]),
        )
        if product_id is not None:
            stmt = stmt.where(Batch.product_id == product_id)
        rows = self.session.execute(stmt.order_by(Batch.expiry_date)).scalars()
        return [BatchInfo.from_model(m) for m in rows]

    def stats(
        self,
        today: date,
        window_days: int = 30,
        product_id: UUID | None = None,
    ) -> BatchStats:
        stmt = active_only(Batch)
        if product_id is not None:
            stmt = stmt.where(Batch.product_id == product_id)
        batches = [BatchInfo.from_model(m) for m in self.session.execute(stmt).scalars()]
        horizon = today + timedelta(days=window_days)
        return BatchStats(
            total=len(batches),
            active=sum(1 for b in batches if b.status == BatchStatus.ACTIVE),
            consumed=sum(1 for b in batches if b.status == BatchStatus.CONSUMED),
            expired=sum(1 for b in batches if b.status == BatchStatus.EXPIRED),
            expiring_soon=sum(
                1
                for b in batches
                if b.status == BatchStatus.ACTIVE
                and b.expiry_date is not None
                and today <= b.expiry_date <= horizon
            ),
        )
