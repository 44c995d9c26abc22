"""Read-only inventory transaction queries and stock-as-of derivation."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.dtos import TransactionInfo
from stock_kernel.models.inventory_transaction import InventoryTransaction
from stock_kernel.selectors.base import BaseSelector, active_only


class TransactionSelector(BaseSelector):
    def quantity_total(
        self,
        product_id: UUID,
        as_of: date | None = None,
    ) -> Decimal:
        """
        Signed sum of movement quantities for a product.

        With ``as_of`` this is the stock on hand at the end of that day,
        which is how valuation reconstructs historical stock.
        """
        stmt = active_only(
            InventoryTransaction,
            select(func.coalesce(func.sum(InventoryTransaction.quantity), 0)),
        ).where(InventoryTransaction.product_id == product_id)
        if as_of is not None:
            stmt = stmt.where(InventoryTransaction.transaction_date <= as_of)
        return Decimal(str(self.session.execute(stmt).scalar_one()))

    def movements(
        self,
        product_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[TransactionInfo]:
        stmt = active_only(InventoryTransaction)
        if product_id is not None:
            stmt = stmt.where(InventoryTransaction.product_id == product_id)
        if start is not None:
            stmt = stmt.where(InventoryTransaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(InventoryTransaction.transaction_date <= end)
        stmt = stmt.order_by(
            InventoryTransaction.transaction_date,
            InventoryTransaction.transaction_number,
        )
        return [
            TransactionInfo.from_model(m) for m in self.session.execute(stmt).scalars()
        ]

    def for_batch(self, batch_id: UUID) -> list[TransactionInfo]:
        stmt = active_only(InventoryTransaction).where(
            InventoryTransaction.batch_id == batch_id
        ).order_by(InventoryTransaction.transaction_number)
        return [
            TransactionInfo.from_model(m) for m in self.session.execute(stmt).scalars()
        ]
