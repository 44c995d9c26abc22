"""
TransactionService -- append-only inventory movement log and reconciliation.

Responsibility:
    Writes one InventoryTransaction per ledger mutation and answers the
    reconciliation question: do current_stock, the sum of active batch
    remainders and the sum of movement quantities agree?

Architecture position:
    Services -- stateful orchestration.  ``record`` is called only by the
    BatchLedger inside the ledger's transaction; everything else is read.

Invariants enforced:
    - Append-only: there is no update or delete path.
    - Transaction numbers come from the locked sequence counter and are
      zero-padded so lexical order equals insertion order.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import ReconciliationResult, TransactionInfo
from stock_kernel.domain.values import TransactionType
from stock_kernel.exceptions import ProductNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.batch import Batch
from stock_kernel.models.inventory_transaction import InventoryTransaction
from stock_kernel.models.product import Product
from stock_kernel.selectors.base import active_only
from stock_kernel.selectors.transaction_selector import TransactionSelector
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("services.transaction")


class TransactionService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequences or SequenceService(session)
        self._selector = TransactionSelector(session)

    def record(
        self,
        *,
        product_id: UUID,
        transaction_type: TransactionType,
        quantity: Decimal,
        running_balance: Decimal,
        transaction_date: date,
        batch_id: UUID | None = None,
        unit_cost: Decimal | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> TransactionInfo:
        """
        Append one movement.

        Preconditions:
            - Called inside the ledger mutation that changed current_stock
              by exactly ``quantity``; ``running_balance`` is the stock after it.
        """
        seq = self._sequences.next_value(SequenceService.INVENTORY_TRANSACTION)
        txn = InventoryTransaction(
            transaction_number=f"INV-{seq:010d}",
            product_id=product_id,
            batch_id=batch_id,
            transaction_type=TransactionType(transaction_type).value,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=None if unit_cost is None else abs(quantity) * unit_cost,
            running_balance=running_balance,
            transaction_date=transaction_date,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=created_by,
            created_at=self.clock.now(),
        )
        self.session.add(txn)
        self.session.flush()

        logger.info(
            "inventory_transaction_recorded",
            extra={
                "transaction_number": txn.transaction_number,
                "product_id": str(product_id),
                "batch_id": str(batch_id) if batch_id else None,
                "transaction_type": TransactionType(transaction_type).value,
                "quantity": str(quantity),
                "running_balance": str(running_balance),
            },
        )
        return TransactionInfo.from_model(txn)

    def movements(
        self,
        product_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[TransactionInfo]:
        return self._selector.movements(product_id=product_id, start=start, end=end)

    def reconcile(self, product_id: UUID) -> ReconciliationResult:
        """
        Compare current_stock with both of its derivations.

        Raises:
            ProductNotFoundError: product unknown or inactive.
        """
        product = self.session.execute(
            active_only(Product).where(Product.id == product_id)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))

        batch_total = self.session.execute(
            active_only(
                Batch,
                select(func.coalesce(func.sum(Batch.remaining_quantity), 0)),
            ).where(Batch.product_id == product_id)
        ).scalar_one()

        result = ReconciliationResult(
            product_id=product_id,
            current_stock=Decimal(str(product.current_stock)),
            batch_total=Decimal(str(batch_total)),
            transaction_total=self._selector.quantity_total(product_id),
        )
        if not result.is_consistent:
            logger.error(
                "stock_reconciliation_mismatch",
                extra={
                    "product_id": str(product_id),
                    "current_stock": str(result.current_stock),
                    "batch_total": str(result.batch_total),
                    "transaction_total": str(result.transaction_total),
                },
            )
        return result
