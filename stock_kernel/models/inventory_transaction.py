"""
Module: stock_kernel.models.inventory_transaction
Responsibility: Append-only movement log.  One row per ledger mutation:
    IN on receipt, OUT on consumption, ADJUSTMENT on soft-delete or
    write-off.
Architecture position: Kernel > Models.

Invariants enforced:
    - Quantity is signed: positive for IN, negative for OUT, either sign for
      ADJUSTMENT.
    - Sum of quantity over a product's active rows equals its current_stock.
    - Rows are never updated or deleted; corrections are new ADJUSTMENT rows.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import TransactionType


class InventoryTransaction(TrackedBase):
    __tablename__ = "inventory_transactions"

    __table_args__ = (
        UniqueConstraint("transaction_number", name="uq_inventory_txn_number"),
        Index("idx_inventory_txn_product_date", "product_id", "transaction_date"),
        Index("idx_inventory_txn_batch", "batch_id"),
        Index("idx_inventory_txn_reference", "reference_type", "reference_id"),
    )

    transaction_number: Mapped[str] = mapped_column(String(50), nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("batches.id"),
        nullable=True,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(20),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Product stock immediately after this movement
    running_balance: Mapped[Decimal] = mapped_column(nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction {self.transaction_number}: "
            f"{self.transaction_type} {self.quantity}>"
        )
