"""
Module: stock_kernel.models.batch
Responsibility: ORM persistence for batches (cost layers).  Each batch is a
    discrete quantity of one product received at one unit cost.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - 0 <= remaining_quantity <= quantity (CHECK constraints).
    - batch_number unique per product.
    - (product_id, received_date, ledger_sequence) index supports the FIFO
      ordering and its exact reverse for LIFO.
    - version is an optimistic lock column.

Failure modes:
    - IntegrityError on duplicate (product_id, batch_number) or a remaining
      quantity outside [0, quantity].  The ledger validates first so these
      only fire on a bypass.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import BatchStatus, QualityStatus


class Batch(TrackedBase):
    """
    One receipt of a product at a fixed unit cost.

    Contract:
        quantity and cost_per_unit are fixed at creation.  remaining_quantity
        and status change only through the BatchLedger.
    """

    __tablename__ = "batches"

    __table_args__ = (
        UniqueConstraint("product_id", "batch_number", name="uq_batch_product_number"),
        CheckConstraint("remaining_quantity >= 0", name="ck_batch_remaining_nonneg"),
        CheckConstraint(
            "remaining_quantity <= quantity", name="ck_batch_remaining_le_quantity"
        ),
        Index("idx_batch_fifo", "product_id", "received_date", "ledger_sequence"),
        Index("idx_batch_status", "status"),
        Index("idx_batch_expiry", "expiry_date"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    batch_number: Mapped[str] = mapped_column(String(50), nullable=False)

    # Global insertion order; tie-break for same-day receipts
    ledger_sequence: Mapped[int] = mapped_column(nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    remaining_quantity: Mapped[Decimal] = mapped_column(nullable=False)

    cost_per_unit: Mapped[Decimal] = mapped_column(nullable=False)

    total_cost: Mapped[Decimal] = mapped_column(nullable=False)

    received_date: Mapped[date] = mapped_column(Date, nullable=False)

    manufacturing_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    quality_status: Mapped[QualityStatus] = mapped_column(
        String(20),
        nullable=False,
        default=QualityStatus.PENDING,
    )

    status: Mapped[BatchStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BatchStatus.ACTIVE,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # Originating document (purchase receipt, production order, adjustment)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_consumable(self) -> bool:
        return (
            self.is_active
            and self.status == BatchStatus.ACTIVE
            and self.remaining_quantity > 0
        )

    def __repr__(self) -> str:
        return (
            f"<Batch {self.batch_number}: {self.remaining_quantity}/"
            f"{self.quantity} @ {self.cost_per_unit} ({self.status})>"
        )
