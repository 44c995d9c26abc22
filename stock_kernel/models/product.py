"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for stocked products and their thresholds.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - current_stock equals the sum of remaining_quantity over the product's
      active batches.  Only the BatchLedger writes current_stock.
    - version is an optimistic lock column; a concurrent writer that read an
      older version fails at flush with StaleDataError.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """
    A stocked item.

    Contract:
        Thresholds (reorder_level, maximum_stock_level) drive the alert
        rules.  last_unit_cost and average_unit_cost are maintained by the
        ledger on each receipt.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        Index("idx_product_active", "is_active"),
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    unit_of_measure: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pieces",
    )

    current_stock: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    # Alert thresholds
    reorder_level: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    reorder_quantity: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    minimum_stock_level: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    maximum_stock_level: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    # Cost tracking
    last_unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    average_unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_below_reorder_level(self) -> bool:
        return self.current_stock <= self.reorder_level

    def __repr__(self) -> str:
        return f"<Product {self.sku}: {self.name} stock={self.current_stock}>"
