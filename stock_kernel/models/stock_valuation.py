"""
Module: stock_kernel.models.stock_valuation
Responsibility: Persisted valuation snapshots, one per
    (product, valuation_date, valuation_method).  Recomputing a snapshot
    overwrites the previous figures.
Architecture position: Kernel > Models.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import ValuationMethod


class StockValuationSnapshot(TrackedBase):
    __tablename__ = "stock_valuations"

    __table_args__ = (
        UniqueConstraint(
            "product_id",
            "valuation_date",
            "valuation_method",
            name="uq_stock_valuation_product_date_method",
        ),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    valuation_date: Mapped[date] = mapped_column(Date, nullable=False)

    valuation_method: Mapped[ValuationMethod] = mapped_column(
        String(20),
        nullable=False,
    )

    stock_balance: Mapped[Decimal] = mapped_column(nullable=False)

    value_balance: Mapped[Decimal] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StockValuationSnapshot {self.product_id} {self.valuation_date} "
            f"{self.valuation_method}: {self.value_balance}>"
        )
