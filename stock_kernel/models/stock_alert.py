"""
Module: stock_kernel.models.stock_alert
Responsibility: ORM persistence for stock alerts and their lifecycle
    (active -> acknowledged -> resolved).
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one open (active or acknowledged) alert per subject and
      alert_type.  The subject is the batch for expiry alerts and the
      product for stock-level alerts.  Enforced by AlertService under the
      product lock; the lookup index below backs the find-or-create.
    - Lifecycle only moves forward.  A resolved alert never reopens; a
      recurring condition creates a new row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import AlertPriority, AlertStatus, AlertType


class StockAlert(TrackedBase):
    __tablename__ = "stock_alerts"

    __table_args__ = (
        Index("idx_stock_alert_subject", "product_id", "batch_id", "alert_type", "status"),
        Index("idx_stock_alert_status_priority", "status", "priority"),
    )

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

    alert_type: Mapped[AlertType] = mapped_column(String(20), nullable=False)

    priority: Mapped[AlertPriority] = mapped_column(
        String(20),
        nullable=False,
        default=AlertPriority.MEDIUM,
    )

    # Numeric rank of priority so SQL can sort urgent-first
    priority_rank: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    status: Mapped[AlertStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AlertStatus.ACTIVE,
    )

    message: Mapped[str] = mapped_column(String(4000), nullable=False)

    current_stock: Mapped[Decimal | None] = mapped_column(nullable=True)

    threshold_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    days_to_expiry: Mapped[int | None] = mapped_column(Integer, nullable=True)

    acknowledged_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolution_notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    @property
    def is_open(self) -> bool:
        return AlertStatus(self.status).is_open

    def __repr__(self) -> str:
        return f"<StockAlert {self.alert_type} {self.priority} ({self.status})>"
