"""Read-only stock alert queries."""

from dataclasses import dataclass, field
from uuid import UUID

from stock_kernel.domain.dtos import AlertInfo
from stock_kernel.domain.values import AlertPriority, AlertStatus, AlertType
from stock_kernel.models.stock_alert import StockAlert
from stock_kernel.selectors.base import BaseSelector, active_only

_OPEN = [AlertStatus.ACTIVE.value, AlertStatus.ACKNOWLEDGED.value]


@dataclass(frozen=True)
class AlertSummary:
    total_open: int
    by_status: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)


class AlertSelector(BaseSelector):
    def get(self, alert_id: UUID) -> AlertInfo | None:
        model = self.session.execute(
            active_only(StockAlert).where(StockAlert.id == alert_id)
        ).scalar_one_or_none()
        return AlertInfo.from_model(model) if model else None

    def open_alerts(
        self,
        alert_type: AlertType | None = None,
        priority: AlertPriority | None = None,
        product_id: UUID | None = None,
        status: AlertStatus | None = None,
    ) -> list[AlertInfo]:
        """Open alerts, most urgent first, newest first within a priority."""
        stmt = active_only(StockAlert)
        if status is not None:
            stmt = stmt.where(StockAlert.status == AlertStatus(status).value)
        else:
            stmt = stmt.where(StockAlert.status.in_(_OPEN))
        if alert_type is not None:
            stmt = stmt.where(StockAlert.alert_type == AlertType(alert_type).value)
        if priority is not None:
            stmt = stmt.where(StockAlert.priority == AlertPriority(priority).value)
        if product_id is not None:
            stmt = stmt.where(StockAlert.product_id == product_id)
        stmt = stmt.order_by(
            StockAlert.priority_rank.desc(),
            StockAlert.created_at.desc(),
        )
        return [AlertInfo.from_model(m) for m in self.session.execute(stmt).scalars()]

    def history(self, product_id: UUID) -> list[AlertInfo]:
        stmt = (
            active_only(StockAlert)
            .where(StockAlert.product_id == product_id)
            .order_by(StockAlert.created_at)
        )
        return [AlertInfo.from_model(m) for m in self.session.execute(stmt).scalars()]

    def summary(self) -> AlertSummary:
        alerts = self.open_alerts()
        by_status: dict[str, int] = {}
        by_priority: dict[str, int] = {}
        by_type: dict[str, int] = {}
        for alert in alerts:
            by_status[alert.status.value] = by_status.get(alert.status.value, 0) + 1
            by_priority[alert.priority.value] = by_priority.get(alert.priority.value, 0) + 1
            by_type[alert.alert_type.value] = by_type.get(alert.alert_type.value, 0) + 1
        return AlertSummary(
            total_open=len(alerts),
            by_status=by_status,
            by_priority=by_priority,
            by_type=by_type,
        )
