"""
AlertService -- persist and manage stock alerts.

Responsibility:
    Reconcile the conditions derived by the pure AlertRules with the
    persisted StockAlert rows, and drive the alert lifecycle
    (active -> acknowledged -> resolved).

Architecture position:
    Services -- stateful orchestration.  Flushes, never commits.
    ``evaluate_product`` runs inside every ledger mutation's unit of work (via the
    InventoryService facade); ``sweep`` covers every product and is the
    periodic catch-all (date-driven expiry changes happen without any
    mutation).  Both first mark ACTIVE batches past their expiry date
    EXPIRED, so an `expired` alert never points at a batch still on sale.

Invariants enforced:
    - Dedup: at most one open alert per (product, batch, alert_type).  A
      condition that still holds updates the existing alert instead of
      creating a second one.
    - Auto-resolve: an open alert whose condition no longer holds is
      resolved with resolved_by = None.
    - Idempotence: sweeping twice without any state change returns [] the
      second time.
    - Lifecycle only moves forward; invalid transitions raise
      InvalidStateError.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from stock_config.schema import StockConfig
from stock_engines.alerts import AlertCondition, AlertRules
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import AlertInfo, ProductInfo, ReorderSuggestion
from stock_kernel.domain.values import AlertPriority, AlertStatus, AlertType
from stock_kernel.exceptions import AlertNotFoundError, InvalidStateError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_alert import StockAlert
from stock_kernel.selectors.alert_selector import AlertSelector, AlertSummary
from stock_kernel.selectors.base import active_only
from stock_kernel.selectors.batch_selector import BatchSelector
from stock_kernel.selectors.product_selector import ProductSelector
from stock_kernel.services.base import BaseService
from stock_services.batch_ledger import BatchLedger
from stock_services.config_bridge import alert_thresholds

logger = get_logger("services.alert")

_OPEN_STATUSES = [AlertStatus.ACTIVE.value, AlertStatus.ACKNOWLEDGED.value]

AlertKey = tuple[UUID, UUID | None, AlertType]


class AlertService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: StockConfig | None = None,
        rules: AlertRules | None = None,
        ledger: BatchLedger | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger or BatchLedger(session, self.clock)
        self._config = config or StockConfig.with_defaults()
        self._rules = rules or AlertRules(alert_thresholds(self._config))
        self._products = ProductSelector(session)
        self._batches = BatchSelector(session)
        self._alerts = AlertSelector(session)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def sweep(self) -> list[AlertInfo]:
        """
        Re-evaluate every active product.

        Returns:
            Alerts created, updated or auto-resolved by this sweep.
        """
        self._ledger.mark_expired()
        changed: list[AlertInfo] = []
        active_ids: set[UUID] = set()
        for product in self._products.list_active():
            active_ids.add(product.id)
            changed.extend(self._reconcile(product))

        # Alerts of products that were deactivated since the last sweep
        orphaned = [
            a for a in self._open_alerts() if a.product_id not in active_ids
        ]
        for alert in orphaned:
            changed.append(self._auto_resolve(alert, "product deactivated"))
        self.session.flush()

        logger.info(
            "alert_sweep_completed",
            extra={"product_count": len(active_ids), "changed_count": len(changed)},
        )
        return changed

    def evaluate_product(self, product_id: UUID) -> list[AlertInfo]:
        """Same reconciliation as ``sweep``, for one product."""
        product = self._products.get(product_id)
        if product is None:
            changed = [
                self._auto_resolve(a, "product deactivated")
                for a in self._open_alerts(product_id)
            ]
        else:
            self._ledger.mark_expired(product_id=product_id)
            changed = self._reconcile(product)
        self.session.flush()
        return changed

    def _open_alerts(self, product_id: UUID | None = None) -> list[StockAlert]:
        stmt = active_only(StockAlert).where(StockAlert.status.in_(_OPEN_STATUSES))
        if product_id is not None:
            stmt = stmt.where(StockAlert.product_id == product_id)
        return list(
            self.session.execute(
                stmt.order_by(StockAlert.created_at).with_for_update()
            ).scalars()
        )

    def _reconcile(self, product: ProductInfo) -> list[AlertInfo]:
        conditions = self._rules.evaluate(
            product=product,
            batches=self._batches.with_stock_and_expiry(product.id),
            today=self.clock.today(),
        )
        wanted: dict[AlertKey, AlertCondition] = {c.key: c for c in conditions}

        existing: dict[AlertKey, StockAlert] = {}
        changed: list[AlertInfo] = []
        for alert in self._open_alerts(product.id):
            key = (alert.product_id, alert.batch_id, AlertType(alert.alert_type))
            if key in existing:
                # A duplicate can only come from a bypass of this service
                changed.append(self._auto_resolve(alert, "duplicate open alert"))
                continue
            existing[key] = alert

        for key, alert in existing.items():
            condition = wanted.get(key)
            if condition is None:
                changed.append(self._auto_resolve(alert, "condition cleared"))
            elif self._refresh(alert, condition):
                changed.append(AlertInfo.from_model(alert))

        for key, condition in wanted.items():
            if key not in existing:
                changed.append(self._create(condition))
        return changed

    def _create(self, condition: AlertCondition) -> AlertInfo:
        now = self.clock.now()
        alert = StockAlert(
            product_id=condition.product_id,
            batch_id=condition.batch_id,
            alert_type=condition.alert_type.value,
            priority=condition.priority.value,
            priority_rank=condition.priority.rank,
            status=AlertStatus.ACTIVE.value,
            message=condition.message,
            current_stock=condition.current_stock,
            threshold_value=condition.threshold_value,
            days_to_expiry=condition.days_to_expiry,
            created_at=now,
        )
        self.session.add(alert)
        self.session.flush()
        logger.info(
            "alert_created",
            extra={
                "alert_id": str(alert.id),
                "product_id": str(condition.product_id),
                "batch_id": str(condition.batch_id) if condition.batch_id else None,
                "alert_type": condition.alert_type.value,
                "priority": condition.priority.value,
            },
        )
        return AlertInfo.from_model(alert)

    def _refresh(self, alert: StockAlert, condition: AlertCondition) -> bool:
        """Bring an open alert up to date; True if anything changed."""
        before = (
            alert.priority,
            alert.message,
            alert.current_stock,
            alert.threshold_value,
            alert.days_to_expiry,
        )
        after = (
            condition.priority.value,
            condition.message,
            condition.current_stock,
            condition.threshold_value,
            condition.days_to_expiry,
        )
        if before == after:
            return False
        if alert.priority != condition.priority.value:
            logger.info(
                "alert_reprioritized",
                extra={
                    "alert_id": str(alert.id),
                    "from_priority": alert.priority,
                    "to_priority": condition.priority.value,
                },
            )
        alert.priority = condition.priority.value
        alert.priority_rank = condition.priority.rank
        alert.message = condition.message
        alert.current_stock = condition.current_stock
        alert.threshold_value = condition.threshold_value
        alert.days_to_expiry = condition.days_to_expiry
        alert.updated_at = self.clock.now()
        return True

    def _auto_resolve(self, alert: StockAlert, reason: str) -> AlertInfo:
        alert.status = AlertStatus.RESOLVED.value
        alert.resolved_by = None
        alert.resolved_at = self.clock.now()
        alert.resolution_notes = f"auto-resolved: {reason}"
        logger.info(
            "alert_auto_resolved",
            extra={
                "alert_id": str(alert.id),
                "alert_type": alert.alert_type,
                "reason": reason,
            },
        )
        return AlertInfo.from_model(alert)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _lock_alert(self, alert_id: UUID) -> StockAlert:
        alert = self.session.execute(
            active_only(StockAlert)
            .where(StockAlert.id == alert_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if alert is None:
            raise AlertNotFoundError(str(alert_id))
        return alert

    def acknowledge(
        self,
        alert_id: UUID,
        by: str,
        notes: str | None = None,
    ) -> AlertInfo:
        """
        active -> acknowledged.

        Raises:
            AlertNotFoundError: unknown alert.
            InvalidStateError: alert is not ACTIVE.
        """
        alert = self._lock_alert(alert_id)
        if alert.status != AlertStatus.ACTIVE:
            raise InvalidStateError("StockAlert", str(alert_id), alert.status, "acknowledge")
        alert.status = AlertStatus.ACKNOWLEDGED.value
        alert.acknowledged_by = by
        alert.acknowledged_at = self.clock.now()
        if notes:
            alert.resolution_notes = notes
        self.session.flush()
        logger.info(
            "alert_acknowledged",
            extra={"alert_id": str(alert_id), "acknowledged_by": by},
        )
        return AlertInfo.from_model(alert)

    def resolve(
        self,
        alert_id: UUID,
        by: str,
        notes: str | None = None,
    ) -> AlertInfo:
        """
        active|acknowledged -> resolved.

        Raises:
            AlertNotFoundError: unknown alert.
            InvalidStateError: alert is already resolved.
        """
        alert = self._lock_alert(alert_id)
        if alert.status not in _OPEN_STATUSES:
            raise InvalidStateError("StockAlert", str(alert_id), alert.status, "resolve")
        alert.status = AlertStatus.RESOLVED.value
        alert.resolved_by = by
        alert.resolved_at = self.clock.now()
        if notes:
            alert.resolution_notes = notes
        self.session.flush()
        logger.info(
            "alert_resolved",
            extra={"alert_id": str(alert_id), "resolved_by": by},
        )
        return AlertInfo.from_model(alert)

    def bulk_acknowledge(self, alert_ids: Iterable[UUID], by: str) -> list[AlertInfo]:
        """
        Acknowledge every ACTIVE alert among ``alert_ids``.

        Alerts already acknowledged or resolved are left as they are and not
        returned.

        Raises:
            AlertNotFoundError: any id is unknown (nothing is acknowledged).
        """
        alerts = [self._lock_alert(alert_id) for alert_id in alert_ids]
        acknowledged: list[AlertInfo] = []
        now = self.clock.now()
        for alert in alerts:
            if alert.status != AlertStatus.ACTIVE:
                continue
            alert.status = AlertStatus.ACKNOWLEDGED.value
            alert.acknowledged_by = by
            alert.acknowledged_at = now
            acknowledged.append(AlertInfo.from_model(alert))
        self.session.flush()
        logger.info(
            "alerts_bulk_acknowledged",
            extra={"requested": len(alerts), "acknowledged": len(acknowledged), "by": by},
        )
        return acknowledged

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_open(
        self,
        alert_type: AlertType | None = None,
        priority: AlertPriority | None = None,
        product_id: UUID | None = None,
    ) -> list[AlertInfo]:
        return self._alerts.open_alerts(
            alert_type=alert_type, priority=priority, product_id=product_id
        )

    def list_unacknowledged(self) -> list[AlertInfo]:
        return self._alerts.open_alerts(status=AlertStatus.ACTIVE)

    def summary(self) -> AlertSummary:
        return self._alerts.summary()

    def reorder_suggestions(self) -> list[ReorderSuggestion]:
        """
        Products at or below their reorder level with an order quantity.

        suggested_quantity = max(reorder_quantity, maximum_stock_level -
        current_stock), falling back to the gap up to the reorder level
        when neither is set.
        """
        suggestions: list[ReorderSuggestion] = []
        for product in self._products.at_or_below_reorder_level():
            top_up = (
                product.maximum_stock_level - product.current_stock
                if product.maximum_stock_level is not None
                else Decimal("0")
            )
            suggested = max(product.reorder_quantity, top_up)
            if suggested <= 0:
                suggested = product.reorder_level - product.current_stock
            if suggested <= 0:
                continue
            suggestions.append(
                ReorderSuggestion(
                    product_id=product.id,
                    sku=product.sku,
                    current_stock=product.current_stock,
                    reorder_level=product.reorder_level,
                    suggested_quantity=suggested,
                )
            )
        return suggestions
