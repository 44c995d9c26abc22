"""
AlertService tests: sweep reconciliation and the alert lifecycle.

The clock fixture is shared with the ledger, so moving it moves "today"
for expiry rules too.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.values import AlertPriority, AlertStatus, AlertType, BatchStatus
from stock_kernel.exceptions import AlertNotFoundError, InvalidStateError


def _by_type(alerts, alert_type):
    return [a for a in alerts if a.alert_type == alert_type]


class TestStockLevelSweep:
    def test_low_stock_raised_once(self, make_product, receive, alert_service):
        product = make_product(reorder_level=Decimal("20"))
        receive(product.id, 15, 1)

        first = alert_service.sweep()
        second = alert_service.sweep()

        assert len(first) == 1
        alert = first[0]
        assert alert.alert_type == AlertType.LOW_STOCK
        assert alert.priority == AlertPriority.LOW
        assert alert.status == AlertStatus.ACTIVE
        assert alert.current_stock == Decimal("15")
        assert alert.threshold_value == Decimal("20")
        assert second == []
        assert len(alert_service.list_open()) == 1

    def test_recovery_auto_resolves(self, make_product, receive, alert_service):
        product = make_product(reorder_level=Decimal("20"))
        receive(product.id, 15, 1)
        alert_service.sweep()

        receive(product.id, 10, 1)
        changed = alert_service.sweep()

        assert len(changed) == 1
        assert changed[0].status == AlertStatus.RESOLVED
        assert changed[0].resolved_by is None
        assert alert_service.list_open() == []

    def test_low_stock_becomes_out_of_stock(
        self, make_product, receive, ledger, alert_service
    ):
        product = make_product(reorder_level=Decimal("20"))
        batch = receive(product.id, 15, 1)
        alert_service.sweep()

        ledger.consume(batch.id, Decimal("15"))
        changed = alert_service.sweep()

        assert len(_by_type(changed, AlertType.LOW_STOCK)) == 1
        assert _by_type(changed, AlertType.LOW_STOCK)[0].status == AlertStatus.RESOLVED
        open_alerts = alert_service.list_open()
        assert [a.alert_type for a in open_alerts] == [AlertType.OUT_OF_STOCK]
        assert open_alerts[0].priority == AlertPriority.HIGH

    def test_deeper_shortage_reprioritizes(self, make_product, receive, ledger, alert_service):
        product = make_product(reorder_level=Decimal("20"))
        batch = receive(product.id, 15, 1)
        created = alert_service.sweep()[0]

        ledger.consume(batch.id, Decimal("11"))
        changed = alert_service.sweep()

        assert [a.id for a in changed] == [created.id]
        assert changed[0].priority == AlertPriority.HIGH
        assert changed[0].current_stock == Decimal("4")

    def test_overstock(self, make_product, receive, alert_service):
        product = make_product(reorder_level=Decimal("5"), maximum_stock_level=Decimal("50"))
        receive(product.id, 60, 1)

        changed = alert_service.sweep()

        assert [a.alert_type for a in changed] == [AlertType.OVERSTOCK]

    def test_deactivated_product_alerts_resolve(
        self, make_product, receive, product_service, alert_service
    ):
        product = make_product(reorder_level=Decimal("20"))
        receive(product.id, 15, 1)
        alert_service.sweep()

        product_service.deactivate(product.id)
        changed = alert_service.sweep()

        assert [a.status for a in changed] == [AlertStatus.RESOLVED]
        assert alert_service.list_open() == []


class TestExpirySweep:
    def test_progression_to_expired(self, make_product, receive, alert_service, clock):
        product = make_product()
        batch = receive(product.id, 10, 1, expiry_date=date(2024, 3, 21))

        created = alert_service.sweep()
        assert [(a.alert_type, a.priority) for a in created] == [
            (AlertType.EXPIRING_SOON, AlertPriority.LOW)
        ]
        assert created[0].batch_id == batch.id
        assert created[0].days_to_expiry == 20

        clock.set_date(date(2024, 3, 10))
        updated = alert_service.sweep()
        assert [a.id for a in updated] == [created[0].id]
        assert updated[0].priority == AlertPriority.MEDIUM

        clock.set_date(date(2024, 3, 18))
        assert alert_service.sweep()[0].priority == AlertPriority.HIGH

        clock.set_date(date(2024, 3, 22))
        changed = alert_service.sweep()
        resolved = _by_type(changed, AlertType.EXPIRING_SOON)
        expired = _by_type(changed, AlertType.EXPIRED)
        assert resolved[0].status == AlertStatus.RESOLVED
        assert expired[0].status == AlertStatus.ACTIVE
        assert expired[0].priority == AlertPriority.HIGH

    def test_sweep_marks_unmarked_batch_expired(
        self, make_product, receive, ledger, alert_service
    ):
        product = make_product()
        stale = receive(product.id, 10, 1, expiry_date=date(2024, 2, 1))
        assert ledger.get_batch(stale.id).status == BatchStatus.ACTIVE

        changed = alert_service.sweep()

        assert [a.batch_id for a in _by_type(changed, AlertType.EXPIRED)] == [stale.id]
        assert ledger.get_batch(stale.id).status == BatchStatus.EXPIRED
        assert ledger.get_active_batches(product.id) == []

    def test_evaluate_product_marks_unmarked_batch_expired(
        self, make_product, receive, ledger, alert_service
    ):
        product = make_product()
        stale = receive(product.id, 10, 1, expiry_date=date(2024, 2, 1))

        alert_service.evaluate_product(product.id)

        assert ledger.get_batch(stale.id).status == BatchStatus.EXPIRED

    def test_batch_outside_window_has_no_alert(self, make_product, receive, alert_service):
        product = make_product()
        receive(product.id, 10, 1, expiry_date=date(2024, 6, 1))

        assert alert_service.sweep() == []

    def test_consumed_batch_clears_expiry_alert(
        self, make_product, receive, ledger, alert_service
    ):
        product = make_product()
        keep = receive(product.id, 10, 1)
        soon = receive(product.id, 5, 1, expiry_date=date(2024, 3, 5))
        alert_service.sweep()

        ledger.consume(soon.id, Decimal("5"))
        changed = alert_service.sweep()

        assert [(a.alert_type, a.status) for a in changed] == [
            (AlertType.EXPIRING_SOON, AlertStatus.RESOLVED)
        ]
        assert keep.id not in [a.batch_id for a in changed]


class TestLifecycle:
    @pytest.fixture
    def low_alert(self, make_product, receive, alert_service):
        product = make_product(reorder_level=Decimal("20"))
        receive(product.id, 15, 1)
        return alert_service.sweep()[0]

    def test_acknowledge(self, low_alert, alert_service, clock):
        result = alert_service.acknowledge(low_alert.id, by="ops", notes="ordering")

        assert result.status == AlertStatus.ACKNOWLEDGED
        assert result.acknowledged_by == "ops"
        assert result.acknowledged_at == clock.now()
        assert alert_service.list_unacknowledged() == []

    def test_acknowledge_twice_rejected(self, low_alert, alert_service):
        alert_service.acknowledge(low_alert.id, by="ops")

        with pytest.raises(InvalidStateError):
            alert_service.acknowledge(low_alert.id, by="ops")

    def test_acknowledged_alert_is_not_duplicated(self, low_alert, alert_service):
        alert_service.acknowledge(low_alert.id, by="ops")

        assert alert_service.sweep() == []
        assert [a.id for a in alert_service.list_open()] == [low_alert.id]

    def test_resolve_from_acknowledged(self, low_alert, alert_service):
        alert_service.acknowledge(low_alert.id, by="ops")

        result = alert_service.resolve(low_alert.id, by="lead", notes="po raised")

        assert result.status == AlertStatus.RESOLVED
        assert result.resolved_by == "lead"
        assert result.resolution_notes == "po raised"

    def test_resolve_twice_rejected(self, low_alert, alert_service):
        alert_service.resolve(low_alert.id, by="lead")

        with pytest.raises(InvalidStateError):
            alert_service.resolve(low_alert.id, by="lead")

    def test_condition_still_holding_raises_new_alert(self, low_alert, alert_service):
        alert_service.resolve(low_alert.id, by="lead")

        changed = alert_service.sweep()

        assert len(changed) == 1
        assert changed[0].id != low_alert.id
        assert changed[0].alert_type == AlertType.LOW_STOCK

    def test_unknown_alert(self, alert_service):
        with pytest.raises(AlertNotFoundError):
            alert_service.acknowledge(uuid4(), by="ops")
        with pytest.raises(AlertNotFoundError):
            alert_service.resolve(uuid4(), by="ops")


class TestBulkAndReads:
    def test_bulk_acknowledge_skips_non_active(
        self, make_product, receive, alert_service
    ):
        for _ in range(3):
            product = make_product(reorder_level=Decimal("20"))
            receive(product.id, 15, 1)
        alerts = alert_service.sweep()
        alert_service.resolve(alerts[0].id, by="lead")

        acknowledged = alert_service.bulk_acknowledge([a.id for a in alerts], by="ops")

        assert {a.id for a in acknowledged} == {alerts[1].id, alerts[2].id}
        assert all(a.status == AlertStatus.ACKNOWLEDGED for a in acknowledged)

    def test_bulk_acknowledge_unknown_id_changes_nothing(
        self, make_product, receive, alert_service
    ):
        product = make_product(reorder_level=Decimal("20"))
        receive(product.id, 15, 1)
        alert = alert_service.sweep()[0]

        with pytest.raises(AlertNotFoundError):
            alert_service.bulk_acknowledge([alert.id, uuid4()], by="ops")

        assert alert_service.list_unacknowledged()[0].status == AlertStatus.ACTIVE

    def test_list_open_filters_and_orders_by_priority(
        self, make_product, receive, alert_service
    ):
        low = make_product(reorder_level=Decimal("20"))
        receive(low.id, 15, 1)
        make_product()  # nothing received: out of stock

        alert_service.sweep()
        open_alerts = alert_service.list_open()

        assert [a.priority for a in open_alerts] == [AlertPriority.HIGH, AlertPriority.LOW]
        assert [a.product_id for a in alert_service.list_open(alert_type=AlertType.LOW_STOCK)] == [
            low.id
        ]
        assert alert_service.list_open(priority=AlertPriority.MEDIUM) == []

    def test_summary(self, make_product, receive, alert_service):
        product = make_product(reorder_level=Decimal("20"))
        receive(product.id, 15, 1)
        make_product()
        alert = alert_service.sweep()[0]
        alert_service.acknowledge(alert.id, by="ops")

        summary = alert_service.summary()

        assert summary.total_open == 2
        assert summary.by_status == {"active": 1, "acknowledged": 1}
        assert summary.by_type == {"low_stock": 1, "out_of_stock": 1}

    def test_reorder_suggestions(self, make_product, receive, alert_service):
        capped = make_product(
            reorder_level=Decimal("20"),
            reorder_quantity=Decimal("30"),
            maximum_stock_level=Decimal("100"),
        )
        receive(capped.id, 15, 1)
        fixed = make_product(reorder_level=Decimal("10"), reorder_quantity=Decimal("40"))
        receive(fixed.id, 10, 1)
        healthy = make_product(reorder_level=Decimal("10"))
        receive(healthy.id, 50, 1)

        suggestions = {s.product_id: s for s in alert_service.reorder_suggestions()}

        assert set(suggestions) == {capped.id, fixed.id}
        assert suggestions[capped.id].suggested_quantity == Decimal("85")
        assert suggestions[fixed.id].suggested_quantity == Decimal("40")
