"""
Tests for the pure ValuationEngine.

Layer set used throughout: B1 received 2024-01-01, 100 @ 10 and B2
received 2024-02-01, 50 @ 12.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_engines.valuation import ValuationEngine, weighted_average_cost
from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.domain.values import BatchStatus, QualityStatus, ValuationMethod

PRODUCT_ID = uuid4()


def _layer(received: date, quantity: str, remaining: str, cost: str, sequence: int) -> BatchInfo:
    return BatchInfo(
        id=uuid4(),
        product_id=PRODUCT_ID,
        batch_number=f"B{sequence}",
        ledger_sequence=sequence,
        quantity=Decimal(quantity),
        remaining_quantity=Decimal(remaining),
        cost_per_unit=Decimal(cost),
        received_date=received,
        expiry_date=None,
        manufacturing_date=None,
        quality_status=QualityStatus.PASSED,
        status=BatchStatus.ACTIVE if Decimal(remaining) > 0 else BatchStatus.CONSUMED,
        is_active=True,
    )


@pytest.fixture
def untouched_layers() -> list[BatchInfo]:
    return [
        _layer(date(2024, 1, 1), "100", "100", "10", 1),
        _layer(date(2024, 2, 1), "50", "50", "12", 2),
    ]


class TestAverageValuation:
    def setup_method(self):
        self.engine = ValuationEngine()

    def test_weighted_average_of_untouched_layers(self, untouched_layers):
        result = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=untouched_layers,
            stock_on_hand=Decimal("150"),
            method=ValuationMethod.AVERAGE,
        )

        assert result.unit_cost_used == Decimal("10.67")
        assert result.current_value == Decimal("1600.00")
        assert result.current_stock == Decimal("150.000")

    def test_weights_by_remaining_quantity(self):
        layers = [
            _layer(date(2024, 1, 1), "100", "10", "10", 1),
            _layer(date(2024, 2, 1), "50", "30", "12", 2),
        ]

        assert weighted_average_cost(layers) == (Decimal("100") + Decimal("360")) / 40

    def test_falls_back_to_received_quantity_when_all_consumed(self):
        layers = [
            _layer(date(2024, 1, 1), "100", "0", "10", 1),
            _layer(date(2024, 2, 1), "50", "0", "12", 2),
        ]

        result = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=layers,
            stock_on_hand=Decimal("0"),
            method=ValuationMethod.AVERAGE,
        )

        assert result.unit_cost_used == Decimal("10.67")
        assert result.current_value == Decimal("0.00")


class TestFifoLifoValuation:
    def setup_method(self):
        self.engine = ValuationEngine()

    def test_fifo_values_on_hand_at_newest_costs(self, untouched_layers):
        # After issuing 120 FIFO, 30 remain and they came from B2
        result = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=untouched_layers,
            stock_on_hand=Decimal("30"),
            method=ValuationMethod.FIFO,
        )

        assert result.unit_cost_used == Decimal("12.00")
        assert result.current_value == Decimal("360.00")

    def test_fifo_spans_layers(self, untouched_layers):
        result = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=untouched_layers,
            stock_on_hand=Decimal("80"),
            method=ValuationMethod.FIFO,
        )

        # 50 @ 12 + 30 @ 10
        assert result.current_value == Decimal("900.00")
        assert result.unit_cost_used == Decimal("11.25")

    def test_lifo_values_on_hand_at_oldest_costs(self, untouched_layers):
        result = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=untouched_layers,
            stock_on_hand=Decimal("30"),
            method=ValuationMethod.LIFO,
        )

        assert result.unit_cost_used == Decimal("10.00")
        assert result.current_value == Decimal("300.00")

    def test_full_stock_is_same_under_fifo_and_lifo(self, untouched_layers):
        fifo = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=untouched_layers,
            stock_on_hand=Decimal("150"),
            method=ValuationMethod.FIFO,
        )
        lifo = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=untouched_layers,
            stock_on_hand=Decimal("150"),
            method=ValuationMethod.LIFO,
        )

        assert fifo.current_value == lifo.current_value == Decimal("1600.00")


class TestZeroCases:
    def setup_method(self):
        self.engine = ValuationEngine()

    @pytest.mark.parametrize("method", list(ValuationMethod))
    def test_no_layers_is_zero(self, method):
        result = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=[],
            stock_on_hand=Decimal("0"),
            method=method,
        )

        assert result.current_value == Decimal("0.00")
        assert result.unit_cost_used == Decimal("0.00")

    @pytest.mark.parametrize("method", [ValuationMethod.FIFO, ValuationMethod.LIFO])
    def test_zero_stock_is_zero_value(self, untouched_layers, method):
        result = self.engine.value_product(
            product_id=PRODUCT_ID,
            layers=untouched_layers,
            stock_on_hand=Decimal("0"),
            method=method,
        )

        assert result.current_value == Decimal("0.00")
        assert result.unit_cost_used == Decimal("0.00")
