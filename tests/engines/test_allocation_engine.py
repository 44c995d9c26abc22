"""
Tests for the pure AllocationEngine.

Covers:
- FIFO and LIFO walk order, including same-day tie-breaking
- Partial last line, shortfall reporting
- Skipping of empty, inactive, non-ACTIVE and past-expiry batches
- Input validation and determinism
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_engines.allocation import AllocationEngine, AllocationPlan, order_layers
from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.domain.values import AllocationPolicy, BatchStatus, QualityStatus
from stock_kernel.exceptions import ValidationError

PRODUCT_ID = uuid4()


def _batch(
    number: str,
    received: date,
    remaining: str,
    cost: str = "10",
    sequence: int = 1,
    quantity: str | None = None,
    status: BatchStatus = BatchStatus.ACTIVE,
    is_active: bool = True,
    expiry: date | None = None,
) -> BatchInfo:
    return BatchInfo(
        id=uuid4(),
        product_id=PRODUCT_ID,
        batch_number=number,
        ledger_sequence=sequence,
        quantity=Decimal(quantity or remaining),
        remaining_quantity=Decimal(remaining),
        cost_per_unit=Decimal(cost),
        received_date=received,
        expiry_date=expiry,
        manufacturing_date=None,
        quality_status=QualityStatus.PASSED,
        status=status,
        is_active=is_active,
    )


@pytest.fixture
def two_batches() -> list[BatchInfo]:
    return [
        _batch("B1", date(2024, 1, 1), "100", "10", sequence=1),
        _batch("B2", date(2024, 2, 1), "50", "12", sequence=2),
    ]


class TestFifoAllocation:
    def setup_method(self):
        self.engine = AllocationEngine()

    def test_takes_oldest_batch_first(self, two_batches):
        plan = self.engine.plan(
            layers=two_batches,
            requested_quantity=Decimal("120"),
            policy=AllocationPolicy.FIFO,
        )

        assert [(l.batch_number, l.amount) for l in plan.lines] == [
            ("B1", Decimal("100")),
            ("B2", Decimal("20")),
        ]
        assert plan.fully_allocated
        assert plan.shortfall == Decimal("0")

    def test_shortfall_when_stock_runs_out(self, two_batches):
        plan = self.engine.plan(
            layers=two_batches,
            requested_quantity=Decimal("200"),
            policy=AllocationPolicy.FIFO,
        )

        assert [(l.batch_number, l.amount) for l in plan.lines] == [
            ("B1", Decimal("100")),
            ("B2", Decimal("50")),
        ]
        assert not plan.fully_allocated
        assert plan.shortfall == Decimal("50")
        assert plan.allocated_quantity == Decimal("150")

    def test_single_partial_line(self, two_batches):
        plan = self.engine.plan(
            layers=two_batches,
            requested_quantity=Decimal("30"),
            policy=AllocationPolicy.FIFO,
        )

        assert len(plan.lines) == 1
        assert plan.lines[0].batch_number == "B1"
        assert plan.lines[0].amount == Decimal("30")

    def test_input_order_does_not_matter(self, two_batches):
        plan = self.engine.plan(
            layers=list(reversed(two_batches)),
            requested_quantity=Decimal("10"),
            policy=AllocationPolicy.FIFO,
        )

        assert plan.lines[0].batch_number == "B1"

    def test_same_day_batches_use_ledger_sequence(self):
        day = date(2024, 1, 1)
        layers = [
            _batch("LATER", day, "5", sequence=7),
            _batch("EARLIER", day, "5", sequence=3),
        ]

        plan = self.engine.plan(
            layers=layers, requested_quantity=Decimal("6"), policy=AllocationPolicy.FIFO
        )

        assert [(l.batch_number, l.amount) for l in plan.lines] == [
            ("EARLIER", Decimal("5")),
            ("LATER", Decimal("1")),
        ]

    def test_total_cost_uses_each_batch_cost(self, two_batches):
        plan = self.engine.plan(
            layers=two_batches,
            requested_quantity=Decimal("120"),
            policy=AllocationPolicy.FIFO,
        )

        assert plan.total_cost == Decimal("100") * 10 + Decimal("20") * 12


class TestLifoAllocation:
    def setup_method(self):
        self.engine = AllocationEngine()

    def test_takes_newest_batch_first(self, two_batches):
        plan = self.engine.plan(
            layers=two_batches,
            requested_quantity=Decimal("120"),
            policy=AllocationPolicy.LIFO,
        )

        assert [(l.batch_number, l.amount) for l in plan.lines] == [
            ("B2", Decimal("50")),
            ("B1", Decimal("70")),
        ]

    def test_lifo_is_exact_reverse_of_fifo(self):
        day = date(2024, 1, 1)
        layers = [
            _batch("A", day, "1", sequence=1),
            _batch("B", day, "1", sequence=2),
            _batch("C", date(2024, 1, 2), "1", sequence=3),
        ]

        fifo = order_layers(layers, AllocationPolicy.FIFO)
        lifo = order_layers(layers, AllocationPolicy.LIFO)

        assert [b.batch_number for b in fifo] == ["A", "B", "C"]
        assert [b.batch_number for b in lifo] == ["C", "B", "A"]


class TestSkippedBatches:
    def setup_method(self):
        self.engine = AllocationEngine()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"remaining": "0", "quantity": "10", "status": BatchStatus.CONSUMED},
            {"remaining": "10", "status": BatchStatus.EXPIRED},
            {"remaining": "10", "status": BatchStatus.DAMAGED},
            {"remaining": "10", "is_active": False},
        ],
    )
    def test_unusable_batch_is_skipped(self, kwargs):
        unusable = _batch("X", date(2023, 12, 1), sequence=1, **kwargs)
        usable = _batch("OK", date(2024, 1, 1), "10", sequence=2)

        plan = self.engine.plan(
            layers=[unusable, usable],
            requested_quantity=Decimal("5"),
            policy=AllocationPolicy.FIFO,
        )

        assert [l.batch_number for l in plan.lines] == ["OK"]

    def test_past_expiry_batch_skipped_when_date_given(self):
        stale = _batch("OLD", date(2023, 12, 1), "10", sequence=1, expiry=date(2024, 2, 29))
        due = _batch("DUE", date(2024, 1, 1), "10", sequence=2, expiry=date(2024, 3, 1))

        plan = self.engine.plan(
            layers=[stale, due],
            requested_quantity=Decimal("15"),
            policy=AllocationPolicy.FIFO,
            as_of=date(2024, 3, 1),
        )

        assert [(l.batch_number, l.amount) for l in plan.lines] == [("DUE", Decimal("10"))]
        assert plan.shortfall == Decimal("5")

    def test_expiry_ignored_without_date(self):
        stale = _batch("OLD", date(2023, 12, 1), "10", expiry=date(2024, 2, 29))

        plan = self.engine.plan(
            layers=[stale], requested_quantity=Decimal("5"), policy=AllocationPolicy.FIFO
        )

        assert [l.batch_number for l in plan.lines] == ["OLD"]

    def test_no_layers_is_full_shortfall(self):
        plan = self.engine.plan(
            layers=[], requested_quantity=Decimal("5"), policy=AllocationPolicy.FIFO
        )

        assert plan.lines == ()
        assert plan.shortfall == Decimal("5")


class TestValidationAndDeterminism:
    def setup_method(self):
        self.engine = AllocationEngine()

    @pytest.mark.parametrize("qty", ["0", "-1"])
    def test_non_positive_request_rejected(self, two_batches, qty):
        with pytest.raises(ValidationError) as exc_info:
            self.engine.plan(
                layers=two_batches,
                requested_quantity=Decimal(qty),
                policy=AllocationPolicy.FIFO,
            )
        assert exc_info.value.field == "requested_quantity"

    def test_same_snapshot_same_plan(self, two_batches):
        first = self.engine.plan(
            layers=two_batches, requested_quantity=Decimal("75"), policy=AllocationPolicy.LIFO
        )
        second = self.engine.plan(
            layers=two_batches, requested_quantity=Decimal("75"), policy=AllocationPolicy.LIFO
        )

        assert first == second

    def test_policy_accepts_string_value(self, two_batches):
        plan = self.engine.plan(
            layers=two_batches, requested_quantity=Decimal("1"), policy="lifo"
        )

        assert plan.policy is AllocationPolicy.LIFO
        assert isinstance(plan, AllocationPlan)

    def test_emits_engine_trace(self, two_batches, captured_logs):
        self.engine.plan(
            layers=two_batches,
            requested_quantity=Decimal("1"),
            policy=AllocationPolicy.FIFO,
            product_id=PRODUCT_ID,
        )

        traces = [r for r in captured_logs() if r["message"] == "STOCK_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "allocation"
        assert len(traces[0]["input_fingerprint"]) == 16
