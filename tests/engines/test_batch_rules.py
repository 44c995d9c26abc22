"""Tests for per-batch date/quantity rules and new-batch validation."""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_engines import batch_rules
from stock_engines.tracer import compute_input_fingerprint
from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.domain.values import AllocationPolicy, BatchStatus, QualityStatus
from stock_kernel.exceptions import ValidationError

TODAY = date(2024, 3, 1)


def _batch(expiry: date | None = None, quantity: str = "100", remaining: str = "100") -> BatchInfo:
    return BatchInfo(
        id=uuid4(),
        product_id=uuid4(),
        batch_number="B-1",
        ledger_sequence=1,
        quantity=Decimal(quantity),
        remaining_quantity=Decimal(remaining),
        cost_per_unit=Decimal("1"),
        received_date=date(2024, 1, 1),
        expiry_date=expiry,
        manufacturing_date=None,
        quality_status=QualityStatus.PENDING,
        status=BatchStatus.ACTIVE,
        is_active=True,
    )


class TestExpiryRules:
    def test_expired_only_after_expiry_day(self):
        assert batch_rules.is_expired(_batch(date(2024, 2, 29)), TODAY)
        assert not batch_rules.is_expired(_batch(TODAY), TODAY)
        assert not batch_rules.is_expired(_batch(None), TODAY)

    def test_expiring_soon_window_is_inclusive(self):
        assert batch_rules.is_expiring_soon(_batch(TODAY), TODAY)
        assert batch_rules.is_expiring_soon(_batch(date(2024, 3, 31)), TODAY, 30)
        assert not batch_rules.is_expiring_soon(_batch(date(2024, 4, 1)), TODAY, 30)
        assert not batch_rules.is_expiring_soon(_batch(date(2024, 2, 29)), TODAY)

    def test_days_until_expiry(self):
        assert batch_rules.days_until_expiry(_batch(date(2024, 3, 11)), TODAY) == 10
        assert batch_rules.days_until_expiry(_batch(date(2024, 2, 27)), TODAY) == -3
        assert batch_rules.days_until_expiry(_batch(None), TODAY) is None


class TestConsumability:
    def test_live_active_batch_with_stock(self):
        assert batch_rules.is_consumable(_batch(TODAY), TODAY)
        assert batch_rules.is_consumable(_batch(None), TODAY)

    def test_past_expiry_is_not_consumable_while_still_active(self):
        assert not batch_rules.is_consumable(_batch(date(2024, 2, 29)), TODAY)

    def test_empty_batch(self):
        assert not batch_rules.is_consumable(_batch(remaining="0"), TODAY)

    def test_non_active_status(self):
        batch = replace(_batch(), status=BatchStatus.RETURNED)
        assert not batch_rules.is_consumable(batch, TODAY)

    def test_soft_deleted(self):
        assert not batch_rules.is_consumable(replace(_batch(), is_active=False), TODAY)

    def test_failed_quality_does_not_block(self):
        batch = replace(_batch(), quality_status=QualityStatus.FAILED)
        assert batch_rules.is_consumable(batch, TODAY)


class TestAgeAndUtilization:
    def test_age_days(self):
        assert batch_rules.age_days(_batch(), TODAY) == 60

    def test_utilization(self):
        assert batch_rules.utilization_percentage(_batch(remaining="25")) == Decimal("75")
        assert batch_rules.utilization_percentage(_batch(remaining="100")) == Decimal("0")

    def test_utilization_of_zero_quantity_batch(self):
        assert batch_rules.utilization_percentage(
            _batch(quantity="0", remaining="0")
        ) == Decimal("0")


class TestValidateNewBatch:
    @pytest.mark.parametrize("qty", [Decimal("0"), Decimal("-5")])
    def test_quantity_must_be_positive(self, qty):
        with pytest.raises(ValidationError) as exc_info:
            batch_rules.validate_new_batch(qty, Decimal("1"), TODAY)
        assert exc_info.value.field == "quantity"

    def test_negative_cost_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            batch_rules.validate_new_batch(Decimal("1"), Decimal("-0.01"), TODAY)
        assert exc_info.value.field == "cost_per_unit"

    def test_zero_cost_allowed(self):
        batch_rules.validate_new_batch(Decimal("1"), Decimal("0"), TODAY)

    def test_expiry_must_follow_manufacturing(self):
        with pytest.raises(ValidationError) as exc_info:
            batch_rules.validate_new_batch(
                Decimal("1"),
                Decimal("1"),
                TODAY,
                expiry_date=date(2024, 1, 1),
                manufacturing_date=date(2024, 1, 1),
            )
        assert exc_info.value.field == "expiry_date"

    def test_manufacturing_after_receipt_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            batch_rules.validate_new_batch(
                Decimal("1"), Decimal("1"), TODAY, manufacturing_date=date(2024, 3, 2)
            )
        assert exc_info.value.field == "manufacturing_date"


class TestInputFingerprint:
    def test_deterministic(self):
        kwargs = {"requested_quantity": Decimal("5"), "policy": AllocationPolicy.FIFO}
        fields = ("requested_quantity", "policy")

        assert compute_input_fingerprint(fields, kwargs) == compute_input_fingerprint(
            fields, dict(reversed(list(kwargs.items())))
        )

    def test_sensitive_to_values(self):
        fields = ("requested_quantity",)

        assert compute_input_fingerprint(
            fields, {"requested_quantity": Decimal("5")}
        ) != compute_input_fingerprint(fields, {"requested_quantity": Decimal("6")})

    def test_missing_field_is_null(self):
        fp = compute_input_fingerprint(("absent",), {})

        assert fp == compute_input_fingerprint(("absent",), {"absent": None})
        assert len(fp) == 16
