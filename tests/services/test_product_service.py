"""ProductService: creation, thresholds, deactivation cascade."""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.exceptions import ProductNotFoundError, ValidationError


class TestCreateProduct:
    def test_new_product_starts_empty(self, product_service):
        product = product_service.create_product(
            "SKU-A", "Widget", reorder_level=Decimal("20"), reorder_quantity=Decimal("50")
        )

        assert product.current_stock == Decimal("0")
        assert product.reorder_level == Decimal("20")
        assert product.is_active
        assert product.maximum_stock_level is None

    def test_duplicate_sku_rejected(self, product_service):
        product_service.create_product("SKU-A", "Widget")

        with pytest.raises(ValidationError) as exc_info:
            product_service.create_product("SKU-A", "Other")
        assert exc_info.value.field == "sku"

    @pytest.mark.parametrize("sku,name", [("", "Widget"), ("  ", "Widget"), ("SKU", "")])
    def test_blank_fields_rejected(self, product_service, sku, name):
        with pytest.raises(ValidationError):
            product_service.create_product(sku, name)

    def test_negative_threshold_rejected(self, product_service):
        with pytest.raises(ValidationError) as exc_info:
            product_service.create_product("SKU-A", "Widget", reorder_level=Decimal("-1"))
        assert exc_info.value.field == "reorder_level"

    def test_maximum_below_reorder_level_rejected(self, product_service):
        with pytest.raises(ValidationError) as exc_info:
            product_service.create_product(
                "SKU-A",
                "Widget",
                reorder_level=Decimal("20"),
                maximum_stock_level=Decimal("10"),
            )
        assert exc_info.value.field == "maximum_stock_level"


class TestUpdateThresholds:
    def test_partial_update_keeps_other_values(self, make_product, product_service):
        product = make_product(reorder_level=Decimal("5"), maximum_stock_level=Decimal("100"))

        updated = product_service.update_thresholds(product.id, reorder_level=Decimal("8"))

        assert updated.reorder_level == Decimal("8")
        assert updated.maximum_stock_level == Decimal("100")

    def test_explicit_none_clears_maximum(self, make_product, product_service):
        product = make_product(maximum_stock_level=Decimal("100"))

        updated = product_service.update_thresholds(product.id, maximum_stock_level=None)

        assert updated.maximum_stock_level is None

    def test_unknown_product(self, product_service):
        with pytest.raises(ProductNotFoundError):
            product_service.update_thresholds(uuid4(), reorder_level=Decimal("1"))


class TestDeactivate:
    def test_cascades_to_batches(
        self, make_product, receive, product_service, ledger, transaction_service
    ):
        product = make_product()
        first = receive(product.id, 10, 1)
        receive(product.id, 5, 1)

        result = product_service.deactivate(product.id, reason="discontinued")

        assert not result.is_active
        assert result.current_stock == Decimal("0")
        assert ledger.get_active_batches(product.id) == []
        with pytest.raises(ProductNotFoundError):
            product_service.get_product(product.id)
        total = sum(t.quantity for t in transaction_service.movements(product.id))
        assert total == Decimal("0")
        assert first.id not in [b.id for b in ledger.get_active_batches(product.id)]

    def test_deactivated_product_rejects_receipts(self, make_product, receive, product_service):
        product = make_product()
        product_service.deactivate(product.id)

        with pytest.raises(ProductNotFoundError):
            receive(product.id, 1, 1)
