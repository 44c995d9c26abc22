"""
ProductService -- product master data needed by the ledger and alerts.

Responsibility:
    Create products, adjust their stock thresholds, and deactivate them.
    Deactivation cascades: every active batch is soft-deleted through the
    BatchLedger with its compensating adjustment.

Architecture position:
    Services -- stateful orchestration.  Flushes, never commits.

Invariants enforced:
    - current_stock is never set here; it starts at 0 and only the
      BatchLedger changes it.
    - sku is unique.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.types import to_decimal
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import ProductInfo
from stock_kernel.exceptions import ProductNotFoundError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.selectors.base import active_only
from stock_kernel.selectors.batch_selector import BatchSelector
from stock_kernel.selectors.product_selector import ProductSelector
from stock_kernel.services.base import BaseService
from stock_services.batch_ledger import BatchLedger

logger = get_logger("services.product")

_UNSET = object()


def _validate_thresholds(
    reorder_level: Decimal,
    reorder_quantity: Decimal,
    minimum_stock_level: Decimal,
    maximum_stock_level: Decimal | None,
) -> None:
    for name, value in (
        ("reorder_level", reorder_level),
        ("reorder_quantity", reorder_quantity),
        ("minimum_stock_level", minimum_stock_level),
    ):
        if value < 0:
            raise ValidationError(f"{name} cannot be negative, got {value}", field=name)
    if maximum_stock_level is not None:
        if maximum_stock_level <= 0:
            raise ValidationError(
                f"maximum_stock_level must be positive, got {maximum_stock_level}",
                field="maximum_stock_level",
            )
        if maximum_stock_level < reorder_level:
            raise ValidationError(
                f"maximum_stock_level {maximum_stock_level} is below "
                f"reorder_level {reorder_level}",
                field="maximum_stock_level",
            )


class ProductService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: BatchLedger | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger or BatchLedger(session, self.clock)
        self._products = ProductSelector(session)
        self._batches = BatchSelector(session)

    def create_product(
        self,
        sku: str,
        name: str,
        unit_of_measure: str = "pieces",
        reorder_level: Decimal = Decimal("0"),
        reorder_quantity: Decimal = Decimal("0"),
        minimum_stock_level: Decimal = Decimal("0"),
        maximum_stock_level: Decimal | None = None,
    ) -> ProductInfo:
        """
        Raises:
            ValidationError: blank sku/name, negative thresholds, or sku taken.
        """
        if not sku or not sku.strip():
            raise ValidationError("sku is required", field="sku")
        if not name or not name.strip():
            raise ValidationError("name is required", field="name")
        reorder_level = to_decimal(reorder_level)
        reorder_quantity = to_decimal(reorder_quantity)
        minimum_stock_level = to_decimal(minimum_stock_level)
        if maximum_stock_level is not None:
            maximum_stock_level = to_decimal(maximum_stock_level)
        _validate_thresholds(
            reorder_level, reorder_quantity, minimum_stock_level, maximum_stock_level
        )

        existing = self.session.execute(
            select(Product.id).where(Product.sku == sku)
        ).first()
        if existing is not None:
            raise ValidationError(f"SKU '{sku}' already exists", field="sku")

        product = Product(
            sku=sku,
            name=name,
            unit_of_measure=unit_of_measure,
            current_stock=Decimal("0"),
            reorder_level=reorder_level,
            reorder_quantity=reorder_quantity,
            minimum_stock_level=minimum_stock_level,
            maximum_stock_level=maximum_stock_level,
            created_at=self.clock.now(),
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_created",
            extra={"product_id": str(product.id), "sku": sku},
        )
        return ProductInfo.from_model(product)

    def get_product(self, product_id: UUID) -> ProductInfo:
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _get_for_update(self, product_id: UUID) -> Product:
        product = self.session.execute(
            active_only(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def update_thresholds(
        self,
        product_id: UUID,
        reorder_level: Decimal | None = None,
        reorder_quantity: Decimal | None = None,
        minimum_stock_level: Decimal | None = None,
        maximum_stock_level: Decimal | None | object = _UNSET,
    ) -> ProductInfo:
        """
        Change alert thresholds. Omitted arguments keep their value; pass
        maximum_stock_level=None explicitly to clear the maximum.
        """
        product = self._get_for_update(product_id)
        new_reorder = product.reorder_level if reorder_level is None else to_decimal(reorder_level)
        new_qty = (
            product.reorder_quantity if reorder_quantity is None else to_decimal(reorder_quantity)
        )
        new_min = (
            product.minimum_stock_level
            if minimum_stock_level is None
            else to_decimal(minimum_stock_level)
        )
        if maximum_stock_level is _UNSET:
            new_max = product.maximum_stock_level
        elif maximum_stock_level is None:
            new_max = None
        else:
            new_max = to_decimal(maximum_stock_level)
        _validate_thresholds(new_reorder, new_qty, new_min, new_max)

        product.reorder_level = new_reorder
        product.reorder_quantity = new_qty
        product.minimum_stock_level = new_min
        product.maximum_stock_level = new_max
        product.updated_at = self.clock.now()
        self.session.flush()

        logger.info(
            "product_thresholds_updated",
            extra={
                "product_id": str(product_id),
                "reorder_level": str(new_reorder),
                "reorder_quantity": str(new_qty),
                "minimum_stock_level": str(new_min),
                "maximum_stock_level": None if new_max is None else str(new_max),
            },
        )
        return ProductInfo.from_model(product)

    def deactivate(self, product_id: UUID, reason: str | None = None) -> ProductInfo:
        """
        Soft-delete a product and cascade to its batches.

        Postconditions:
            - Every active batch is soft-deleted (stock compensated to 0).
            - The product is inactive and invisible to business reads.
        """
        self._get_for_update(product_id)
        batches = self._batches.for_product(product_id)
        for batch in batches:
            self._ledger.soft_delete(batch.id, reason=reason or "product deactivated")

        product = self._get_for_update(product_id)
        product.is_active = False
        product.updated_at = self.clock.now()
        self.session.flush()

        logger.info(
            "product_deactivated",
            extra={
                "product_id": str(product_id),
                "cascaded_batches": len(batches),
                "current_stock": str(product.current_stock),
            },
        )
        return ProductInfo.from_model(product)
