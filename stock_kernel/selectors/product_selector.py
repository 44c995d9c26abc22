"""Read-only product queries."""

from uuid import UUID

from stock_kernel.domain.dtos import ProductInfo
from stock_kernel.models.product import Product
from stock_kernel.selectors.base import BaseSelector, active_only


class ProductSelector(BaseSelector):
    def get(self, product_id: UUID) -> ProductInfo | None:
        model = self.session.execute(
            active_only(Product).where(Product.id == product_id)
        ).scalar_one_or_none()
        return ProductInfo.from_model(model) if model else None

    def get_by_sku(self, sku: str) -> ProductInfo | None:
        model = self.session.execute(
            active_only(Product).where(Product.sku == sku)
        ).scalar_one_or_none()
        return ProductInfo.from_model(model) if model else None

    def list_active(self) -> list[ProductInfo]:
        rows = self.session.execute(
            active_only(Product).order_by(Product.sku)
        ).scalars()
        return [ProductInfo.from_model(m) for m in rows]

    def active_ids(self) -> list[UUID]:
        return [p.id for p in self.list_active()]

    def at_or_below_reorder_level(self) -> list[ProductInfo]:
        rows = self.session.execute(
            active_only(Product)
            .where(Product.current_stock <= Product.reorder_level)
            .order_by(Product.sku)
        ).scalars()
        return [ProductInfo.from_model(m) for m in rows]
