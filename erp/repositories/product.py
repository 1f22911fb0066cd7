"""
Product repository: stock arithmetic and reporting aggregates that need more
than one column at a time.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update, func, case

from erp.core.database import utc_now
from erp.models.product import Product
from erp.pricing import to_money
from erp.repositories.base import Repository, QuerySpec


class ProductRepository(Repository[Product]):
    model = Product

    async def adjust_stock_atomic(self, product_id: int, delta: int, actor: str) -> bool:
        """
        Add ``delta`` to stock in a single conditional UPDATE.

        Returns False when nothing was updated: the product is missing or
        deleted, or the result would be negative. Concurrent adjustments
        serialize in the database, so none is lost.
        """
        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.is_deleted.is_(False),
                Product.stock + delta >= 0,
            )
            .values(
                stock=Product.stock + delta,
                version=Product.version + 1,
                updated_at=utc_now(),
                updated_by=actor,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def _scalar_money(self, expression, spec: Optional[QuerySpec]) -> Decimal:
        stmt = self._filtered(select(func.sum(expression)), spec)
        value = (await self.session.execute(stmt)).scalar()
        return to_money(value)

    async def total_stock_value(self, spec: Optional[QuerySpec] = None) -> Decimal:
        """Sum of stock x selling price."""
        return await self._scalar_money(Product.stock * Product.selling_price, spec)

    async def potential_margin(self, spec: Optional[QuerySpec] = None) -> Decimal:
        """Sum of margin x stock: what selling everything on hand would earn."""
        return await self._scalar_money(Product.margin * Product.stock, spec)

    @staticmethod
    def _low_stock_count():
        return func.sum(case((Product.stock <= Product.min_stock_level, 1), else_=0))

    async def category_breakdown(self) -> list[dict]:
        stmt = self._filtered(
            select(
                Product.category,
                func.count(Product.id),
                func.sum(Product.stock * Product.selling_price),
                func.avg(Product.selling_price),
                self._low_stock_count(),
            ),
            None,
        ).group_by(Product.category).order_by(Product.category)

        rows = (await self.session.execute(stmt)).all()
        return [
            {
                "category": category,
                "product_count": count,
                "total_value": to_money(total_value),
                "average_price": to_money(average_price),
                "low_stock_count": int(low_stock or 0),
            }
            for category, count, total_value, average_price, low_stock in rows
        ]

    async def brand_breakdown(self) -> list[dict]:
        """Per brand: count, stock value, unweighted mean margin % and low-stock count."""
        stmt = self._filtered(
            select(
                Product.brand,
                func.count(Product.id),
                func.sum(Product.stock * Product.selling_price),
                func.avg(Product.margin_percentage),
                self._low_stock_count(),
            ),
            None,
        ).group_by(Product.brand).order_by(Product.brand)

        rows = (await self.session.execute(stmt)).all()
        return [
            {
                "brand": brand,
                "product_count": count,
                "total_value": to_money(total_value),
                "average_margin_percentage": to_money(average_margin),
                "low_stock_count": int(low_stock or 0),
            }
            for brand, count, total_value, average_margin, low_stock in rows
        ]

    async def supplier_breakdown(self) -> list[dict]:
        stmt = self._filtered(
            select(
                Product.supplier_name,
                Product.supplier_city,
                func.count(Product.id),
                func.sum(Product.purchase_price * Product.stock),
                func.sum(Product.selling_price * Product.stock),
                func.sum(Product.margin * Product.stock),
            ),
            None,
        ).group_by(
            Product.supplier_name, Product.supplier_city
        ).order_by(Product.supplier_name, Product.supplier_city)

        rows = (await self.session.execute(stmt)).all()
        return [
            {
                "supplier_name": name,
                "supplier_city": city,
                "product_count": count,
                "total_purchase_value": to_money(purchase_value),
                "total_selling_value": to_money(selling_value),
                "total_margin": to_money(margin),
            }
            for name, city, count, purchase_value, selling_value, margin in rows
        ]
