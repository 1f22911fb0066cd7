"""
Product service: business rules, search and reporting over products.

Every public write is one unit of work: it commits on success and is retried
as a whole on transient database errors.
"""
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.config import settings
from erp.core.database import as_utc, utc_now
from erp.core.retry import transient_retry
from erp.error_handlers import (
    ResourceNotFoundError,
    ValidationFailureError,
    InvalidStatusTransitionError,
    ConcurrencyConflictError,
)
from erp.logging_config import get_logger
from erp.models.product import Product, ProductStatus
from erp.pricing import to_money, price_for_margin, adjust_by_percentage, CENT
from erp.repositories.base import QuerySpec, FieldRef
from erp.repositories.product import ProductRepository
from erp.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductFilter,
    BulkOperationResult,
    BulkItemError,
)

logger = get_logger("product_service")

MONEY_FIELDS = ("purchase_price", "transport_cost", "other_costs", "selling_price")
DATE_FIELDS = ("purchase_date", "arrival_date")

# Columns a partial update may not null out
REQUIRED_FIELDS = frozenset({
    "name", "category", "brand", "model", "condition",
    "purchase_price", "transport_cost", "other_costs", "selling_price",
    "stock", "min_stock_level", "supplier_name", "supplier_city",
    "purchase_date", "import_batch", "invoice_number", "status",
})

# Allowed fields for sorting the paged listing
ALLOWED_SORT_FIELDS = frozenset({
    "id", "name", "category", "brand", "model", "condition", "status",
    "purchase_price", "selling_price", "margin", "margin_percentage",
    "stock", "supplier_name", "import_batch",
    "purchase_date", "arrival_date", "created_at",
})


def _normalize(values: dict[str, Any]) -> dict[str, Any]:
    """Quantize money to cents and move datetimes to UTC."""
    for key in MONEY_FIELDS:
        if values.get(key) is not None:
            values[key] = to_money(values[key])
    for key in DATE_FIELDS:
        if values.get(key) is not None:
            values[key] = as_utc(values[key])
    return values


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _check_range(low, high, label: str) -> None:
    if low is not None and high is not None and low > high:
        raise ValidationFailureError(
            f"Invalid {label} range: minimum is greater than maximum",
            minimum=str(low),
            maximum=str(high),
        )


class ProductService:
    """Business operations on products for one request/session."""

    def __init__(self, session: AsyncSession, actor: Optional[str] = None):
        self.session = session
        self.repo = ProductRepository(session)
        self.actor = actor or settings.system_actor

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def get_all(self) -> list[Product]:
        return await self.repo.find(QuerySpec())

    async def get_by_id(self, product_id: int) -> Optional[Product]:
        return await self.repo.get_by_id(product_id)

    async def get_or_404(self, product_id: int) -> Product:
        product = await self.repo.get_by_id(product_id)
        if product is None:
            raise ResourceNotFoundError("Product", product_id)
        return product

    def _build(self, data: ProductCreate) -> Product:
        values = _normalize(data.model_dump())
        if values.get("min_stock_level") is None:
            values["min_stock_level"] = settings.default_min_stock_level
        if values.get("purchase_date") is None:
            values["purchase_date"] = utc_now()
        product = Product(**values)
        product.recompute_pricing()
        return product

    @transient_retry
    async def create(self, data: ProductCreate, actor: Optional[str] = None) -> Product:
        """Create a product; derived pricing is computed here, never taken from input."""
        product = await self.repo.create(self._build(data), actor or self.actor)
        await self.session.commit()
        logger.info(
            "Product %s created (%s, batch %s) by %s",
            product.id, product.name, product.import_batch, product.created_by
        )
        return product

    @transient_retry
    async def update(self, product_id: int, data: ProductUpdate, actor: Optional[str] = None) -> Product:
        """
        Partial update: only fields present in ``data`` change.

        Raises:
            ConcurrencyConflictError: ``data.version`` is stale
            InvalidStatusTransitionError: status change not allowed
        """
        product = await self.get_or_404(product_id)

        changes = data.model_dump(exclude_unset=True)
        expected_version = changes.pop("version", None)
        if expected_version is not None and expected_version != product.version:
            raise ConcurrencyConflictError(
                "Product",
                product_id,
                f"Product '{product_id}' is at version {product.version}, not {expected_version}",
            )

        nulled = sorted(key for key, value in changes.items() if value is None and key in REQUIRED_FIELDS)
        if nulled:
            raise ValidationFailureError(
                "Required fields cannot be cleared",
                errors=[{"field": key, "message": "must not be null"} for key in nulled],
            )

        status = changes.pop("status", None)
        if status is not None:
            self._check_transition(product, status)
            product.status = status

        for key, value in _normalize(changes).items():
            setattr(product, key, value)

        product.recompute_pricing()
        await self.repo.update(product, actor or self.actor)
        await self.session.commit()
        logger.info("Product %s updated (%s)", product_id, ", ".join(sorted(changes)) or "no fields")
        return product

    @transient_retry
    async def delete(self, product_id: int, actor: Optional[str] = None) -> None:
        """Soft delete; the row stays with deleted_at/deleted_by stamped."""
        await self.repo.delete(product_id, actor or self.actor)
        await self.session.commit()
        logger.info("Product %s deleted by %s", product_id, actor or self.actor)

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    @transient_retry
    async def update_stock(self, product_id: int, stock: int) -> Product:
        """Set stock to an absolute value."""
        if stock < 0:
            raise ValidationFailureError("Stock cannot be negative", stock=stock)
        product = await self.repo.update_partial(product_id, {"stock": stock}, self.actor)
        await self.session.commit()
        return product

    @transient_retry
    async def adjust_stock(self, product_id: int, adjustment: int) -> Product:
        """
        Add ``adjustment`` (may be negative) to stock atomically.

        Stock is left untouched when the result would be negative.
        """
        if await self.repo.adjust_stock_atomic(product_id, adjustment, self.actor):
            product = await self.repo.reload(product_id)
            await self.session.commit()
            logger.info("Product %s stock adjusted by %+d to %d", product_id, adjustment, product.stock)
            return product

        product = await self.get_or_404(product_id)
        raise ValidationFailureError(
            f"Insufficient stock: cannot adjust {product.stock} by {adjustment}",
            current_stock=product.stock,
            adjustment=adjustment,
        )

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    @transient_retry
    async def update_selling_price(self, product_id: int, selling_price: Decimal) -> Product:
        if selling_price is None or Decimal(str(selling_price)) <= 0:
            raise ValidationFailureError(
                "Selling price must be greater than zero",
                selling_price=str(selling_price),
            )
        product = await self.get_or_404(product_id)
        product.selling_price = to_money(selling_price)
        product.recompute_pricing()
        await self.repo.update(product, self.actor)
        await self.session.commit()
        return product

    @transient_retry
    async def update_margin_percentage(self, product_id: int, margin_percentage: Decimal) -> Product:
        """Reprice so the product earns ``margin_percentage`` over its total cost."""
        product = await self.get_or_404(product_id)
        product.recompute_pricing()
        product.selling_price = price_for_margin(product.total_cost_price, margin_percentage)
        product.recompute_pricing()
        await self.repo.update(product, self.actor)
        await self.session.commit()
        return product

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @staticmethod
    def _check_transition(product: Product, target: ProductStatus) -> None:
        current = ProductStatus(product.status)
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError(current.value, target.value)

    @transient_retry
    async def change_status(self, product_id: int, status: ProductStatus) -> Product:
        product = await self.get_or_404(product_id)
        self._check_transition(product, status)
        if product.status == status:
            return product

        previous = product.status
        product.status = status
        await self.repo.update(product, self.actor)
        await self.session.commit()
        logger.info("Product %s status %s -> %s", product_id, previous.value, status.value)
        return product

    async def mark_as_sold(self, product_id: int) -> Product:
        return await self.change_status(product_id, ProductStatus.SOLD)

    async def mark_as_reserved(self, product_id: int) -> Product:
        return await self.change_status(product_id, ProductStatus.RESERVED)

    async def mark_as_available(self, product_id: int) -> Product:
        return await self.change_status(product_id, ProductStatus.AVAILABLE)

    async def mark_as_damaged(self, product_id: int) -> Product:
        return await self.change_status(product_id, ProductStatus.DAMAGED)

    # ------------------------------------------------------------------
    # Search & filters
    # ------------------------------------------------------------------

    async def get_by_category(self, category: str) -> list[Product]:
        return await self.repo.find(QuerySpec().where("category", "ieq", category))

    async def get_by_supplier(self, supplier_name: str) -> list[Product]:
        return await self.repo.find(QuerySpec().where("supplier_name", "ieq", supplier_name))

    async def get_by_brand(self, brand: str) -> list[Product]:
        return await self.repo.find(QuerySpec().where("brand", "ieq", brand))

    async def get_by_import_batch(self, import_batch: str) -> list[Product]:
        return await self.repo.find(QuerySpec().where("import_batch", "ieq", import_batch))

    async def get_by_condition(self, condition: str) -> list[Product]:
        return await self.repo.find(QuerySpec().where("condition", "ieq", condition))

    async def get_by_status(self, status: ProductStatus) -> list[Product]:
        return await self.repo.find(QuerySpec().where("status", "eq", status))

    async def get_by_supplier_city(self, supplier_city: str) -> list[Product]:
        return await self.repo.find(QuerySpec().where("supplier_city", "ieq", supplier_city))

    async def get_by_invoice_number(self, invoice_number: str) -> list[Product]:
        return await self.repo.find(QuerySpec().where("invoice_number", "ieq", invoice_number))

    async def search(self, query: Optional[str]) -> list[Product]:
        """Case-insensitive match on name or description."""
        return await self.repo.find(QuerySpec().search(query, "name", "description"))

    async def get_by_price_range(self, min_price: Decimal, max_price: Decimal) -> list[Product]:
        _check_range(min_price, max_price, "price")
        return await self.repo.find(
            QuerySpec().where("selling_price", "between", (to_money(min_price), to_money(max_price)))
        )

    async def get_by_date_range(self, from_date: datetime, to_date: datetime) -> list[Product]:
        """Products purchased between the two instants, inclusive."""
        from_date, to_date = as_utc(from_date), as_utc(to_date)
        _check_range(from_date, to_date, "date")
        return await self.repo.find(QuerySpec().where("purchase_date", "between", (from_date, to_date)))

    async def get_by_margin_range(self, min_margin: Decimal, max_margin: Decimal) -> list[Product]:
        _check_range(min_margin, max_margin, "margin")
        return await self.repo.find(
            QuerySpec().where("margin_percentage", "between", (min_margin, max_margin))
        )

    async def get_by_arrival_date(self, arrival: date) -> list[Product]:
        """Products that arrived on the given calendar day (UTC)."""
        if isinstance(arrival, datetime):
            arrival = as_utc(arrival).date()
        start, end = _day_bounds(arrival)
        return await self.repo.find(
            QuerySpec().where("arrival_date", "ge", start).where("arrival_date", "lt", end)
        )

    async def get_recent_arrivals(self, days: Optional[int] = None) -> list[Product]:
        days = settings.recent_arrivals_days if days is None else days
        if days < 0:
            raise ValidationFailureError("Days must not be negative", days=days)
        cutoff = utc_now() - timedelta(days=days)
        return await self.repo.find(QuerySpec().where("arrival_date", "ge", cutoff))

    def _low_stock_spec(self, threshold: Optional[int] = None) -> QuerySpec:
        if threshold is None:
            return QuerySpec().where("stock", "le", FieldRef("min_stock_level"))
        if threshold < 0:
            raise ValidationFailureError("Threshold must not be negative", threshold=threshold)
        return QuerySpec().where("stock", "le", threshold)

    async def get_low_stock(self, threshold: Optional[int] = None) -> list[Product]:
        """At or below ``threshold``; without one, at or below each product's own minimum."""
        return await self.repo.find(self._low_stock_spec(threshold))

    async def get_requiring_attention(self, days: Optional[int] = None) -> list[Product]:
        """Low-stock products that have also been sitting in stock for over ``days`` days."""
        days = settings.attention_days_threshold if days is None else days
        if days < 0:
            raise ValidationFailureError("Days must not be negative", days=days)
        low_stock = await self.repo.find(self._low_stock_spec())
        return [product for product in low_stock if product.days_in_stock > days]

    async def get_paged(self, criteria: ProductFilter) -> dict:
        """Filtered, sorted page of products plus paging metadata."""
        spec = QuerySpec().search(criteria.search, "name", "description", "model")

        for field_name, value in (
            ("supplier_name", criteria.supplier_name),
            ("import_batch", criteria.import_batch),
            ("category", criteria.category),
            ("brand", criteria.brand),
            ("condition", criteria.condition),
        ):
            if value:
                spec.where(field_name, "ieq", value)
        if criteria.status is not None:
            spec.where("status", "eq", criteria.status)

        _check_range(criteria.min_price, criteria.max_price, "price")
        _check_range(criteria.min_stock, criteria.max_stock, "stock")
        for field_name, op, value in (
            ("selling_price", "ge", criteria.min_price),
            ("selling_price", "le", criteria.max_price),
            ("margin_percentage", "ge", criteria.min_margin_percentage),
            ("stock", "ge", criteria.min_stock),
            ("stock", "le", criteria.max_stock),
            ("purchase_date", "ge", as_utc(criteria.purchase_date_from)),
            ("purchase_date", "le", as_utc(criteria.purchase_date_to)),
            ("arrival_date", "ge", as_utc(criteria.arrival_date_from)),
            ("arrival_date", "le", as_utc(criteria.arrival_date_to)),
        ):
            if value is not None:
                spec.where(field_name, op, value)
        if criteria.low_stock_only:
            spec.where("stock", "le", FieldRef("min_stock_level"))

        if criteria.sort_by:
            if criteria.sort_by not in ALLOWED_SORT_FIELDS:
                raise ValidationFailureError(
                    f"Cannot sort by '{criteria.sort_by}'",
                    allowed=sorted(ALLOWED_SORT_FIELDS),
                )
            spec.order_by(criteria.sort_by, descending=criteria.sort_descending)

        page_size = min(criteria.page_size, settings.max_page_size)
        spec.page(criteria.page, page_size)
        items, total = await self.repo.find_paged(spec)

        return {
            "items": items,
            "total": total,
            "page": criteria.page,
            "page_size": page_size,
            "pages": (total + page_size - 1) // page_size,
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_total_stock_value(self) -> Decimal:
        return await self.repo.total_stock_value()

    async def get_total_margin(self) -> Decimal:
        """Sum of per-unit margins over all products."""
        return to_money(await self.repo.sum("margin"))

    async def get_average_margin_percentage(self) -> Decimal:
        """Unweighted mean of per-product margin percentages (0 with no products)."""
        average = await self.repo.average("margin_percentage")
        return average.quantize(CENT)

    async def get_category_stats(self) -> list[dict]:
        return await self.repo.category_breakdown()

    async def get_brand_stats(self) -> list[dict]:
        return await self.repo.brand_breakdown()

    async def get_supplier_stats(self) -> list[dict]:
        return await self.repo.supplier_breakdown()

    @transient_retry
    async def get_stats(self) -> dict:
        return {
            "total_products": await self.repo.count(),
            "available_products": await self.repo.count(
                QuerySpec().where("status", "eq", ProductStatus.AVAILABLE)
            ),
            "low_stock_products": await self.repo.count(self._low_stock_spec()),
            "total_stock_value": await self.get_total_stock_value(),
            "total_margin": await self.get_total_margin(),
            "potential_margin": await self.repo.potential_margin(),
            "average_margin_percentage": await self.get_average_margin_percentage(),
            "category_stats": await self.get_category_stats(),
            "brand_stats": await self.get_brand_stats(),
            "supplier_stats": await self.get_supplier_stats(),
        }

    async def get_categories(self) -> list[str]:
        return await self.repo.distinct("category")

    async def get_brands(self) -> list[str]:
        return await self.repo.distinct("brand")

    async def get_suppliers(self) -> list[str]:
        return await self.repo.distinct("supplier_name")

    async def get_import_batches(self) -> list[str]:
        return await self.repo.distinct("import_batch")

    async def count(self) -> int:
        return await self.repo.count()

    async def exists(self, product_id: int) -> bool:
        return await self.repo.exists(product_id)

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    @staticmethod
    def _fail(result: BulkOperationResult, index: int, product_id: Optional[int], message: str) -> None:
        result.failure_count += 1
        result.errors.append(BulkItemError(index=index, product_id=product_id, message=message))

    @staticmethod
    def _succeed(result: BulkOperationResult, product_id: int) -> None:
        result.success_count += 1
        result.processed_ids.append(product_id)

    @staticmethod
    def _describe(exc: ValidationError) -> str:
        return "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'item'}: {error['msg']}"
            for error in exc.errors()
        )

    @transient_retry
    async def bulk_create(self, items: list[Union[ProductCreate, dict[str, Any]]]) -> BulkOperationResult:
        """Create the valid items; invalid payloads are reported per index."""
        result = BulkOperationResult()
        created: list[Product] = []
        for index, item in enumerate(items):
            try:
                data = item if isinstance(item, ProductCreate) else ProductCreate.model_validate(item)
            except ValidationError as exc:
                self._fail(result, index, None, self._describe(exc))
                continue
            created.append(self._build(data))

        await self.repo.add_all(created, self.actor)
        await self.session.commit()
        for product in created:
            self._succeed(result, product.id)
        logger.info("Bulk create: %d created, %d failed", result.success_count, result.failure_count)
        return result

    @transient_retry
    async def bulk_adjust_stock(self, product_ids: list[int], adjustment: int) -> BulkOperationResult:
        result = BulkOperationResult()
        for index, product_id in enumerate(product_ids):
            if await self.repo.adjust_stock_atomic(product_id, adjustment, self.actor):
                self._succeed(result, product_id)
            elif await self.repo.exists(product_id):
                self._fail(result, index, product_id, "Insufficient stock for adjustment")
            else:
                self._fail(result, index, product_id, f"Product with identifier '{product_id}' not found")
        await self.session.commit()
        return result

    @transient_retry
    async def bulk_update_prices(self, product_ids: list[int], percentage: Decimal) -> BulkOperationResult:
        """Scale selling prices by ``percentage``; items that would reach zero are rejected."""
        result = BulkOperationResult()
        for index, product_id in enumerate(product_ids):
            product = await self.repo.get_by_id(product_id)
            if product is None:
                self._fail(result, index, product_id, f"Product with identifier '{product_id}' not found")
                continue
            new_price = adjust_by_percentage(product.selling_price, percentage)
            if new_price <= 0:
                self._fail(result, index, product_id, "Resulting selling price must be greater than zero")
                continue
            product.selling_price = new_price
            product.recompute_pricing()
            await self.repo.update(product, self.actor)
            self._succeed(result, product_id)
        await self.session.commit()
        return result

    @transient_retry
    async def bulk_change_status(self, product_ids: list[int], status: ProductStatus) -> BulkOperationResult:
        result = BulkOperationResult()
        for index, product_id in enumerate(product_ids):
            product = await self.repo.get_by_id(product_id)
            if product is None:
                self._fail(result, index, product_id, f"Product with identifier '{product_id}' not found")
                continue
            try:
                self._check_transition(product, status)
            except InvalidStatusTransitionError as exc:
                self._fail(result, index, product_id, exc.message)
                continue
            if product.status != status:
                product.status = status
                await self.repo.update(product, self.actor)
            self._succeed(result, product_id)
        await self.session.commit()
        return result

    @transient_retry
    async def bulk_delete(self, product_ids: list[int]) -> BulkOperationResult:
        result = BulkOperationResult()
        for index, product_id in enumerate(product_ids):
            try:
                await self.repo.delete(product_id, self.actor)
            except ResourceNotFoundError as exc:
                self._fail(result, index, product_id, exc.message)
                continue
            self._succeed(result, product_id)
        await self.session.commit()
        logger.info("Bulk delete: %d deleted, %d failed", result.success_count, result.failure_count)
        return result
