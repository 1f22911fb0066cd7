"""Tests for the product service."""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from erp.core.database import utc_now
from erp.error_handlers import (
    ResourceNotFoundError,
    ValidationFailureError,
    InvalidStatusTransitionError,
    ConcurrencyConflictError,
)
from erp.models import Product, ProductStatus
from erp.pricing import CENT
from erp.schemas.product import ProductCreate, ProductUpdate, ProductFilter
from erp.services.product_service import ProductService


def names(products):
    return [product.name for product in products]


class TestCreate:
    """Tests for product creation."""

    async def test_pricing_is_derived(self, service, make_product_data):
        product = await service.create(ProductCreate(**make_product_data()))

        assert product.id is not None
        assert product.total_cost_price == Decimal("120.00")
        assert product.margin == Decimal("60.00")
        assert product.margin_percentage == Decimal("50.00")
        assert product.status == ProductStatus.AVAILABLE
        assert product.version == 1
        assert product.created_by == "tester"

    async def test_client_derived_values_are_ignored(self, service, make_product_data):
        payload = make_product_data(total_cost_price="1", margin="999", margin_percentage="75")
        product = await service.create(ProductCreate(**payload))

        assert product.total_cost_price == Decimal("120.00")
        assert product.margin == Decimal("60.00")
        assert product.margin_percentage == Decimal("50.00")

    async def test_large_margin_percentage_is_stored(self, service, make_product_data):
        payload = make_product_data(purchase_price="0.01", transport_cost="0", selling_price="2000")
        product = await service.create(ProductCreate(**payload))

        reloaded = await service.repo.reload(product.id)
        assert reloaded.margin_percentage == Decimal("19999900.00")

    async def test_defaults(self, service, make_product_data):
        payload = make_product_data()
        del payload["min_stock_level"]
        del payload["purchase_date"]
        del payload["stock"]

        before = utc_now()
        product = await service.create(ProductCreate(**payload))

        assert product.min_stock_level == 5
        assert product.stock == 0
        assert product.purchase_date >= before

    async def test_explicit_actor_wins(self, service, make_product_data):
        product = await service.create(ProductCreate(**make_product_data()), actor="importer")
        assert product.created_by == "importer"

    async def test_default_actor_is_system(self, db, make_product_data):
        product = await ProductService(db).create(ProductCreate(**make_product_data()))
        assert product.created_by == "System"


class TestReadAndUpdate:
    """Tests for get/update/delete."""

    async def test_get_or_404(self, service):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await service.get_or_404(123)
        assert exc_info.value.status_code == 404

    async def test_get_all_in_insertion_order(self, service, sample_products):
        assert names(await service.get_all()) == ["iPhone 13 Pro 128GB", "MacBook Air M1", "Galaxy Tab S7"]

    async def test_partial_update_recomputes_pricing(self, service, sample_products):
        product = sample_products[0]

        updated = await service.update(product.id, ProductUpdate(other_costs=Decimal("30"), notes="Box damaged"))

        assert updated.total_cost_price == Decimal("150.00")
        assert updated.margin == Decimal("30.00")
        assert updated.margin_percentage == Decimal("20.00")
        assert updated.notes == "Box damaged"
        assert updated.name == "iPhone 13 Pro 128GB"
        assert updated.updated_by == "tester"
        assert updated.version == 2

    async def test_update_with_matching_version(self, service, sample_products):
        product = sample_products[0]

        updated = await service.update(product.id, ProductUpdate(color="Blue", version=1))

        assert updated.color == "Blue"
        assert updated.version == 2

    async def test_update_with_stale_version(self, service, sample_products):
        product = sample_products[0]

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await service.update(product.id, ProductUpdate(color="Blue", version=7))
        assert exc_info.value.status_code == 409

    async def test_cannot_clear_required_field(self, service, sample_products):
        with pytest.raises(ValidationFailureError):
            await service.update(sample_products[0].id, ProductUpdate(name=None))

    async def test_update_missing_product(self, service):
        with pytest.raises(ResourceNotFoundError):
            await service.update(999, ProductUpdate(name="Ghost"))

    async def test_update_rejects_invalid_status_transition(self, service, sample_products):
        product = sample_products[0]
        await service.mark_as_damaged(product.id)

        with pytest.raises(InvalidStatusTransitionError):
            await service.update(product.id, ProductUpdate(status=ProductStatus.SOLD))

    async def test_lost_update_is_detected(self, service, session_factory, sample_products):
        """A write based on a stale copy fails instead of overwriting."""
        product = sample_products[0]

        async with session_factory() as other:
            await ProductService(other, actor="other").update_selling_price(product.id, Decimal("200"))

        # service still holds version 1 of the product in its identity map
        with pytest.raises(ConcurrencyConflictError):
            await service.update(product.id, ProductUpdate(notes="stale write"))

    async def test_soft_delete_keeps_row(self, service, db, sample_products):
        product = sample_products[0]

        await service.delete(product.id)

        assert await service.get_by_id(product.id) is None
        assert not await service.exists(product.id)
        assert await service.count() == 2

        result = await db.execute(select(Product).where(Product.id == product.id))
        row = result.scalar_one()
        assert row.is_deleted is True
        assert row.deleted_by == "tester"
        assert row.deleted_at is not None

    async def test_deleted_product_cannot_be_updated(self, service, sample_products):
        product = sample_products[0]
        await service.delete(product.id)

        with pytest.raises(ResourceNotFoundError):
            await service.update(product.id, ProductUpdate(name="Back"))
        with pytest.raises(ResourceNotFoundError):
            await service.delete(product.id)


class TestStock:
    """Tests for stock operations."""

    async def test_update_stock(self, service, sample_products):
        product = await service.update_stock(sample_products[0].id, 3)

        assert product.stock == 3
        assert product.version == 2

    async def test_update_stock_negative(self, service, sample_products):
        with pytest.raises(ValidationFailureError):
            await service.update_stock(sample_products[0].id, -1)

    async def test_update_stock_missing(self, service):
        with pytest.raises(ResourceNotFoundError):
            await service.update_stock(404, 3)

    async def test_adjust_stock(self, service, sample_products):
        product = await service.adjust_stock(sample_products[0].id, -4)
        assert product.stock == 6

        product = await service.adjust_stock(sample_products[0].id, 5)
        assert product.stock == 11

    async def test_adjust_stock_to_exactly_zero(self, service, sample_products):
        product = await service.adjust_stock(sample_products[1].id, -1)
        assert product.stock == 0

    async def test_adjust_stock_below_zero_is_rejected(self, service, sample_products):
        product = sample_products[0]

        with pytest.raises(ValidationFailureError) as exc_info:
            await service.adjust_stock(product.id, -11)

        assert exc_info.value.details["current_stock"] == 10
        assert (await service.repo.reload(product.id)).stock == 10

    async def test_adjust_stock_missing(self, service):
        with pytest.raises(ResourceNotFoundError):
            await service.adjust_stock(404, 1)

    async def test_concurrent_adjustments_are_not_lost(self, session_factory, sample_products):
        product_id = sample_products[0].id

        async def adjust(delta):
            async with session_factory() as session:
                return await ProductService(session, actor="worker").adjust_stock(product_id, delta)

        await asyncio.gather(adjust(-3), adjust(-4))

        async with session_factory() as session:
            product = await ProductService(session).get_or_404(product_id)
        assert product.stock == 3
        assert product.version == 3


class TestPricing:
    """Tests for selling price and margin changes."""

    async def test_update_selling_price(self, service, sample_products):
        product = await service.update_selling_price(sample_products[0].id, Decimal("150"))

        assert product.selling_price == Decimal("150.00")
        assert product.margin == Decimal("30.00")
        assert product.margin_percentage == Decimal("25.00")

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-5")])
    async def test_selling_price_must_be_positive(self, service, sample_products, price):
        with pytest.raises(ValidationFailureError):
            await service.update_selling_price(sample_products[0].id, price)

    async def test_update_margin_percentage(self, service, sample_products):
        product = await service.update_margin_percentage(sample_products[0].id, Decimal("25"))

        assert product.selling_price == Decimal("150.00")
        assert product.margin == Decimal("30.00")
        assert product.margin_percentage == Decimal("25.00")

    async def test_margin_at_minus_100_rejected(self, service, sample_products):
        with pytest.raises(ValidationFailureError):
            await service.update_margin_percentage(sample_products[0].id, Decimal("-100"))

    async def test_margin_needs_positive_cost(self, service, make_product_data):
        product = await service.create(ProductCreate(**make_product_data(purchase_price="0", transport_cost="0")))

        with pytest.raises(ValidationFailureError):
            await service.update_margin_percentage(product.id, Decimal("20"))

    async def test_margin_leaving_zero_price_is_rejected(self, service, make_product_data):
        product = await service.create(ProductCreate(**make_product_data(purchase_price="1", transport_cost="0")))

        with pytest.raises(ValidationFailureError):
            await service.update_margin_percentage(product.id, Decimal("-99.6"))

        reloaded = await service.repo.reload(product.id)
        assert reloaded.selling_price == Decimal("180.00")
        assert reloaded.version == 1


class TestStatus:
    """Tests for status transitions."""

    async def test_mark_helpers(self, service, sample_products):
        product_id = sample_products[0].id

        assert (await service.mark_as_reserved(product_id)).status == ProductStatus.RESERVED
        assert (await service.mark_as_sold(product_id)).status == ProductStatus.SOLD
        assert (await service.mark_as_available(product_id)).status == ProductStatus.AVAILABLE
        assert (await service.mark_as_damaged(product_id)).status == ProductStatus.DAMAGED

    async def test_rejected_transition_leaves_status(self, service, sample_products):
        product_id = sample_products[0].id
        await service.mark_as_sold(product_id)

        with pytest.raises(InvalidStatusTransitionError):
            await service.mark_as_reserved(product_id)

        assert (await service.get_or_404(product_id)).status == ProductStatus.SOLD

    async def test_same_status_is_noop(self, service, sample_products):
        product = await service.change_status(sample_products[0].id, ProductStatus.AVAILABLE)

        assert product.status == ProductStatus.AVAILABLE
        assert product.version == 1
        assert product.updated_by is None

    async def test_get_by_status(self, service, sample_products):
        await service.mark_as_sold(sample_products[1].id)

        assert names(await service.get_by_status(ProductStatus.SOLD)) == ["MacBook Air M1"]
        assert len(await service.get_by_status(ProductStatus.AVAILABLE)) == 2


class TestFilters:
    """Tests for lookups and range queries."""

    async def test_text_filters_ignore_case(self, service, sample_products):
        assert names(await service.get_by_category("laptop")) == ["MacBook Air M1"]
        assert names(await service.get_by_brand("SAMSUNG")) == ["Galaxy Tab S7"]
        assert len(await service.get_by_supplier("milano mobile srl")) == 2
        assert names(await service.get_by_supplier_city("roma")) == ["MacBook Air M1"]
        assert len(await service.get_by_import_batch("batch-2026-01")) == 2
        assert names(await service.get_by_condition("good")) == ["MacBook Air M1"]
        assert names(await service.get_by_invoice_number("inv-0003")) == ["Galaxy Tab S7"]

    async def test_unknown_value_returns_empty(self, service, sample_products):
        assert await service.get_by_category("Drone") == []

    async def test_search(self, service, sample_products):
        assert names(await service.search("macbook")) == ["MacBook Air M1"]
        assert names(await service.search("WI-FI")) == ["Galaxy Tab S7"]
        assert len(await service.search("")) == 3

    async def test_price_range_is_inclusive(self, service, sample_products):
        found = await service.get_by_price_range(Decimal("180"), Decimal("250"))
        assert names(found) == ["iPhone 13 Pro 128GB", "Galaxy Tab S7"]

    async def test_inverted_range_rejected(self, service):
        with pytest.raises(ValidationFailureError):
            await service.get_by_price_range(Decimal("300"), Decimal("100"))

    async def test_margin_range(self, service, sample_products):
        found = await service.get_by_margin_range(Decimal("25"), Decimal("31"))
        assert names(found) == ["MacBook Air M1", "Galaxy Tab S7"]

    async def test_date_range(self, service, sample_products, make_product_data):
        await service.create(ProductCreate(**make_product_data(
            name="Old stock", purchase_date="2025-06-01T00:00:00+00:00"
        )))

        found = await service.get_by_date_range(
            datetime(2026, 1, 1, tzinfo=timezone.utc),
            datetime(2026, 1, 31, tzinfo=timezone.utc),
        )

        assert len(found) == 3
        assert "Old stock" not in names(found)

    async def test_arrival_date(self, service, sample_products):
        arrival = sample_products[2].arrival_date

        assert names(await service.get_by_arrival_date(arrival.date())) == ["Galaxy Tab S7"]
        assert await service.get_by_arrival_date((arrival + timedelta(days=1)).date()) == []

    async def test_low_stock_uses_own_minimum(self, service, sample_products):
        assert names(await service.get_low_stock()) == ["MacBook Air M1", "Galaxy Tab S7"]

    async def test_low_stock_with_threshold(self, service, sample_products):
        assert names(await service.get_low_stock(4)) == ["MacBook Air M1", "Galaxy Tab S7"]
        assert names(await service.get_low_stock(1)) == ["MacBook Air M1"]

    async def test_recent_arrivals(self, service, sample_products):
        assert names(await service.get_recent_arrivals()) == ["Galaxy Tab S7"]
        assert names(await service.get_recent_arrivals(200)) == ["MacBook Air M1", "Galaxy Tab S7"]

    async def test_requiring_attention(self, service, sample_products):
        assert names(await service.get_requiring_attention()) == ["MacBook Air M1"]
        assert names(await service.get_requiring_attention(1)) == ["MacBook Air M1", "Galaxy Tab S7"]
        assert await service.get_requiring_attention(365) == []

    async def test_deleted_products_are_hidden_from_filters(self, service, sample_products):
        await service.delete(sample_products[1].id)

        assert await service.get_by_category("Laptop") == []
        assert names(await service.get_low_stock()) == ["Galaxy Tab S7"]


class TestPaging:
    """Tests for the filtered, paged listing."""

    async def test_first_page(self, service, sample_products):
        page = await service.get_paged(ProductFilter(page=1, page_size=2))

        assert page["total"] == 3
        assert page["pages"] == 2
        assert names(page["items"]) == ["iPhone 13 Pro 128GB", "MacBook Air M1"]

    async def test_filters_and_sort(self, service, sample_products):
        page = await service.get_paged(ProductFilter(
            supplier_name="milano mobile srl",
            sort_by="selling_price",
            sort_descending=True,
        ))

        assert names(page["items"]) == ["Galaxy Tab S7", "iPhone 13 Pro 128GB"]

    async def test_low_stock_only(self, service, sample_products):
        page = await service.get_paged(ProductFilter(low_stock_only=True, max_stock=1))
        assert names(page["items"]) == ["MacBook Air M1"]

    async def test_unknown_sort_field_rejected(self, service):
        with pytest.raises(ValidationFailureError):
            await service.get_paged(ProductFilter(sort_by="deleted_by"))

    async def test_page_size_is_capped(self, service, sample_products):
        page = await service.get_paged(ProductFilter(page_size=1000))
        assert page["page_size"] == 100


class TestReports:
    """Tests for the reporting aggregates."""

    async def test_empty_inventory(self, service):
        stats = await service.get_stats()

        assert stats["total_products"] == 0
        assert stats["total_stock_value"] == Decimal("0.00")
        assert stats["average_margin_percentage"] == Decimal("0.00")
        assert stats["category_stats"] == []

    async def test_stats(self, service, sample_products):
        stats = await service.get_stats()

        assert stats["total_products"] == 3
        assert stats["available_products"] == 3
        assert stats["low_stock_products"] == 2
        assert stats["total_stock_value"] == Decimal("3490.00")
        assert stats["total_margin"] == Decimal("270.00")
        assert stats["potential_margin"] == Decimal("960.00")
        assert stats["average_margin_percentage"] == Decimal("35.06")

    async def test_category_stats(self, service, sample_products):
        stats = await service.get_category_stats()

        assert [row["category"] for row in stats] == ["Laptop", "Smartphone", "Tablet"]
        assert [row["total_value"] for row in stats] == [
            Decimal("690.00"), Decimal("1800.00"), Decimal("1000.00")
        ]
        assert [row["average_price"] for row in stats] == [
            Decimal("690.00"), Decimal("180.00"), Decimal("250.00")
        ]
        assert [row["low_stock_count"] for row in stats] == [1, 0, 1]

    async def test_brand_stats(self, service, sample_products):
        apple, samsung = await service.get_brand_stats()

        assert apple["brand"] == "Apple"
        assert apple["product_count"] == 2
        assert apple["total_value"] == Decimal("2490.00")
        assert abs(apple["average_margin_percentage"] - Decimal("40.10")) <= CENT
        assert apple["low_stock_count"] == 1

        assert samsung["total_value"] == Decimal("1000.00")
        assert samsung["average_margin_percentage"] == Decimal("25.00")
        assert samsung["low_stock_count"] == 1

    async def test_brand_stats_skip_deleted(self, service, sample_products):
        await service.delete(sample_products[2].id)

        assert [row["brand"] for row in await service.get_brand_stats()] == ["Apple"]

    async def test_supplier_stats(self, service, sample_products):
        milano, roma = await service.get_supplier_stats()

        assert milano["supplier_name"] == "Milano Mobile SRL"
        assert milano["product_count"] == 2
        assert milano["total_purchase_value"] == Decimal("1800.00")
        assert milano["total_selling_value"] == Decimal("2800.00")
        assert milano["total_margin"] == Decimal("800.00")

        assert roma["supplier_city"] == "Roma"
        assert roma["total_purchase_value"] == Decimal("500.00")
        assert roma["total_margin"] == Decimal("160.00")

    async def test_stats_skip_deleted(self, service, sample_products):
        await service.delete(sample_products[0].id)

        assert await service.get_total_stock_value() == Decimal("1690.00")
        assert await service.get_categories() == ["Laptop", "Tablet"]

    async def test_distinct_values(self, service, sample_products):
        assert await service.get_brands() == ["Apple", "Samsung"]
        assert await service.get_suppliers() == ["Milano Mobile SRL", "Roma Tech"]
        assert await service.get_import_batches() == ["BATCH-2025-09", "BATCH-2026-01"]


class TestBulk:
    """Tests for bulk operations with per-item outcomes."""

    async def test_bulk_create(self, service, make_product_data):
        items = [ProductCreate(**make_product_data(name=f"Phone {i}")) for i in range(3)]

        result = await service.bulk_create(items)

        assert result.success_count == 3
        assert result.failure_count == 0
        assert len(result.processed_ids) == 3
        assert await service.count() == 3

    async def test_bulk_create_validates_each_item(self, service, make_product_data):
        items = [make_product_data(name="Valid"), make_product_data(stock=-1), make_product_data(name="Also valid")]

        result = await service.bulk_create(items)

        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.errors[0].index == 1
        assert result.errors[0].product_id is None
        assert "stock" in result.errors[0].message
        assert names(await service.get_all()) == ["Valid", "Also valid"]

    async def test_bulk_adjust_stock(self, service, sample_products):
        ids = [product.id for product in sample_products] + [999]

        result = await service.bulk_adjust_stock(ids, -2)

        assert result.processed_ids == [sample_products[0].id, sample_products[2].id]
        assert result.failure_count == 2
        assert [error.index for error in result.errors] == [1, 3]
        assert "Insufficient stock" in result.errors[0].message
        assert (await service.repo.reload(sample_products[0].id)).stock == 8
        assert (await service.repo.reload(sample_products[1].id)).stock == 1

    async def test_bulk_update_prices(self, service, sample_products):
        ids = [sample_products[0].id, sample_products[2].id]

        result = await service.bulk_update_prices(ids, Decimal("10"))

        assert result.success_count == 2
        iphone = await service.get_or_404(sample_products[0].id)
        assert iphone.selling_price == Decimal("198.00")
        assert iphone.margin == Decimal("78.00")
        assert iphone.margin_percentage == Decimal("65.00")

    async def test_bulk_price_cut_to_zero_fails(self, service, sample_products):
        result = await service.bulk_update_prices([sample_products[0].id], Decimal("-100"))

        assert result.success_count == 0
        assert result.errors[0].product_id == sample_products[0].id
        assert (await service.get_or_404(sample_products[0].id)).selling_price == Decimal("180.00")

    async def test_bulk_change_status(self, service, sample_products):
        await service.mark_as_damaged(sample_products[1].id)
        ids = [product.id for product in sample_products]

        result = await service.bulk_change_status(ids, ProductStatus.SOLD)

        assert result.processed_ids == [sample_products[0].id, sample_products[2].id]
        assert result.errors[0].product_id == sample_products[1].id
        assert (await service.get_or_404(sample_products[1].id)).status == ProductStatus.DAMAGED

    async def test_bulk_delete(self, service, sample_products):
        result = await service.bulk_delete([sample_products[0].id, 999])

        assert result.processed_ids == [sample_products[0].id]
        assert result.errors[0].index == 1
        assert await service.count() == 2
