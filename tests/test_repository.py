"""Tests for the generic repository and query specs."""
from decimal import Decimal

import pytest
from sqlalchemy import select

from erp.error_handlers import (
    ResourceNotFoundError,
    ValidationFailureError,
    ConcurrencyConflictError,
)
from erp.models import Product, ProductType, Color
from erp.repositories import Repository, QuerySpec, FieldRef, ProductRepository


@pytest.fixture
def colors(db):
    return Repository(db, Color)


@pytest.fixture
def products(db):
    return ProductRepository(db)


async def add_colors(repo, *names):
    created = []
    for index, name in enumerate(names):
        created.append(await repo.create(Color(name=name, sort_order=len(names) - index), "tester"))
    await repo.session.commit()
    return created


class TestRepositoryCrud:
    """Tests for create/read/update/delete."""

    async def test_create_stamps_audit_fields(self, colors):
        color = await colors.create(Color(name="Midnight", hex_code="#191970"), "alice")

        assert color.id is not None
        assert color.created_by == "alice"
        assert color.created_at is not None
        assert color.is_deleted is False

    async def test_get_by_id_missing_returns_none(self, colors):
        assert await colors.get_by_id(999) is None

    async def test_list_all_in_insertion_order(self, colors):
        await add_colors(colors, "Red", "Green", "Blue")

        names = [color.name for color in await colors.list_all()]

        assert names == ["Red", "Green", "Blue"]

    async def test_soft_delete_hides_row(self, colors, db):
        red, green = await add_colors(colors, "Red", "Green")

        await colors.delete(red.id, "bob")
        await db.commit()

        assert await colors.get_by_id(red.id) is None
        assert [color.name for color in await colors.list_all()] == ["Green"]
        assert not await colors.exists(red.id)

        deleted = await colors.get_by_id(red.id, include_deleted=True)
        assert deleted.is_deleted is True
        assert deleted.deleted_by == "bob"
        assert deleted.deleted_at is not None
        assert len(await colors.list_all(include_deleted=True)) == 2

    async def test_delete_missing_raises(self, colors):
        with pytest.raises(ResourceNotFoundError):
            await colors.delete(42, "bob")

    async def test_delete_twice_raises(self, colors, db):
        (red,) = await add_colors(colors, "Red")
        await colors.delete(red.id, "bob")
        await db.commit()

        with pytest.raises(ResourceNotFoundError):
            await colors.delete(red.id, "bob")

    async def test_hard_delete_removes_row(self, colors, db):
        (red,) = await add_colors(colors, "Red")

        await colors.delete(red.id, "bob", hard=True)
        await db.commit()

        assert await colors.get_by_id(red.id, include_deleted=True) is None

    async def test_update_stamps_updated_fields(self, colors, db):
        (red,) = await add_colors(colors, "Red")

        red.description = "Bright"
        await colors.update(red, "carol")
        await db.commit()

        reloaded = await colors.reload(red.id)
        assert reloaded.description == "Bright"
        assert reloaded.updated_by == "carol"
        assert reloaded.updated_at is not None

    async def test_update_deleted_entity_raises(self, colors, db):
        (red,) = await add_colors(colors, "Red")
        red.mark_deleted("bob")
        await db.flush()

        with pytest.raises(ResourceNotFoundError):
            await colors.update(red, "carol")

    async def test_update_partial_touches_named_columns(self, colors, db):
        (red,) = await add_colors(colors, "Red")

        updated = await colors.update_partial(red.id, {"hex_code": "#FF0000"}, "dave")
        await db.commit()

        assert updated.hex_code == "#FF0000"
        assert updated.name == "Red"
        assert updated.updated_by == "dave"

    async def test_update_partial_unknown_field(self, colors):
        (red,) = await add_colors(colors, "Red")

        with pytest.raises(ValidationFailureError):
            await colors.update_partial(red.id, {"shade": "dark"}, "dave")

    async def test_update_partial_protected_field(self, colors):
        (red,) = await add_colors(colors, "Red")

        with pytest.raises(ValidationFailureError):
            await colors.update_partial(red.id, {"is_deleted": True}, "dave")

    async def test_update_partial_missing_row(self, colors):
        with pytest.raises(ResourceNotFoundError):
            await colors.update_partial(404, {"name": "Ghost"}, "dave")


class TestQuerySpec:
    """Tests for QuerySpec filtering, ordering and paging."""

    async def test_ieq_is_case_insensitive(self, colors):
        await add_colors(colors, "Space Gray", "Silver")

        found = await colors.find(QuerySpec().where("name", "ieq", "SPACE gray"))

        assert [color.name for color in found] == ["Space Gray"]

    async def test_contains_escapes_wildcards(self, colors):
        await add_colors(colors, "100% Black", "Black")

        found = await colors.find(QuerySpec().where("name", "contains", "100%"))

        assert [color.name for color in found] == ["100% Black"]

    async def test_search_matches_any_field(self, colors, db):
        await colors.create(Color(name="Gold", description="warm tone"), "t")
        await colors.create(Color(name="Blue", description="cool tone"), "t")
        await colors.create(Color(name="Warm White", description=None), "t")
        await db.commit()

        found = await colors.find(QuerySpec().search("warm", "name", "description"))

        assert [color.name for color in found] == ["Gold", "Warm White"]

    async def test_in_and_between(self, colors):
        await add_colors(colors, "A", "B", "C", "D")

        by_name = await colors.find(QuerySpec().where("name", "in", ["B", "D"]))
        by_order = await colors.find(QuerySpec().where("sort_order", "between", (2, 3)))

        assert [color.name for color in by_name] == ["B", "D"]
        assert sorted(color.name for color in by_order) == ["B", "C"]

    async def test_is_null(self, colors, db):
        await colors.create(Color(name="Plain"), "t")
        await colors.create(Color(name="Hex", hex_code="#000000"), "t")
        await db.commit()

        without = await colors.find(QuerySpec().where("hex_code", "is_null"))
        with_hex = await colors.find(QuerySpec().where("hex_code", "is_null", False))

        assert [color.name for color in without] == ["Plain"]
        assert [color.name for color in with_hex] == ["Hex"]

    async def test_order_by_and_page(self, colors):
        await add_colors(colors, "A", "B", "C", "D", "E")

        spec = QuerySpec().order_by("name", descending=True).page(2, 2)
        items, total = await colors.find_paged(spec)

        assert total == 5
        assert [color.name for color in items] == ["C", "B"]

    async def test_with_deleted(self, colors, db):
        red, _ = await add_colors(colors, "Red", "Green")
        await colors.delete(red.id, "t")
        await db.commit()

        assert await colors.count() == 1
        assert await colors.count(QuerySpec().with_deleted()) == 2

    async def test_unknown_operator_rejected(self):
        with pytest.raises(ValidationFailureError):
            QuerySpec().where("name", "like", "x")

    async def test_unknown_field_rejected(self, colors):
        with pytest.raises(ValidationFailureError):
            await colors.find(QuerySpec().where("missing", "eq", 1))

    async def test_get_paged(self, colors):
        await add_colors(colors, "A", "B", "C")

        items, total = await colors.get_paged(page=2, page_size=2)

        assert total == 3
        assert [color.name for color in items] == ["C"]


class TestAggregates:
    """Tests for sum/average/distinct."""

    async def test_empty_aggregates_are_zero(self, products):
        assert await products.sum("margin") == Decimal("0")
        assert await products.average("margin_percentage") == Decimal("0")
        assert await products.total_stock_value() == Decimal("0.00")

    async def test_field_ref_compares_columns(self, products, sample_products):
        low = await products.find(QuerySpec().where("stock", "le", FieldRef("min_stock_level")))

        assert [product.name for product in low] == ["MacBook Air M1", "Galaxy Tab S7"]

    async def test_sum_and_distinct(self, products, sample_products):
        assert await products.sum("stock") == Decimal("15")
        assert await products.distinct("brand") == ["Apple", "Samsung"]

    async def test_distinct_skips_deleted(self, products, sample_products, db):
        await products.delete(sample_products[2].id, "t")
        await db.commit()

        assert await products.distinct("brand") == ["Apple"]


class TestAtomicStock:
    """Tests for the conditional stock UPDATE."""

    async def test_adjust_within_bounds(self, products, sample_products, db):
        product = sample_products[0]

        assert await products.adjust_stock_atomic(product.id, -4, "t")
        await db.commit()

        reloaded = await products.reload(product.id)
        assert reloaded.stock == 6
        assert reloaded.version == 2

    async def test_adjust_below_zero_is_noop(self, products, sample_products, db):
        product = sample_products[1]

        assert not await products.adjust_stock_atomic(product.id, -2, "t")
        await db.commit()

        assert (await products.reload(product.id)).stock == 1

    async def test_adjust_deleted_product_is_noop(self, products, sample_products, db):
        product = sample_products[0]
        await products.delete(product.id, "t")
        await db.commit()

        assert not await products.adjust_stock_atomic(product.id, 1, "t")

    async def test_row_still_exists_in_table(self, products, sample_products, db):
        await products.delete(sample_products[0].id, "t")
        await db.commit()

        result = await db.execute(select(Product.id).where(Product.id == sample_products[0].id))
        assert result.scalar_one() == sample_products[0].id


class TestStaleWrites:
    """Writes from a copy another session has since changed."""

    async def bump_elsewhere(self, session_factory, product_id):
        async with session_factory() as other:
            assert await ProductRepository(other).adjust_stock_atomic(product_id, 1, "other")
            await other.commit()

    async def test_stale_update_is_a_conflict(self, products, sample_products, session_factory):
        product = sample_products[0]
        await self.bump_elsewhere(session_factory, product.id)

        product.notes = "stale write"
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await products.update(product, "t")

        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {"resource": "Product", "identifier": str(product.id)}

    async def test_stale_soft_delete_is_a_conflict(self, products, sample_products, session_factory):
        product_id = sample_products[2].id
        await self.bump_elsewhere(session_factory, product_id)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await products.delete(product_id, "t")

        assert exc_info.value.details["identifier"] == str(product_id)


class TestReferenceRepository:
    """Repository works for any audited model."""

    async def test_product_types(self, db):
        repo = Repository(db, ProductType)
        await repo.create(ProductType(name="Laptop", sort_order=2), "t")
        await repo.create(ProductType(name="Smartphone", sort_order=1), "t")
        await db.commit()

        ordered = await repo.find(QuerySpec().order_by("sort_order"))

        assert [item.name for item in ordered] == ["Smartphone", "Laptop"]
