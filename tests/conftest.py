"""Shared test fixtures for all tests."""
import os

# Must be set before the application settings are imported
os.environ["LOG_TO_FILE"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from erp.core import database
from erp.core.database import Base, get_db, utc_now
from erp.main import app
from erp.schemas.product import ProductCreate
from erp.services.product_service import ProductService


def product_data(**overrides) -> dict:
    """Valid product payload; override any field."""
    data = {
        "name": "iPhone 13 Pro 128GB",
        "description": "Unlocked, battery 89%",
        "category": "Smartphone",
        "brand": "Apple",
        "model": "iPhone 13 Pro",
        "condition": "Excellent",
        "condition_grade": "A",
        "storage": "128GB",
        "color": "Graphite",
        "purchase_price": "100",
        "transport_cost": "20",
        "selling_price": "180",
        "stock": 10,
        "min_stock_level": 2,
        "supplier_name": "Milano Mobile SRL",
        "supplier_city": "Milano",
        "purchase_date": "2026-01-10T09:00:00+00:00",
        "import_batch": "BATCH-2026-01",
        "invoice_number": "INV-0001",
    }
    data.update(overrides)
    return data


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database file for each test."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'erp_test.db'}",
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(db):
    return ProductService(db, actor="tester")


@pytest_asyncio.fixture
async def client(engine, session_factory, monkeypatch):
    """HTTP client against the app with the test database wired in."""
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(database, "AsyncSessionLocal", session_factory)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except BaseException:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def sample_products(service):
    """Three products across two suppliers, one low on stock and long in store."""
    now = utc_now()
    payloads = [
        product_data(),
        product_data(
            name="MacBook Air M1",
            description="13 inch, 8GB",
            category="Laptop",
            model="MacBook Air M1",
            condition="Good",
            purchase_price="500",
            transport_cost="30",
            selling_price="690",
            stock=1,
            min_stock_level=3,
            supplier_name="Roma Tech",
            supplier_city="Roma",
            arrival_date=(now - timedelta(days=120)).isoformat(),
            import_batch="BATCH-2025-09",
            invoice_number="INV-0002",
        ),
        product_data(
            name="Galaxy Tab S7",
            description="Wi-Fi tablet",
            category="Tablet",
            brand="Samsung",
            model="Galaxy Tab S7",
            purchase_price="200",
            transport_cost="0",
            selling_price="250",
            stock=4,
            min_stock_level=5,
            arrival_date=(now - timedelta(days=3)).isoformat(),
            invoice_number="INV-0003",
        ),
    ]
    products = []
    for payload in payloads:
        products.append(await service.create(ProductCreate(**payload)))
    return products


@pytest.fixture
def make_product_data():
    """Factory for valid product payloads."""
    return product_data
