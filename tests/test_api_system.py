"""Tests for system endpoints and startup configuration."""
import pytest

from erp.core import database
from erp.core.config import settings
from erp.error_handlers import ConfigurationError


class TestSystemEndpoints:
    """Tests for health, root and documentation."""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == settings.app_version
        assert data["uptime"] >= 0

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["documentation"] == "/swagger"
        assert data["endpoints"]["products"] == "/api/products"

    async def test_swagger_ui(self, client):
        response = await client.get("/swagger")

        assert response.status_code == 200
        assert "swagger" in response.text.lower()

    async def test_openapi_lists_product_routes(self, client):
        paths = (await client.get("/openapi.json")).json()["paths"]

        assert "/api/products/{product_id}/adjust-stock" in paths
        assert "/api/references/brands/{entity_id}" in paths

    async def test_process_time_header(self, client):
        response = await client.get("/")

        assert response.headers["X-Process-Time"].endswith("ms")

    async def test_unknown_route(self, client):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json()["path"] == "/api/nothing-here"


class TestStartupConfiguration:
    """A missing connection string is fatal."""

    def test_engine_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(database, "engine", None)
        monkeypatch.setattr(settings, "database_url", None)

        with pytest.raises(ConfigurationError):
            database.get_engine()

    async def test_health_degraded_without_database(self, client, monkeypatch):
        monkeypatch.setattr(database, "engine", None)
        monkeypatch.setattr(settings, "database_url", None)

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
