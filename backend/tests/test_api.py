"""
API Tests: Smoke tests for routing, auth guards and the error envelope.
"""

import pytest
from httpx import AsyncClient

from conftest import auth_headers, create_user

PROTECTED_ROUTES = [
    ("GET", "/api/v1/warehouses"),
    ("GET", "/api/v1/categories"),
    ("GET", "/api/v1/products"),
    ("GET", "/api/v1/stock"),
    ("GET", "/api/v1/alerts"),
    ("GET", "/api/v1/notifications"),
    ("GET", "/api/v1/reports/aging"),
    ("GET", "/api/v1/dashboard/stats"),
    ("GET", "/api/v1/users"),
]


@pytest.mark.asyncio
class TestHealthCheck:
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"


@pytest.mark.asyncio
class TestAuthGuards:
    @pytest.mark.parametrize("method, path", PROTECTED_ROUTES)
    async def test_requires_authentication(self, client: AsyncClient, method, path):
        response = await client.request(method, path)
        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    async def test_user_without_company_is_sent_to_onboarding(self, client: AsyncClient, test_db):
        user = await create_user(test_db, "new@example.test")
        await test_db.commit()
        response = await client.get("/api/v1/warehouses", headers=auth_headers(user.user_id))
        assert response.status_code == 400
        assert response.json()["error"] == "Please complete onboarding first"

    async def test_admin_only_routes(self, client: AsyncClient, tenant):
        response = await client.get("/api/v1/users", headers=tenant["manager_headers"])
        assert response.status_code == 403


@pytest.mark.asyncio
class TestErrorEnvelope:
    async def test_unknown_route(self, client: AsyncClient):
        response = await client.get("/api/v1/does-not-exist")
        assert response.status_code == 404
        assert "error" in response.json()

    async def test_body_validation_is_400(self, client: AsyncClient, tenant):
        response = await client.post(
            "/api/v1/categories", json={"name": "Paint", "aging_concern": "never"}, headers=tenant["admin_headers"]
        )
        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid request"
        assert isinstance(data["details"], list)

    async def test_success_flag(self, client: AsyncClient, tenant):
        response = await client.get("/api/v1/categories", headers=tenant["admin_headers"])
        assert response.status_code == 200
        assert response.json()["success"] is True


@pytest.mark.asyncio
class TestCategoriesAPI:
    async def test_create_and_list(self, client: AsyncClient, tenant):
        response = await client.post(
            "/api/v1/categories", json={"name": "Sanitaryware", "aging_concern": "fast"}, headers=tenant["admin_headers"]
        )
        assert response.status_code == 201
        names = [
            c["name"] for c in (await client.get("/api/v1/categories", headers=tenant["admin_headers"])).json()["categories"]
        ]
        assert names == ["Sanitaryware", "Tiles"]

    async def test_duplicate_name_is_case_insensitive(self, client: AsyncClient, tenant):
        response = await client.post("/api/v1/categories", json={"name": "TILES"}, headers=tenant["admin_headers"])
        assert response.status_code == 400

    async def test_same_name_in_another_company(self, client: AsyncClient, tenant, other_tenant):
        response = await client.post("/api/v1/categories", json={"name": "Grout"}, headers=other_tenant["admin_headers"])
        assert response.status_code == 201
        listed = await client.get("/api/v1/categories", headers=tenant["admin_headers"])
        assert [c["name"] for c in listed.json()["categories"]] == ["Tiles"]
