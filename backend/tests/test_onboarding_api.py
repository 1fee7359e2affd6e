"""
API Integration Tests: Onboarding workflow.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import auth_headers, create_user, seed_tenant
from db.models import AuditLog, Company, ProductCategory, User, UserWarehouse, Warehouse


def _payload(**overrides):
    body = {
        "company": {"name": "Tilecraft", "industry_type": "Ceramics", "currency": "INR"},
        "warehouses": [
            {"name": "North Yard", "location": {"address": "12 Ring Rd", "city": "Jaipur", "state": "RJ", "pincode": "302001"}},
            {"name": "South Yard", "location": {"address": "9 Lake Rd", "city": "Udaipur", "state": "RJ", "pincode": "313001"}},
        ],
        "categories": [
            {"name": "Floor Tiles", "aging_concern": "slow"},
            {"name": "Adhesives", "aging_concern": "expiry"},
        ],
        "admin": {"name": "Asha", "email": "asha@tilecraft.test", "password": "s3cret-pass"},
    }
    body.update(overrides)
    return body


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


@pytest.mark.asyncio
class TestOnboarding:
    async def test_creates_company_warehouses_and_categories(self, client: AsyncClient, test_db):
        """A new admin onboarding persists one company, N warehouses and M categories."""
        resp = await client.post("/api/v1/onboarding", json=_payload())
        assert resp.status_code == 201
        data = resp.json()
        assert data["success"] is True
        assert len(data["warehouseIds"]) == 2
        assert len(data["categoryIds"]) == 2
        assert data["warehouseCodes"] == ["WH001", "WH002"]
        assert "auth-token" in resp.cookies

        assert await _count(test_db, Company) == 1
        assert await _count(test_db, Warehouse) == 2
        assert await _count(test_db, ProductCategory) == 2

        user = (await test_db.execute(select(User).where(User.email == "asha@tilecraft.test"))).scalar_one()
        assert user.role == "super_admin"
        assert str(user.company_id) == data["companyId"]
        assigned = (
            await test_db.execute(select(UserWarehouse.warehouse_id).where(UserWarehouse.user_id == user.user_id))
        ).scalars().all()
        assert {str(w) for w in assigned} == set(data["warehouseIds"])

    async def test_warehouse_defaults(self, client: AsyncClient, test_db):
        """Country defaults to India, capacity to 1000, and the manager to the onboarding user."""
        resp = await client.post("/api/v1/onboarding", json=_payload())
        data = resp.json()
        warehouse = (await test_db.execute(select(Warehouse).where(Warehouse.code == "WH001"))).scalar_one()
        assert warehouse.country == "India"
        assert warehouse.capacity == 1000
        assert warehouse.street == "12 Ring Rd"
        assert warehouse.pin == "302001"
        assert str(warehouse.manager_id) == data["userId"]

    async def test_codes_continue_from_highest_existing(self, client: AsyncClient, test_db):
        """With WH007 already taken, two new warehouses get WH008 and WH009 in input order."""
        await seed_tenant(test_db, name="Existing Co", codes=("WH003", "WH007"))
        resp = await client.post("/api/v1/onboarding", json=_payload())
        assert resp.status_code == 201
        assert resp.json()["warehouseCodes"] == ["WH008", "WH009"]

        names = (
            await test_db.execute(select(Warehouse.name).where(Warehouse.code.in_(["WH008", "WH009"])).order_by(Warehouse.code))
        ).scalars().all()
        assert names == ["North Yard", "South Yard"]

    async def test_authenticated_caller_is_bound(self, client: AsyncClient, test_db):
        """An authenticated user without a company becomes the admin; no admin payload is needed."""
        user = await create_user(test_db, "solo@example.test", role="warehouse_manager")
        await test_db.commit()
        headers = auth_headers(user.user_id, "solo@example.test", "warehouse_manager")

        body = _payload()
        body.pop("admin")
        resp = await client.post("/api/v1/onboarding", json=body, headers=headers)
        assert resp.status_code == 201
        assert resp.json()["userId"] == str(user.user_id)

        refreshed = (await test_db.execute(select(User).where(User.user_id == user.user_id))).scalar_one()
        assert refreshed.role == "super_admin"
        assert refreshed.company_id is not None

    async def test_rejects_caller_with_company(self, client: AsyncClient, tenant, test_db):
        """A user that already belongs to a company cannot onboard again."""
        body = _payload()
        body.pop("admin")
        resp = await client.post("/api/v1/onboarding", json=body, headers=tenant["admin_headers"])
        assert resp.status_code == 400
        assert resp.json()["error"] == "User has already completed onboarding"
        assert await _count(test_db, Company) == 1

    async def test_missing_company_name(self, client: AsyncClient):
        resp = await client.post("/api/v1/onboarding", json=_payload(company={"name": "  "}))
        assert resp.status_code == 400
        assert resp.json()["error"] == "Company name is required"

    async def test_missing_warehouses(self, client: AsyncClient, test_db):
        resp = await client.post("/api/v1/onboarding", json=_payload(warehouses=[]))
        assert resp.status_code == 400
        assert resp.json()["error"] == "At least one warehouse is required"
        assert await _count(test_db, Company) == 0

    async def test_missing_admin_when_anonymous(self, client: AsyncClient):
        body = _payload()
        body.pop("admin")
        resp = await client.post("/api/v1/onboarding", json=body)
        assert resp.status_code == 400

    async def test_duplicate_admin_email_conflicts(self, client: AsyncClient, tenant, test_db):
        """An admin email that already has an account is a 409 and nothing is written."""
        body = _payload(admin={"name": "Dup", "email": tenant["admin_email"].upper(), "password": "whatever1"})
        resp = await client.post("/api/v1/onboarding", json=body)
        assert resp.status_code == 409
        assert await _count(test_db, Company) == 1
        assert await _count(test_db, Warehouse) == 2

    async def test_duplicate_category_names_rejected(self, client: AsyncClient, test_db):
        body = _payload(categories=[{"name": "Grout", "aging_concern": "slow"}, {"name": "grout"}])
        resp = await client.post("/api/v1/onboarding", json=body)
        assert resp.status_code == 400
        assert await _count(test_db, Company) == 0

    async def test_failure_rolls_back_everything(self, client: AsyncClient, test_db, monkeypatch):
        """A failure after the admin and company rows were flushed leaves nothing behind."""

        async def broken_allocation(db, count):
            raise RuntimeError("sequence unavailable")

        monkeypatch.setattr("inventory.onboarding.allocate_warehouse_codes", broken_allocation)
        resp = await client.post("/api/v1/onboarding", json=_payload())
        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to complete onboarding"
        assert "sequence unavailable" in resp.json()["details"]
        assert await _count(test_db, Company) == 0
        assert await _count(test_db, Warehouse) == 0
        assert await _count(test_db, User) == 0

    async def test_writes_audit_entry(self, client: AsyncClient, test_db):
        resp = await client.post("/api/v1/onboarding", json=_payload())
        assert resp.status_code == 201
        entry = (await test_db.execute(select(AuditLog).where(AuditLog.action == "company_onboarded"))).scalar_one()
        assert entry.entity_id == resp.json()["companyId"]
        assert entry.details["warehouses"] == ["WH001", "WH002"]

    async def test_status_endpoint(self, client: AsyncClient, test_db):
        user = await create_user(test_db, "fresh@example.test")
        await test_db.commit()
        resp = await client.get("/api/v1/onboarding/status", headers=auth_headers(user.user_id))
        assert resp.status_code == 200
        assert resp.json()["needsOnboarding"] is True

    async def test_missing_categories_rejected(self, client: AsyncClient, test_db):
        body = _payload()
        body.pop("categories")
        resp = await client.post("/api/v1/onboarding", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Categories must be provided as an array"
        assert await _count(test_db, Company) == 0

    async def test_empty_categories_allowed(self, client: AsyncClient, test_db):
        resp = await client.post("/api/v1/onboarding", json=_payload(categories=[]))
        assert resp.status_code == 201
        assert resp.json()["categoryIds"] == []


@pytest.mark.asyncio
class TestOnboardingWarehouseManager:
    async def test_explicit_manager_from_the_company(self, client: AsyncClient, test_db):
        user = await create_user(test_db, "lead@example.test")
        await test_db.commit()
        body = _payload()
        body.pop("admin")
        body["warehouses"][1]["manager_id"] = str(user.user_id)

        resp = await client.post("/api/v1/onboarding", json=body, headers=auth_headers(user.user_id, "lead@example.test"))
        assert resp.status_code == 201
        managers = (await test_db.execute(select(Warehouse.manager_id).order_by(Warehouse.code))).scalars().all()
        assert managers == [user.user_id, user.user_id]

    async def test_manager_from_another_company_rejected(self, client: AsyncClient, tenant, test_db):
        body = _payload()
        body["warehouses"][0]["manager_id"] = str(tenant["admin_id"])
        resp = await client.post("/api/v1/onboarding", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid warehouse manager"
        assert await _count(test_db, Company) == 1
        assert await _count(test_db, Warehouse) == 2

    async def test_malformed_manager_id_rejected(self, client: AsyncClient, test_db):
        body = _payload()
        body["warehouses"][0]["manager_id"] = "not-a-uuid"
        resp = await client.post("/api/v1/onboarding", json=body)
        assert resp.status_code == 400
        assert await _count(test_db, User) == 0
