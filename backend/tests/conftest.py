"""
Test Configuration: Fixtures for async DB, test client, and seeded tenants.

Each test gets a fresh in-memory SQLite database. The app and the test share
one AsyncSession so rows written by fixtures are visible to requests and
vice versa. Fixtures hand out plain ids rather than ORM objects because a
rolled-back request expires every instance in the session.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_db
from api.main import app
from core.security import create_access_token, hash_password
from db.models import Company, Product, ProductCategory, Stock, User, UserWarehouse, Warehouse
from db.session import Base

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    session = AsyncSession(bind=test_engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
async def client(test_db):
    """Create an async test client that uses the test session."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user_id, email="user@example.com", role="super_admin", company_id=None) -> dict:
    token = create_access_token(
        {
            "sub": str(user_id),
            "user_id": str(user_id),
            "email": email,
            "role": role,
            "company_id": str(company_id) if company_id else None,
        }
    )
    return {"Authorization": f"Bearer {token}"}


async def create_user(db, email, role="super_admin", company_id=None, name="Test User", password=TEST_PASSWORD):
    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
        company_id=company_id,
    )
    db.add(user)
    await db.flush()
    return user


async def seed_tenant(db, name="Acme Traders", codes=("WH001", "WH002"), email=None):
    """Company with an admin, a manager bound to the first warehouse, warehouses and one category."""
    slug = name.lower().replace(" ", "-")
    company = Company(name=name)
    db.add(company)
    await db.flush()

    admin = await create_user(db, email or f"admin@{slug}.test", company_id=company.company_id, name="Admin")
    manager = await create_user(
        db,
        f"manager@{slug}.test",
        role="warehouse_manager",
        company_id=company.company_id,
        name="Manager",
    )

    warehouses = []
    for i, code in enumerate(codes):
        warehouse = Warehouse(
            company_id=company.company_id,
            code=code,
            name=f"{name} Depot {i + 1}",
            street="1 Main Rd",
            city="Pune",
            state="MH",
            pin="411001",
            manager_id=admin.user_id,
            capacity=1000,
        )
        db.add(warehouse)
        warehouses.append(warehouse)
    await db.flush()
    db.add(UserWarehouse(user_id=manager.user_id, warehouse_id=warehouses[0].warehouse_id))

    category = ProductCategory(company_id=company.company_id, name="Tiles", aging_concern="slow")
    db.add(category)
    await db.commit()

    return {
        "company_id": company.company_id,
        "admin_id": admin.user_id,
        "admin_email": admin.email,
        "manager_id": manager.user_id,
        "warehouse_ids": [w.warehouse_id for w in warehouses],
        "category_id": category.category_id,
        "admin_headers": auth_headers(admin.user_id, admin.email, "super_admin", company.company_id),
        "manager_headers": auth_headers(manager.user_id, manager.email, "warehouse_manager", company.company_id),
    }


async def seed_batch(db, tenant, sku="TILE-001", quantity=100, unit_price=50.0, age_days=0, warehouse_index=0, status="healthy"):
    """A product with one batch entered `age_days` ago."""
    product = Product(
        company_id=tenant["company_id"],
        category_id=tenant["category_id"],
        sku=sku,
        name=f"Product {sku}",
        unit_price=unit_price,
        unit_type="box",
    )
    db.add(product)
    await db.flush()
    stock = Stock(
        company_id=tenant["company_id"],
        product_id=product.product_id,
        warehouse_id=tenant["warehouse_ids"][warehouse_index],
        batch_id=f"{sku}-{uuid.uuid4().hex[:8]}",
        quantity_received=quantity,
        quantity_available=quantity,
        entry_date=datetime.utcnow() - timedelta(days=age_days),
        status=status,
    )
    db.add(stock)
    await db.commit()
    return {"product_id": product.product_id, "stock_id": stock.stock_id, "batch_id": stock.batch_id}


@pytest.fixture
async def tenant(test_db):
    return await seed_tenant(test_db)


@pytest.fixture
async def other_tenant(test_db, tenant):
    return await seed_tenant(test_db, name="Globex Supply", codes=("WH010",))
