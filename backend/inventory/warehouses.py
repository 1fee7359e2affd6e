"""
Warehouse management: scoping, creation, archival, and utilization metrics.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFound, ValidationFailed, parse_uuid
from core.permissions import WAREHOUSE_MANAGER, can_access_all_warehouses
from db.models import Product, Stock, StockMovement, User, UserWarehouse, Warehouse
from db.transactions import atomic
from inventory.audit import record_audit
from inventory.codes import allocate_warehouse_codes

logger = structlog.get_logger()

DEFAULT_CAPACITY = 1000
REQUIRED_FIELDS = ("name", "street", "city", "state", "pin")


class WarehouseCreate(BaseModel):
    name: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    pin: str | None = None
    country: str = "India"
    manager_id: str | None = None
    capacity: int | None = Field(None, gt=0)


class WarehouseUpdate(BaseModel):
    name: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    pin: str | None = None
    country: str | None = None
    manager_id: str | None = None
    capacity: int | None = Field(None, gt=0)


@dataclass
class WarehouseMetrics:
    product_count: int = 0
    total_quantity: int = 0
    total_value: float = 0.0
    utilization: float = 0.0
    at_risk_count: int = 0
    dead_count: int = 0
    last_activity: datetime | None = None
    weekly_movements: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _Accumulator:
    products: set = field(default_factory=set)
    quantity: int = 0
    value: float = 0.0
    at_risk: int = 0
    dead: int = 0


async def accessible_warehouse_ids(db: AsyncSession, user: User) -> list[uuid.UUID] | None:
    """Warehouse ids the caller may see. None means every warehouse of the company."""
    if can_access_all_warehouses(user.role):
        return None
    result = await db.execute(
        select(UserWarehouse.warehouse_id)
        .join(Warehouse, Warehouse.warehouse_id == UserWarehouse.warehouse_id)
        .where(UserWarehouse.user_id == user.user_id, Warehouse.company_id == user.company_id)
    )
    return [row.warehouse_id for row in result.all()]


async def get_company_warehouse(
    db: AsyncSession,
    company_id: uuid.UUID,
    warehouse_id,
    allowed_ids: list[uuid.UUID] | None = None,
    error_message: str = "Warehouse not found",
    error_cls=NotFound,
) -> Warehouse:
    """Load an active warehouse owned by the company and visible to the caller."""
    wid = parse_uuid(warehouse_id, error_message, error_cls)
    if allowed_ids is not None and wid not in allowed_ids:
        raise error_cls(error_message)
    result = await db.execute(
        select(Warehouse).where(
            Warehouse.warehouse_id == wid,
            Warehouse.company_id == company_id,
            Warehouse.is_active.is_(True),
        )
    )
    warehouse = result.scalar_one_or_none()
    if warehouse is None:
        raise error_cls(error_message)
    return warehouse


async def list_warehouses(db: AsyncSession, user: User) -> list[Warehouse]:
    query = select(Warehouse).where(Warehouse.company_id == user.company_id, Warehouse.is_active.is_(True))
    allowed = await accessible_warehouse_ids(db, user)
    if allowed is not None:
        query = query.where(Warehouse.warehouse_id.in_(allowed))
    result = await db.execute(query.order_by(Warehouse.code))
    return list(result.scalars().all())


async def warehouse_metrics(
    db: AsyncSession, warehouses: list[Warehouse], now: datetime | None = None
) -> dict[uuid.UUID, WarehouseMetrics]:
    """Stock and movement metrics for each warehouse, keyed by warehouse id."""
    now = now or datetime.utcnow()
    ids = [w.warehouse_id for w in warehouses]
    if not ids:
        return {}

    acc: dict[uuid.UUID, _Accumulator] = {wid: _Accumulator() for wid in ids}
    stock_rows = await db.execute(
        select(Stock.warehouse_id, Stock.product_id, Stock.quantity_available, Stock.status, Product.unit_price)
        .join(Product, Product.product_id == Stock.product_id)
        .where(Stock.warehouse_id.in_(ids), Stock.quantity_available > 0)
    )
    for row in stock_rows.all():
        bucket = acc[row.warehouse_id]
        bucket.products.add(row.product_id)
        bucket.quantity += row.quantity_available
        bucket.value += row.quantity_available * (row.unit_price or 0)
        if row.status == "at_risk":
            bucket.at_risk += 1
        elif row.status == "dead":
            bucket.dead += 1

    week_ago = now - timedelta(days=7)
    movement_rows = await db.execute(
        select(StockMovement.from_warehouse_id, StockMovement.to_warehouse_id, StockMovement.created_at).where(
            or_(StockMovement.from_warehouse_id.in_(ids), StockMovement.to_warehouse_id.in_(ids))
        )
    )
    last_activity: dict[uuid.UUID, datetime] = {}
    weekly: dict[uuid.UUID, int] = {}
    for row in movement_rows.all():
        for wid in {row.from_warehouse_id, row.to_warehouse_id}:
            if wid not in acc:
                continue
            if wid not in last_activity or row.created_at > last_activity[wid]:
                last_activity[wid] = row.created_at
            if row.created_at >= week_ago:
                weekly[wid] = weekly.get(wid, 0) + 1

    metrics = {}
    for warehouse in warehouses:
        bucket = acc[warehouse.warehouse_id]
        capacity = warehouse.capacity or DEFAULT_CAPACITY
        metrics[warehouse.warehouse_id] = WarehouseMetrics(
            product_count=len(bucket.products),
            total_quantity=bucket.quantity,
            total_value=round(bucket.value, 2),
            utilization=round(bucket.quantity / capacity * 100, 1),
            at_risk_count=bucket.at_risk,
            dead_count=bucket.dead,
            last_activity=last_activity.get(warehouse.warehouse_id),
            weekly_movements=weekly.get(warehouse.warehouse_id, 0),
        )
    return metrics


async def _ensure_name_available(
    db: AsyncSession, company_id: uuid.UUID, name: str, exclude_id: uuid.UUID | None = None
) -> None:
    query = select(Warehouse.warehouse_id).where(
        Warehouse.company_id == company_id,
        func.lower(Warehouse.name) == name.strip().lower(),
        Warehouse.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.where(Warehouse.warehouse_id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise ValidationFailed("A warehouse with this name already exists")


async def _company_member(db: AsyncSession, company_id: uuid.UUID, user_id) -> User:
    uid = parse_uuid(user_id, "Manager must belong to your company")
    result = await db.execute(select(User).where(User.user_id == uid, User.company_id == company_id))
    manager = result.scalar_one_or_none()
    if manager is None:
        raise ValidationFailed("Manager must belong to your company")
    return manager


async def _assign(db: AsyncSession, user: User, warehouse_id: uuid.UUID) -> None:
    exists = await db.get(UserWarehouse, (user.user_id, warehouse_id))
    if exists is None:
        db.add(UserWarehouse(user_id=user.user_id, warehouse_id=warehouse_id))


async def create_warehouse(db: AsyncSession, actor: User, payload: WarehouseCreate) -> Warehouse:
    missing = [name for name in REQUIRED_FIELDS if not (getattr(payload, name) or "").strip()]
    if missing:
        raise ValidationFailed("Missing required fields", details=missing)

    async with atomic(db, "Failed to create warehouse"):
        await _ensure_name_available(db, actor.company_id, payload.name)
        manager = actor
        if payload.manager_id:
            manager = await _company_member(db, actor.company_id, payload.manager_id)

        (code,) = await allocate_warehouse_codes(db, 1)
        warehouse = Warehouse(
            company_id=actor.company_id,
            code=code,
            name=payload.name.strip(),
            street=payload.street.strip(),
            city=payload.city.strip(),
            state=payload.state.strip(),
            pin=payload.pin.strip(),
            country=payload.country or "India",
            manager_id=manager.user_id,
            capacity=payload.capacity or DEFAULT_CAPACITY,
        )
        db.add(warehouse)
        await db.flush()
        if manager.role == WAREHOUSE_MANAGER:
            await _assign(db, manager, warehouse.warehouse_id)
        record_audit(
            db,
            "warehouse_created",
            "warehouse",
            warehouse.warehouse_id,
            company_id=actor.company_id,
            user_id=actor.user_id,
            details={"code": code, "name": warehouse.name},
        )

    logger.info("warehouse.created", code=warehouse.code, company_id=str(actor.company_id))
    return warehouse


async def update_warehouse(db: AsyncSession, actor: User, warehouse: Warehouse, payload: WarehouseUpdate) -> Warehouse:
    update_data = payload.model_dump(exclude_unset=True)
    async with atomic(db, "Failed to update warehouse"):
        if update_data.get("name"):
            await _ensure_name_available(db, actor.company_id, update_data["name"], exclude_id=warehouse.warehouse_id)
        manager_id = update_data.pop("manager_id", None)
        if manager_id:
            manager = await _company_member(db, actor.company_id, manager_id)
            warehouse.manager_id = manager.user_id
            if manager.role == WAREHOUSE_MANAGER:
                await _assign(db, manager, warehouse.warehouse_id)
        for key, value in update_data.items():
            if value is not None:
                setattr(warehouse, key, value.strip() if isinstance(value, str) else value)
    return warehouse


async def archive_warehouse(db: AsyncSession, actor: User, warehouse: Warehouse) -> Warehouse:
    remaining = await db.execute(
        select(func.coalesce(func.sum(Stock.quantity_available), 0)).where(
            Stock.warehouse_id == warehouse.warehouse_id
        )
    )
    if (remaining.scalar() or 0) > 0:
        raise ValidationFailed("Cannot archive a warehouse that still holds stock")

    async with atomic(db, "Failed to archive warehouse"):
        warehouse.is_active = False
        record_audit(
            db,
            "warehouse_archived",
            "warehouse",
            warehouse.warehouse_id,
            company_id=actor.company_id,
            user_id=actor.user_id,
        )
    logger.info("warehouse.archived", code=warehouse.code)
    return warehouse
