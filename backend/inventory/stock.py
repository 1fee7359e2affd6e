"""
Stock batches and movements.

A batch is one receipt of a product at a warehouse. Every change to a
batch's quantity is mirrored by a StockMovement row in the same
transaction.
"""

import time
import uuid
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFound, ValidationFailed, parse_uuid
from db.models import Alert, Company, Product, Stock, StockMovement, User, Warehouse, compute_age_in_days
from db.transactions import atomic
from inventory.aging import classify_age
from inventory.warehouses import accessible_warehouse_ids, get_company_warehouse
from notifications.service import notify

logger = structlog.get_logger()


# ─── Payloads ──────────────────────────────────────────────────────────────


class StockEntry(BaseModel):
    product_id: str
    warehouse_id: str
    quantity: int = Field(..., gt=0)
    received_date: datetime | None = None
    expiry_date: datetime | None = None
    entry_photos: list[str] = Field(default_factory=list)
    notes: str | None = None


class StockExit(BaseModel):
    stock_id: str
    quantity: int = Field(..., gt=0)
    reason: str = "sale"
    notes: str | None = None


class StockTransfer(BaseModel):
    stock_id: str
    to_warehouse_id: str
    quantity: int = Field(..., gt=0)
    notes: str | None = None


class DamageReport(BaseModel):
    quantity: int = Field(..., gt=0)
    notes: str | None = None


# ─── Helpers ───────────────────────────────────────────────────────────────


def make_batch_id(sku: str, epoch_ms: int | None = None) -> str:
    """Batch ids are the SKU suffixed with the creation time in epoch milliseconds."""
    if epoch_ms is None:
        epoch_ms = time.time_ns() // 1_000_000
    return f"{sku}-{epoch_ms}"


def new_batch(
    product: Product,
    warehouse: Warehouse,
    quantity: int,
    created_by: uuid.UUID | None,
    entry_date: datetime | None = None,
    expiry_date: datetime | None = None,
    entry_photos: list[str] | None = None,
    notes: str | None = None,
    age_in_days: int | None = 0,
    status: str = "healthy",
) -> Stock:
    """A freshly received batch. Pass age_in_days=None to have it computed from entry_date on insert."""
    return Stock(
        company_id=product.company_id,
        product_id=product.product_id,
        warehouse_id=warehouse.warehouse_id,
        batch_id=make_batch_id(product.sku),
        quantity_received=quantity,
        quantity_available=quantity,
        quantity_damaged=0,
        entry_date=entry_date or datetime.utcnow(),
        expiry_date=expiry_date,
        age_in_days=age_in_days,
        status=status,
        entry_photos=list(entry_photos or []),
        notes=notes,
        created_by=created_by,
    )


async def _load_batch(db: AsyncSession, user: User, stock_id) -> Stock:
    sid = parse_uuid(stock_id, "Stock batch not found", NotFound)
    result = await db.execute(select(Stock).where(Stock.stock_id == sid, Stock.company_id == user.company_id))
    stock = result.scalar_one_or_none()
    allowed = await accessible_warehouse_ids(db, user)
    if stock is None or (allowed is not None and stock.warehouse_id not in allowed):
        raise NotFound("Stock batch not found")
    return stock


async def _warehouse_load(db: AsyncSession, warehouse_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(Stock.quantity_available), 0)).where(Stock.warehouse_id == warehouse_id)
    )
    return int(result.scalar() or 0)


async def product_total(db: AsyncSession, product_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(Stock.quantity_available), 0)).where(Stock.product_id == product_id)
    )
    return int(result.scalar() or 0)


# ─── Queries ───────────────────────────────────────────────────────────────


async def list_stock(
    db: AsyncSession,
    user: User,
    warehouse_id: uuid.UUID | None = None,
    product_id: uuid.UUID | None = None,
    status: str | None = None,
    include_empty: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> list[tuple[Stock, Product, Warehouse]]:
    query = (
        select(Stock, Product, Warehouse)
        .join(Product, Product.product_id == Stock.product_id)
        .join(Warehouse, Warehouse.warehouse_id == Stock.warehouse_id)
        .where(Stock.company_id == user.company_id)
    )
    allowed = await accessible_warehouse_ids(db, user)
    if allowed is not None:
        query = query.where(Stock.warehouse_id.in_(allowed))
    if warehouse_id:
        query = query.where(Stock.warehouse_id == warehouse_id)
    if product_id:
        query = query.where(Stock.product_id == product_id)
    if status:
        query = query.where(Stock.status == status)
    if not include_empty:
        query = query.where(Stock.quantity_available > 0)
    query = query.order_by(Stock.entry_date.asc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return [tuple(row) for row in result.all()]


async def list_movements(
    db: AsyncSession,
    user: User,
    movement_type: str | None = None,
    product_id: uuid.UUID | None = None,
    warehouse_id: uuid.UUID | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[StockMovement]:
    query = select(StockMovement).where(StockMovement.company_id == user.company_id)
    allowed = await accessible_warehouse_ids(db, user)
    if allowed is not None:
        query = query.where(
            StockMovement.from_warehouse_id.in_(allowed) | StockMovement.to_warehouse_id.in_(allowed)
        )
    if movement_type:
        query = query.where(StockMovement.movement_type == movement_type)
    if product_id:
        query = query.where(StockMovement.product_id == product_id)
    if warehouse_id:
        query = query.where(
            (StockMovement.from_warehouse_id == warehouse_id) | (StockMovement.to_warehouse_id == warehouse_id)
        )
    query = query.order_by(StockMovement.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


# ─── Workflows ─────────────────────────────────────────────────────────────


async def record_entry(db: AsyncSession, user: User, payload: StockEntry) -> Stock:
    pid = parse_uuid(payload.product_id, "Invalid product")
    product = (
        await db.execute(
            select(Product).where(
                Product.product_id == pid,
                Product.company_id == user.company_id,
                Product.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()
    if product is None:
        raise ValidationFailed("Invalid product")
    allowed = await accessible_warehouse_ids(db, user)
    warehouse = await get_company_warehouse(
        db, user.company_id, payload.warehouse_id, allowed, "Invalid warehouse", ValidationFailed
    )

    company = await db.get(Company, user.company_id)
    entry_date = payload.received_date or datetime.utcnow()
    if entry_date.tzinfo is not None:
        entry_date = entry_date.astimezone(timezone.utc).replace(tzinfo=None)
    age = compute_age_in_days(entry_date)

    async with atomic(db, "Failed to record stock entry"):
        stock = new_batch(
            product,
            warehouse,
            payload.quantity,
            user.user_id,
            entry_date=entry_date,
            expiry_date=payload.expiry_date,
            entry_photos=payload.entry_photos,
            notes=payload.notes,
            age_in_days=age,
            status=classify_age(age, company.at_risk_days, company.dead_days),
        )
        db.add(stock)
        await db.flush()
        db.add(
            StockMovement(
                company_id=user.company_id,
                stock_id=stock.stock_id,
                product_id=product.product_id,
                movement_type="in",
                quantity=payload.quantity,
                to_warehouse_id=warehouse.warehouse_id,
                reason="receipt",
                notes=payload.notes,
                performed_by=user.user_id,
            )
        )
        notify(
            db,
            user.company_id,
            "stock_added",
            "Stock received",
            f"{payload.quantity} {product.unit_type} of {product.name} received at {warehouse.name}",
            priority="low",
            link="/stock",
            metadata={"stock_id": str(stock.stock_id), "batch_id": stock.batch_id},
        )

    logger.info("stock.entry", batch_id=stock.batch_id, quantity=payload.quantity, warehouse=warehouse.code)
    return stock


async def record_exit(db: AsyncSession, user: User, payload: StockExit) -> Stock:
    stock = await _load_batch(db, user, payload.stock_id)
    if payload.quantity > stock.quantity_available:
        raise ValidationFailed(
            "Insufficient stock",
            details={"available": stock.quantity_available, "requested": payload.quantity},
        )
    product = await db.get(Product, stock.product_id)

    async with atomic(db, "Failed to record stock exit"):
        stock.quantity_available -= payload.quantity
        db.add(
            StockMovement(
                company_id=user.company_id,
                stock_id=stock.stock_id,
                product_id=stock.product_id,
                movement_type="out",
                quantity=payload.quantity,
                from_warehouse_id=stock.warehouse_id,
                reason=payload.reason,
                notes=payload.notes,
                performed_by=user.user_id,
            )
        )
        await db.flush()
        remaining = await product_total(db, stock.product_id)
        if remaining <= product.reorder_level:
            notify(
                db,
                user.company_id,
                "stock_low",
                "Low stock",
                f"{product.name} is down to {remaining} {product.unit_type} (reorder level {product.reorder_level})",
                priority="high",
                link=f"/products/{product.product_id}",
                metadata={"product_id": str(product.product_id), "remaining": remaining},
            )

    logger.info("stock.exit", batch_id=stock.batch_id, quantity=payload.quantity, reason=payload.reason)
    return stock


async def transfer_stock(db: AsyncSession, user: User, payload: StockTransfer) -> tuple[Stock, Stock]:
    """Move quantity from a batch to another warehouse; returns (source, destination)."""
    source = await _load_batch(db, user, payload.stock_id)
    allowed = await accessible_warehouse_ids(db, user)
    destination_wh = await get_company_warehouse(
        db, user.company_id, payload.to_warehouse_id, allowed, "Invalid destination warehouse", ValidationFailed
    )
    if destination_wh.warehouse_id == source.warehouse_id:
        raise ValidationFailed("Source and destination warehouses must differ")
    if payload.quantity > source.quantity_available:
        raise ValidationFailed(
            "Insufficient stock",
            details={"available": source.quantity_available, "requested": payload.quantity},
        )
    if await _warehouse_load(db, destination_wh.warehouse_id) + payload.quantity > destination_wh.capacity:
        raise ValidationFailed("Destination warehouse capacity exceeded")

    async with atomic(db, "Failed to transfer stock"):
        source.quantity_available -= payload.quantity

        result = await db.execute(
            select(Stock).where(
                Stock.warehouse_id == destination_wh.warehouse_id,
                Stock.product_id == source.product_id,
                Stock.batch_id == source.batch_id,
                Stock.entry_date == source.entry_date,
            )
        )
        # Same batch id and entry date means the same receipt
        destination = result.scalars().first()
        if destination is None:
            # Keeps the source entry date so aging continues across transfers
            destination = Stock(
                company_id=source.company_id,
                product_id=source.product_id,
                warehouse_id=destination_wh.warehouse_id,
                batch_id=source.batch_id,
                quantity_received=payload.quantity,
                quantity_available=payload.quantity,
                quantity_damaged=0,
                entry_date=source.entry_date,
                expiry_date=source.expiry_date,
                age_in_days=source.age_in_days,
                status=source.status,
                notes=payload.notes,
                created_by=user.user_id,
            )
            db.add(destination)
        else:
            destination.quantity_received += payload.quantity
            destination.quantity_available += payload.quantity
        await db.flush()

        db.add(
            StockMovement(
                company_id=user.company_id,
                stock_id=source.stock_id,
                product_id=source.product_id,
                movement_type="transfer",
                quantity=payload.quantity,
                from_warehouse_id=source.warehouse_id,
                to_warehouse_id=destination_wh.warehouse_id,
                reason="transfer",
                notes=payload.notes,
                performed_by=user.user_id,
            )
        )
        notify(
            db,
            user.company_id,
            "transfer_completed",
            "Transfer completed",
            f"{payload.quantity} units of batch {source.batch_id} moved to {destination_wh.name}",
            link="/stock",
            metadata={"source_stock_id": str(source.stock_id), "destination_stock_id": str(destination.stock_id)},
        )

    logger.info(
        "stock.transfer",
        batch_id=source.batch_id,
        quantity=payload.quantity,
        to_warehouse=destination_wh.code,
    )
    return source, destination


async def report_damage(db: AsyncSession, user: User, stock_id, payload: DamageReport) -> tuple[Stock, Alert]:
    stock = await _load_batch(db, user, stock_id)
    if payload.quantity > stock.quantity_available:
        raise ValidationFailed(
            "Insufficient stock",
            details={"available": stock.quantity_available, "requested": payload.quantity},
        )
    product = await db.get(Product, stock.product_id)

    async with atomic(db, "Failed to report damage"):
        stock.quantity_available -= payload.quantity
        stock.quantity_damaged += payload.quantity
        db.add(
            StockMovement(
                company_id=user.company_id,
                stock_id=stock.stock_id,
                product_id=stock.product_id,
                movement_type="adjustment",
                quantity=payload.quantity,
                from_warehouse_id=stock.warehouse_id,
                reason="damage",
                notes=payload.notes,
                performed_by=user.user_id,
            )
        )
        alert = Alert(
            company_id=user.company_id,
            stock_id=stock.stock_id,
            product_id=stock.product_id,
            warehouse_id=stock.warehouse_id,
            alert_type="damage",
            severity="warning",
            title=f"Damage reported: {product.name}",
            message=f"{payload.quantity} {product.unit_type} of batch {stock.batch_id} marked as damaged",
            recommendation="Inspect the batch and file a claim with the supplier if applicable",
            alert_metadata={
                "quantity": payload.quantity,
                "value": round(payload.quantity * product.unit_price, 2),
            },
        )
        db.add(alert)
        notify(
            db,
            user.company_id,
            "damage_reported",
            "Damage reported",
            alert.message,
            priority="medium",
            link="/alerts",
            metadata={"stock_id": str(stock.stock_id)},
        )

    logger.info("stock.damage", batch_id=stock.batch_id, quantity=payload.quantity)
    return stock, alert
