"""
Product catalog workflows.

SKUs are unique per company on every route: create, create-with-stock and
update all go through ensure_sku_available.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFound, ValidationFailed, parse_uuid
from db.models import Product, ProductCategory, Stock, StockMovement, User
from db.transactions import atomic
from inventory.stock import new_batch
from inventory.warehouses import accessible_warehouse_ids, get_company_warehouse
from notifications.service import notify

logger = structlog.get_logger()

REQUIRED_FIELDS = ("name", "sku", "category", "unit_price", "unit_type")


class ProductCreate(BaseModel):
    name: str | None = None
    sku: str | None = None
    category: str | None = None
    unit_price: float | None = Field(None, ge=0)
    unit_type: str | None = None
    description: str | None = None
    reorder_level: int = Field(10, ge=0)
    barcode: str | None = None


class ProductWithStockCreate(ProductCreate):
    has_stock: bool = False
    warehouse_id: str | None = None
    quantity: int | None = Field(None, gt=0)
    received_date: datetime | None = None
    expiry_date: datetime | None = None
    entry_photos: list[str] = Field(default_factory=list)
    notes: str | None = None


class ProductUpdate(BaseModel):
    name: str | None = None
    sku: str | None = None
    category: str | None = None
    unit_price: float | None = Field(None, ge=0)
    unit_type: str | None = None
    description: str | None = None
    reorder_level: int | None = Field(None, ge=0)
    barcode: str | None = None


@dataclass
class CreatedProduct:
    product: Product
    stock: Stock | None


def _missing_fields(payload: ProductCreate) -> list[str]:
    missing = []
    for name in REQUIRED_FIELDS:
        value = getattr(payload, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


async def ensure_sku_available(
    db: AsyncSession, company_id: uuid.UUID, sku: str, exclude_product_id: uuid.UUID | None = None
) -> None:
    query = select(Product.product_id).where(Product.company_id == company_id, Product.sku == sku)
    if exclude_product_id is not None:
        query = query.where(Product.product_id != exclude_product_id)
    if (await db.execute(query)).first() is not None:
        raise ValidationFailed("SKU already exists")


async def load_category(db: AsyncSession, company_id: uuid.UUID, category_id) -> ProductCategory:
    cid = parse_uuid(category_id, "Invalid category")
    result = await db.execute(
        select(ProductCategory).where(
            ProductCategory.category_id == cid,
            ProductCategory.company_id == company_id,
        )
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise ValidationFailed("Invalid category")
    return category


async def get_company_product(db: AsyncSession, company_id: uuid.UUID, product_id) -> Product:
    pid = parse_uuid(product_id, "Product not found", NotFound)
    result = await db.execute(select(Product).where(Product.product_id == pid, Product.company_id == company_id))
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFound("Product not found")
    return product


async def list_products(
    db: AsyncSession,
    company_id: uuid.UUID,
    category_id: uuid.UUID | None = None,
    search: str | None = None,
    include_inactive: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> list[tuple[Product, int]]:
    """Products with their total available quantity."""
    totals = (
        select(Stock.product_id, func.sum(Stock.quantity_available).label("total"))
        .where(Stock.company_id == company_id)
        .group_by(Stock.product_id)
        .subquery()
    )
    query = (
        select(Product, func.coalesce(totals.c.total, 0))
        .outerjoin(totals, totals.c.product_id == Product.product_id)
        .where(Product.company_id == company_id)
    )
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    if category_id:
        query = query.where(Product.category_id == category_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    query = query.order_by(Product.name).offset(skip).limit(limit)
    result = await db.execute(query)
    return [(product, int(total)) for product, total in result.all()]


async def create_product_with_stock(db: AsyncSession, user: User, payload: ProductWithStockCreate) -> CreatedProduct:
    """
    Create a product and, when has_stock is set, its first batch in one transaction.

    The batch is seeded directly (age 0, healthy) and mirrored by an "in"
    movement.
    """
    missing = _missing_fields(payload)
    if missing:
        raise ValidationFailed("Missing required fields", details=missing)
    if payload.has_stock and (not payload.warehouse_id or not payload.quantity):
        raise ValidationFailed("Warehouse and quantity are required when adding stock")

    sku = payload.sku.strip()
    async with atomic(db, "Failed to create product"):
        await ensure_sku_available(db, user.company_id, sku)
        category = await load_category(db, user.company_id, payload.category)
        warehouse = None
        if payload.has_stock:
            allowed = await accessible_warehouse_ids(db, user)
            warehouse = await get_company_warehouse(
                db, user.company_id, payload.warehouse_id, allowed, "Invalid warehouse", ValidationFailed
            )

        product = Product(
            company_id=user.company_id,
            category_id=category.category_id,
            sku=sku,
            name=payload.name.strip(),
            description=payload.description,
            unit_price=payload.unit_price,
            unit_type=payload.unit_type.strip(),
            reorder_level=payload.reorder_level,
            barcode=payload.barcode,
            created_by=user.user_id,
        )
        db.add(product)
        await db.flush()

        stock = None
        if warehouse is not None:
            stock = new_batch(
                product,
                warehouse,
                payload.quantity,
                user.user_id,
                entry_date=payload.received_date,
                expiry_date=payload.expiry_date,
                entry_photos=payload.entry_photos,
                notes=payload.notes,
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
                    reason="initial_stock",
                    performed_by=user.user_id,
                )
            )

        notify(
            db,
            user.company_id,
            "product_added",
            "Product added",
            f"{product.name} ({product.sku}) was added to the catalog",
            priority="low",
            link=f"/products/{product.product_id}",
            metadata={"product_id": str(product.product_id)},
        )

    logger.info(
        "product.created",
        sku=product.sku,
        company_id=str(user.company_id),
        with_stock=stock is not None,
    )
    return CreatedProduct(product=product, stock=stock)


async def create_product(db: AsyncSession, user: User, payload: ProductCreate) -> Product:
    created = await create_product_with_stock(db, user, ProductWithStockCreate(**payload.model_dump()))
    return created.product


async def update_product(db: AsyncSession, user: User, product: Product, payload: ProductUpdate) -> Product:
    update_data = payload.model_dump(exclude_unset=True)
    async with atomic(db, "Failed to update product"):
        if update_data.get("sku") and update_data["sku"] != product.sku:
            update_data["sku"] = update_data["sku"].strip()
            await ensure_sku_available(db, user.company_id, update_data["sku"], exclude_product_id=product.product_id)
        category_ref = update_data.pop("category", None)
        if category_ref:
            product.category_id = (await load_category(db, user.company_id, category_ref)).category_id
        for key, value in update_data.items():
            if value is not None:
                setattr(product, key, value)
        notify(
            db,
            user.company_id,
            "product_updated",
            "Product updated",
            f"{product.name} ({product.sku}) was updated",
            priority="low",
            link=f"/products/{product.product_id}",
        )
    return product


async def archive_product(db: AsyncSession, product: Product) -> Product:
    async with atomic(db, "Failed to archive product"):
        product.is_active = False
    logger.info("product.archived", sku=product.sku)
    return product
