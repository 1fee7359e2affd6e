"""
Products Router: Product catalog and product-with-stock creation.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_company_account, get_db
from api.v1.schemas import CategoryResponse, ProductResponse, StockResponse
from db.models import ProductCategory, Stock, User, Warehouse
from inventory.products import (
    ProductCreate,
    ProductUpdate,
    ProductWithStockCreate,
    archive_product,
    create_product,
    create_product_with_stock,
    get_company_product,
    list_products,
    update_product,
)
from inventory.warehouses import accessible_warehouse_ids

router = APIRouter(prefix="/api/v1/products", tags=["products"])


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("")
async def get_products(
    category_id: UUID | None = None,
    search: str | None = None,
    include_inactive: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """List products with total quantity on hand."""
    rows = await list_products(db, user.company_id, category_id, search, include_inactive, skip, limit)
    return {
        "success": True,
        "products": [
            {**ProductResponse.model_validate(product).model_dump(mode="json"), "total_quantity": total}
            for product, total in rows
        ],
    }


@router.post("", status_code=201)
async def post_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    product = await create_product(db, user, body)
    return {"success": True, "message": "Product created successfully", "product": ProductResponse.model_validate(product)}


@router.post("/create-with-stock", status_code=201)
async def post_product_with_stock(
    body: ProductWithStockCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """Create a product and optionally its first stock batch atomically."""
    created = await create_product_with_stock(db, user, body)
    product, stock = created.product, created.stock
    return {
        "success": True,
        "message": "Product created with stock" if stock else "Product created successfully",
        "product": {"id": str(product.product_id), "name": product.name, "sku": product.sku},
        "stock": (
            {"id": str(stock.stock_id), "batch_id": stock.batch_id, "quantity": stock.quantity_available}
            if stock
            else None
        ),
    }


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """Product details with its category and batches."""
    product = await get_company_product(db, user.company_id, product_id)
    category = await db.get(ProductCategory, product.category_id)

    query = (
        select(Stock, Warehouse)
        .join(Warehouse, Warehouse.warehouse_id == Stock.warehouse_id)
        .where(Stock.product_id == product.product_id, Stock.quantity_available > 0)
    )
    allowed = await accessible_warehouse_ids(db, user)
    if allowed is not None:
        query = query.where(Stock.warehouse_id.in_(allowed))
    rows = (await db.execute(query.order_by(Stock.entry_date))).all()

    return {
        "success": True,
        "product": ProductResponse.model_validate(product),
        "category": CategoryResponse.model_validate(category) if category else None,
        "total_quantity": sum(stock.quantity_available for stock, _ in rows),
        "stock": [
            {
                **StockResponse.model_validate(stock).model_dump(mode="json"),
                "warehouse": {"id": str(wh.warehouse_id), "name": wh.name, "code": wh.code},
            }
            for stock, wh in rows
        ],
    }


@router.patch("/{product_id}")
async def patch_product(
    product_id: str,
    body: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    product = await get_company_product(db, user.company_id, product_id)
    product = await update_product(db, user, product, body)
    return {"success": True, "product": ProductResponse.model_validate(product)}


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """Archive a product; batches and movements are kept."""
    product = await get_company_product(db, user.company_id, product_id)
    await archive_product(db, product)
    return {"success": True, "message": "Product archived"}
