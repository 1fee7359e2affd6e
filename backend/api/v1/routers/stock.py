"""
Stock Router: Batches, entries, exits, transfers, damage.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_company_account, get_db
from api.v1.schemas import AlertResponse, MovementResponse, StockResponse
from db.models import User
from inventory.stock import (
    DamageReport,
    StockEntry,
    StockExit,
    StockTransfer,
    list_movements,
    list_stock,
    record_entry,
    record_exit,
    report_damage,
    transfer_stock,
)

router = APIRouter(prefix="/api/v1/stock", tags=["stock"])


@router.get("")
async def get_stock(
    warehouse_id: UUID | None = None,
    product_id: UUID | None = None,
    status: str | None = None,
    include_empty: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """List batches visible to the caller, oldest first."""
    rows = await list_stock(db, user, warehouse_id, product_id, status, include_empty, skip, limit)
    return {
        "success": True,
        "stock": [
            {
                **StockResponse.model_validate(stock).model_dump(mode="json"),
                "product": {"id": str(product.product_id), "name": product.name, "sku": product.sku},
                "warehouse": {"id": str(wh.warehouse_id), "name": wh.name, "code": wh.code},
                "value": round(stock.quantity_available * product.unit_price, 2),
            }
            for stock, product, wh in rows
        ],
    }


@router.get("/movements")
async def get_movements(
    movement_type: str | None = None,
    product_id: UUID | None = None,
    warehouse_id: UUID | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    movements = await list_movements(db, user, movement_type, product_id, warehouse_id, skip, limit)
    return {"success": True, "movements": [MovementResponse.model_validate(m) for m in movements]}


@router.post("/entry", status_code=201)
async def stock_entry(
    body: StockEntry,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    stock = await record_entry(db, user, body)
    return {"success": True, "message": "Stock entry recorded", "stock": StockResponse.model_validate(stock)}


@router.post("/exit")
async def stock_exit(
    body: StockExit,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    stock = await record_exit(db, user, body)
    return {"success": True, "message": "Stock exit recorded", "stock": StockResponse.model_validate(stock)}


@router.post("/transfer")
async def stock_transfer(
    body: StockTransfer,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    source, destination = await transfer_stock(db, user, body)
    return {
        "success": True,
        "message": "Stock transferred successfully",
        "source": StockResponse.model_validate(source),
        "destination": StockResponse.model_validate(destination),
    }


@router.post("/{stock_id}/damage")
async def stock_damage(
    stock_id: str,
    body: DamageReport,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    stock, alert = await report_damage(db, user, stock_id, body)
    return {
        "success": True,
        "message": "Damage reported",
        "stock": StockResponse.model_validate(stock),
        "alert": AlertResponse.model_validate(alert),
    }
