"""
Warehouses Router: Warehouse CRUD with utilization metrics.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_company_account, get_db, require_permission
from api.v1.schemas import WarehouseResponse
from db.models import User
from inventory.warehouses import (
    WarehouseCreate,
    WarehouseUpdate,
    accessible_warehouse_ids,
    archive_warehouse,
    create_warehouse,
    get_company_warehouse,
    list_warehouses,
    update_warehouse,
    warehouse_metrics,
)

router = APIRouter(prefix="/api/v1/warehouses", tags=["warehouses"])


def _with_metrics(warehouse, metrics) -> dict:
    body = WarehouseResponse.model_validate(warehouse).model_dump(mode="json")
    body["metrics"] = metrics.to_dict() if metrics else None
    return body


@router.get("")
async def get_warehouses(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """List active warehouses visible to the caller, with stock metrics."""
    warehouses = await list_warehouses(db, user)
    metrics = await warehouse_metrics(db, warehouses)
    return {"success": True, "warehouses": [_with_metrics(w, metrics.get(w.warehouse_id)) for w in warehouses]}


@router.post("", status_code=201)
async def post_warehouse(
    body: WarehouseCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("warehouses:manage")),
):
    warehouse = await create_warehouse(db, user, body)
    return {"success": True, "message": "Warehouse created", "warehouse": WarehouseResponse.model_validate(warehouse)}


@router.get("/{warehouse_id}")
async def get_warehouse(
    warehouse_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    allowed = await accessible_warehouse_ids(db, user)
    warehouse = await get_company_warehouse(db, user.company_id, warehouse_id, allowed)
    metrics = await warehouse_metrics(db, [warehouse])
    return {"success": True, "warehouse": _with_metrics(warehouse, metrics.get(warehouse.warehouse_id))}


@router.patch("/{warehouse_id}")
async def patch_warehouse(
    warehouse_id: str,
    body: WarehouseUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("warehouses:manage")),
):
    warehouse = await get_company_warehouse(db, user.company_id, warehouse_id)
    warehouse = await update_warehouse(db, user, warehouse, body)
    return {"success": True, "warehouse": WarehouseResponse.model_validate(warehouse)}


@router.delete("/{warehouse_id}")
async def delete_warehouse(
    warehouse_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("warehouses:manage")),
):
    """Archive a warehouse. Rejected while it still holds stock."""
    warehouse = await get_company_warehouse(db, user.company_id, warehouse_id)
    await archive_warehouse(db, user, warehouse)
    return {"success": True, "message": "Warehouse archived"}
