"""
Reports Router: Inventory aging report.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_company_account, get_db
from db.models import User
from inventory.reports import aging_report

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/aging")
async def get_aging_report(
    warehouse_id: UUID | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """Value and quantity by aging status, plus per-batch recommendations."""
    report = await aging_report(db, user, warehouse_id)
    return {"success": True, **report}
