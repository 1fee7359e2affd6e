"""
Dashboard Router: Headline inventory numbers.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_company_account, get_db
from db.models import User
from inventory.reports import dashboard_stats

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("/stats")
async def get_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    return {"success": True, "stats": await dashboard_stats(db, user)}
