"""
Cron Router: Externally triggered batch jobs, guarded by CRON_SECRET.
"""

import secrets

import structlog
from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, security
from core.config import get_settings
from core.errors import Unauthenticated
from inventory.aging import run_aging_update

router = APIRouter(prefix="/api/v1/cron", tags=["cron"])
logger = structlog.get_logger()


async def verify_cron_secret(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> None:
    expected = get_settings().cron_secret
    if not expected or credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise Unauthenticated("Unauthorized")


@router.post("/update-aging", dependencies=[Depends(verify_cron_secret)])
async def update_aging(db: AsyncSession = Depends(get_db)):
    """Recompute batch ages and statuses and raise aging alerts."""
    stats = await run_aging_update(db)
    logger.info("cron.update_aging", **stats.to_dict())
    return {"success": True, "stats": stats.to_dict()}
