"""
Alerts Router: Alert listing and lifecycle actions.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.lifecycle import PAST_TENSE, get_company_alert, transition_alert
from api.deps import get_company_account, get_db
from api.v1.schemas import AlertResponse
from db.models import ALERT_SEVERITIES, Alert, User
from inventory.warehouses import accessible_warehouse_ids

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(
    status: str = "open",
    type: str | None = None,
    severity: str | None = None,
    warehouse_id: UUID | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """List alerts grouped by severity. status=all disables the status filter."""
    query = select(Alert).where(Alert.company_id == user.company_id)
    if status != "all":
        query = query.where(Alert.status == status)
    if type:
        query = query.where(Alert.alert_type == type)
    if severity:
        query = query.where(Alert.severity == severity)
    if warehouse_id:
        query = query.where(Alert.warehouse_id == warehouse_id)
    allowed = await accessible_warehouse_ids(db, user)
    if allowed is not None:
        query = query.where(Alert.warehouse_id.in_(allowed))

    result = await db.execute(query.order_by(Alert.created_at.desc()))
    alerts = [AlertResponse.model_validate(a) for a in result.scalars().all()]
    grouped = {level: [a for a in alerts if a.severity == level] for level in ALERT_SEVERITIES}
    return {
        "success": True,
        "alerts": alerts,
        "grouped": grouped,
        "counts": {**{level: len(items) for level, items in grouped.items()}, "total": len(alerts)},
    }


@router.get("/{alert_id}")
async def get_alert(
    alert_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    alert = await get_company_alert(db, user.company_id, alert_id, await accessible_warehouse_ids(db, user))
    return {"success": True, "alert": AlertResponse.model_validate(alert)}


@router.patch("/{alert_id}")
async def update_alert(
    alert_id: str,
    body: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    """Apply acknowledge, resolve (with optional notes) or dismiss."""
    alert, action = await transition_alert(db, user, alert_id, body)
    return {
        "success": True,
        "message": f"Alert {PAST_TENSE[action]} successfully",
        "alert": AlertResponse.model_validate(alert),
    }
