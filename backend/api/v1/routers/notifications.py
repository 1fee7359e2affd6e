"""
Notifications Router: In-app notification inbox.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_company_account, get_db
from api.v1.schemas import NotificationResponse
from core.errors import NotFound, parse_uuid
from db.models import User
from db.transactions import atomic
from notifications import service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


async def _load(db: AsyncSession, user: User, notification_id: str):
    nid = parse_uuid(notification_id, "Notification not found", NotFound)
    notification = await service.get_visible(db, user.company_id, user.user_id, nid)
    if notification is None:
        raise NotFound("Notification not found")
    return notification


@router.get("")
async def list_notifications(
    status: str | None = None,
    priority: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    items = await service.list_notifications(db, user.company_id, user.user_id, status, priority, limit, skip)
    unread = await service.unread_count(db, user.company_id, user.user_id)
    return {
        "success": True,
        "notifications": [NotificationResponse.model_validate(n) for n in items],
        "unread_count": unread,
    }


@router.get("/unread-count")
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    return {"success": True, "unread_count": await service.unread_count(db, user.company_id, user.user_id)}


@router.patch("/read-all")
async def read_all(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    async with atomic(db, "Failed to update notifications"):
        updated = await service.mark_all_read(db, user.company_id, user.user_id)
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/read")
async def read_one(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    notification = await _load(db, user, notification_id)
    async with atomic(db, "Failed to update notification"):
        service.mark_read(notification)
    return {"success": True, "notification": NotificationResponse.model_validate(notification)}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    notification = await _load(db, user, notification_id)
    async with atomic(db, "Failed to delete notification"):
        await db.delete(notification)
    return {"success": True, "message": "Notification deleted"}
