"""
In-app notifications.

Notifications addressed to user_id=None are company-wide and visible to
every member of the company.
"""

import uuid
from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Notification

logger = structlog.get_logger()

READ_RETENTION_DAYS = 30


def notify(
    db: AsyncSession,
    company_id: uuid.UUID,
    notification_type: str,
    title: str,
    message: str,
    priority: str = "medium",
    user_id: uuid.UUID | None = None,
    link: str | None = None,
    metadata: dict | None = None,
) -> Notification:
    """Stage a notification in the caller's transaction."""
    notification = Notification(
        company_id=company_id,
        user_id=user_id,
        notification_type=notification_type,
        priority=priority,
        title=title,
        message=message,
        link=link,
        notification_metadata=metadata or {},
    )
    db.add(notification)
    return notification


def _visible_to(company_id: uuid.UUID, user_id: uuid.UUID):
    return (
        Notification.company_id == company_id,
        or_(Notification.user_id == user_id, Notification.user_id.is_(None)),
    )


async def list_notifications(
    db: AsyncSession,
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    status: str | None = None,
    priority: str | None = None,
    limit: int = 50,
    skip: int = 0,
) -> list[Notification]:
    query = select(Notification).where(*_visible_to(company_id, user_id))
    if status:
        query = query.where(Notification.status == status)
    if priority:
        query = query.where(Notification.priority == priority)
    query = query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(Notification.notification_id)).where(
            *_visible_to(company_id, user_id), Notification.status == "unread"
        )
    )
    return result.scalar() or 0


async def get_visible(
    db: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID, notification_id: uuid.UUID
) -> Notification | None:
    result = await db.execute(
        select(Notification).where(
            Notification.notification_id == notification_id,
            *_visible_to(company_id, user_id),
        )
    )
    return result.scalar_one_or_none()


def mark_read(notification: Notification) -> Notification:
    if notification.status != "read":
        notification.status = "read"
        notification.read_at = datetime.utcnow()
    return notification


async def mark_all_read(db: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(*_visible_to(company_id, user_id), Notification.status == "unread")
        .values(status="read", read_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def cleanup_read_notifications(
    db: AsyncSession, older_than_days: int = READ_RETENTION_DAYS, now: datetime | None = None
) -> int:
    """Delete read notifications older than the retention window. Caller commits."""
    cutoff = (now or datetime.utcnow()) - timedelta(days=older_than_days)
    result = await db.execute(
        delete(Notification)
        .where(Notification.status == "read", Notification.created_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    deleted = result.rowcount or 0
    logger.info("notifications.cleanup", deleted=deleted, cutoff=cutoff.isoformat())
    return deleted
