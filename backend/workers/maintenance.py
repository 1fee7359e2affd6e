"""Housekeeping tasks: invitation expiry and notification retention."""

from __future__ import annotations

import asyncio

import structlog

from workers.celery_app import celery_app

logger = structlog.get_logger()


def _run_with_session(fn, *args):
    from core.config import get_settings
    from db.session import make_engine, make_sessionmaker

    async def _run():
        engine = make_engine(get_settings().database_url, pooled=False)
        try:
            async with make_sessionmaker(engine)() as db:
                return await fn(db, *args)
        finally:
            await engine.dispose()

    return asyncio.run(_run())


@celery_app.task(name="workers.maintenance.expire_invitations", bind=True, max_retries=2, default_retry_delay=60)
def expire_invitations(self):
    from accounts.invitations import expire_stale_invitations

    try:
        expired = _run_with_session(expire_stale_invitations)
    except Exception as exc:  # noqa: BLE001
        logger.error("maintenance.expire_invitations_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
    return {"status": "success", "expired": expired}


@celery_app.task(name="workers.maintenance.cleanup_notifications", bind=True, max_retries=2, default_retry_delay=60)
def cleanup_notifications(self, older_than_days: int = 30):
    from notifications.service import cleanup_read_notifications

    async def _cleanup(db):
        deleted = await cleanup_read_notifications(db, older_than_days)
        await db.commit()
        return deleted

    try:
        deleted = _run_with_session(_cleanup)
    except Exception as exc:  # noqa: BLE001
        logger.error("maintenance.cleanup_notifications_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
    return {"status": "success", "deleted": deleted}
