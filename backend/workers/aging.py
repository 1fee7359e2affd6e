"""Daily inventory aging task."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone

import structlog

from workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(
    name="workers.aging.update_inventory_aging",
    bind=True,
    max_retries=2,
    default_retry_delay=300,
    acks_late=True,
)
def update_inventory_aging(self, company_id: str | None = None):
    """
    Recompute age and status for every batch on hand and raise aging alerts.
    """
    from core.config import get_settings
    from db.session import make_engine, make_sessionmaker
    from inventory.aging import run_aging_update

    run_id = self.request.id or "manual"

    async def _run():
        engine = make_engine(get_settings().database_url, pooled=False)
        try:
            async with make_sessionmaker(engine)() as db:
                stats = await run_aging_update(db, uuid.UUID(company_id) if company_id else None)
            summary = {
                "status": "success",
                **stats.to_dict(),
                "triggered_at": datetime.now(timezone.utc).isoformat(),
                "run_id": run_id,
            }
            logger.info("aging.task_complete", **summary)
            return summary
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_run())
    except Exception as exc:  # noqa: BLE001
        logger.error("aging.task_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
