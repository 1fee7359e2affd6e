"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "insyd_tracker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["workers.aging", "workers.maintenance"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.aging.*": {"queue": "inventory"},
        "workers.maintenance.*": {"queue": "maintenance"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    beat_schedule={
        "update-aging-daily": {
            "task": "workers.aging.update_inventory_aging",
            "schedule": crontab(hour=6, minute=0),
            "options": {"queue": "inventory"},
        },
        "expire-invitations-hourly": {
            "task": "workers.maintenance.expire_invitations",
            "schedule": crontab(minute=15),
            "options": {"queue": "maintenance"},
        },
        "cleanup-notifications-daily": {
            "task": "workers.maintenance.cleanup_notifications",
            "schedule": crontab(hour=3, minute=30),
            "kwargs": {"older_than_days": 30},
            "options": {"queue": "maintenance"},
        },
    },
)
