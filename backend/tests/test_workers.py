import asyncio
from datetime import datetime, timedelta
from types import SimpleNamespace

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from db.session import Base
from workers.aging import update_inventory_aging
from workers.maintenance import cleanup_notifications, expire_invitations


def _file_database(tmp_path, monkeypatch, name):
    db_path = tmp_path / name
    db_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(db_url, echo=False, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("core.config.get_settings", lambda: SimpleNamespace(database_url=db_url))
    return engine, session_factory


def test_update_inventory_aging_task_marks_dead_batches(tmp_path, monkeypatch):
    from conftest import seed_batch, seed_tenant
    from db.models import Alert

    engine, session_factory = _file_database(tmp_path, monkeypatch, "aging.db")

    async def _seed():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as db:
            tenant = await seed_tenant(db)
            await seed_batch(db, tenant, sku="OLD-1", age_days=120)
            await seed_batch(db, tenant, sku="NEW-1", age_days=1)

    asyncio.run(_seed())

    result = update_inventory_aging.run()
    assert result["status"] == "success"
    assert result["processed"] == 2
    assert result["dead"] == 1
    assert result["alerts_created"] == 1

    async def _count_alerts():
        async with session_factory() as db:
            return (await db.execute(select(func.count()).select_from(Alert))).scalar()

    assert asyncio.run(_count_alerts()) == 1
    asyncio.run(engine.dispose())


def test_expire_invitations_task(tmp_path, monkeypatch):
    from conftest import seed_tenant
    from db.models import Invitation

    engine, session_factory = _file_database(tmp_path, monkeypatch, "invites.db")

    async def _seed():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as db:
            tenant = await seed_tenant(db)
            now = datetime.utcnow()
            for token, expires_at in (("stale", now - timedelta(hours=1)), ("fresh", now + timedelta(days=2))):
                db.add(
                    Invitation(
                        company_id=tenant["company_id"],
                        email=f"{token}@example.test",
                        name=token,
                        role="warehouse_manager",
                        token=token,
                        expires_at=expires_at,
                        invited_by=tenant["admin_id"],
                    )
                )
            await db.commit()

    asyncio.run(_seed())

    result = expire_invitations.run()
    assert result == {"status": "success", "expired": 1}

    async def _statuses():
        async with session_factory() as db:
            return dict((await db.execute(select(Invitation.token, Invitation.status))).all())

    assert asyncio.run(_statuses()) == {"stale": "expired", "fresh": "pending"}
    asyncio.run(engine.dispose())


def test_cleanup_notifications_task_only_removes_old_read(tmp_path, monkeypatch):
    from conftest import seed_tenant
    from db.models import Notification

    engine, session_factory = _file_database(tmp_path, monkeypatch, "notifications.db")

    async def _seed():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as db:
            tenant = await seed_tenant(db)
            old = datetime.utcnow() - timedelta(days=45)
            rows = [("old-read", "read", old), ("old-unread", "unread", old), ("new-read", "read", datetime.utcnow())]
            for title, status, created_at in rows:
                db.add(
                    Notification(
                        company_id=tenant["company_id"],
                        notification_type="stock_added",
                        title=title,
                        message=title,
                        status=status,
                        created_at=created_at,
                    )
                )
            await db.commit()

    asyncio.run(_seed())

    result = cleanup_notifications.run(older_than_days=30)
    assert result == {"status": "success", "deleted": 1}

    async def _titles():
        async with session_factory() as db:
            return set((await db.execute(select(Notification.title))).scalars().all())

    assert asyncio.run(_titles()) == {"old-unread", "new-read"}
    asyncio.run(engine.dispose())
