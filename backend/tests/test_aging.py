"""
Tests for batch aging: classification thresholds, the update job, and the cron trigger.
"""

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import seed_batch
from core.config import Settings
from db.models import Alert, Company, Notification, Stock
from inventory.aging import classify_age, run_aging_update


async def _alerts(db) -> list[Alert]:
    return list((await db.execute(select(Alert).order_by(Alert.created_at))).scalars().all())


class TestClassifyAge:
    @pytest.mark.parametrize(
        "age, expected",
        [(0, "healthy"), (59, "healthy"), (60, "at_risk"), (89, "at_risk"), (90, "dead"), (400, "dead")],
    )
    def test_default_thresholds(self, age, expected):
        assert classify_age(age) == expected

    def test_company_thresholds(self):
        assert classify_age(30, at_risk_days=30, dead_days=45) == "at_risk"
        assert classify_age(45, at_risk_days=30, dead_days=45) == "dead"


@pytest.mark.asyncio
class TestAgingUpdate:
    async def test_statuses_follow_age(self, test_db, tenant):
        fresh = await seed_batch(test_db, tenant, sku="AG-1", age_days=10)
        aging = await seed_batch(test_db, tenant, sku="AG-2", age_days=65)
        dead = await seed_batch(test_db, tenant, sku="AG-3", age_days=95)

        stats = await run_aging_update(test_db)
        assert stats.processed == 3
        assert (stats.healthy, stats.at_risk, stats.dead) == (1, 1, 1)
        assert stats.alerts_created == 2

        statuses = dict(
            (await test_db.execute(select(Stock.stock_id, Stock.status))).all()
        )
        assert statuses[fresh["stock_id"]] == "healthy"
        assert statuses[aging["stock_id"]] == "at_risk"
        assert statuses[dead["stock_id"]] == "dead"

    async def test_alert_types_and_severity(self, test_db, tenant):
        await seed_batch(test_db, tenant, sku="AG-4", age_days=70, quantity=8, unit_price=5.0)
        await seed_batch(test_db, tenant, sku="AG-5", age_days=120)
        await run_aging_update(test_db)

        by_type = {a.alert_type: a for a in await _alerts(test_db)}
        assert by_type["aging_inventory"].severity == "warning"
        assert by_type["aging_inventory"].alert_metadata == {"age_in_days": 70, "quantity": 8, "value": 40.0}
        assert by_type["dead_inventory"].severity == "critical"

        kinds = (await test_db.execute(select(Notification.notification_type))).scalars().all()
        assert kinds == ["stock_dead"]

    async def test_rerun_does_not_duplicate_alerts(self, test_db, tenant):
        await seed_batch(test_db, tenant, sku="AG-6", age_days=75)
        first = await run_aging_update(test_db)
        second = await run_aging_update(test_db)
        assert first.alerts_created == 1
        assert second.alerts_created == 0
        assert second.updated == 0
        assert len(await _alerts(test_db)) == 1

    async def test_transition_with_active_alert_is_not_realerted(self, test_db, tenant):
        """A batch that goes at_risk -> dead while its aging alert is still open keeps one alert."""
        seeded = await seed_batch(test_db, tenant, sku="AG-7", age_days=75)
        await run_aging_update(test_db)

        stock = await test_db.get(Stock, seeded["stock_id"])
        stock.entry_date = datetime.utcnow() - timedelta(days=100)
        await test_db.commit()

        stats = await run_aging_update(test_db)
        assert stats.dead == 1
        assert stats.alerts_created == 0
        assert len(await _alerts(test_db)) == 1

    async def test_resolved_alert_allows_new_one(self, test_db, tenant):
        seeded = await seed_batch(test_db, tenant, sku="AG-8", age_days=75)
        await run_aging_update(test_db)
        (alert,) = await _alerts(test_db)
        alert.status = "resolved"
        stock = await test_db.get(Stock, seeded["stock_id"])
        stock.entry_date = datetime.utcnow() - timedelta(days=100)
        await test_db.commit()

        stats = await run_aging_update(test_db)
        assert stats.alerts_created == 1

    async def test_empty_batches_are_skipped(self, test_db, tenant):
        await seed_batch(test_db, tenant, sku="AG-9", age_days=200, quantity=0)
        stats = await run_aging_update(test_db)
        assert stats.processed == 0

    async def test_scoped_to_company(self, test_db, tenant, other_tenant):
        await seed_batch(test_db, tenant, sku="AG-10", age_days=100)
        await seed_batch(test_db, other_tenant, sku="AG-11", age_days=100)
        stats = await run_aging_update(test_db, company_id=tenant["company_id"])
        assert stats.processed == 1

    async def test_uses_company_thresholds(self, test_db, tenant):
        company = await test_db.get(Company, tenant["company_id"])
        company.at_risk_days = 20
        company.dead_days = 40
        await test_db.commit()
        await seed_batch(test_db, tenant, sku="AG-12", age_days=25)

        stats = await run_aging_update(test_db)
        assert stats.at_risk == 1


@pytest.mark.asyncio
class TestCronEndpoint:
    async def test_rejects_missing_secret(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr("api.v1.routers.cron.get_settings", lambda: Settings(cron_secret="cron-key"))
        resp = await client.post("/api/v1/cron/update-aging")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthorized"

    async def test_rejects_wrong_secret(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr("api.v1.routers.cron.get_settings", lambda: Settings(cron_secret="cron-key"))
        resp = await client.post("/api/v1/cron/update-aging", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    async def test_unconfigured_secret_rejects_everything(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr("api.v1.routers.cron.get_settings", lambda: Settings(cron_secret=""))
        resp = await client.post("/api/v1/cron/update-aging", headers={"Authorization": "Bearer "})
        assert resp.status_code == 401

    async def test_runs_update(self, client: AsyncClient, tenant, test_db, monkeypatch):
        monkeypatch.setattr("api.v1.routers.cron.get_settings", lambda: Settings(cron_secret="cron-key"))
        await seed_batch(test_db, tenant, sku="CR-1", age_days=91)
        resp = await client.post("/api/v1/cron/update-aging", headers={"Authorization": "Bearer cron-key"})
        assert resp.status_code == 200
        stats = resp.json()["stats"]
        assert stats["dead"] == 1
        assert stats["alerts_created"] == 1
        count = (await test_db.execute(select(func.count()).select_from(Alert))).scalar()
        assert count == 1
