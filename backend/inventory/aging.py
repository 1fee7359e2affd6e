"""
Inventory aging.

Classifies each batch by days since entry against its company's thresholds
and raises alerts when a batch turns at_risk or dead. Run daily by Celery
beat and on demand through the cron endpoint.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Alert, Company, Product, Stock, Warehouse, compute_age_in_days
from notifications.service import notify

logger = structlog.get_logger()

DEFAULT_AT_RISK_DAYS = 60
DEFAULT_DEAD_DAYS = 90
ACTIVE_ALERT_STATUSES = ("open", "acknowledged")


@dataclass
class AgingStats:
    processed: int = 0
    updated: int = 0
    alerts_created: int = 0
    healthy: int = 0
    at_risk: int = 0
    dead: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def classify_age(age_in_days: int, at_risk_days: int = DEFAULT_AT_RISK_DAYS, dead_days: int = DEFAULT_DEAD_DAYS) -> str:
    if age_in_days >= dead_days:
        return "dead"
    if age_in_days >= at_risk_days:
        return "at_risk"
    return "healthy"


def build_aging_alert(stock: Stock, product: Product, warehouse: Warehouse, status: str) -> Alert:
    value = round(stock.quantity_available * (product.unit_price or 0), 2)
    if status == "dead":
        alert_type, severity = "dead_inventory", "critical"
        title = f"Dead stock: {product.name}"
        recommendation = "Liquidate or discount this batch, or transfer it to a faster-moving warehouse"
    else:
        alert_type, severity = "aging_inventory", "warning"
        title = f"Aging stock: {product.name}"
        recommendation = "Prioritise this batch for dispatch or run a promotion before it goes dead"

    return Alert(
        company_id=stock.company_id,
        stock_id=stock.stock_id,
        product_id=stock.product_id,
        warehouse_id=stock.warehouse_id,
        alert_type=alert_type,
        severity=severity,
        title=title,
        message=(
            f"Batch {stock.batch_id} at {warehouse.name} has been in stock for {stock.age_in_days} days "
            f"({stock.quantity_available} {product.unit_type}, value {value})"
        ),
        recommendation=recommendation,
        alert_metadata={
            "age_in_days": stock.age_in_days,
            "quantity": stock.quantity_available,
            "value": value,
        },
    )


async def _has_active_alert(db: AsyncSession, stock_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(Alert.alert_id).where(Alert.stock_id == stock_id, Alert.status.in_(ACTIVE_ALERT_STATUSES)).limit(1)
    )
    return result.first() is not None


async def run_aging_update(db: AsyncSession, company_id: uuid.UUID | None = None) -> AgingStats:
    """
    Recompute age and status for every batch with stock on hand.

    Returns counts; commits once at the end. A new alert is raised only on a
    transition into at_risk or dead and only when the batch has no open or
    acknowledged alert already.
    """
    now = datetime.utcnow()
    stats = AgingStats()

    query = (
        select(Stock, Product, Warehouse, Company)
        .join(Product, Product.product_id == Stock.product_id)
        .join(Warehouse, Warehouse.warehouse_id == Stock.warehouse_id)
        .join(Company, Company.company_id == Stock.company_id)
        .where(Stock.quantity_available > 0)
    )
    if company_id is not None:
        query = query.where(Stock.company_id == company_id)
    rows = (await db.execute(query)).all()

    try:
        for stock, product, warehouse, company in rows:
            stats.processed += 1
            age = compute_age_in_days(stock.entry_date, now)
            status = classify_age(age, company.at_risk_days, company.dead_days)
            setattr(stats, status, getattr(stats, status) + 1)

            previous = stock.status
            if age == stock.age_in_days and status == previous:
                continue
            stock.age_in_days = age
            stock.status = status
            stats.updated += 1

            if status == previous or status == "healthy":
                continue
            if await _has_active_alert(db, stock.stock_id):
                continue
            db.add(build_aging_alert(stock, product, warehouse, status))
            stats.alerts_created += 1
            if status == "dead":
                notify(
                    db,
                    stock.company_id,
                    "stock_dead",
                    f"Dead stock: {product.name}",
                    f"Batch {stock.batch_id} at {warehouse.name} is {age} days old",
                    priority="critical",
                    link="/alerts",
                    metadata={"stock_id": str(stock.stock_id)},
                )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("aging.update_complete", **stats.to_dict())
    return stats
