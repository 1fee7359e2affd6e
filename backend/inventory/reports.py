"""
Aging report and dashboard aggregates.
"""

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import STOCK_STATUSES, Alert, Company, Product, Stock, StockMovement, User, Warehouse
from inventory.warehouses import accessible_warehouse_ids

HIGH_VALUE_THRESHOLD = 10_000
URGENT_AT_RISK_MARGIN_DAYS = 15


def recommend(status: str, age_in_days: int, value: float, at_risk_days: int = 60) -> str:
    if status == "dead":
        if value >= HIGH_VALUE_THRESHOLD:
            return "Liquidate urgently: high-value dead stock"
        return "Clear through discounts or bundle offers"
    if status == "at_risk":
        if age_in_days >= at_risk_days + URGENT_AT_RISK_MARGIN_DAYS:
            return "Run a promotion within two weeks before the batch goes dead"
        return "Prioritise this batch for dispatch"
    return "No action needed"


async def aging_report(db: AsyncSession, user: User, warehouse_id: uuid.UUID | None = None) -> dict:
    company = await db.get(Company, user.company_id)
    query = (
        select(Stock, Product, Warehouse)
        .join(Product, Product.product_id == Stock.product_id)
        .join(Warehouse, Warehouse.warehouse_id == Stock.warehouse_id)
        .where(Stock.company_id == user.company_id, Stock.quantity_available > 0)
    )
    allowed = await accessible_warehouse_ids(db, user)
    if allowed is not None:
        query = query.where(Stock.warehouse_id.in_(allowed))
    if warehouse_id:
        query = query.where(Stock.warehouse_id == warehouse_id)
    rows = (await db.execute(query.order_by(Stock.entry_date.asc()))).all()

    summary = {status: {"count": 0, "quantity": 0, "value": 0.0} for status in STOCK_STATUSES}
    batches = []
    for stock, product, warehouse in rows:
        value = round(stock.quantity_available * product.unit_price, 2)
        bucket = summary[stock.status]
        bucket["count"] += 1
        bucket["quantity"] += stock.quantity_available
        bucket["value"] += value
        batches.append(
            {
                "stock_id": str(stock.stock_id),
                "batch_id": stock.batch_id,
                "product": {"id": str(product.product_id), "name": product.name, "sku": product.sku},
                "warehouse": {"id": str(warehouse.warehouse_id), "name": warehouse.name, "code": warehouse.code},
                "quantity": stock.quantity_available,
                "value": value,
                "age_in_days": stock.age_in_days,
                "status": stock.status,
                "entry_date": stock.entry_date.isoformat(),
                "recommendation": recommend(stock.status, stock.age_in_days or 0, value, company.at_risk_days),
            }
        )

    total_value = sum(bucket["value"] for bucket in summary.values())
    for bucket in summary.values():
        bucket["value"] = round(bucket["value"], 2)
        bucket["percentage"] = round(bucket["value"] / total_value * 100, 1) if total_value else 0.0

    return {
        "summary": summary,
        "total_value": round(total_value, 2),
        "thresholds": {"at_risk_days": company.at_risk_days, "dead_days": company.dead_days},
        "batches": batches,
    }


async def dashboard_stats(db: AsyncSession, user: User, recent_limit: int = 10) -> dict:
    company_id = user.company_id
    allowed = await accessible_warehouse_ids(db, user)

    stock_query = (
        select(Stock.status, Stock.quantity_available, Product.unit_price)
        .join(Product, Product.product_id == Stock.product_id)
        .where(Stock.company_id == company_id, Stock.quantity_available > 0)
    )
    warehouse_query = select(func.count(Warehouse.warehouse_id)).where(
        Warehouse.company_id == company_id, Warehouse.is_active.is_(True)
    )
    alert_query = (
        select(Alert.severity, func.count(Alert.alert_id))
        .where(Alert.company_id == company_id, Alert.status == "open")
        .group_by(Alert.severity)
    )
    movement_query = select(StockMovement).where(StockMovement.company_id == company_id)
    if allowed is not None:
        stock_query = stock_query.where(Stock.warehouse_id.in_(allowed))
        warehouse_query = warehouse_query.where(Warehouse.warehouse_id.in_(allowed))
        alert_query = alert_query.where(Alert.warehouse_id.in_(allowed))
        movement_query = movement_query.where(
            StockMovement.from_warehouse_id.in_(allowed) | StockMovement.to_warehouse_id.in_(allowed)
        )

    batches = {status: 0 for status in STOCK_STATUSES}
    total_quantity = 0
    total_value = 0.0
    for status, quantity, unit_price in (await db.execute(stock_query)).all():
        batches[status] += 1
        total_quantity += quantity
        total_value += quantity * unit_price

    product_count = (
        await db.execute(
            select(func.count(Product.product_id)).where(Product.company_id == company_id, Product.is_active.is_(True))
        )
    ).scalar() or 0
    warehouse_count = (await db.execute(warehouse_query)).scalar() or 0
    open_alerts = {"critical": 0, "warning": 0, "info": 0}
    for severity, count in (await db.execute(alert_query)).all():
        open_alerts[severity] = count

    recent = (
        await db.execute(movement_query.order_by(StockMovement.created_at.desc()).limit(recent_limit))
    ).scalars().all()

    return {
        "product_count": product_count,
        "warehouse_count": warehouse_count,
        "total_quantity": total_quantity,
        "total_value": round(total_value, 2),
        "batches_by_status": batches,
        "open_alerts": open_alerts,
        "open_alert_total": sum(open_alerts.values()),
        "recent_movements": [
            {
                "id": str(m.movement_id),
                "type": m.movement_type,
                "quantity": m.quantity,
                "product_id": str(m.product_id),
                "reason": m.reason,
                "created_at": m.created_at.isoformat(),
            }
            for m in recent
        ],
    }
