"""
Alert lifecycle.

    open ──acknowledge──▶ acknowledged ──resolve──▶ resolved
      │                        │
      └────────dismiss─────────┴──────────────────▶ dismissed

Each action is its own request model, discriminated by the "action" field,
so a resolve carries notes and the others carry nothing. Transitions are
applied as requested: re-acknowledging or re-resolving is not rejected.
"""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFound, ValidationFailed, parse_uuid
from db.models import Alert, User
from db.transactions import atomic
from inventory.warehouses import accessible_warehouse_ids

logger = structlog.get_logger()

ALERT_ACTIONS = ("acknowledge", "resolve", "dismiss")
PAST_TENSE = {"acknowledge": "acknowledged", "resolve": "resolved", "dismiss": "dismissed"}


class AcknowledgeAlert(BaseModel):
    action: Literal["acknowledge"]


class ResolveAlert(BaseModel):
    action: Literal["resolve"]
    notes: str | None = None


class DismissAlert(BaseModel):
    action: Literal["dismiss"]


AlertAction = Annotated[Union[AcknowledgeAlert, ResolveAlert, DismissAlert], Field(discriminator="action")]

_action_adapter = TypeAdapter(AlertAction)


def parse_action(body: dict) -> AcknowledgeAlert | ResolveAlert | DismissAlert:
    """Validate a raw PATCH body into one of the action variants."""
    if not isinstance(body, dict) or body.get("action") not in ALERT_ACTIONS:
        raise ValidationFailed("Invalid action", details={"allowed": list(ALERT_ACTIONS)})
    try:
        return _action_adapter.validate_python(body)
    except ValidationError as exc:
        raise ValidationFailed("Invalid action", details=exc.errors(include_url=False)) from None


def apply_action(alert: Alert, action: AcknowledgeAlert | ResolveAlert | DismissAlert, actor_id: uuid.UUID) -> Alert:
    now = datetime.utcnow()
    if isinstance(action, AcknowledgeAlert):
        alert.status = "acknowledged"
        alert.acknowledged_by = actor_id
        alert.acknowledged_at = now
    elif isinstance(action, ResolveAlert):
        alert.status = "resolved"
        alert.resolved_by = actor_id
        alert.resolved_at = now
        if action.notes is not None:
            alert.resolution_notes = action.notes
    else:
        alert.status = "dismissed"
    return alert


async def get_company_alert(
    db: AsyncSession, company_id: uuid.UUID, alert_id, allowed_ids: list[uuid.UUID] | None = None
) -> Alert:
    """Load a company alert. Alerts outside allowed_ids read as missing."""
    aid = parse_uuid(alert_id, "Alert not found", NotFound)
    result = await db.execute(select(Alert).where(Alert.alert_id == aid, Alert.company_id == company_id))
    alert = result.scalar_one_or_none()
    if alert is None or (allowed_ids is not None and alert.warehouse_id not in allowed_ids):
        raise NotFound("Alert not found")
    return alert


async def transition_alert(db: AsyncSession, user: User, alert_id, body: dict) -> tuple[Alert, str]:
    """Apply the requested action and persist it. Returns (alert, action name)."""
    action = parse_action(body)
    allowed = await accessible_warehouse_ids(db, user)
    alert = await get_company_alert(db, user.company_id, alert_id, allowed)
    previous = alert.status
    async with atomic(db, "Failed to update alert"):
        apply_action(alert, action, user.user_id)
    logger.info(
        "alert.transition",
        alert_id=str(alert.alert_id),
        action=action.action,
        previous_status=previous,
        status=alert.status,
    )
    return alert, action.action
