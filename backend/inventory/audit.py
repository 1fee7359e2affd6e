"""Append-only audit trail helpers."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import AuditLog


def record_audit(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    company_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuditLog:
    """Stage an audit entry in the caller's transaction."""
    entry = AuditLog(
        company_id=company_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details or {},
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
    )
    db.add(entry)
    return entry
