"""
Invitation workflow.

An administrator issues a single-use token bound to an email, a role and
an explicit set of the company's warehouses. The token is valid for three
days. Emails are sent after commit and never affect the outcome.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import Forbidden, NotFound, ValidationFailed
from core.permissions import SUPER_ADMIN, WAREHOUSE_MANAGER
from core.security import generate_token, hash_password
from db.models import Company, Invitation, User, UserWarehouse, Warehouse
from db.transactions import atomic
from inventory.audit import record_audit
from notifications.email import send_invitation_accepted_email, send_invitation_email
from notifications.service import notify

logger = structlog.get_logger()

INVITATION_TTL = timedelta(days=3)
MIN_PASSWORD_LENGTH = 8


class InviteRequest(BaseModel):
    email: str | None = None
    name: str | None = None
    role: Literal["super_admin", "warehouse_manager"] | None = None
    warehouse_ids: list[str] = Field(default_factory=list)
    personal_message: str | None = None


class AcceptInviteRequest(BaseModel):
    token: str | None = None
    name: str | None = None
    password: str | None = None


@dataclass
class InvitationDetails:
    invitation: Invitation
    company_name: str
    inviter_name: str


async def _company_warehouse_ids(db: AsyncSession, company_id: uuid.UUID, raw_ids: list[str]) -> list[uuid.UUID]:
    """Validate that every id names an active warehouse of the company."""
    try:
        ids = list(dict.fromkeys(uuid.UUID(str(value)) for value in raw_ids))
    except ValueError:
        raise ValidationFailed("Invalid warehouse ids") from None
    if not ids:
        return []
    result = await db.execute(
        select(Warehouse.warehouse_id).where(
            Warehouse.warehouse_id.in_(ids),
            Warehouse.company_id == company_id,
            Warehouse.is_active.is_(True),
        )
    )
    found = {row.warehouse_id for row in result.all()}
    invalid = [str(wid) for wid in ids if wid not in found]
    if invalid:
        raise ValidationFailed("Invalid warehouse ids", details=invalid)
    return ids


async def create_invitation(db: AsyncSession, inviter: User, payload: InviteRequest) -> Invitation:
    if inviter.role != SUPER_ADMIN:
        raise Forbidden("Only administrators can invite users")
    if inviter.company_id is None:
        raise ValidationFailed("Please complete onboarding first")
    if not payload.email or not payload.name or not payload.role:
        raise ValidationFailed("Email, name and role are required")
    if payload.role == WAREHOUSE_MANAGER and not payload.warehouse_ids:
        raise ValidationFailed("Warehouse managers must be assigned at least one warehouse")

    email = payload.email.strip().lower()
    now = datetime.utcnow()

    async with atomic(db, "Failed to send invitation"):
        warehouse_ids = await _company_warehouse_ids(db, inviter.company_id, payload.warehouse_ids)

        existing_user = await db.execute(select(User.user_id).where(func.lower(User.email) == email))
        if existing_user.first() is not None:
            raise ValidationFailed("A user with this email already exists")
        pending = await db.execute(
            select(Invitation.invitation_id).where(
                func.lower(Invitation.email) == email,
                Invitation.status == "pending",
                Invitation.expires_at > now,
            )
        )
        if pending.first() is not None:
            raise ValidationFailed("An invitation is already pending for this email")

        invitation = Invitation(
            company_id=inviter.company_id,
            email=email,
            name=payload.name.strip(),
            role=payload.role,
            assigned_warehouses=[str(wid) for wid in warehouse_ids],
            token=generate_token(),
            expires_at=now + INVITATION_TTL,
            status="pending",
            invited_by=inviter.user_id,
            personal_message=payload.personal_message,
        )
        db.add(invitation)
        record_audit(
            db,
            "user_invited",
            "invitation",
            email,
            company_id=inviter.company_id,
            user_id=inviter.user_id,
            details={"role": payload.role, "warehouses": len(warehouse_ids)},
        )

    company = await db.get(Company, inviter.company_id)
    await send_invitation_email(
        to_email=invitation.email,
        name=invitation.name,
        inviter_name=inviter.name,
        company_name=company.name if company else "",
        role=invitation.role,
        token=invitation.token,
        personal_message=invitation.personal_message,
    )
    logger.info("invitation.created", email=email, role=payload.role, company_id=str(inviter.company_id))
    return invitation


async def _find_by_token(db: AsyncSession, token: str | None) -> Invitation:
    if not token:
        raise ValidationFailed("Token is required")
    result = await db.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFound("Invalid invitation token")
    return invitation


async def verify_invitation(db: AsyncSession, token: str | None) -> InvitationDetails:
    """Check a token before showing the accept form. Expired tokens are marked expired."""
    invitation = await _find_by_token(db, token)
    if invitation.status == "accepted":
        raise ValidationFailed("This invitation has already been used")
    if invitation.status != "pending":
        raise ValidationFailed(f"This invitation is {invitation.status}")
    if invitation.expires_at <= datetime.utcnow():
        async with atomic(db, "Failed to verify invitation"):
            invitation.status = "expired"
        raise ValidationFailed("This invitation has expired")

    company = await db.get(Company, invitation.company_id)
    inviter = await db.get(User, invitation.invited_by)
    return InvitationDetails(
        invitation=invitation,
        company_name=company.name if company else "",
        inviter_name=inviter.name if inviter else "",
    )


async def accept_invitation(
    db: AsyncSession,
    payload: AcceptInviteRequest,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> User:
    if not payload.token or not payload.name or not payload.password:
        raise ValidationFailed("Token, name and password are required")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    details = await verify_invitation(db, payload.token)
    invitation = details.invitation

    async with atomic(db, "Failed to accept invitation"):
        existing = await db.execute(select(User.user_id).where(func.lower(User.email) == invitation.email))
        if existing.first() is not None:
            raise ValidationFailed("A user with this email already exists")

        user = User(
            email=invitation.email,
            name=payload.name.strip(),
            password_hash=hash_password(payload.password),
            role=invitation.role,
            company_id=invitation.company_id,
            invited_by=invitation.invited_by,
            email_verified=True,
        )
        db.add(user)
        await db.flush()
        db.add_all(
            [
                UserWarehouse(user_id=user.user_id, warehouse_id=uuid.UUID(wid))
                for wid in invitation.assigned_warehouses or []
            ]
        )

        invitation.status = "accepted"
        invitation.accepted_at = datetime.utcnow()

        record_audit(
            db,
            "user_joined",
            "user",
            user.user_id,
            company_id=invitation.company_id,
            user_id=user.user_id,
            details={"invitation_id": str(invitation.invitation_id), "role": user.role},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        notify(
            db,
            invitation.company_id,
            "user_joined",
            "New team member",
            f"{user.name} accepted your invitation",
            user_id=invitation.invited_by,
            link="/users",
            metadata={"user_id": str(user.user_id)},
        )

    inviter = await db.get(User, invitation.invited_by)
    if inviter is not None:
        await send_invitation_accepted_email(inviter.email, inviter.name, user.name, user.role)
    logger.info("invitation.accepted", email=user.email, company_id=str(user.company_id))
    return user


async def list_invitations(db: AsyncSession, company_id: uuid.UUID, status: str | None = None) -> list[Invitation]:
    query = select(Invitation).where(Invitation.company_id == company_id)
    if status:
        query = query.where(Invitation.status == status)
    result = await db.execute(query.order_by(Invitation.created_at.desc()))
    return list(result.scalars().all())


async def cancel_invitation(db: AsyncSession, admin: User, invitation_id: uuid.UUID) -> Invitation:
    result = await db.execute(
        select(Invitation).where(
            Invitation.invitation_id == invitation_id,
            Invitation.company_id == admin.company_id,
        )
    )
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFound("Invitation not found")
    if invitation.status != "pending":
        raise ValidationFailed(f"Cannot cancel an invitation that is {invitation.status}")
    async with atomic(db, "Failed to cancel invitation"):
        invitation.status = "cancelled"
    return invitation


async def expire_stale_invitations(db: AsyncSession) -> int:
    """Mark pending invitations past their expiry as expired. Returns the count."""
    result = await db.execute(
        select(Invitation).where(Invitation.status == "pending", Invitation.expires_at <= datetime.utcnow())
    )
    stale = list(result.scalars().all())
    async with atomic(db, "Failed to expire invitations"):
        for invitation in stale:
            invitation.status = "expired"
    logger.info("invitations.expired", count=len(stale))
    return len(stale)
