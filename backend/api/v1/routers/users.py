"""
Users Router: Team listing and invitations.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.invitations import (
    AcceptInviteRequest,
    InviteRequest,
    accept_invitation,
    cancel_invitation,
    create_invitation,
    list_invitations,
    verify_invitation,
)
from api.deps import client_ip, get_company_account, get_db, require_permission, set_auth_cookie
from api.v1.schemas import InvitationResponse, UserResponse
from core.config import get_settings
from core.security import token_for_user
from db.models import User, UserWarehouse
from notifications.email import invitation_link

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("")
async def list_users(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission("users:view")),
):
    result = await db.execute(select(User).where(User.company_id == admin.company_id).order_by(User.created_at))
    users = list(result.scalars().all())
    assignments = await db.execute(
        select(UserWarehouse.user_id, UserWarehouse.warehouse_id).where(
            UserWarehouse.user_id.in_([u.user_id for u in users])
        )
    )
    by_user: dict[UUID, list[str]] = {}
    for row in assignments.all():
        by_user.setdefault(row.user_id, []).append(str(row.warehouse_id))
    return {
        "success": True,
        "users": [
            {**UserResponse.model_validate(u).model_dump(mode="json"), "warehouse_ids": by_user.get(u.user_id, [])}
            for u in users
        ],
    }


@router.post("/invite", status_code=201)
async def invite_user(
    body: InviteRequest,
    db: AsyncSession = Depends(get_db),
    inviter: User = Depends(get_company_account),
):
    """Issue a 3-day single-use invitation. Only administrators may invite."""
    invitation = await create_invitation(db, inviter, body)
    payload = {
        "success": True,
        "message": f"Invitation sent to {invitation.email}",
        "invitation": InvitationResponse.model_validate(invitation),
    }
    if get_settings().debug:
        payload["invite_link"] = invitation_link(invitation.token)
    return payload


@router.get("/invitations")
async def get_invitations(
    status: str | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission("users:view")),
):
    invitations = await list_invitations(db, admin.company_id, status)
    return {"success": True, "invitations": [InvitationResponse.model_validate(i) for i in invitations]}


@router.delete("/invitations/{invitation_id}")
async def delete_invitation(
    invitation_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission("users:invite")),
):
    await cancel_invitation(db, admin, invitation_id)
    return {"success": True, "message": "Invitation cancelled"}


@router.get("/invite/accept")
async def check_invitation(token: str | None = None, db: AsyncSession = Depends(get_db)):
    details = await verify_invitation(db, token)
    invitation = details.invitation
    return {
        "success": True,
        "invitation": {
            "email": invitation.email,
            "name": invitation.name,
            "role": invitation.role,
            "company_name": details.company_name,
            "inviter_name": details.inviter_name,
            "expires_at": invitation.expires_at,
            "personal_message": invitation.personal_message,
        },
    }


@router.post("/invite/accept", status_code=201)
async def accept_invite(
    body: AcceptInviteRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await accept_invitation(
        db,
        body,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    token = token_for_user(user)
    set_auth_cookie(response, token)
    return {
        "success": True,
        "message": "Invitation accepted",
        "user": UserResponse.model_validate(user),
        "token": token,
    }
