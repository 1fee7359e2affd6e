"""
Auth Router: Session login/logout, current user, password reset.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    authenticate,
    request_password_reset,
    reset_password,
)
from api.deps import clear_auth_cookie, get_current_account, get_db, set_auth_cookie
from api.v1.schemas import UserResponse
from core.errors import Gone
from core.security import token_for_user
from db.models import User

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

RESET_REQUESTED_MESSAGE = "If an account exists for this email, a reset link has been sent"


@router.post("/login")
async def login(body: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    """Exchange credentials for a session cookie."""
    user = await authenticate(db, body)
    token = token_for_user(user)
    set_auth_cookie(response, token)
    return {
        "success": True,
        "user": UserResponse.model_validate(user),
        "needsOnboarding": user.company_id is None,
        "token": token,
    }


@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookie(response)
    return {"success": True, "message": "Logged out"}


@router.get("/me")
async def me(user: User = Depends(get_current_account)):
    return {
        "success": True,
        "user": UserResponse.model_validate(user),
        "needsOnboarding": user.company_id is None,
    }


@router.post("/signup")
async def signup():
    """Accounts are created through onboarding or an invitation."""
    raise Gone("Self sign-up is disabled. Complete onboarding or accept an invitation instead.")


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    await request_password_reset(db, body)
    return {"success": True, "message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password")
async def do_reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await reset_password(db, body)
    return {"success": True, "message": "Password updated"}
