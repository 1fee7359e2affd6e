"""Credential checks and password reset."""

from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.invitations import MIN_PASSWORD_LENGTH
from core.errors import Unauthenticated, ValidationFailed
from core.security import generate_token, hash_password, verify_password
from db.models import User
from db.transactions import atomic
from notifications.email import send_password_reset_email

logger = structlog.get_logger()

RESET_TOKEN_TTL = timedelta(hours=1)


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    token: str | None = None
    password: str | None = None


async def authenticate(db: AsyncSession, payload: LoginRequest) -> User:
    if not payload.email or not payload.password:
        raise ValidationFailed("Email and password are required")

    result = await db.execute(select(User).where(func.lower(User.email) == payload.email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active or not verify_password(payload.password, user.password_hash):
        logger.info("auth.login_failed", email=payload.email)
        raise Unauthenticated("Invalid email or password")

    async with atomic(db, "Failed to log in"):
        user.last_login = datetime.utcnow()
    logger.info("auth.login", user_id=str(user.user_id))
    return user


async def request_password_reset(db: AsyncSession, payload: ForgotPasswordRequest) -> None:
    """Store a reset token and email it. Unknown emails are ignored silently."""
    if not payload.email:
        raise ValidationFailed("Email is required")

    result = await db.execute(select(User).where(func.lower(User.email) == payload.email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None:
        return

    async with atomic(db, "Failed to request password reset"):
        user.reset_token = generate_token()
        user.reset_token_expires = datetime.utcnow() + RESET_TOKEN_TTL
    await send_password_reset_email(user.email, user.name, user.reset_token)


async def reset_password(db: AsyncSession, payload: ResetPasswordRequest) -> User:
    if not payload.token or not payload.password:
        raise ValidationFailed("Token and password are required")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    result = await db.execute(select(User).where(User.reset_token == payload.token))
    user = result.scalar_one_or_none()
    if user is None or user.reset_token_expires is None or user.reset_token_expires <= datetime.utcnow():
        raise ValidationFailed("Invalid or expired reset token")

    async with atomic(db, "Failed to reset password"):
        user.password_hash = hash_password(payload.password)
        user.reset_token = None
        user.reset_token_expires = None
    logger.info("auth.password_reset", user_id=str(user.user_id))
    return user
