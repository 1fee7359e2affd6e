"""
InsydTracker API Dependencies

Dependency injection for DB sessions, auth, and tenant context.
"""

from collections.abc import AsyncGenerator

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import Forbidden, NotFound, Unauthenticated, ValidationFailed, parse_uuid
from core.permissions import has_permission
from core.security import decode_access_token
from db.models import User
from db.session import AsyncSessionLocal

security = HTTPBearer(auto_error=False)

AUTH_COOKIE_MAX_AGE = 7 * 24 * 60 * 60


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def _read_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(get_settings().auth_cookie_name) or None


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict | None:
    """Decoded session claims, or None when the caller is anonymous or the token is bad."""
    token = _read_token(request, credentials)
    if not token:
        return None
    return decode_access_token(token)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Decode JWT from the bearer header or auth cookie and return the claims."""
    token = _read_token(request, credentials)
    if not token:
        raise Unauthenticated("Not authenticated")

    payload = decode_access_token(token)
    if payload is None or not payload.get("user_id"):
        raise Unauthenticated("Invalid or expired token")
    return payload


async def get_current_account(
    claims: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the caller's User row; company binding may be newer than the token."""
    user_id = parse_uuid(claims["user_id"], "Invalid or expired token", Unauthenticated)
    result = await db.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise NotFound("User not found")
    return user


async def get_company_account(user: User = Depends(get_current_account)) -> User:
    if user.company_id is None:
        raise ValidationFailed("Please complete onboarding first")
    return user


def require_permission(permission: str):
    """Dependency factory: the onboarded caller must hold `permission`."""

    async def checker(user: User = Depends(get_company_account)) -> User:
        if not has_permission(user.role, permission):
            raise Forbidden("You do not have permission to perform this action")
        return user

    return checker


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def set_auth_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=not settings.is_local,
        max_age=AUTH_COOKIE_MAX_AGE,
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(key=get_settings().auth_cookie_name, path="/")
