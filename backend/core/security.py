"""
InsydTracker Security Utilities

JWT handling, password hashing, and single-use token generation.
"""

import secrets
from datetime import datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from core.config import get_settings

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INVITE_TOKEN_BYTES = 32


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    runtime_settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=runtime_settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, runtime_settings.jwt_secret, algorithm=runtime_settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode a JWT access token. Returns None if the token is invalid or expired."""
    runtime_settings = get_settings()
    try:
        return jwt.decode(token, runtime_settings.jwt_secret, algorithms=[runtime_settings.jwt_algorithm])
    except JWTError:
        return None


def token_for_user(user) -> str:
    """Issue a session token carrying the caller identity tuple."""
    return create_access_token(
        {
            "sub": str(user.user_id),
            "user_id": str(user.user_id),
            "email": user.email,
            "role": user.role,
            "company_id": str(user.company_id) if user.company_id else None,
        }
    )


def generate_token(nbytes: int = INVITE_TOKEN_BYTES) -> str:
    """Random hex token for invitations and password resets."""
    return secrets.token_hex(nbytes)
