"""JWT token creation and verification.

Access tokens are short-lived and travel as a bearer header. Refresh tokens
live in an httpOnly cookie and are also persisted so they can be rotated and
revoked. Email verification and password reset links use their own secrets so
a leaked link token can never be replayed as a session.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from productbazar.config import get_settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def _encode(payload: dict, secret: str) -> str:
    return jwt.encode(payload, secret, algorithm=get_settings().jwt_algorithm)


def create_access_token(
    user_id: int,
    role: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "exp": now + timedelta(minutes=expires_minutes or settings.access_token_expire_minutes),
        "iat": now,
    }
    if role:
        payload["role"] = role
    return _encode(payload, settings.jwt_secret)


def create_refresh_token(
    user_id: int,
    expires_days: Optional[int] = None,
) -> tuple[str, datetime]:
    """Create a JWT refresh token. Returns (token, expires_at)."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expires = now + timedelta(days=expires_days or settings.refresh_token_expire_days)
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "exp": expires,
        "iat": now,
        # jti keeps tokens unique when two are minted in the same second
        "jti": secrets.token_hex(16),
    }
    return _encode(payload, settings.jwt_secret), expires


def create_email_verification_token(user_id: int, email: str) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "email_verification",
        "email": email,
        "exp": now + timedelta(hours=24),
        "iat": now,
    }
    return _encode(payload, settings.jwt_email_verification_secret)


def create_password_reset_token(user_id: int) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "password_reset",
        "exp": now + timedelta(hours=1),
        "iat": now,
        "jti": secrets.token_hex(8),
    }
    return _encode(payload, settings.jwt_reset_secret)


def verify_token(
    token: str,
    expected_type: str = "access",
    secret: Optional[str] = None,
) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, secret or settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != expected_type:
        raise TokenError("Invalid token type")
    return payload


def verify_email_verification_token(token: str) -> dict:
    return verify_token(
        token, "email_verification", get_settings().jwt_email_verification_secret
    )


def verify_password_reset_token(token: str) -> dict:
    return verify_token(token, "password_reset", get_settings().jwt_reset_secret)
