"""Password hashing and strength rules."""

import re

import bcrypt

from productbazar.config import get_settings

_SPECIAL_CHARS = "!@#$%^&*"

PASSWORD_RULES_MESSAGE = (
    "Password must be at least 8 characters and include uppercase, lowercase, "
    f"number, and special character ({_SPECIAL_CHARS})."
)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a password against its hash."""
    if not password or not password_hash:
        return False
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def is_strong_password(password: str | None) -> bool:
    if not password or len(password) < 8:
        return False
    return all(
        (
            re.search(r"[A-Z]", password),
            re.search(r"[a-z]", password),
            re.search(r"\d", password),
            re.search(f"[{re.escape(_SPECIAL_CHARS)}]", password),
        )
    )
