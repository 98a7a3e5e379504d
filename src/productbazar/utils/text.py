"""String helpers: slugs, usernames, masking and phone normalization."""

import re
import secrets
import string
import unicodedata

USERNAME_MIN = 3
USERNAME_MAX = 30

_USERNAME_RE = re.compile(r"^[a-z0-9._-]{3,30}$")


def slugify(value: str, max_length: int = 80) -> str:
    """Lowercase ASCII slug with single dashes."""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "item"


def random_suffix(length: int = 6) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def unique_slug(value: str) -> str:
    """Slug plus a short random suffix, e.g. ``senior-dev-x1b9q2``."""
    return f"{slugify(value)}-{random_suffix()}"


def is_valid_username(username: str | None) -> bool:
    return bool(username and _USERNAME_RE.match(username))


def username_base_from_email(email: str) -> str:
    """Derive a username stem from the email local part."""
    local = email.split("@", 1)[0].lower()
    base = re.sub(r"[^a-z0-9._-]", ".", local)
    if len(base) < USERNAME_MIN:
        base = base.ljust(USERNAME_MIN, "0")
    return base[:USERNAME_MAX]


def username_base_from_phone(phone: str) -> str:
    digits = re.sub(r"\D", "", phone)
    return f"user{digits[-6:]}"


def with_suffix(base: str, suffix: int) -> str:
    """Append a numeric suffix while staying within the username length."""
    tail = str(suffix)
    return f"{base[: USERNAME_MAX - len(tail)]}{tail}"


def mask_email(email: str | None) -> str | None:
    """``jane.doe@example.com`` -> ``ja***@example.com``."""
    if not email or "@" not in email:
        return email
    local, domain = email.split("@", 1)
    visible = local[:2] if len(local) > 2 else local[:1]
    return f"{visible}***@{domain}"


def mask_phone(phone: str | None) -> str | None:
    """``+919876543210`` -> ``+91******3210``."""
    if not phone or len(phone) < 7:
        return phone
    return f"{phone[:3]}{'*' * (len(phone) - 7)}{phone[-4:]}"


def normalize_phone(phone: str | None, default_country_code: str = "+91") -> str | None:
    """Normalize to E.164. Returns None when the number is not plausible.

    Bare 10 digit numbers get the default country code; Indian mobiles are
    recognised with or without their ``91`` prefix.
    """
    if not phone:
        return None
    raw = phone.strip()
    digits = re.sub(r"\D", "", raw)

    indian = re.fullmatch(r"(?:91)?([6-9]\d{9})", digits)
    if indian:
        return f"+91{indian.group(1)}"
    if not 10 <= len(digits) <= 15:
        return None
    if raw.startswith("+") or len(digits) > 10:
        return f"+{digits}"
    return f"{default_country_code}{digits}"


def extract_domain(referrer: str | None) -> str | None:
    """Host part of a referrer URL (text after ``://`` up to the first slash)."""
    if not referrer:
        return None
    rest = referrer.split("://", 1)[1] if "://" in referrer else referrer
    host = rest.split("/", 1)[0].split("?", 1)[0]
    return host.lower() or None
