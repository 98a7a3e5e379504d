"""Registration, login, sessions, OTP and password flows."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from productbazar.auth.jwt import (
    TokenError,
    create_access_token,
    create_email_verification_token,
    create_password_reset_token,
    create_refresh_token,
    verify_email_verification_token,
    verify_password_reset_token,
    verify_token,
)
from productbazar.auth.password import (
    PASSWORD_RULES_MESSAGE,
    hash_password,
    is_strong_password,
    verify_password,
)
from productbazar.config import get_settings
from productbazar.exceptions import (
    NotFoundError,
    TooManyRequestsError,
    UnauthorizedError,
    ValidationError,
)
from productbazar.models.base import as_utc, utcnow
from productbazar.models.token import RefreshToken
from productbazar.models.user import DETAIL_ROLES, REGISTRABLE_ROLES, RoleDetails, User, UserRole
from productbazar.services.email_service import queue_email
from productbazar.services.sms_service import SmsService
from productbazar.services.user_service import UserService
from productbazar.utils.text import (
    mask_email,
    mask_phone,
    normalize_phone,
    username_base_from_email,
    username_base_from_phone,
)

logger = structlog.get_logger()

OTP_TYPES = ("register", "login", "verify")
OTP_MAX_FAILED_ATTEMPTS = 5
FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime

    def as_data(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": "bearer",
            "expires_in": get_settings().access_token_expire_minutes * 60,
        }


def _seconds_until(moment: datetime) -> int:
    return max(1, math.ceil((moment - utcnow()).total_seconds()))


class AuthService:
    """Service for authentication flows."""

    def __init__(self, db: AsyncSession, sms: SmsService | None = None):
        self.db = db
        self.settings = get_settings()
        self.users = UserService(db)
        self.sms = sms or SmsService()

    # Sessions

    async def issue_tokens(self, user: User, ip: str | None = None) -> IssuedTokens:
        """Mint an access/refresh pair and persist the refresh token."""
        access = create_access_token(user.id, user.role.value)
        refresh, expires_at = create_refresh_token(user.id)
        self.db.add(
            RefreshToken(user_id=user.id, token=refresh, expires_at=expires_at, created_by_ip=ip)
        )
        await self.db.flush()
        await self._trim_sessions(user.id, ip)
        return IssuedTokens(access, refresh, expires_at)

    async def _active_tokens(self, user_id: int) -> list[RefreshToken]:
        result = await self.db.execute(
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > utcnow(),
            )
            .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
        )
        return list(result.scalars().all())

    async def _trim_sessions(self, user_id: int, ip: str | None) -> None:
        """Keep only the most recent active sessions."""
        active = await self._active_tokens(user_id)
        for token in active[self.settings.max_active_sessions :]:
            token.revoke(ip)
        await self.db.flush()

    async def revoke_all_tokens(
        self, user_id: int, ip: str | None = None, keep: str | None = None
    ) -> int:
        revoked = 0
        for token in await self._active_tokens(user_id):
            if keep and token.token == keep:
                continue
            token.revoke(ip)
            revoked += 1
        await self.db.flush()
        return revoked

    async def refresh(self, token: str | None, ip: str | None = None) -> tuple[User, IssuedTokens]:
        """Rotate a refresh token."""
        if not token:
            raise UnauthorizedError("Refresh token not found", code="NO_REFRESH_TOKEN")
        try:
            payload = verify_token(token, expected_type="refresh")
        except TokenError as e:
            raise UnauthorizedError("Invalid or expired refresh token", code="INVALID_REFRESH_TOKEN") from e

        result = await self.db.execute(select(RefreshToken).where(RefreshToken.token == token))
        stored = result.scalar_one_or_none()
        if stored is None or stored.user_id != int(payload["sub"]):
            raise UnauthorizedError("Invalid or expired refresh token", code="INVALID_REFRESH_TOKEN")

        if not stored.is_active:
            if stored.replaced_by_token:
                # A rotated token came back: treat the whole family as stolen
                revoked = await self.revoke_all_tokens(stored.user_id, ip)
                await self.db.commit()
                logger.warning("refresh_token_reuse", user_id=stored.user_id, revoked=revoked)
            raise UnauthorizedError("Invalid or expired refresh token", code="INVALID_REFRESH_TOKEN")

        user = await self.users.get_by_id(stored.user_id)
        if user is None:
            raise UnauthorizedError("User no longer exists", code="INVALID_REFRESH_TOKEN")

        issued = await self.issue_tokens(user, ip)
        stored.revoke(ip, replaced_by=issued.refresh_token)
        await self.db.flush()
        logger.info("refresh_token_rotated", user_id=user.id)
        return user, issued

    async def logout(self, token: str | None, ip: str | None = None) -> None:
        if not token:
            return
        result = await self.db.execute(select(RefreshToken).where(RefreshToken.token == token))
        stored = result.scalar_one_or_none()
        if stored and stored.is_active:
            stored.revoke(ip)
            await self.db.flush()
            logger.info("logout", user_id=stored.user_id)

    async def logout_all(self, user: User, ip: str | None = None) -> int:
        revoked = await self.revoke_all_tokens(user.id, ip)
        logger.info("logout_all", user_id=user.id, revoked=revoked)
        return revoked

    # Email registration and login

    async def register_email(
        self,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
        first_name: str | None = None,
        last_name: str | None = None,
        role_details: dict | None = None,
        ip: str | None = None,
    ) -> tuple[User, IssuedTokens]:
        if not is_strong_password(password):
            raise ValidationError(PASSWORD_RULES_MESSAGE, code="WEAK_PASSWORD")
        if role not in REGISTRABLE_ROLES:
            raise ValidationError("Invalid role selected.", code="INVALID_ROLE")
        if await self.users.get_by_email(email):
            raise ValidationError(
                "An account with this email already exists.", code="EMAIL_EXISTS"
            )

        user = User(
            email=email,
            username=await self.users.generate_username(username_base_from_email(email)),
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            secondary_roles=[],
        )
        user.update_role_capabilities()
        self.db.add(user)
        await self.db.flush()

        if role in DETAIL_ROLES:
            self.db.add(RoleDetails(user_id=user.id, role=role, details=role_details or {}))
            await self.db.flush()

        await self._send_verification_email(user)
        tokens = await self.issue_tokens(user, ip)
        logger.info("user_registered", user_id=user.id, email=mask_email(email), role=role.value)
        return user, tokens

    async def login_email(
        self, email: str, password: str, ip: str | None = None
    ) -> tuple[User, IssuedTokens]:
        user = await self.users.get_by_email(email)
        if user is None or not user.password_hash:
            logger.info("login_failed", email=mask_email(email), reason="unknown_email")
            raise ValidationError("Invalid email or password", code="INVALID_CREDENTIALS")

        if user.is_locked:
            minutes = math.ceil(_seconds_until(as_utc(user.lock_until)) / 60)
            raise UnauthorizedError(
                f"Account locked. Try again in {minutes} minutes.", code="ACCOUNT_LOCKED"
            )

        if not verify_password(password, user.password_hash):
            user.login_attempts = (user.login_attempts or 0) + 1
            if user.login_attempts >= self.settings.max_login_attempts:
                user.lock_until = utcnow() + timedelta(minutes=self.settings.lock_minutes)
                user.login_attempts = 0
                logger.warning("account_locked", user_id=user.id)
            # The failure counter must survive the error response
            await self.db.commit()
            logger.info("login_failed", user_id=user.id, reason="bad_password")
            raise ValidationError("Invalid email or password", code="INVALID_CREDENTIALS")

        user.login_attempts = 0
        user.lock_until = None
        user.last_login = utcnow()
        tokens = await self.issue_tokens(user, ip)
        logger.info("login_succeeded", user_id=user.id, method="email")
        return user, tokens

    # Phone OTP

    async def request_otp(self, otp_type: str, phone: str) -> dict:
        if otp_type not in OTP_TYPES:
            raise NotFoundError("Unknown verification type.")
        normalized = normalize_phone(phone)
        if not normalized:
            raise ValidationError("Invalid phone number format.", code="INVALID_PHONE")

        user = await self.users.get_by_phone(normalized)
        if otp_type == "register" and user is not None:
            raise ValidationError(
                "Phone number already registered. Please log in instead.",
                code="PHONE_EXISTS_REGISTER",
            )
        if otp_type in ("login", "verify") and user is None:
            raise NotFoundError("Phone number not found. Please register first.")

        if user is not None and user.last_otp_request is not None:
            next_allowed = as_utc(user.last_otp_request) + timedelta(
                seconds=self.settings.otp_request_interval_seconds
            )
            if next_allowed > utcnow():
                raise TooManyRequestsError(
                    f"Please wait {_seconds_until(next_allowed)} seconds before requesting another code.",
                    code="OTP_RATE_LIMITED",
                )

        await self.sms.send_otp(normalized)
        if user is not None:
            user.last_otp_request = utcnow()
            await self.db.flush()

        logger.info("otp_requested", type=otp_type, phone=mask_phone(normalized))
        return {"phone": mask_phone(normalized), "expires_in": self.settings.otp_ttl_seconds}

    async def verify_otp(
        self,
        otp_type: str,
        phone: str,
        code: str,
        role: UserRole = UserRole.USER,
        first_name: str | None = None,
        last_name: str | None = None,
        ip: str | None = None,
    ) -> tuple[User, IssuedTokens | None]:
        if otp_type not in OTP_TYPES:
            raise NotFoundError("Unknown verification type.")
        code = (code or "").strip()
        if len(code) != 6 or not code.isdigit():
            raise ValidationError("Invalid OTP format. Please enter 6 digits.", code="INVALID_OTP_FORMAT")
        normalized = normalize_phone(phone)
        if not normalized:
            raise ValidationError("Invalid phone number format.", code="INVALID_PHONE")

        user = await self.users.get_by_phone(normalized)
        if otp_type == "register" and user is not None:
            raise ValidationError(
                "Phone number already registered. Please log in instead.",
                code="PHONE_EXISTS_REGISTER",
            )
        if otp_type in ("login", "verify") and user is None:
            raise NotFoundError("Phone number not found. Please register first.")

        failures = await self.sms.failed_attempts(normalized)
        if failures >= OTP_MAX_FAILED_ATTEMPTS:
            raise UnauthorizedError(
                "Too many failed attempts. Please request a new code later.",
                code="OTP_ATTEMPTS_EXCEEDED",
            )

        if not await self.sms.verify_otp(normalized, code):
            await self.sms.record_failure(normalized)
            if user is not None:
                user.otp_failed_attempts = (user.otp_failed_attempts or 0) + 1
                await self.db.commit()
            logger.info("otp_verification_failed", phone=mask_phone(normalized))
            raise ValidationError("Invalid or expired verification code.", code="INVALID_OTP")

        await self.sms.clear_failures(normalized)

        if otp_type == "register":
            if role not in REGISTRABLE_ROLES:
                raise ValidationError("Invalid role selected.", code="INVALID_ROLE")
            user = User(
                phone=normalized,
                username=await self.users.generate_username(username_base_from_phone(normalized)),
                first_name=first_name,
                last_name=last_name,
                role=role,
                secondary_roles=[],
                is_phone_verified=True,
            )
            user.update_role_capabilities()
            self.db.add(user)
            await self.db.flush()
            if role in DETAIL_ROLES:
                self.db.add(RoleDetails(user_id=user.id, role=role, details={}))
            logger.info("user_registered", user_id=user.id, phone=mask_phone(normalized), role=role.value)
        else:
            user.is_phone_verified = True

        user.otp_failed_attempts = 0
        if otp_type == "verify":
            await self.db.flush()
            return user, None

        user.last_login = utcnow()
        tokens = await self.issue_tokens(user, ip)
        logger.info("login_succeeded", user_id=user.id, method="otp")
        return user, tokens

    # Email verification

    async def _send_verification_email(self, user: User) -> None:
        token = create_email_verification_token(user.id, user.email)
        user.last_email_verification_request = utcnow()
        await self.db.flush()
        queue_email(
            "verification",
            user.email,
            name=user.full_name,
            verify_url=f"{self.settings.client_url}/auth/verify-email/{token}",
        )

    async def send_email_verification(self, user: User) -> dict:
        if not user.email:
            raise ValidationError("No email address on this account.", code="NO_EMAIL")
        if user.is_email_verified:
            raise ValidationError("Email address already verified.", code="ALREADY_VERIFIED")
        if user.last_email_verification_request is not None:
            next_allowed = as_utc(user.last_email_verification_request) + timedelta(
                seconds=self.settings.email_verification_interval_seconds
            )
            if next_allowed > utcnow():
                raise TooManyRequestsError(
                    f"Please wait {_seconds_until(next_allowed)} seconds before requesting another email.",
                    code="EMAIL_RATE_LIMITED",
                )
        await self._send_verification_email(user)
        logger.info("verification_email_queued", user_id=user.id)
        return {"email": mask_email(user.email)}

    async def verify_email(self, token: str) -> tuple[User, bool]:
        """Mark the email verified. Returns (user, already_verified)."""
        try:
            payload = verify_email_verification_token(token)
        except TokenError as e:
            raise ValidationError("Invalid or expired verification link.", code="INVALID_TOKEN") from e

        user = await self.users.get_by_id(int(payload["sub"]))
        if user is None or (user.email or "").lower() != str(payload.get("email", "")).lower():
            raise ValidationError("Invalid or expired verification link.", code="INVALID_TOKEN")
        if user.is_email_verified:
            return user, True

        user.is_email_verified = True
        await self.db.flush()
        queue_email("welcome", user.email, name=user.full_name)
        logger.info("email_verified", user_id=user.id)
        return user, False

    # Passwords

    async def forgot_password(self, email: str) -> None:
        user = await self.users.get_by_email(email)
        if user is None:
            logger.info("password_reset_unknown_email", email=mask_email(email))
            return
        if user.last_password_reset_request is not None:
            next_allowed = as_utc(user.last_password_reset_request) + timedelta(
                seconds=self.settings.password_reset_interval_seconds
            )
            if next_allowed > utcnow():
                logger.info("password_reset_rate_limited", user_id=user.id)
                return

        token = create_password_reset_token(user.id)
        user.password_reset_token = token
        user.password_reset_expires = utcnow() + timedelta(hours=1)
        user.last_password_reset_request = utcnow()
        await self.db.flush()
        queue_email(
            "password_reset",
            user.email,
            name=user.full_name,
            reset_url=f"{self.settings.client_url}/auth/reset-password/{token}",
        )
        logger.info("password_reset_requested", user_id=user.id)

    async def verify_password_token(self, token: str) -> User:
        invalid = ValidationError(
            "Password reset token is invalid or has expired.", code="INVALID_RESET_TOKEN"
        )
        try:
            payload = verify_password_reset_token(token)
        except TokenError as e:
            raise invalid from e
        user = await self.users.get_by_id(int(payload["sub"]))
        if (
            user is None
            or user.password_reset_token != token
            or user.password_reset_expires is None
            or as_utc(user.password_reset_expires) <= utcnow()
        ):
            raise invalid
        return user

    async def reset_password(self, token: str, password: str, ip: str | None = None) -> User:
        if not is_strong_password(password):
            raise ValidationError(PASSWORD_RULES_MESSAGE, code="WEAK_PASSWORD")
        user = await self.verify_password_token(token)

        user.password_hash = hash_password(password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.password_changed_at = utcnow()
        user.login_attempts = 0
        user.lock_until = None
        await self.revoke_all_tokens(user.id, ip)
        queue_email("password_changed", user.email, name=user.full_name)
        logger.info("password_reset_completed", user_id=user.id)
        return user

    async def change_password(
        self,
        user: User,
        current_password: str,
        new_password: str,
        current_refresh_token: str | None = None,
        ip: str | None = None,
    ) -> User:
        if not verify_password(current_password, user.password_hash):
            raise ValidationError(
                "The current password you entered is incorrect.", code="WRONG_PASSWORD"
            )
        if current_password == new_password:
            raise ValidationError(
                "The new password cannot be the same as the current password.",
                code="SAME_PASSWORD",
            )
        if not is_strong_password(new_password):
            raise ValidationError(PASSWORD_RULES_MESSAGE, code="WEAK_PASSWORD")

        user.password_hash = hash_password(new_password)
        user.password_changed_at = utcnow()
        revoked = await self.revoke_all_tokens(user.id, ip, keep=current_refresh_token)
        queue_email("password_changed", user.email, name=user.full_name)
        logger.info("password_changed", user_id=user.id, revoked_sessions=revoked)
        return user

    async def purge_stale_tokens(self) -> int:
        """Delete refresh tokens that expired or were revoked."""
        result = await self.db.execute(
            delete(RefreshToken)
            .where(or_(RefreshToken.expires_at <= utcnow(), RefreshToken.revoked_at.is_not(None)))
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        logger.info("refresh_tokens_purged", deleted=result.rowcount)
        return result.rowcount or 0
