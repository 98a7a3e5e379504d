"""User profile, role details and onboarding helpers."""

from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from productbazar.exceptions import NotFoundError, ValidationError
from productbazar.models.user import DETAIL_ROLES, REGISTRABLE_ROLES, RoleDetails, User, UserRole
from productbazar.utils.text import (
    is_valid_username,
    mask_email,
    mask_phone,
    normalize_phone,
    with_suffix,
)

logger = structlog.get_logger()

REQUIRED_PROFILE_FIELDS = ("first_name", "last_name", "phone", "email", "about")
RECOMMENDED_PROFILE_FIELDS = ("bio", "country", "city")
CONTACT_METHOD_FIELD = "contact method (email or phone)"

EDITABLE_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "about",
    "bio",
    "headline",
    "country",
    "city",
    "profile_picture_url",
)


def profile_completion(user: User) -> dict[str, Any]:
    """Weighted completion: required fields count 70%, recommended 30%."""
    missing_required = [f for f in REQUIRED_PROFILE_FIELDS if not getattr(user, f)]
    missing_recommended = [f for f in RECOMMENDED_PROFILE_FIELDS if not getattr(user, f)]

    required_done = (len(REQUIRED_PROFILE_FIELDS) - len(missing_required)) / len(
        REQUIRED_PROFILE_FIELDS
    )
    recommended_done = (len(RECOMMENDED_PROFILE_FIELDS) - len(missing_recommended)) / len(
        RECOMMENDED_PROFILE_FIELDS
    )
    percentage = round((required_done * 0.7 + recommended_done * 0.3) * 100)

    if not user.email and not user.phone:
        missing_required.append(CONTACT_METHOD_FIELD)

    return {
        "missing_fields": missing_required,
        "recommended_fields": missing_recommended,
        "completion_percentage": percentage,
        "is_complete": not missing_required,
    }


def auth_recommendations(user: User) -> list[dict[str, str]]:
    recommendations = []
    if user.email and not user.is_email_verified:
        recommendations.append(
            {"type": "verify_email", "message": "Verify your email for security", "priority": "high"}
        )
    if user.phone and not user.is_phone_verified:
        recommendations.append(
            {"type": "verify_phone", "message": "Verify your phone for recovery", "priority": "medium"}
        )
    if not user.email:
        recommendations.append(
            {"type": "add_email", "message": "Add an email address", "priority": "high"}
        )
    if not user.phone:
        recommendations.append(
            {"type": "add_phone", "message": "Add a phone number", "priority": "medium"}
        )
    if user.is_profile_completed and not user.bio:
        recommendations.append(
            {
                "type": "add_bio",
                "message": "Add a bio to personalize your profile",
                "priority": "low",
            }
        )
    return recommendations


def next_step(user: User) -> dict[str, Any] | None:
    """The first pending onboarding step, with overall progress, or None."""
    steps: list[dict[str, Any]] = []

    if user.email and not user.is_email_verified:
        steps.append(
            {
                "type": "email_verification",
                "title": "Email Verification",
                "message": "Please verify your email address",
                "action": "verify_email",
                "required": True,
                "data": {
                    "email": mask_email(user.email),
                    "last_sent": user.last_email_verification_request,
                },
            }
        )
    if user.phone and not user.is_phone_verified:
        steps.append(
            {
                "type": "phone_verification",
                "title": "Phone Verification",
                "message": "Please verify your phone number",
                "action": "verify_phone",
                "required": True,
                "data": {"phone": mask_phone(user.phone), "last_sent": user.last_otp_request},
            }
        )

    completion = profile_completion(user)
    if (user.is_email_verified or user.is_phone_verified) and not completion["is_complete"]:
        steps.append(
            {
                "type": "profile_completion",
                "title": "Complete Your Profile",
                "message": f"Complete your profile (Missing: {', '.join(completion['missing_fields'])})",
                "action": "complete_profile",
                "required": False,
                "skippable": True,
                "data": completion,
            }
        )

    if not steps:
        return None

    for priority, step in enumerate(steps, start=1):
        step["priority"] = priority

    contacts = int(bool(user.email)) + int(bool(user.phone))
    verified = int(bool(user.is_email_verified)) + int(bool(user.is_phone_verified))
    total_steps = 3
    completed = total_steps - len(steps)
    return {
        **steps[0],
        "all_steps": steps,
        "progress": {
            "total": total_steps,
            "remaining": len(steps),
            "completed": completed,
            "percentage": round(completed / total_steps * 100),
            "verification_status": {
                "percentage": round(verified / contacts * 100) if contacts else 0,
                "email_verified": user.is_email_verified,
                "phone_verified": user.is_phone_verified,
                "profile_completed": completion["is_complete"],
            },
        },
        "recommendations": auth_recommendations(user),
    }


def public_profile(user: User) -> dict[str, Any]:
    """Profile fields safe to show to other users."""
    return {
        "id": user.id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "headline": user.headline,
        "bio": user.bio,
        "about": user.about,
        "country": user.country,
        "city": user.city,
        "profile_picture_url": user.profile_picture_url,
        "role": user.role.value,
        "secondary_roles": list(user.secondary_roles or []),
        "email": mask_email(user.email),
        "phone": mask_phone(user.phone),
        "is_email_verified": user.is_email_verified,
        "is_phone_verified": user.is_phone_verified,
        "created_at": user.created_at,
    }


class UserService:
    """Service for user-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: int) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone: str) -> User | None:
        result = await self.db.execute(select(User).where(User.phone == phone))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.username == username.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, user_id: int) -> User:
        user = await self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def username_available(self, username: str, exclude_user_id: int | None = None) -> bool:
        query = select(User.id).where(User.username == username.lower())
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)
        result = await self.db.execute(query)
        return result.first() is None

    async def generate_username(self, base: str) -> str:
        """Return ``base`` or ``base<n>`` for the first free n."""
        candidate = base
        suffix = 1
        while not await self.username_available(candidate):
            candidate = with_suffix(base, suffix)
            suffix += 1
        return candidate

    async def check_username(self, username: str | None) -> dict[str, Any]:
        normalized = (username or "").strip().lower()
        if not is_valid_username(normalized):
            raise ValidationError(
                "Username must be 3-30 characters and contain only lowercase letters, "
                "numbers, dots, underscores or hyphens."
            )
        return {"username": normalized, "available": await self.username_available(normalized)}

    async def update_profile(self, user: User, data: dict[str, Any]) -> User:
        """Apply profile changes while keeping at least one verified contact."""
        had_verified_contact = user.is_email_verified or user.is_phone_verified

        for field in EDITABLE_PROFILE_FIELDS:
            if field in data:
                value = data[field]
                setattr(user, field, value.strip() if isinstance(value, str) else value)

        if "username" in data and data["username"] != user.username:
            username = (data["username"] or "").strip().lower()
            if not is_valid_username(username):
                raise ValidationError("Invalid username format.")
            if not await self.username_available(username, exclude_user_id=user.id):
                raise ValidationError("Username is already taken.", code="USERNAME_TAKEN")
            user.username = username

        if "email" in data:
            email = (data["email"] or "").strip().lower() or None
            if email != user.email:
                if email:
                    existing = await self.get_by_email(email)
                    if existing and existing.id != user.id:
                        raise ValidationError("Email is already in use.", code="EMAIL_EXISTS")
                user.email = email
                user.is_email_verified = False

        if "phone" in data:
            phone = data["phone"]
            normalized = normalize_phone(phone) if phone else None
            if phone and not normalized:
                raise ValidationError("Invalid phone number format.")
            if normalized != user.phone:
                if normalized:
                    existing = await self.get_by_phone(normalized)
                    if existing and existing.id != user.id:
                        raise ValidationError("Phone number is already in use.", code="PHONE_EXISTS")
                user.phone = normalized
                user.is_phone_verified = False

        if had_verified_contact and not (user.is_email_verified or user.is_phone_verified):
            raise ValidationError(
                "At least one verified contact method (email or phone) is required.",
                code="VERIFIED_CONTACT_REQUIRED",
            )

        user.is_profile_completed = profile_completion(user)["is_complete"]
        await self.db.flush()
        logger.info("profile_updated", user_id=user.id, fields=sorted(data))
        return user

    async def get_role_details(self, user_id: int) -> list[RoleDetails]:
        await self.get_or_404(user_id)
        result = await self.db.execute(
            select(RoleDetails).where(RoleDetails.user_id == user_id).order_by(RoleDetails.id)
        )
        return list(result.scalars().all())

    async def upsert_role_details(
        self, user: User, details: dict[str, Any], role: UserRole | None = None
    ) -> RoleDetails:
        role = role or user.role
        if role not in DETAIL_ROLES:
            raise ValidationError(f"The {role.value} role has no role details.")
        if role not in user.all_roles:
            raise ValidationError(f"You do not have the {role.value} role.")

        result = await self.db.execute(
            select(RoleDetails).where(RoleDetails.user_id == user.id, RoleDetails.role == role)
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = RoleDetails(user_id=user.id, role=role, details=dict(details))
            self.db.add(record)
        else:
            record.details = {**(record.details or {}), **details}
        await self.db.flush()
        return record

    async def add_secondary_role(self, user: User, role: UserRole) -> User:
        if role not in REGISTRABLE_ROLES or role == UserRole.USER:
            raise ValidationError(f"Cannot add the {role.value} role.")
        if role in user.all_roles:
            raise ValidationError(f"You already have the {role.value} role.")

        user.secondary_roles = [*(user.secondary_roles or []), role.value]
        user.update_role_capabilities()
        if role in DETAIL_ROLES:
            self.db.add(RoleDetails(user_id=user.id, role=role, details={}))
        await self.db.flush()
        logger.info("secondary_role_added", user_id=user.id, role=role.value)
        return user
