"""Authentication request schemas."""

from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from productbazar.models.user import UserRole


class EmailRegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=128)
    role: UserRole = UserRole.USER
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    role_details: dict[str, Any] | None = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.strip().lower()


class EmailLoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.strip().lower()


class OtpRequest(BaseModel):
    phone: str = Field(..., min_length=7, max_length=20)


class OtpVerifyRequest(BaseModel):
    phone: str = Field(..., min_length=7, max_length=20)
    code: str
    role: UserRole = UserRole.USER
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class TokenRequest(BaseModel):
    token: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(..., max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., max_length=128)
