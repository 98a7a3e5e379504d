"""Authentication endpoints: email, phone OTP, sessions and passwords."""

from typing import Any

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import JSONResponse

from productbazar.api.deps import ClientIP, CurrentUser, DbSession, OptionalUser
from productbazar.config import get_settings
from productbazar.exceptions import NotFoundError, UnauthorizedError, error_body
from productbazar.models.user import User
from productbazar.schemas.auth import (
    ChangePasswordRequest,
    EmailLoginRequest,
    EmailRegisterRequest,
    ForgotPasswordRequest,
    OtpRequest,
    OtpVerifyRequest,
    ResetPasswordRequest,
    TokenRequest,
)
from productbazar.schemas.common import ApiResponse, AuthResponse
from productbazar.schemas.user import ProfileUpdate, UserResponse
from productbazar.services.auth_service import FORGOT_PASSWORD_MESSAGE, AuthService, IssuedTokens
from productbazar.services.user_service import (
    UserService,
    auth_recommendations,
    next_step,
    profile_completion,
    public_profile,
)
from productbazar.utils.text import mask_email

router = APIRouter()


def _user_data(user: User, masked: bool = False) -> dict[str, Any]:
    data = UserResponse.model_validate(user).model_dump(mode="json")
    if masked:
        data["email"] = mask_email(user.email)
    return data


def _set_refresh_cookie(response: Response, tokens: IssuedTokens) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.refresh_cookie_name,
        tokens.refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 3600,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def _clear_refresh_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        settings.refresh_cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def _refresh_cookie(request: Request) -> str | None:
    return request.cookies.get(get_settings().refresh_cookie_name)


def _session_response(
    response: Response, user: User, tokens: IssuedTokens, message: str, masked: bool = False
) -> AuthResponse[dict]:
    _set_refresh_cookie(response, tokens)
    return AuthResponse(
        message=message,
        data={"user": _user_data(user, masked), **tokens.as_data()},
        next_step=next_step(user),
    )


# Email registration and login


@router.post(
    "/register/email",
    response_model=AuthResponse[dict],
    status_code=status.HTTP_201_CREATED,
)
async def register_email(
    data: EmailRegisterRequest, response: Response, db: DbSession, ip: ClientIP
):
    """Register with email and password."""
    user, tokens = await AuthService(db).register_email(
        email=data.email,
        password=data.password,
        role=data.role,
        first_name=data.first_name,
        last_name=data.last_name,
        role_details=data.role_details,
        ip=ip,
    )
    await db.commit()
    return _session_response(
        response,
        user,
        tokens,
        "Registration successful. Please check your email to verify your account.",
        masked=True,
    )


@router.post("/login/email", response_model=AuthResponse[dict])
async def login_email(data: EmailLoginRequest, response: Response, db: DbSession, ip: ClientIP):
    """Log in with email and password."""
    user, tokens = await AuthService(db).login_email(data.email, data.password, ip)
    await db.commit()
    return _session_response(response, user, tokens, "Login successful")


# Sessions


@router.post("/refresh-token", response_model=AuthResponse[dict])
async def refresh_token(request: Request, response: Response, db: DbSession, ip: ClientIP):
    """Rotate the refresh cookie and issue a new access token."""
    try:
        user, tokens = await AuthService(db).refresh(_refresh_cookie(request), ip)
    except UnauthorizedError as e:
        failed = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED, content=error_body(e.message, e.code)
        )
        _clear_refresh_cookie(failed)
        return failed
    await db.commit()
    return _session_response(response, user, tokens, "Token refreshed")


@router.post("/logout", response_model=ApiResponse[None])
async def logout(request: Request, response: Response, db: DbSession, ip: ClientIP):
    """Revoke the current refresh token and clear the cookie."""
    await AuthService(db).logout(_refresh_cookie(request), ip)
    await db.commit()
    _clear_refresh_cookie(response)
    return ApiResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=ApiResponse[dict])
async def logout_all(current_user: CurrentUser, response: Response, db: DbSession, ip: ClientIP):
    """Revoke every active session of the current user."""
    revoked = await AuthService(db).logout_all(current_user, ip)
    await db.commit()
    _clear_refresh_cookie(response)
    return ApiResponse(message="Logged out from all devices", data={"revoked": revoked})


# Phone OTP


@router.post("/{otp_type}/request-otp", response_model=ApiResponse[dict])
async def request_otp(otp_type: str, data: OtpRequest, db: DbSession):
    """Send a one-time code to a phone number."""
    result = await AuthService(db).request_otp(otp_type, data.phone)
    await db.commit()
    return ApiResponse(message="Verification code sent", data=result)


@router.post("/{otp_type}/verify-otp", response_model=AuthResponse[dict])
async def verify_otp(
    otp_type: str, data: OtpVerifyRequest, response: Response, db: DbSession, ip: ClientIP
):
    """Check a one-time code and register, log in or verify the phone."""
    user, tokens = await AuthService(db).verify_otp(
        otp_type,
        data.phone,
        data.code,
        role=data.role,
        first_name=data.first_name,
        last_name=data.last_name,
        ip=ip,
    )
    await db.commit()

    if tokens is None:
        return AuthResponse(
            message="Phone number verified",
            data={"user": _user_data(user)},
            next_step=next_step(user),
        )
    if otp_type == "register":
        response.status_code = status.HTTP_201_CREATED
        return _session_response(response, user, tokens, "Registration successful")
    return _session_response(response, user, tokens, "Login successful")


# Email verification


@router.get("/verify-email/{token}", response_model=AuthResponse[dict])
async def verify_email(token: str, db: DbSession):
    """Confirm an email address from the emailed link."""
    user, already_verified = await AuthService(db).verify_email(token)
    await db.commit()
    message = "Email already verified" if already_verified else "Email verified successfully"
    return AuthResponse(message=message, data={"user": _user_data(user)}, next_step=next_step(user))


@router.post("/send-email-verification", response_model=ApiResponse[dict])
async def send_email_verification(current_user: CurrentUser, db: DbSession):
    """Resend the verification email."""
    result = await AuthService(db).send_email_verification(current_user)
    await db.commit()
    return ApiResponse(message="Verification email sent", data=result)


# Passwords


@router.post("/forgot-password", response_model=ApiResponse[None])
async def forgot_password(data: ForgotPasswordRequest, db: DbSession):
    """Start a password reset; the answer never reveals whether the email exists."""
    await AuthService(db).forgot_password(data.email.strip().lower())
    await db.commit()
    return ApiResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/verify-password-token", response_model=ApiResponse[dict])
async def verify_password_token(data: TokenRequest, db: DbSession):
    user = await AuthService(db).verify_password_token(data.token)
    return ApiResponse(message="Token is valid", data={"email": mask_email(user.email)})


@router.post("/reset-password", response_model=ApiResponse[None])
async def reset_password(data: ResetPasswordRequest, response: Response, db: DbSession, ip: ClientIP):
    """Set a new password from a reset token and end every session."""
    await AuthService(db).reset_password(data.token, data.password, ip)
    await db.commit()
    _clear_refresh_cookie(response)
    return ApiResponse(message="Password has been reset. Please log in with your new password.")


@router.post("/change-password", response_model=ApiResponse[None])
async def change_password(
    data: ChangePasswordRequest,
    request: Request,
    current_user: CurrentUser,
    db: DbSession,
    ip: ClientIP,
):
    """Change the password, keeping only the current session."""
    await AuthService(db).change_password(
        current_user,
        data.current_password,
        data.new_password,
        current_refresh_token=_refresh_cookie(request),
        ip=ip,
    )
    await db.commit()
    return ApiResponse(message="Password changed successfully")


# Profile


@router.get("/me", response_model=AuthResponse[dict])
async def me(current_user: OptionalUser):
    """The signed-in user, or ``user: null`` for anonymous callers."""
    if current_user is None:
        return AuthResponse(message="Not authenticated", data={"user": None})
    return AuthResponse(data={"user": _user_data(current_user)}, next_step=next_step(current_user))


@router.get("/profile", response_model=AuthResponse[dict])
async def get_profile(current_user: CurrentUser):
    """Profile plus completion details and recommendations."""
    return AuthResponse(
        data={
            "user": _user_data(current_user),
            "profile_completion": profile_completion(current_user),
            "recommendations": auth_recommendations(current_user),
        },
        next_step=next_step(current_user),
    )


@router.put("/profile", response_model=AuthResponse[dict])
async def update_profile(data: ProfileUpdate, current_user: CurrentUser, db: DbSession):
    user = await UserService(db).update_profile(current_user, data.model_dump(exclude_unset=True))
    await db.commit()
    return AuthResponse(
        message="Profile updated successfully",
        data={"user": _user_data(user), "profile_completion": profile_completion(user)},
        next_step=next_step(user),
    )


@router.get("/check-username", response_model=ApiResponse[dict])
async def check_username(db: DbSession, username: str = Query("")):
    return ApiResponse(data=await UserService(db).check_username(username))


@router.get("/user/username/{username}", response_model=ApiResponse[dict])
async def get_user_by_username(username: str, db: DbSession):
    """Public profile by username."""
    user = await UserService(db).get_by_username(username)
    if user is None:
        raise NotFoundError("User not found")
    return ApiResponse(data={"user": public_profile(user)})


@router.get("/user/{user_id}", response_model=ApiResponse[dict])
async def get_user(user_id: int, db: DbSession):
    """Public profile by id."""
    user = await UserService(db).get_or_404(user_id)
    return ApiResponse(data={"user": public_profile(user)})
