# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /api/auth/register        - Create account
#   POST /api/auth/login           - Get an access token
#   POST /api/auth/logout          - Revoke the current token
#   GET  /api/auth/me              - Get current user
#   POST /api/auth/change-password - Change password (authenticated)
#   POST /api/auth/forgot-password - Request password reset
#   POST /api/auth/reset-password  - Reset password with token
#
# =============================================================================

from fastapi import APIRouter, Depends
from pydantic import EmailStr, Field

from activity_tracker.api.dependencies import (
    get_auth,
    get_current_user,
    get_notification,
    get_token,
)
from activity_tracker.components.auth import AuthComponent, TokenResponse
from activity_tracker.components.notification import NotificationComponent
from activity_tracker.core.models import ApiModel, User

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Request Models
# =============================================================================

class RegisterRequest(ApiModel):
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=1)


class LoginRequest(ApiModel):
    username: str  # username or email
    password: str


class ChangePasswordRequest(ApiModel):
    current_password: str
    new_password: str = Field(min_length=1)


class ForgotPasswordRequest(ApiModel):
    email: EmailStr


class ResetPasswordRequest(ApiModel):
    token: str
    new_password: str = Field(min_length=1)


# =============================================================================
# Public Endpoints
# =============================================================================

@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: RegisterRequest, auth: AuthComponent = Depends(get_auth)):
    """Create a new account and log it in."""
    auth.register_user(data.username, data.email, data.password)
    return auth.login_user(data.username, data.password)


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, auth: AuthComponent = Depends(get_auth)):
    return auth.login_user(data.username, data.password)


@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    auth: AuthComponent = Depends(get_auth),
    notifications: NotificationComponent = Depends(get_notification),
):
    """
    Request password reset email.

    Always returns success to prevent email enumeration.
    """
    token = auth.request_password_reset(data.email)
    if token:
        notifications.send_email(
            data.email,
            "Reset your password",
            f"Use this token to reset your password: {token}",
        )

    return {"message": "If an account exists with this email, a reset link has been sent"}


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, auth: AuthComponent = Depends(get_auth)):
    auth.reset_password(data.token, data.new_password)
    return {"message": "Password reset successfully"}


# =============================================================================
# Protected Endpoints
# =============================================================================

@router.get("/me", response_model=User)
async def me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
async def logout(token: str = Depends(get_token), auth: AuthComponent = Depends(get_auth)):
    auth.logout_user(token)
    return {"message": "Logged out successfully"}


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    auth: AuthComponent = Depends(get_auth),
):
    auth.change_password(user.id, data.current_password, data.new_password)
    return {"message": "Password changed successfully"}
