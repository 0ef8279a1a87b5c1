"""
api/routes/auth.py
------------------
Authentication endpoints.

POST /auth/register         — Create an account, returns a bearer token.
POST /auth/login            — Exchange email + password for a bearer token.
POST /auth/logout           — Mark the caller offline.
GET  /auth/verify           — Confirm the presented token is still valid.
GET  /auth/profile          — The caller's public profile.
PUT  /auth/change-password  — Rotate the password (rate limited per user).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from chat_api.dependencies import CurrentUser, get_auth_service, rate_limit_by_user
from chat_api.schemas.common import ApiResponse
from chat_api.schemas.user import (
    AuthPayload,
    ChangePasswordRequest,
    LoginRequest,
    TokenInfo,
    UserPublic,
    UserRegister,
)
from chat_api.services.auth_service import AuthService, Identity

router = APIRouter(prefix="/auth", tags=["Authentication"])

change_password_limit = rate_limit_by_user("change_password_limiter")


def _auth_payload(auth: AuthService, user, token: str) -> AuthPayload:
    return AuthPayload(
        user=UserPublic.model_validate(user),
        token=token,
        expires_in=int(auth.token_lifetime.total_seconds()),
    )


@router.post(
    "/register",
    response_model=ApiResponse[AuthPayload],
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account",
)
async def register(
    body: UserRegister,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[AuthPayload]:
    """Duplicate email or username → 409."""
    user, token = await auth.register(
        username=body.username,
        email=body.email,
        password=body.password,
        avatar=body.avatar,
    )
    return ApiResponse(
        message="User registered successfully",
        data=_auth_payload(auth, user, token),
    )


@router.post(
    "/login",
    response_model=ApiResponse[AuthPayload],
    summary="Login and receive a bearer token",
)
async def login(
    body: LoginRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[AuthPayload]:
    user, token = await auth.login(body.email, body.password)
    return ApiResponse(message="Login successful", data=_auth_payload(auth, user, token))


@router.post("/logout", response_model=ApiResponse[None], summary="Logout (mark offline)")
async def logout(
    identity: CurrentUser,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[None]:
    await auth.logout(identity.user_id)
    return ApiResponse(message="Logout successful")


@router.get("/verify", response_model=ApiResponse[TokenInfo], summary="Validate the current token")
async def verify(identity: CurrentUser) -> ApiResponse[TokenInfo]:
    return ApiResponse(
        message="Token is valid",
        data=TokenInfo(
            user_id=identity.user_id,
            username=identity.username,
            email=identity.email,
        ),
    )


@router.get("/profile", response_model=ApiResponse[UserPublic], summary="Get the caller's profile")
async def profile(
    identity: CurrentUser,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[UserPublic]:
    user = await auth.get_profile(identity.user_id)
    return ApiResponse(data=UserPublic.model_validate(user))


@router.put(
    "/change-password",
    response_model=ApiResponse[None],
    summary="Change the caller's password",
)
async def change_password(
    body: ChangePasswordRequest,
    identity: Annotated[Identity, Depends(change_password_limit)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[None]:
    await auth.change_password(identity.user_id, body.current_password, body.new_password)
    return ApiResponse(message="Password changed successfully")
