"""
api/routes/users.py
-------------------
Public user directory.

GET   /users              — All public profiles, newest first.
GET   /users/{id}         — One public profile.
POST  /users              — Create a user (alternative to /auth/register, no token).
PATCH /users/{id}/status  — Set online / offline.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from chat_api.core.exceptions import NotFoundError
from chat_api.dependencies import get_auth_service, get_user_repository
from chat_api.repositories.user_repository import UserRepository
from chat_api.schemas.common import ApiResponse
from chat_api.schemas.user import StatusUpdate, UserPublic, UserRegister
from chat_api.services.auth_service import AuthService

router = APIRouter(prefix="/users", tags=["Users"])

Users = Annotated[UserRepository, Depends(get_user_repository)]


@router.get("", response_model=ApiResponse[List[UserPublic]], summary="List all users")
async def list_users(users: Users) -> ApiResponse[List[UserPublic]]:
    found = await users.find_all()
    return ApiResponse(
        data=[UserPublic.model_validate(u) for u in found],
        count=len(found),
    )


@router.get("/{user_id}", response_model=ApiResponse[UserPublic], summary="Get a user")
async def get_user(user_id: str, users: Users) -> ApiResponse[UserPublic]:
    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFoundError(f"User with ID: {user_id} not found")
    return ApiResponse(data=UserPublic.model_validate(user))


@router.post(
    "",
    response_model=ApiResponse[UserPublic],
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    body: UserRegister,
    users: Users,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[UserPublic]:
    await auth.ensure_available(body.username, body.email)
    user = await users.create(body.username, body.email, body.password, body.avatar)
    return ApiResponse(
        message="User created successfully",
        data=UserPublic.model_validate(user),
    )


@router.patch(
    "/{user_id}/status",
    response_model=ApiResponse[UserPublic],
    summary="Update a user's online status",
)
async def update_status(
    user_id: str, body: StatusUpdate, users: Users
) -> ApiResponse[UserPublic]:
    user = await users.update_online_status(user_id, body.is_online)
    if user is None:
        raise NotFoundError("User not found")
    return ApiResponse(
        message=f"User status updated to {'online' if body.is_online else 'offline'}",
        data=UserPublic.model_validate(user),
    )
