"""
schemas/user.py
---------------
Pydantic models for registration, login and user responses.

Security note:
  - password_hash is NEVER included in any response schema.
  - Passwords require min 6 chars.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from chat_api.models.user import is_valid_email, is_valid_username
from chat_api.schemas.common import CamelModel

MIN_PASSWORD_LENGTH = 6


def _check_password(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    return v


class UserRegister(CamelModel):
    """Self-registration body. Also used by POST /users."""
    username: str = Field(..., examples=["alice_01"])
    email: str = Field(..., examples=["alice@example.com"])
    password: str = Field(..., max_length=128)
    avatar: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not is_valid_username(v):
            raise ValueError(
                "Invalid username. Must be 3-20 characters, alphanumeric and underscore only"
            )
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not is_valid_email(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _check_password(v)


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., max_length=128)

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, v: str) -> str:
        return _check_password(v)


class StatusUpdate(CamelModel):
    is_online: bool


class UserPublic(CamelModel):
    id: str
    username: str
    email: str
    avatar: Optional[str] = None
    is_online: bool
    last_seen: datetime
    created_at: datetime


class AuthPayload(CamelModel):
    user: UserPublic
    token: str
    expires_in: int  # seconds


class TokenInfo(CamelModel):
    user_id: str
    username: str
    email: str
