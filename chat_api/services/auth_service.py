"""
services/auth_service.py
------------------------
Registration, credential verification and token lifecycle.

Service layer is responsible for:
  - Enforcing business rules (unique email/username, correct password)
  - Issuing and verifying bearer tokens
  - Raising application errors, never building HTTP responses
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from chat_api.core.config import settings
from chat_api.core.exceptions import AuthError, ConflictError, NotFoundError
from chat_api.core.logging import get_logger
from chat_api.core.security import (
    TokenClaims,
    create_access_token,
    decode_access_token,
)
from chat_api.models.user import User
from chat_api.repositories.user_repository import UserRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as attached to a request."""

    user_id: str
    username: str
    email: str


class AuthService:

    def __init__(self, users: UserRepository) -> None:
        self._users = users

    @property
    def token_lifetime(self) -> timedelta:
        return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    # ── Tokens ───────────────────────────────────────────────────────────────

    def issue_token(self, user: User) -> str:
        return create_access_token(
            user_id=user.id,
            username=user.username,
            email=user.email,
            expires_delta=self.token_lifetime,
        )

    def verify_token(self, token: str) -> Optional[TokenClaims]:
        return decode_access_token(token)

    async def resolve_identity(self, token: Optional[str]) -> Identity:
        """
        Turn a raw bearer token into the caller's identity.

        Raises:
            AuthError: MISSING_TOKEN, INVALID_TOKEN or USER_NOT_FOUND.
        """
        if not token:
            raise AuthError("Access token is required", code="MISSING_TOKEN")

        claims = self.verify_token(token)
        if claims is None:
            raise AuthError("Invalid or expired token", code="INVALID_TOKEN")

        user = await self._users.find_by_id(claims.user_id)
        if user is None:
            logger.warning("User from valid token not found", user_id=claims.user_id)
            raise AuthError("User not found", code="USER_NOT_FOUND")

        return Identity(user_id=claims.user_id, username=claims.username, email=claims.email)

    # ── Account workflows ────────────────────────────────────────────────────

    async def ensure_available(self, username: str, email: str) -> None:
        if await self._users.find_by_email(email) is not None:
            raise ConflictError("Email already registered")
        if await self._users.find_by_username(username) is not None:
            raise ConflictError("Username already taken")

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        avatar: Optional[str] = None,
    ) -> Tuple[User, str]:
        await self.ensure_available(username, email)
        user = await self._users.create(username, email, password, avatar)
        logger.info("User registered", user_id=user.id)
        return user, self.issue_token(user)

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Verify credentials, mark the user online and issue a token.
        A wrong email and a wrong password are indistinguishable to callers.
        """
        user = await self._users.find_by_email(email)
        if user is None or not await run_in_threadpool(user.validate_password, password):
            logger.info("Failed login attempt")
            raise AuthError("Invalid email or password", code="INVALID_CREDENTIALS")

        user = await self._users.update_online_status(user.id, True) or user
        logger.info("User logged in", user_id=user.id)
        return user, self.issue_token(user)

    async def logout(self, user_id: str) -> None:
        await self._users.update_online_status(user_id, False)
        logger.info("User logged out", user_id=user_id)

    async def get_profile(self, user_id: str) -> User:
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self.get_profile(user_id)
        if not await run_in_threadpool(user.validate_password, current_password):
            raise AuthError("Current password is incorrect", code="INVALID_CREDENTIALS")

        await self._users.update(user_id, password=new_password)
        logger.info("Password changed", user_id=user_id)
