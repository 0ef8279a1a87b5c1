"""
repositories/user_repository.py
-------------------------------
Persistence and query contract for users.

  - Absence is reported as None, never as an exception.
  - I/O failures surface as StorageError; uniqueness violations on
    insert/update surface as ConflictError.
  - bcrypt work runs in the threadpool so hashing never blocks the loop.
"""

from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select

from chat_api.core.logging import get_logger
from chat_api.db.session import Database
from chat_api.models.user import User
from chat_api.repositories.base import storage_guard

logger = get_logger(__name__)

_DUPLICATE_USER = "Email or username already registered"


class UserRepository:

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Lookups ──────────────────────────────────────────────────────────────

    async def _find_one(self, criterion, operation: str) -> Optional[User]:
        async with storage_guard(operation):
            async with self._db.session() as session:
                result = await session.execute(select(User).where(criterion))
                return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return await self._find_one(User.id == user_id, "find_user_by_id")

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._find_one(User.email == email, "find_user_by_email")

    async def find_by_username(self, username: str) -> Optional[User]:
        return await self._find_one(User.username == username, "find_user_by_username")

    async def find_all(self) -> List[User]:
        """All users, newest accounts first."""
        async with storage_guard("find_all_users"):
            async with self._db.session() as session:
                result = await session.execute(
                    select(User).order_by(User.created_at.desc())
                )
                return list(result.scalars().all())

    async def find_online_users(self) -> List[User]:
        """Online users, most recently seen first."""
        async with storage_guard("find_online_users"):
            async with self._db.session() as session:
                result = await session.execute(
                    select(User)
                    .where(User.is_online.is_(True))
                    .order_by(User.last_seen.desc())
                )
                return list(result.scalars().all())

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create(
        self,
        username: str,
        email: str,
        password: str,
        avatar: Optional[str] = None,
    ) -> User:
        """
        Persist a newly registered user.

        The registration workflow checks email/username availability first;
        a concurrent duplicate still fails here with ConflictError.
        """
        user = await run_in_threadpool(
            User.create_from_registration, username, email, password, avatar
        )
        async with storage_guard("create_user", conflict_message=_DUPLICATE_USER):
            async with self._db.session() as session:
                session.add(user)

        logger.info("User created", user_id=user.id, username=user.username)
        return user

    async def update(
        self,
        user_id: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Optional[User]:
        """
        Merge the provided fields into the stored user.
        A provided password is re-hashed before it is persisted.
        """
        async with storage_guard(
            "update_user", conflict_message=_DUPLICATE_USER, user_id=user_id
        ):
            async with self._db.session() as session:
                user = await session.get(User, user_id)
                if user is None:
                    return None

                user.apply_update(username=username, email=email, avatar=avatar)
                if password:
                    await run_in_threadpool(user.update_password, password)

        logger.info("User updated", user_id=user_id, password_changed=bool(password))
        return user

    async def update_online_status(self, user_id: str, is_online: bool) -> Optional[User]:
        async with storage_guard("update_online_status", user_id=user_id):
            async with self._db.session() as session:
                user = await session.get(User, user_id)
                if user is None:
                    return None

                if is_online:
                    user.set_online()
                else:
                    user.set_offline()

        logger.info("User status changed", user_id=user_id, is_online=is_online)
        return user

    # ── Utilities ────────────────────────────────────────────────────────────

    async def exists(self, email: str) -> bool:
        async with storage_guard("user_exists"):
            async with self._db.session() as session:
                result = await session.execute(
                    select(User.id).where(User.email == email).limit(1)
                )
                return result.first() is not None

    async def count(self) -> int:
        async with storage_guard("count_users"):
            async with self._db.session() as session:
                result = await session.execute(select(func.count()).select_from(User))
                return result.scalar_one()
