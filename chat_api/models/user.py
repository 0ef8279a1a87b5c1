"""
models/user.py
--------------
User ORM model and its domain behaviour.

The password_hash column stores bcrypt hashes only. Plain text is never
stored, never logged and never part of the public view.

Format rules (username 3-20 chars of [A-Za-z0-9_], basic email pattern)
are exposed as predicates here and enforced by the registration workflow
before anything reaches the repository.
"""

import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from chat_api.core.security import hash_password, verify_password
from chat_api.db.base import Base, generate_uuid, utcnow

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.fullmatch(username or ""))


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.fullmatch(email or ""))


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    username: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # ── Factory ──────────────────────────────────────────────────────────────

    @classmethod
    def create_from_registration(
        cls,
        username: str,
        email: str,
        password: str,
        avatar: Optional[str] = None,
    ) -> "User":
        """
        Build a new, offline user with a freshly hashed password.
        CPU-bound (bcrypt): call it from the threadpool in request paths.
        """
        now = utcnow()
        return cls(
            id=generate_uuid(),
            username=username,
            email=email,
            password_hash=hash_password(password),
            avatar=avatar,
            is_online=False,
            last_seen=now,
            created_at=now,
        )

    # ── Credentials ──────────────────────────────────────────────────────────

    def validate_password(self, plain: str) -> bool:
        return verify_password(plain, self.password_hash)

    def update_password(self, new_plain: str) -> None:
        self.password_hash = hash_password(new_plain)

    # ── Presence ─────────────────────────────────────────────────────────────

    def set_online(self) -> None:
        self.is_online = True
        self.last_seen = utcnow()

    def set_offline(self) -> None:
        self.is_online = False
        self.last_seen = utcnow()

    def is_recently_active(self, minutes: int = 5) -> bool:
        return self.last_seen > utcnow() - timedelta(minutes=minutes)

    # ── Validation ───────────────────────────────────────────────────────────

    def is_valid_username(self) -> bool:
        return is_valid_username(self.username)

    def is_valid_email(self) -> bool:
        return is_valid_email(self.email)

    def is_valid_for_chat(self) -> bool:
        return self.is_online and self.is_valid_username() and self.is_valid_email()

    def can_send_message(self) -> bool:
        return self.is_online and self.is_valid_username()

    # ── Updates / views ──────────────────────────────────────────────────────

    def apply_update(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> None:
        """Merge only the profile fields that were provided."""
        if username is not None:
            self.username = username
        if email is not None:
            self.email = email
        if avatar is not None:
            self.avatar = avatar

    @property
    def display_name(self) -> str:
        return self.username or self.email.split("@")[0]

    def to_public_view(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "avatar": self.avatar,
            "is_online": self.is_online,
            "last_seen": self.last_seen,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username}>"
