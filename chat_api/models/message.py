"""
models/message.py
-----------------
Chat message ORM model and its domain behaviour.

Addressing modes (mutually exclusive):
  - direct:    to_user set, room_from_message unset
  - room:      room_from_message set, to_user unset
  - broadcast: neither set
A message with both set is not valid for sending.

Edit rules: only the sender, never a system message, only within
EDIT_WINDOW_HOURS of message_date. Delete rules: only the sender.
"""

from datetime import datetime, timedelta
from enum import Enum as PyEnum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chat_api.db.base import Base, generate_uuid, utcnow

if TYPE_CHECKING:
    from chat_api.models.user import User

MAX_MESSAGE_LENGTH = 1000
EDIT_WINDOW_HOURS = 24
SYSTEM_SENDER = "system"


class MessageType(str, PyEnum):
    text = "text"
    image = "image"
    file = "file"
    system = "system"


_KNOWN_TYPES = {t.value for t in MessageType}


def is_valid_body(body: Optional[str]) -> bool:
    return bool(body) and len(body.strip()) > 0 and len(body) <= MAX_MESSAGE_LENGTH


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    from_user: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    to_user: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    message_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    room_from_message: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    message_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=MessageType.text.value
    )
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reply_to: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    # Sender profile, loaded only by conversation reads. No FK: "system" has no row.
    from_user_data: Mapped[Optional["User"]] = relationship(
        "User",
        primaryjoin="foreign(Message.from_user) == User.id",
        viewonly=True,
        lazy="raise",
    )

    # ── Factories ────────────────────────────────────────────────────────────

    @classmethod
    def _new(
        cls,
        from_user: str,
        body: str,
        message_type: MessageType | str = MessageType.text,
        to_user: Optional[str] = None,
        room_from_message: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> "Message":
        return cls(
            id=generate_uuid(),
            from_user=from_user,
            to_user=to_user or None,
            message=body,
            message_date=utcnow(),
            room_from_message=room_from_message or None,
            message_type=getattr(message_type, "value", message_type),
            is_edited=False,
            edited_at=None,
            reply_to=reply_to or None,
        )

    @classmethod
    def create_direct(
        cls, from_user: str, to_user: str, body: str,
        message_type: MessageType | str = MessageType.text,
    ) -> "Message":
        return cls._new(from_user, body, message_type, to_user=to_user)

    @classmethod
    def create_room(
        cls, from_user: str, room_id: str, body: str,
        message_type: MessageType | str = MessageType.text,
    ) -> "Message":
        return cls._new(from_user, body, message_type, room_from_message=room_id)

    @classmethod
    def create_broadcast(
        cls, from_user: str, body: str,
        message_type: MessageType | str = MessageType.text,
    ) -> "Message":
        return cls._new(from_user, body, message_type)

    @classmethod
    def create_system(cls, body: str, room_id: Optional[str] = None) -> "Message":
        return cls._new(SYSTEM_SENDER, body, MessageType.system, room_from_message=room_id)

    @classmethod
    def create_reply(
        cls,
        from_user: str,
        reply_to_id: str,
        body: str,
        to_user: Optional[str] = None,
        room_id: Optional[str] = None,
        message_type: MessageType | str = MessageType.text,
    ) -> "Message":
        return cls._new(
            from_user, body, message_type,
            to_user=to_user, room_from_message=room_id, reply_to=reply_to_id,
        )

    # ── Validation ───────────────────────────────────────────────────────────

    def is_valid_message(self) -> bool:
        return is_valid_body(self.message)

    def is_valid_message_type(self) -> bool:
        return self.message_type in _KNOWN_TYPES

    def has_single_address(self) -> bool:
        return not (self.to_user and self.room_from_message)

    def is_valid_for_sending(self) -> bool:
        return (
            self.is_valid_message()
            and self.is_valid_message_type()
            and bool(self.from_user)
            and self.has_single_address()
        )

    # ── Classification ───────────────────────────────────────────────────────

    def is_direct_message(self) -> bool:
        return bool(self.to_user) and not self.room_from_message

    def is_room_message(self) -> bool:
        return bool(self.room_from_message) and not self.to_user

    def is_broadcast_message(self) -> bool:
        return not self.to_user and not self.room_from_message

    def is_system_message(self) -> bool:
        return self.message_type == MessageType.system.value

    def is_reply(self) -> bool:
        return bool(self.reply_to)

    # ── Permissions ──────────────────────────────────────────────────────────

    def is_from_user(self, user_id: str) -> bool:
        return self.from_user == user_id

    def is_to_user(self, user_id: str) -> bool:
        return self.to_user == user_id

    def can_edit(self, user_id: str) -> bool:
        return (
            self.is_from_user(user_id)
            and not self.is_system_message()
            and not self.is_older_than(EDIT_WINDOW_HOURS)
        )

    def can_delete(self, user_id: str) -> bool:
        return self.is_from_user(user_id)

    # ── Mutation ─────────────────────────────────────────────────────────────

    def edit(self, new_body: str) -> bool:
        """
        Replace the body. Identical content is a no-op.

        Returns:
            True if the message changed.
        """
        if new_body == self.message:
            return False
        self.message = new_body
        self.is_edited = True
        self.edited_at = utcnow()
        return True

    # ── Utilities ────────────────────────────────────────────────────────────

    def is_older_than(self, hours: float) -> bool:
        return self.message_date < utcnow() - timedelta(hours=hours)

    def get_age(self) -> str:
        minutes = int((utcnow() - self.message_date).total_seconds() // 60)
        hours, days = minutes // 60, minutes // (60 * 24)

        if days > 0:
            return f"{days} day{'s' if days > 1 else ''} ago"
        if hours > 0:
            return f"{hours} hour{'s' if hours > 1 else ''} ago"
        if minutes > 0:
            return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
        return "Just now"

    def get_preview(self, max_length: int = 50) -> str:
        if len(self.message) <= max_length:
            return self.message
        return self.message[:max_length] + "..."

    def __repr__(self) -> str:
        return f"<Message id={self.id} from_user={self.from_user}>"
