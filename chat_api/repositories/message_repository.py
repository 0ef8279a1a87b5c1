"""
repositories/message_repository.py
----------------------------------
Persistence and query contract for chat messages.

Ordering contract (clients depend on it):
  - conversations and reply threads read oldest → newest (ASC)
  - room history, mailboxes and search results read newest → oldest (DESC)

Paginated reads return (total, page) so callers can compute
hasMore = offset + len(page) < total.
"""

from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from chat_api.core.exceptions import PermissionDeniedError, ValidationError
from chat_api.core.logging import get_logger
from chat_api.db.session import Database
from chat_api.models.message import (
    EDIT_WINDOW_HOURS,
    MAX_MESSAGE_LENGTH,
    Message,
    MessageType,
    is_valid_body,
)
from chat_api.repositories.base import storage_guard

logger = get_logger(__name__)


def _conversation_filter(user_a: str, user_b: str):
    return or_(
        and_(Message.from_user == user_a, Message.to_user == user_b),
        and_(Message.from_user == user_b, Message.to_user == user_a),
    )


def _participant_filter(user_id: str):
    return or_(Message.from_user == user_id, Message.to_user == user_id)


class MessageRepository:

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Create / read ────────────────────────────────────────────────────────

    async def create(
        self,
        from_user: str,
        message: str,
        to_user: Optional[str] = None,
        room_from_message: Optional[str] = None,
        message_type: MessageType | str = MessageType.text,
        reply_to: Optional[str] = None,
    ) -> Message:
        """
        Build a message through the matching entity factory and persist it.

        Raises:
            ValidationError: both a recipient and a room were given, or the
                message is not valid for sending.
        """
        if to_user and room_from_message:
            raise ValidationError("A message cannot target both a user and a room")

        if reply_to:
            entity = Message.create_reply(
                from_user, reply_to, message,
                to_user=to_user, room_id=room_from_message, message_type=message_type,
            )
        elif to_user:
            entity = Message.create_direct(from_user, to_user, message, message_type)
        elif room_from_message:
            entity = Message.create_room(from_user, room_from_message, message, message_type)
        else:
            entity = Message.create_broadcast(from_user, message, message_type)

        if not entity.is_valid_for_sending():
            raise ValidationError(
                f"Message must be 1-{MAX_MESSAGE_LENGTH} characters with a known type"
            )

        async with storage_guard("create_message", from_user=from_user):
            async with self._db.session() as session:
                session.add(entity)

        logger.info(
            "Message stored",
            message_id=entity.id,
            from_user=from_user,
            direct=entity.is_direct_message(),
            room=entity.room_from_message,
        )
        return entity

    async def get_by_id(self, message_id: str) -> Optional[Message]:
        async with storage_guard("get_message", message_id=message_id):
            async with self._db.session() as session:
                return await session.get(Message, message_id)

    async def _page(
        self,
        operation: str,
        criterion,
        order,
        limit: int,
        offset: int,
        options=(),
    ) -> Tuple[int, List[Message]]:
        async with storage_guard(operation):
            async with self._db.session() as session:
                total = (
                    await session.execute(
                        select(func.count()).select_from(Message).where(criterion)
                    )
                ).scalar_one()
                result = await session.execute(
                    select(Message)
                    .options(*options)
                    .where(criterion)
                    .order_by(order, Message.id)
                    .offset(offset)
                    .limit(limit)
                )
                return total, list(result.scalars().all())

    async def get_conversation(
        self, user_a: str, user_b: str, limit: int = 50, offset: int = 0
    ) -> Tuple[int, List[Message]]:
        """
        Direct messages between two users, oldest first. Each message has
        from_user_data loaded (outer join, None when the sender has no row).
        """
        return await self._page(
            "get_conversation",
            _conversation_filter(user_a, user_b),
            Message.message_date.asc(),
            limit,
            offset,
            options=(joinedload(Message.from_user_data),),
        )

    async def get_room_messages(
        self, room_id: str, limit: int = 50, offset: int = 0
    ) -> Tuple[int, List[Message]]:
        """Room history, most recent first."""
        return await self._page(
            "get_room_messages",
            Message.room_from_message == room_id,
            Message.message_date.desc(),
            limit,
            offset,
        )

    async def get_user_messages(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> Tuple[int, List[Message]]:
        """Everything the user sent or received, most recent first."""
        return await self._page(
            "get_user_messages",
            _participant_filter(user_id),
            Message.message_date.desc(),
            limit,
            offset,
        )

    # ── Owner-scoped writes ──────────────────────────────────────────────────

    async def update_message(
        self, message_id: str, requester_id: str, new_body: str
    ) -> Optional[Message]:
        """
        Edit a message on behalf of its sender.

        Returns:
            The message, or None when it does not exist or the requester is
            not the sender. The two cases look the same to the caller.

        Raises:
            ValidationError: the new body is empty or too long.
            PermissionDeniedError: the sender is past the edit window, or the
                message is a system message.
        """
        if not is_valid_body(new_body):
            raise ValidationError(
                f"Message content must be 1-{MAX_MESSAGE_LENGTH} characters"
            )

        async with storage_guard("update_message", message_id=message_id):
            async with self._db.session() as session:
                message = await session.get(Message, message_id)
                if message is None or not message.is_from_user(requester_id):
                    return None

                if not message.can_edit(requester_id):
                    raise PermissionDeniedError(
                        f"Messages can only be edited within {EDIT_WINDOW_HOURS} hours of sending"
                    )

                changed = message.edit(new_body)

        if changed:
            logger.info("Message edited", message_id=message_id, user_id=requester_id)
        return message

    async def delete_message(self, message_id: str, requester_id: str) -> bool:
        """
        Delete a message only if requester_id is its sender.

        Returns False when nothing was deleted: unknown id, foreign message
        and storage failure all collapse into the same result.
        """
        try:
            async with self._db.session() as session:
                result = await session.execute(
                    delete(Message).where(
                        Message.id == message_id,
                        Message.from_user == requester_id,
                    )
                )
                deleted = result.rowcount > 0
        except SQLAlchemyError as exc:
            logger.error(
                "Error deleting message",
                message_id=message_id,
                user_id=requester_id,
                error=str(exc),
            )
            return False

        if deleted:
            logger.info("Message deleted", message_id=message_id, user_id=requester_id)
        return deleted

    # ── Digests / search ─────────────────────────────────────────────────────

    async def get_recent_conversations(self, user_id: str, limit: int = 10) -> List[Message]:
        """
        Latest direct message per counterpart, most recent conversation first.
        Exact timestamp ties inside one conversation keep a single message.
        """
        counterpart = case(
            (Message.from_user == user_id, Message.to_user),
            else_=Message.from_user,
        ).label("counterpart")

        latest = (
            select(counterpart, func.max(Message.message_date).label("last_date"))
            .where(_participant_filter(user_id), Message.to_user.is_not(None))
            .group_by(counterpart)
            .subquery()
        )

        stmt = (
            select(Message, latest.c.counterpart)
            .join(
                latest,
                and_(
                    or_(
                        and_(
                            Message.from_user == user_id,
                            Message.to_user == latest.c.counterpart,
                        ),
                        and_(
                            Message.from_user == latest.c.counterpart,
                            Message.to_user == user_id,
                        ),
                    ),
                    Message.message_date == latest.c.last_date,
                ),
            )
            .order_by(Message.message_date.desc())
        )

        async with storage_guard("get_recent_conversations", user_id=user_id):
            async with self._db.session() as session:
                rows = (await session.execute(stmt)).all()

        conversations: List[Message] = []
        seen = set()
        for message, other in rows:
            if other in seen:
                continue
            seen.add(other)
            conversations.append(message)
            if len(conversations) >= limit:
                break
        return conversations

    async def search_messages(
        self, text: str, user_id: Optional[str] = None, limit: int = 20
    ) -> List[Message]:
        """Case-insensitive substring match on the body, newest first."""
        stmt = select(Message).where(Message.message.icontains(text, autoescape=True))
        if user_id:
            stmt = stmt.where(_participant_filter(user_id))
        stmt = stmt.order_by(Message.message_date.desc(), Message.id).limit(limit)

        async with storage_guard("search_messages"):
            async with self._db.session() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())

    async def get_replies(self, message_id: str) -> List[Message]:
        """Thread replies, oldest first."""
        async with storage_guard("get_replies", message_id=message_id):
            async with self._db.session() as session:
                result = await session.execute(
                    select(Message)
                    .where(Message.reply_to == message_id)
                    .order_by(Message.message_date.asc(), Message.id)
                )
                return list(result.scalars().all())

    # ── Counts ───────────────────────────────────────────────────────────────

    async def _count(self, operation: str, *criteria) -> int:
        async with storage_guard(operation):
            async with self._db.session() as session:
                result = await session.execute(
                    select(func.count()).select_from(Message).where(*criteria)
                )
                return result.scalar_one()

    async def count_conversation_messages(self, user_a: str, user_b: str) -> int:
        return await self._count(
            "count_conversation_messages", _conversation_filter(user_a, user_b)
        )

    async def count_room_messages(self, room_id: str) -> int:
        return await self._count("count_room_messages", Message.room_from_message == room_id)

    async def count_user_messages(self, user_id: str) -> int:
        return await self._count("count_user_messages", _participant_filter(user_id))

    async def get_user_message_stats(self, user_id: str) -> Dict[str, int]:
        return {
            "total_sent": await self._count("count_sent", Message.from_user == user_id),
            "total_received": await self._count("count_received", Message.to_user == user_id),
            "total_edited": await self._count(
                "count_edited",
                Message.from_user == user_id,
                Message.is_edited.is_(True),
            ),
        }
