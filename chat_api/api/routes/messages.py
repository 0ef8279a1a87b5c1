"""
api/routes/messages.py
----------------------
Chat message endpoints.

POST   /messages                                  — Send (sender = caller)
GET    /messages/search                           — Substring search
GET    /messages/conversation/{user_a}/{user_b}   — Direct history with sender profiles, oldest first
GET    /messages/room/{room_id}                   — Room history, newest first
GET    /messages/user/{user_id}                   — Caller's mailbox, newest first
GET    /messages/user/{user_id}/conversations     — Latest message per counterpart
GET    /messages/user/{user_id}/stats             — Sent / received / edited counts
GET    /messages/{message_id}/replies             — Thread replies, oldest first
GET    /messages/{message_id}                     — One message
PUT    /messages/{message_id}                     — Edit (sender, within 24h)
DELETE /messages/{message_id}                     — Delete (sender only)

Static paths are declared before /{message_id} so they are matched first.
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status

from chat_api.core.exceptions import NotFoundError
from chat_api.dependencies import (
    CurrentUser,
    OptionalUser,
    get_message_repository,
    require_ownership,
)
from chat_api.repositories.message_repository import MessageRepository
from chat_api.schemas.common import ApiResponse, Pagination
from chat_api.schemas.message import (
    ConversationMessage,
    ConversationPage,
    MessageCreate,
    MessagePage,
    MessageRead,
    MessageStats,
    MessageUpdate,
)
from chat_api.services.auth_service import Identity

router = APIRouter(prefix="/messages", tags=["Messages"])

Messages = Annotated[MessageRepository, Depends(get_message_repository)]
Owner = Annotated[Identity, Depends(require_ownership("user_id"))]

Limit = Annotated[int, Query(ge=1, le=200, description="Results per page")]
Offset = Annotated[int, Query(ge=0, description="Pagination offset")]


def _page(messages, total: int, limit: int, offset: int) -> MessagePage:
    return MessagePage(
        messages=[MessageRead.model_validate(m) for m in messages],
        pagination=Pagination.build(limit, offset, total, len(messages)),
    )


@router.post(
    "",
    response_model=ApiResponse[MessageRead],
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    body: MessageCreate, identity: CurrentUser, messages: Messages
) -> ApiResponse[MessageRead]:
    message = await messages.create(
        from_user=identity.user_id,
        message=body.message,
        to_user=body.to_user,
        room_from_message=body.room_from_message,
        message_type=body.message_type,
        reply_to=body.reply_to,
    )
    return ApiResponse(
        message="Message created successfully",
        data=MessageRead.model_validate(message),
    )


@router.get("/search", response_model=ApiResponse[List[MessageRead]], summary="Search messages")
async def search_messages(
    messages: Messages,
    _caller: OptionalUser,
    query: Annotated[str, Query(min_length=1, description="Text to look for")],
    user_id: Annotated[Optional[str], Query(alias="userId")] = None,
    limit: Limit = 20,
) -> ApiResponse[List[MessageRead]]:
    found = await messages.search_messages(query, user_id=user_id, limit=limit)
    return ApiResponse(data=[MessageRead.model_validate(m) for m in found])


@router.get(
    "/conversation/{user_a}/{user_b}",
    response_model=ApiResponse[ConversationPage],
    summary="Direct message history between two users",
)
async def get_conversation(
    user_a: str,
    user_b: str,
    _caller: CurrentUser,
    messages: Messages,
    limit: Limit = 50,
    offset: Offset = 0,
) -> ApiResponse[ConversationPage]:
    total, page = await messages.get_conversation(user_a, user_b, limit, offset)
    return ApiResponse(
        data=ConversationPage(
            messages=[ConversationMessage.model_validate(m) for m in page],
            pagination=Pagination.build(limit, offset, total, len(page)),
        )
    )


@router.get(
    "/room/{room_id}",
    response_model=ApiResponse[MessagePage],
    summary="Room history",
)
async def get_room_messages(
    room_id: str,
    _caller: OptionalUser,
    messages: Messages,
    limit: Limit = 50,
    offset: Offset = 0,
) -> ApiResponse[MessagePage]:
    total, page = await messages.get_room_messages(room_id, limit, offset)
    return ApiResponse(data=_page(page, total, limit, offset))


@router.get(
    "/user/{user_id}",
    response_model=ApiResponse[MessagePage],
    summary="Messages sent or received by the caller",
)
async def get_user_messages(
    user_id: str,
    _owner: Owner,
    messages: Messages,
    limit: Limit = 50,
    offset: Offset = 0,
) -> ApiResponse[MessagePage]:
    total, page = await messages.get_user_messages(user_id, limit, offset)
    return ApiResponse(data=_page(page, total, limit, offset))


@router.get(
    "/user/{user_id}/conversations",
    response_model=ApiResponse[List[MessageRead]],
    summary="Most recent message per conversation",
)
async def get_recent_conversations(
    user_id: str,
    _owner: Owner,
    messages: Messages,
    limit: Limit = 10,
) -> ApiResponse[List[MessageRead]]:
    found = await messages.get_recent_conversations(user_id, limit)
    return ApiResponse(data=[MessageRead.model_validate(m) for m in found])


@router.get(
    "/user/{user_id}/stats",
    response_model=ApiResponse[MessageStats],
    summary="Sent / received / edited counts",
)
async def get_user_message_stats(
    user_id: str, _owner: Owner, messages: Messages
) -> ApiResponse[MessageStats]:
    stats = await messages.get_user_message_stats(user_id)
    return ApiResponse(data=MessageStats(**stats))


@router.get(
    "/{message_id}/replies",
    response_model=ApiResponse[List[MessageRead]],
    summary="Replies to a message",
)
async def get_replies(
    message_id: str, _caller: OptionalUser, messages: Messages
) -> ApiResponse[List[MessageRead]]:
    replies = await messages.get_replies(message_id)
    return ApiResponse(data=[MessageRead.model_validate(m) for m in replies])


@router.get("/{message_id}", response_model=ApiResponse[MessageRead], summary="Get a message")
async def get_message(
    message_id: str, _caller: OptionalUser, messages: Messages
) -> ApiResponse[MessageRead]:
    message = await messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    return ApiResponse(data=MessageRead.model_validate(message))


@router.put("/{message_id}", response_model=ApiResponse[MessageRead], summary="Edit a message")
async def update_message(
    message_id: str,
    body: MessageUpdate,
    identity: CurrentUser,
    messages: Messages,
) -> ApiResponse[MessageRead]:
    message = await messages.update_message(message_id, identity.user_id, body.message)
    if message is None:
        raise NotFoundError(
            "Message not found or you do not have permission to edit this message"
        )
    return ApiResponse(
        message="Message updated successfully",
        data=MessageRead.model_validate(message),
    )


@router.delete("/{message_id}", response_model=ApiResponse[None], summary="Delete a message")
async def delete_message(
    message_id: str, identity: CurrentUser, messages: Messages
) -> ApiResponse[None]:
    if not await messages.delete_message(message_id, identity.user_id):
        raise NotFoundError(
            "Message not found or you do not have permission to delete this message"
        )
    return ApiResponse(message="Message deleted successfully")
