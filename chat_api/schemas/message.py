"""
schemas/message.py
------------------
Pydantic models for chat message exchange.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from chat_api.models.message import MAX_MESSAGE_LENGTH, is_valid_body
from chat_api.schemas.common import CamelModel, Pagination


def _check_body(v: str) -> str:
    if not is_valid_body(v):
        raise ValueError(f"Message must be 1-{MAX_MESSAGE_LENGTH} characters")
    return v


class MessageCreate(CamelModel):
    """
    Send body. The sender is always the authenticated caller; a client
    supplied fromUser is ignored.
    """
    message: str = Field(..., examples=["Hey, are you around?"])
    to_user: Optional[str] = None
    room_from_message: Optional[str] = None
    message_type: Literal["text", "image", "file"] = "text"
    reply_to: Optional[str] = None

    @field_validator("message")
    @classmethod
    def check_message(cls, v: str) -> str:
        return _check_body(v)

    @model_validator(mode="after")
    def check_address(self) -> "MessageCreate":
        if not self.to_user and not self.room_from_message:
            raise ValueError("Either toUser or roomFromMessage must be provided")
        if self.to_user and self.room_from_message:
            raise ValueError("Provide only one of toUser or roomFromMessage")
        return self


class MessageUpdate(CamelModel):
    message: str

    @field_validator("message")
    @classmethod
    def check_message(cls, v: str) -> str:
        return _check_body(v)


class MessageRead(CamelModel):
    id: str
    from_user: str
    to_user: Optional[str] = None
    message: str
    message_date: datetime
    room_from_message: Optional[str] = None
    message_type: str
    is_edited: bool
    edited_at: Optional[datetime] = None
    reply_to: Optional[str] = None


class SenderSummary(CamelModel):
    id: str
    username: str
    email: str


class ConversationMessage(MessageRead):
    from_user_data: Optional[SenderSummary] = None


class MessagePage(CamelModel):
    messages: List[MessageRead]
    pagination: Pagination


class ConversationPage(CamelModel):
    messages: List[ConversationMessage]
    pagination: Pagination


class MessageStats(CamelModel):
    total_sent: int
    total_received: int
    total_edited: int
