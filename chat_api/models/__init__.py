"""
models/__init__.py
------------------
Re-export all models so callers can import Base and every mapped table
via a single import:

    from chat_api.models import Base, User, Message
"""

from chat_api.db.base import Base
from chat_api.models.user import User
from chat_api.models.message import Message, MessageType

__all__ = ["Base", "User", "Message", "MessageType"]
