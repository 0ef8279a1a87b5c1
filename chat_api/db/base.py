"""
db/base.py
----------
Declarative base and shared column helpers.

Timestamps are stored as naive UTC datetimes so the same schema works on
SQLite and on PostgreSQL's plain TIMESTAMP columns.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_uuid() -> str:
    return str(uuid.uuid4())
