"""
repositories/base.py
--------------------
Shared error translation for repositories.

Every repository call runs inside storage_guard(), which turns SQLAlchemy
failures into the application taxonomy:

  IntegrityError  → ConflictError (only when a conflict_message is given)
  SQLAlchemyError → StorageError

The SQLAlchemy exception is logged with context and chained as __cause__.
Anything that is not a SQLAlchemy error passes through untouched.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from chat_api.core.exceptions import ConflictError, StorageError
from chat_api.core.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def storage_guard(
    operation: str,
    conflict_message: Optional[str] = None,
    **context: Any,
) -> AsyncGenerator[None, None]:
    try:
        yield
    except IntegrityError as exc:
        if conflict_message is None:
            logger.error("Integrity error", operation=operation, error=str(exc), **context)
            raise StorageError(f"{operation} failed") from exc
        logger.warning("Uniqueness conflict", operation=operation, **context)
        raise ConflictError(conflict_message) from exc
    except SQLAlchemyError as exc:
        logger.error("Storage failure", operation=operation, error=str(exc), **context)
        raise StorageError(f"{operation} failed") from exc
