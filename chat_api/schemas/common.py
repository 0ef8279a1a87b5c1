"""
schemas/common.py
-----------------
Response envelope and shared base model.

Every endpoint answers with:

    {"success": bool, "message": str?, "data": T?, "error": str?}

JSON keys are camelCase; request bodies accept camelCase or snake_case.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None
    error: Optional[str] = None
    count: Optional[int] = None


class Pagination(CamelModel):
    limit: int
    offset: int
    total: int
    has_more: bool

    @classmethod
    def build(cls, limit: int, offset: int, total: int, returned: int) -> "Pagination":
        return cls(
            limit=limit,
            offset=offset,
            total=total,
            has_more=offset + returned < total,
        )
