# app/schemas/common.py
import math
from pydantic import BaseModel
from typing import Generic, List, TypeVar

DataType = TypeVar('DataType')

class PaginatedResponse(BaseModel, Generic[DataType]):
    """
    Универсальная Pydantic-схема для пагинированных ответов.
    """
    total_items: int
    total_pages: int
    current_page: int
    size: int
    items: List[DataType]


def total_pages_for(total_items: int, size: int) -> int:
    return math.ceil(total_items / size) if total_items > 0 else 1
