from pydantic import BaseModel
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


# Success envelope wrapped around every JSON payload
class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int


class Message(BaseModel):
    detail: str


def ok(data=None, message: Optional[str] = None) -> dict:
    return {"success": True, "data": data, "message": message}


def paginate(query, page: int, page_size: int) -> dict:
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "page_size": page_size}
