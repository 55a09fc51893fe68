from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ListResponse(BaseModel, Generic[T]):
    success: bool = True
    data: List[T]
    pagination: Pagination


class DataResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: Optional[str] = None
