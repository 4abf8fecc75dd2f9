from typing import List, Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


# Paginated response wrapper, used by all list endpoints
class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


# Error responses
class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool = False


class PromoRejectedError(ErrorResponse):
    reason: str


class SeatTakenError(ErrorResponse):
    seats: List[str]


