"""Общий конверт ответов API."""
from typing import Any

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Единый конверт: {success, data?, message?, error?}."""

    success: bool
    data: Any | None = None
    message: str | None = None
    error: Any | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
