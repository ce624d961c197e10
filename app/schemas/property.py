"""Схемы объектов недвижимости."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict

from app.models.property import PropertyStatus, PropertyType
from app.schemas.common import Pagination


class PropertyCreateRequest(BaseModel):
    """Запрос на создание объекта."""

    name: str
    type: PropertyType
    status: PropertyStatus = PropertyStatus.AVAILABLE
    city: str
    address: str | None = None
    price: Decimal
    area: Decimal | None = None
    bedrooms: int | None = None
    description: str | None = None


class PropertyUpdateRequest(BaseModel):
    """Частичное обновление объекта."""

    name: str | None = None
    type: PropertyType | None = None
    status: PropertyStatus | None = None
    city: str | None = None
    address: str | None = None
    price: Decimal | None = None
    area: Decimal | None = None
    bedrooms: int | None = None
    description: str | None = None


class PropertyFilters(BaseModel):
    """Фильтры списка объектов (ключ кэша строится из них)."""

    type: PropertyType | None = None
    status: PropertyStatus | None = None
    city: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    bedrooms: int | None = None
    search: str | None = None
    page: int = 1
    limit: int = 10


class PropertyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    type: PropertyType
    status: PropertyStatus
    city: str
    address: str | None = None
    price: Decimal
    area: Decimal | None = None
    bedrooms: int | None = None
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class PropertyListResponse(BaseModel):
    properties: List[PropertyResponse]
    pagination: Pagination
