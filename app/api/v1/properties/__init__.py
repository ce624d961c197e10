"""Properties API."""
import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_user
from app.core.dependencies import get_property_service
from app.models.property import PropertyStatus, PropertyType
from app.schemas.common import ApiResponse
from app.schemas.property import (
    PropertyCreateRequest,
    PropertyFilters,
    PropertyResponse,
    PropertyUpdateRequest,
)
from app.services.property_service import PropertyService

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def get_properties(
    type: PropertyType | None = None,
    status_filter: PropertyStatus | None = Query(None, alias="status"),
    city: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    bedrooms: int | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    service: PropertyService = Depends(get_property_service),
):
    """Получить список объектов с фильтрацией."""
    filters = PropertyFilters(
        type=type,
        status=status_filter,
        city=city,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        search=search,
        page=page,
        limit=limit,
    )
    result = await service.get_properties(filters)
    return ApiResponse(success=True, data=result)


@router.get("/{property_id}", response_model=ApiResponse)
async def get_property(
    property_id: uuid.UUID,
    service: PropertyService = Depends(get_property_service),
):
    """Получить объект по ID."""
    prop = await service.get_property_by_id(property_id)
    return ApiResponse(success=True, data=prop)


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    request: PropertyCreateRequest,
    user: dict = Depends(get_current_user),
    service: PropertyService = Depends(get_property_service),
):
    """Создать объект."""
    prop = await service.create_property(request, user["user_id"])
    return ApiResponse(
        success=True,
        data=PropertyResponse.model_validate(prop),
        message="Property created successfully",
    )


@router.put("/{property_id}", response_model=ApiResponse)
async def update_property(
    property_id: uuid.UUID,
    request: PropertyUpdateRequest,
    user: dict = Depends(get_current_user),
    service: PropertyService = Depends(get_property_service),
):
    """Обновить объект."""
    prop = await service.update_property(property_id, request, user["user_id"])
    return ApiResponse(
        success=True,
        data=PropertyResponse.model_validate(prop),
        message="Property updated successfully",
    )


@router.delete("/{property_id}", response_model=ApiResponse)
async def delete_property(
    property_id: uuid.UUID,
    user: dict = Depends(get_current_user),
    service: PropertyService = Depends(get_property_service),
):
    """Удалить объект."""
    await service.delete_property(property_id, user["user_id"])
    return ApiResponse(success=True, message="Property deleted successfully")
