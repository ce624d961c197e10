"""Сервис для работы с объектами недвижимости."""
import logging
import math
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.cache import (
    CacheService,
    PROPERTY_CACHE_PREFIX,
    build_cache_key,
    get_cache_key_property,
)
from app.core.exceptions import NotFoundError
from app.models.property import Property
from app.schemas.common import Pagination
from app.schemas.property import (
    PropertyCreateRequest,
    PropertyFilters,
    PropertyListResponse,
    PropertyResponse,
    PropertyUpdateRequest,
)
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class PropertyService:
    """Сервис для работы с объектами недвижимости."""

    def __init__(self, db: AsyncSession, cache: CacheService):
        self.db = db
        self.cache = cache

    async def get_properties(self, filters: PropertyFilters) -> PropertyListResponse:
        """Получить объекты с фильтрацией (через кэш)."""
        cache_key = build_cache_key(PROPERTY_CACHE_PREFIX, "list", filters.model_dump(mode="json"))
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return PropertyListResponse.model_validate(cached)

        conditions = [Property.is_active == True]  # noqa: E712

        if filters.type:
            conditions.append(Property.type == filters.type.value)
        if filters.status:
            conditions.append(Property.status == filters.status.value)
        if filters.city:
            conditions.append(Property.city.ilike(f"%{filters.city}%"))
        if filters.min_price is not None:
            conditions.append(Property.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Property.price <= filters.max_price)
        if filters.bedrooms is not None:
            conditions.append(Property.bedrooms == filters.bedrooms)

        # Поиск по названию и адресу
        if filters.search:
            conditions.append(
                or_(
                    Property.name.ilike(f"%{filters.search}%"),
                    Property.address.ilike(f"%{filters.search}%"),
                )
            )

        page = max(filters.page, 1)
        limit = min(max(filters.limit, 1), 100)

        count_stmt = select(func.count()).select_from(Property).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            select(Property)
            .where(*conditions)
            .order_by(Property.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        properties = (await self.db.execute(stmt)).scalars().all()

        result = PropertyListResponse(
            properties=[PropertyResponse.model_validate(p) for p in properties],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )
        await self.cache.set(cache_key, result.model_dump(mode="json"), ttl=settings.cache_ttl)
        return result

    async def get_property_by_id(self, property_id: UUID) -> PropertyResponse:
        """Получить объект по ID (через кэш)."""
        cache_key = get_cache_key_property(str(property_id))
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return PropertyResponse.model_validate(cached)

        prop = await self._get_active(property_id)
        result = PropertyResponse.model_validate(prop)
        await self.cache.set(cache_key, result.model_dump(mode="json"), ttl=settings.cache_ttl)
        return result

    async def create_property(self, request: PropertyCreateRequest, actor_id: str | None) -> Property:
        """Создать объект."""
        data = request.model_dump()
        data["type"] = request.type.value
        data["status"] = request.status.value

        prop = Property(**data)
        self.db.add(prop)
        await self.db.flush()

        AuditService.log(
            self.db, actor_id, "CREATE_PROPERTY", "Property", prop.id,
            {"name": prop.name, "price": str(prop.price)},
        )
        await self.db.commit()
        await self.cache.invalidate_prefix(PROPERTY_CACHE_PREFIX)

        logger.info(f"Property created: {prop.id}")
        return prop

    async def update_property(
        self, property_id: UUID, request: PropertyUpdateRequest, actor_id: str | None
    ) -> Property:
        """Обновить объект (только переданные поля)."""
        prop = await self._get_active(property_id)

        changes = request.model_dump(exclude_unset=True, mode="json")
        for key, value in request.model_dump(exclude_unset=True).items():
            if key in ("type", "status") and value is not None:
                value = value.value
            setattr(prop, key, value)

        AuditService.log(self.db, actor_id, "UPDATE_PROPERTY", "Property", prop.id, changes)
        await self.db.commit()
        await self.cache.invalidate_prefix(PROPERTY_CACHE_PREFIX)

        logger.info(f"Property updated: {prop.id}")
        return prop

    async def delete_property(self, property_id: UUID, actor_id: str | None) -> None:
        """Удалить объект (мягкое удаление)."""
        prop = await self._get_active(property_id)
        prop.is_active = False

        AuditService.log(self.db, actor_id, "DELETE_PROPERTY", "Property", prop.id, None)
        await self.db.commit()
        await self.cache.invalidate_prefix(PROPERTY_CACHE_PREFIX)

        logger.info(f"Property deleted: {property_id}")

    async def _get_active(self, property_id: UUID) -> Property:
        prop = await self.db.get(Property, property_id)
        if not prop or not prop.is_active:
            raise NotFoundError("Property not found")
        return prop
