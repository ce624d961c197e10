"""Dependencies для FastAPI."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import CacheService
from app.core.locks import KeyedLock
from app.database import get_db
from app.services.gateway_service import PaymentGateway
from app.services.payment_service import PaymentService
from app.services.property_service import PropertyService


def get_cache(request: Request) -> CacheService:
    """Кэш, созданный в lifespan приложения."""
    return request.app.state.cache


def get_gateway(request: Request) -> PaymentGateway:
    """Адаптер платежного шлюза."""
    return request.app.state.gateway


def get_payment_locks(request: Request) -> KeyedLock:
    """Блокировки платежей, общие для всех запросов процесса."""
    return request.app.state.payment_locks


def get_payment_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    cache: CacheService = Depends(get_cache),
    locks: KeyedLock = Depends(get_payment_locks),
) -> PaymentService:
    return PaymentService(db, gateway, cache, locks)


def get_property_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> PropertyService:
    return PropertyService(db, cache)
