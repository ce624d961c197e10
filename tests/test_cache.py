"""Тесты кэша: стабильные ключи и работа без Redis."""
from decimal import Decimal

import pytest

from app.core.cache import (
    CacheService,
    PAYMENT_CACHE_PREFIX,
    build_cache_key,
    get_cache_key_payment,
)
from app.core.locks import KeyedLock
from app.models import PaymentMethod
from app.schemas.payment import PaymentCreateRequest
from app.services.payment_service import PaymentService
from conftest import KEY_SECRET, BrokenRedis

pytestmark = pytest.mark.anyio


def test_cache_key_ignores_order_and_empty_values():
    first = build_cache_key("property:", "list", {"city": "Pune", "page": 1, "type": None})
    second = build_cache_key("property:", "list", {"page": 1, "city": "Pune"})

    assert first == second
    assert first == 'property:list:{"city": "Pune", "page": 1}'


def test_detail_key():
    assert get_cache_key_payment("abc") == "payment:detail:abc"


async def test_set_get_and_prefix_invalidation(cache, fake_redis):
    await cache.set("payment:detail:1", {"amount": "10.00"})
    await cache.set("payment:list:{}", {"payments": []})
    await cache.set("property:detail:1", {"name": "Villa"})

    assert await cache.get("payment:detail:1") == {"amount": "10.00"}

    deleted = await cache.invalidate_prefix(PAYMENT_CACHE_PREFIX)

    assert deleted == 2
    assert await cache.get("payment:detail:1") is None
    assert list(fake_redis.store) == ["property:detail:1"]


async def test_broken_redis_degrades_to_miss():
    cache = CacheService(client=BrokenRedis())

    assert await cache.get("payment:detail:1") is None
    assert await cache.set("payment:detail:1", {"a": 1}) is False
    assert await cache.delete("payment:detail:1") is False
    assert await cache.invalidate_prefix(PAYMENT_CACHE_PREFIX) == 0


async def test_unreachable_redis_on_connect():
    cache = CacheService("redis://127.0.0.1:1/0")

    await cache.connect()

    assert await cache.get("anything") is None


async def test_payment_service_works_without_cache(db, gateway):
    service = PaymentService(db, gateway, CacheService(client=BrokenRedis()), KeyedLock(), KEY_SECRET)

    payment = await service.create_payment(
        PaymentCreateRequest(amount=Decimal("1500"), method=PaymentMethod.CASH), "user-1"
    )
    await service.process_manual_payment(payment.id, None, "user-1")

    fetched = await service.get_payment(payment.id)
    assert fetched.status == "COMPLETED"
    listed = await service.list_payments()
    assert listed.pagination.total == 1


async def test_keyed_lock_releases_unused_keys():
    locks = KeyedLock()

    async with locks.hold("payment-1"):
        assert len(locks) == 1

    assert len(locks) == 0
