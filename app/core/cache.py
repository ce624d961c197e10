"""Кэширование через Redis."""
import json
import logging
from typing import Any, Optional
import redis.asyncio as redis

logger = logging.getLogger(__name__)

PAYMENT_CACHE_PREFIX = "payment:"
PROPERTY_CACHE_PREFIX = "property:"


class CacheService:
    """
    Сервис для работы с кэшем Redis.

    Кэш не является источником истины: любая ошибка Redis превращается в промах
    (или в no-op для записи) с предупреждением в логе.
    """

    def __init__(self, redis_url: str | None = None, client: Optional[redis.Redis] = None):
        self._redis_url = redis_url
        self._redis: Optional[redis.Redis] = client

    async def connect(self):
        """Подключение к Redis."""
        if self._redis or not self._redis_url:
            return
        try:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            # Проверяем подключение
            await self._redis.ping()
        except Exception as e:
            # Если Redis недоступен, продолжаем без кэша
            logger.warning(f"Redis недоступен, работаем без кэша: {e}")
            self._redis = None

    async def disconnect(self):
        """Отключение от Redis."""
        if self._redis:
            await self._redis.close()
            self._redis = None

    async def _client(self) -> Optional[redis.Redis]:
        if not self._redis:
            await self.connect()
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Получить значение из кэша."""
        client = await self._client()
        if not client:
            return None

        try:
            value = await client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning(f"Cache GET failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Установить значение в кэш."""
        client = await self._client()
        if not client:
            return False

        try:
            serialized = json.dumps(value, default=str)
            await client.setex(key, ttl, serialized)
            return True
        except Exception as e:
            logger.warning(f"Cache SET failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Удалить значение из кэша."""
        client = await self._client()
        if not client:
            return False

        try:
            await client.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Cache DELETE failed for {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Удалить все ключи по паттерну."""
        client = await self._client()
        if not client:
            return 0

        try:
            keys = await client.keys(pattern)
            if keys:
                return await client.delete(*keys)
            return 0
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {pattern}: {e}")
            return 0

    async def invalidate_prefix(self, prefix: str) -> int:
        """Сбросить все ключи сущности (грубая инвалидация по префиксу)."""
        deleted = await self.delete_pattern(f"{prefix}*")
        if deleted:
            logger.debug(f"Cleared {deleted} cache keys under {prefix}")
        return deleted


def build_cache_key(prefix: str, kind: str, filters: dict[str, Any] | None = None) -> str:
    """
    Генерация стабильного ключа кэша по фильтрам.

    Порядок ключей и пустые значения не влияют на результат.
    """
    params = {k: v for k, v in (filters or {}).items() if v is not None}
    return f"{prefix}{kind}:{json.dumps(params, sort_keys=True, default=str)}"


def get_cache_key_payment(payment_id: str) -> str:
    """Генерация ключа кэша для платежа."""
    return f"{PAYMENT_CACHE_PREFIX}detail:{payment_id}"


def get_cache_key_property(property_id: str) -> str:
    """Генерация ключа кэша для объекта недвижимости."""
    return f"{PROPERTY_CACHE_PREFIX}detail:{property_id}"
