"""Блокировки по ключу внутри процесса."""
import asyncio
from contextlib import asynccontextmanager


class KeyedLock:
    """
    Набор asyncio.Lock, по одному на ключ (id платежа).

    Дополняет SELECT ... FOR UPDATE: сериализует обработку одного платежа внутри
    процесса, в том числе на бэкендах без строковых блокировок (SQLite).
    Неиспользуемые блокировки удаляются, чтобы словарь не рос бесконечно.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)
