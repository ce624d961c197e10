"""Общие фикстуры тестов.

- SQLite (aiosqlite) в tmp_path вместо PostgreSQL.
- Redis и Razorpay заменены фейками в памяти.
- HTTP-запросы идут через httpx.ASGITransport, lifespan не запускается:
  app.state заполняется фикстурой.
"""
import asyncio
import fnmatch
import os
import uuid
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict

# Настройки читаются при импорте app.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"

import httpx
import pytest
from httpx import ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.cache import CacheService
from app.core.exceptions import GatewayError
from app.core.locks import KeyedLock
from app.core.security import compute_hmac_sha256, create_access_token, verify_hmac_sha256
from app.database import Base, get_db
from app.models import AuditLog, Booking, Payment, Property
from app.services.payment_service import PaymentService

KEY_SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "whsec_test"


class FakeRedis:
    """Минимальный redis.asyncio.Redis в памяти."""

    def __init__(self):
        self.store: Dict[str, str] = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def keys(self, pattern):
        return [key for key in self.store if fnmatch.fnmatchcase(key, pattern)]

    async def close(self):
        pass


class BrokenRedis:
    """Redis, у которого падает любая команда."""

    async def _fail(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    ping = get = setex = delete = keys = _fail

    async def close(self):
        pass


class FakeGateway:
    """Razorpay в памяти: заказы, платежи и возвраты."""

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET):
        self.webhook_secret = webhook_secret
        self.orders: list[Dict[str, Any]] = []
        self.payments: Dict[str, Dict[str, Any]] = {}
        self.refunds: list[Dict[str, Any]] = []
        self.fetch_calls = 0
        self.fail_create = False

    async def create_order(self, amount_minor, currency, receipt, notes):
        if self.fail_create:
            raise GatewayError("Razorpay API error: 503 - unavailable", http_status=503)
        order = {
            "id": f"order_{uuid.uuid4().hex[:14]}",
            "entity": "order",
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "notes": notes,
        }
        self.orders.append(order)
        return order

    async def fetch_payment(self, gateway_payment_id):
        self.fetch_calls += 1
        # Отдаем управление, чтобы конкурирующие запросы успели встать в очередь
        await asyncio.sleep(0)
        return self.payments[gateway_payment_id]

    async def refund(self, gateway_payment_id, amount_minor, notes):
        refund = {
            "id": f"rfnd_{uuid.uuid4().hex[:14]}",
            "entity": "refund",
            "payment_id": gateway_payment_id,
            "amount": amount_minor,
            "status": "processed",
            "notes": notes,
        }
        self.refunds.append(refund)
        return refund

    def verify_webhook_signature(self, raw_payload, signature_header):
        return verify_hmac_sha256(self.webhook_secret, raw_payload, signature_header)

    def add_payment(self, gateway_payment_id, order, status="captured", error_description=None):
        payment = {
            "id": gateway_payment_id,
            "entity": "payment",
            "order_id": order["id"],
            "amount": order["amount"],
            "currency": order["currency"],
            "status": status,
            "error_description": error_description,
        }
        self.payments[gateway_payment_id] = payment
        return payment


def checkout_signature(order_id: str, gateway_payment_id: str) -> str:
    return compute_hmac_sha256(KEY_SECRET, f"{order_id}|{gateway_payment_id}")


def auth_headers(role: str = "agent", user_id: str = "user-1") -> Dict[str, str]:
    token = create_access_token({"user_id": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


async def count_audit(session_factory, action: str, entity_id) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(AuditLog).where(
            AuditLog.action == action,
            AuditLog.entity_id == str(entity_id),
        )
        return (await session.execute(stmt)).scalar_one()


async def reload_payment(session_factory, payment_id) -> Payment:
    async with session_factory() as session:
        return await session.get(Payment, payment_id)


async def reload_booking(session_factory, booking_id) -> Booking:
    async with session_factory() as session:
        return await session.get(Booking, booking_id)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis) -> CacheService:
    return CacheService(client=fake_redis)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def payment_service(db, gateway, cache, locks) -> PaymentService:
    return PaymentService(db, gateway, cache, locks, signature_secret=KEY_SECRET)


@pytest.fixture
async def booking_id(session_factory) -> uuid.UUID:
    """ID бронирования (объект + бронь в отдельной сессии)."""
    async with session_factory() as session:
        prop = Property(
            name="Sea View 2BHK",
            type="APARTMENT",
            city="Mumbai",
            price=Decimal("12500000"),
        )
        session.add(prop)
        await session.flush()
        booking = Booking(property_id=prop.id, customer_name="Test Customer", amount=Decimal("500000"))
        session.add(booking)
        await session.commit()
        return booking.id


@pytest.fixture
async def client(session_factory, gateway, cache) -> AsyncGenerator[httpx.AsyncClient, None]:
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.cache = cache
    app.state.gateway = gateway
    app.state.payment_locks = KeyedLock()

    transport = ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()
