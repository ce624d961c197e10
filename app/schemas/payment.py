"""Схемы платежей."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.models.payment import PaymentMethod, PaymentStatus
from app.schemas.common import Pagination


class PaymentCreateRequest(BaseModel):
    """Запрос на создание платежа или заказа в шлюзе."""

    # Сумма не ограничивается здесь: проверка в сервисе дает InvalidAmountError
    amount: Decimal
    currency: str | None = None  # по умолчанию settings.default_currency
    method: PaymentMethod = PaymentMethod.UPI
    booking_id: uuid.UUID | None = None
    customer_id: str | None = None
    description: str | None = None
    metadata: dict[str, Any] | None = None


class PaymentResponse(BaseModel):
    """Платеж в ответе API и в кэше."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    gateway: str
    gateway_id: str | None = None
    gateway_data: dict | None = None
    booking_id: uuid.UUID | None = None
    description: str | None = None
    # У ORM-модели поле называется payment_metadata
    metadata: dict | None = Field(
        default=None,
        validation_alias=AliasChoices("payment_metadata", "metadata"),
    )
    failure_reason: str | None = None
    processed_at: datetime | None = None
    created_at: datetime


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]
    pagination: Pagination


class GatewayOrderResponse(BaseModel):
    """Ответ на создание заказа в шлюзе."""

    order_id: str
    amount: int  # в минимальных единицах валюты
    currency: str
    receipt: str | None = None
    payment_id: uuid.UUID


class PaymentStatsResponse(BaseModel):
    period: str
    total_payments: int
    completed_payments: int
    failed_payments: int
    success_rate: float
    total_amount: Decimal
    average_amount: Decimal
