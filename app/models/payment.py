"""Модель платежа."""
import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Text, Numeric, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class PaymentMethod(str, enum.Enum):
    """Способ оплаты."""

    UPI = "UPI"
    CARD = "CARD"
    NET_BANKING = "NET_BANKING"
    WALLET = "WALLET"
    CASH = "CASH"
    CHEQUE = "CHEQUE"
    BANK_TRANSFER = "BANK_TRANSFER"


class PaymentStatus(str, enum.Enum):
    """Статус платежа."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


TERMINAL_STATUSES = {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.REFUNDED}

# Разрешенные переходы статусов
ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

GATEWAY_RAZORPAY = "razorpay"
GATEWAY_MANUAL = "manual"

GATEWAY_BY_METHOD = {
    PaymentMethod.UPI: GATEWAY_RAZORPAY,
    PaymentMethod.CARD: GATEWAY_RAZORPAY,
    PaymentMethod.NET_BANKING: GATEWAY_RAZORPAY,
    PaymentMethod.WALLET: GATEWAY_RAZORPAY,
    PaymentMethod.CASH: GATEWAY_MANUAL,
    PaymentMethod.CHEQUE: GATEWAY_MANUAL,
    PaymentMethod.BANK_TRANSFER: GATEWAY_MANUAL,
}


class Payment(Base):
    """Модель платежа (одна попытка оплаты или возврат)."""

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)  # < 0 только у возвратов
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    method: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default=PaymentStatus.PENDING.value, index=True)
    gateway: Mapped[str] = mapped_column(String, nullable=False)  # razorpay / manual
    gateway_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)  # устанавливается один раз
    gateway_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    booking_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("bookings.id"), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # metadata зарезервировано
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_refund(self) -> bool:
        return (self.payment_metadata or {}).get("type") == "refund"

    def can_transition_to(self, status: PaymentStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[PaymentStatus(self.status)]
