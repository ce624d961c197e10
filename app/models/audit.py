"""Модель журнала аудита."""
from datetime import datetime

from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class AuditLog(Base):
    """Запись журнала аудита (только добавление)."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)  # None для webhook
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    # Actions: CREATE_PAYMENT, CREATE_GATEWAY_ORDER, VERIFY_PAYMENT, PROCESS_PAYMENT,
    #          CONFIRM_PAYMENT, REFUND_PAYMENT, WEBHOOK_PAYMENT,
    #          CREATE_PROPERTY, UPDATE_PROPERTY, DELETE_PROPERTY
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    new_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
