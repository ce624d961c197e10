"""Сервис журнала аудита."""
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog


class AuditService:
    """Добавляет записи аудита в текущую транзакцию."""

    @staticmethod
    def log(
        db: AsyncSession,
        user_id: Optional[str],
        action: str,
        entity: str,
        entity_id: Any,
        new_data: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """Создать запись аудита.

        Запись не коммитится здесь: она фиксируется вместе с изменением,
        которое описывает.

        Args:
            db: Сессия БД.
            user_id: Кто выполнил действие (None для webhook шлюза).
            action: Идентификатор действия (CREATE_PAYMENT, REFUND_PAYMENT, ...).
            entity: Тип сущности.
            entity_id: ID сущности.
            new_data: Новые значения полей.
        """
        entry = AuditLog(
            user_id=str(user_id) if user_id is not None else None,
            action=action,
            entity=entity,
            entity_id=str(entity_id),
            new_data=new_data or {},
        )
        db.add(entry)
        return entry
