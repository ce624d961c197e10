"""Сервис для работы с бронированиями."""
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking

logger = logging.getLogger(__name__)


class BookingService:
    """Сервис для работы с бронированиями."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, booking_id: uuid.UUID) -> Booking | None:
        """Получить бронирование по ID."""
        return await self.db.get(Booking, booking_id)

    async def mark_payment_completed(self, booking_id: uuid.UUID) -> bool:
        """
        Отметить бронирование оплаченным.

        Вторичная запись после оплаты: ошибки логируются и не пробрасываются,
        платеж при этом не откатывается.
        """
        try:
            booking = await self.db.get(Booking, booking_id)
            if not booking:
                logger.warning(f"⚠️ Booking not found for payment side effect: {booking_id}")
                return False

            booking.payment_status = "COMPLETED"
            await self.db.commit()
            logger.info(f"✅ Booking {booking_id} payment_status updated to COMPLETED")
            return True
        except Exception as e:
            logger.error(f"❌ Error updating booking payment status {booking_id}: {e}", exc_info=True)
            await self.db.rollback()
            return False
