"""Сервис для работы с платежами."""
import csv
import io
import logging
import math
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict

from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.cache import (
    CacheService,
    PAYMENT_CACHE_PREFIX,
    build_cache_key,
    get_cache_key_payment,
)
from app.core.exceptions import (
    InvalidAmountError,
    InvalidSignatureError,
    InvalidStateError,
    NotFoundError,
    PaymentProcessingError,
)
from app.core.locks import KeyedLock
from app.core.security import verify_hmac_sha256
from app.models.booking import Booking
from app.models.payment import (
    GATEWAY_BY_METHOD,
    GATEWAY_MANUAL,
    GATEWAY_RAZORPAY,
    TERMINAL_STATUSES,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from app.schemas.common import Pagination
from app.schemas.payment import (
    GatewayOrderResponse,
    PaymentCreateRequest,
    PaymentListResponse,
    PaymentResponse,
    PaymentStatsResponse,
)
from app.services.audit_service import AuditService
from app.services.booking_service import BookingService
from app.services.gateway_service import PaymentGateway

logger = logging.getLogger(__name__)

STATS_PERIODS = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}

REPORT_COLUMNS = [
    "id", "created_at", "amount", "currency", "method", "status",
    "gateway", "gateway_id", "booking_id", "type",
]


@dataclass
class ProcessingResult:
    """Результат обработки платежа конкретным способом оплаты."""

    status: PaymentStatus
    gateway_id: str
    gateway_data: Dict[str, Any] = field(default_factory=dict)


def to_minor_units(amount: Decimal) -> int:
    """Перевести сумму в минимальные единицы валюты (пайсы, центы)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_money(amount: Decimal) -> str:
    """Сумма с двумя знаками после запятой для отчетов."""
    return str(Decimal(amount).quantize(Decimal("0.01")))


class PaymentService:
    """
    Сервис для работы с платежами.

    Жизненный цикл: PENDING -> COMPLETED | FAILED, COMPLETED -> REFUNDED.
    Все изменения одного платежа выполняются под блокировкой этого платежа
    (KeyedLock в процессе + SELECT ... FOR UPDATE в БД).
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        cache: CacheService,
        locks: KeyedLock | None = None,
        signature_secret: str | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.cache = cache
        self.locks = locks or KeyedLock()
        self.signature_secret = (
            signature_secret if signature_secret is not None else settings.razorpay_key_secret
        )

    # ------------------------------------------------------------------
    # Создание
    # ------------------------------------------------------------------

    async def create_payment(self, request: PaymentCreateRequest, actor_id: str | None) -> Payment:
        """Создать платеж в статусе PENDING."""
        self._validate_amount(request.amount)
        await self._ensure_booking_exists(request.booking_id)

        method = PaymentMethod(request.method)
        payment = Payment(
            amount=request.amount,
            currency=self._currency(request.currency),
            method=method.value,
            status=PaymentStatus.PENDING.value,
            gateway=self.get_gateway_for_method(method),
            booking_id=request.booking_id,
            description=request.description,
            payment_metadata=request.metadata or {},
        )
        self.db.add(payment)
        await self.db.flush()

        AuditService.log(
            self.db, actor_id, "CREATE_PAYMENT", "Payment", payment.id,
            {"amount": str(payment.amount), "currency": payment.currency, "method": payment.method},
        )
        await self.db.commit()
        await self.cache.invalidate_prefix(PAYMENT_CACHE_PREFIX)

        logger.info(f"Payment created: {payment.id} for amount {payment.amount} {payment.currency}")
        return payment

    async def create_gateway_order(
        self, request: PaymentCreateRequest, actor_id: str | None
    ) -> GatewayOrderResponse:
        """
        Создать заказ в Razorpay и сохранить платеж.

        Строка в БД появляется только после успешного ответа шлюза:
        при GatewayError ничего не сохраняется.
        """
        self._validate_amount(request.amount)
        await self._ensure_booking_exists(request.booking_id)

        method = PaymentMethod(request.method)
        if self.get_gateway_for_method(method) != GATEWAY_RAZORPAY:
            raise PaymentProcessingError(f"Method {method.value} is not supported by the payment gateway")

        currency = self._currency(request.currency)
        amount_minor = to_minor_units(request.amount)
        receipt = f"receipt_{uuid.uuid4().hex[:16]}"

        order = await self.gateway.create_order(
            amount_minor,
            currency,
            receipt,
            notes={
                key: str(value)
                for key, value in {
                    "booking_id": request.booking_id,
                    "customer_id": request.customer_id,
                    "description": request.description,
                }.items()
                if value is not None
            },
        )

        payment = Payment(
            amount=request.amount,
            currency=currency,
            method=method.value,
            status=PaymentStatus.PENDING.value,
            gateway=GATEWAY_RAZORPAY,
            gateway_id=order["id"],
            gateway_data=order,
            booking_id=request.booking_id,
            description=request.description,
            payment_metadata=request.metadata or {},
        )
        self.db.add(payment)
        await self.db.flush()

        AuditService.log(
            self.db, actor_id, "CREATE_GATEWAY_ORDER", "Payment", payment.id,
            {"order_id": order["id"], "amount": str(payment.amount), "currency": currency},
        )
        await self.db.commit()
        await self.cache.invalidate_prefix(PAYMENT_CACHE_PREFIX)

        logger.info(f"Razorpay order created: {order['id']} for payment {payment.id}")
        return GatewayOrderResponse(
            order_id=order["id"],
            amount=order.get("amount", amount_minor),
            currency=order.get("currency", currency),
            receipt=order.get("receipt", receipt),
            payment_id=payment.id,
        )

    # ------------------------------------------------------------------
    # Смена статуса
    # ------------------------------------------------------------------

    async def verify_gateway_payment(
        self,
        payment_id: uuid.UUID,
        gateway_payment_id: str,
        signature: str,
        actor_id: str | None,
    ) -> Payment:
        """
        Проверить оплату после checkout Razorpay.

        Повторный вызов для уже завершенного платежа возвращает его без изменений.
        """
        async with self._locked(payment_id) as payment:
            if payment.gateway != GATEWAY_RAZORPAY or not payment.gateway_id:
                raise InvalidStateError("Payment has no gateway order to verify")

            message = f"{payment.gateway_id}|{gateway_payment_id}"
            if not verify_hmac_sha256(self.signature_secret, message, signature):
                logger.warning(f"❌ Invalid payment signature for payment {payment.id}")
                raise InvalidSignatureError("Invalid payment signature")

            if PaymentStatus(payment.status) in TERMINAL_STATUSES:
                logger.info(f"Payment {payment.id} already {payment.status}, verification skipped")
                return payment

            gateway_payment = await self.gateway.fetch_payment(gateway_payment_id)
            completed = self._apply_gateway_payment(payment, gateway_payment)

            AuditService.log(
                self.db, actor_id, "VERIFY_PAYMENT", "Payment", payment.id,
                {
                    "status": payment.status,
                    "gateway_payment_id": gateway_payment_id,
                    "processed_at": payment.processed_at.isoformat(),
                },
            )
            await self.db.commit()

        logger.info(f"Razorpay payment verified: {payment.id} with status {payment.status}")
        await self._after_status_change(payment, completed)
        return payment

    async def process_manual_payment(
        self,
        payment_id: uuid.UUID,
        method_data: Dict[str, Any] | None,
        actor_id: str | None,
    ) -> Payment:
        """
        Обработать платеж выбранным способом оплаты.

        Ошибка обработки переводит платеж в FAILED и пробрасывается дальше.
        """
        async with self._locked(payment_id) as payment:
            if payment.status != PaymentStatus.PENDING:
                raise InvalidStateError("Payment is not in pending status")

            try:
                result = self._process_by_method(payment, method_data or {}, actor_id)
            except Exception as e:
                reason = getattr(e, "message", None) or str(e) or "Unknown error"
                logger.error(f"Error processing payment {payment.id}: {reason}")
                self._set_status(payment, PaymentStatus.FAILED)
                payment.failure_reason = reason
                payment.processed_at = datetime.utcnow()
                AuditService.log(
                    self.db, actor_id, "PROCESS_PAYMENT", "Payment", payment.id,
                    {"status": payment.status, "failure_reason": reason},
                )
                await self.db.commit()
                await self.cache.invalidate_prefix(PAYMENT_CACHE_PREFIX)
                raise

            # Чек и перевод остаются PENDING до подтверждения
            if result.status != payment.status:
                self._set_status(payment, result.status)
            if payment.gateway_id is None:
                payment.gateway_id = result.gateway_id
            payment.gateway_data = {**(payment.gateway_data or {}), **result.gateway_data}
            payment.processed_at = datetime.utcnow()

            AuditService.log(
                self.db, actor_id, "PROCESS_PAYMENT", "Payment", payment.id,
                {
                    "status": payment.status,
                    "gateway_id": payment.gateway_id,
                    "processed_at": payment.processed_at.isoformat(),
                },
            )
            await self.db.commit()

        logger.info(f"Payment processed: {payment.id} with status {payment.status}")
        await self._after_status_change(payment, payment.status == PaymentStatus.COMPLETED)
        return payment

    async def confirm_manual_payment(self, payment_id: uuid.UUID, actor_id: str | None) -> Payment:
        """Подтвердить поступление чека или банковского перевода."""
        async with self._locked(payment_id) as payment:
            if payment.gateway != GATEWAY_MANUAL:
                raise InvalidStateError("Only manual payments can be confirmed")
            if payment.status != PaymentStatus.PENDING:
                raise InvalidStateError("Payment is not in pending status")
            if payment.gateway_id is None:
                raise InvalidStateError("Payment has not been processed yet")

            self._set_status(payment, PaymentStatus.COMPLETED)
            payment.processed_at = datetime.utcnow()
            AuditService.log(
                self.db, actor_id, "CONFIRM_PAYMENT", "Payment", payment.id,
                {"status": payment.status, "processed_at": payment.processed_at.isoformat()},
            )
            await self.db.commit()

        logger.info(f"Manual payment confirmed: {payment.id}")
        await self._after_status_change(payment, True)
        return payment

    async def refund_payment(
        self,
        payment_id: uuid.UUID,
        amount: Decimal,
        reason: str | None,
        actor_id: str | None,
    ) -> Payment:
        """
        Оформить возврат.

        Создает новую запись с отрицательной суммой и переводит исходный платеж
        в REFUNDED. Обе записи сохраняются одной транзакцией.
        """
        if amount is None or Decimal(amount) <= 0:
            raise InvalidAmountError("Refund amount must be greater than zero")
        amount = Decimal(amount)

        async with self._locked(payment_id) as payment:
            if payment.is_refund:
                raise InvalidStateError("Refund records cannot be refunded")
            if payment.status != PaymentStatus.COMPLETED:
                raise InvalidStateError("Can only refund completed payments")
            if amount > Decimal(payment.amount):
                raise InvalidAmountError("Refund amount cannot exceed payment amount")

            gateway_payment_id = self._gateway_payment_id(payment)
            if payment.gateway == GATEWAY_RAZORPAY and gateway_payment_id:
                refund_ref = await self.gateway.refund(
                    gateway_payment_id,
                    to_minor_units(amount),
                    notes={"reason": reason or "", "payment_id": str(payment.id)},
                )
                refund_gateway_id = refund_ref["id"]
                refund_gateway_data = refund_ref
            else:
                # Наличные, чеки и офлайн-отметки: возврат только в учете
                refund_gateway_id = f"refund_{uuid.uuid4().hex[:12]}"
                refund_gateway_data = {"type": "local", "amount": str(amount), "reason": reason}

            refund = Payment(
                amount=-amount,
                currency=payment.currency,
                method=payment.method,
                status=PaymentStatus.COMPLETED.value,
                gateway=payment.gateway,
                gateway_id=refund_gateway_id,
                gateway_data=refund_gateway_data,
                booking_id=payment.booking_id,
                description=f"Refund of payment {payment.id}",
                payment_metadata={
                    "type": "refund",
                    "original_payment_id": str(payment.id),
                    "reason": reason,
                },
                processed_at=datetime.utcnow(),
            )
            self.db.add(refund)
            self._set_status(payment, PaymentStatus.REFUNDED)
            await self.db.flush()

            AuditService.log(
                self.db, actor_id, "REFUND_PAYMENT", "Payment", payment.id,
                {"refund_id": str(refund.id), "amount": str(amount), "reason": reason},
            )
            try:
                await self.db.commit()
            except Exception:
                logger.critical(
                    f"Refund {refund_gateway_id} issued for payment {payment.id} "
                    f"but local records were not saved"
                )
                raise

        await self.cache.invalidate_prefix(PAYMENT_CACHE_PREFIX)
        logger.info(f"Refund processed: {refund.id} for payment {payment.id}")
        return refund

    async def process_webhook(self, event_data: Dict[str, Any]) -> Payment | None:
        """
        Обработать webhook Razorpay.

        payment.captured -> COMPLETED, payment.failed -> FAILED.
        Повторная доставка и неизвестные заказы ничего не меняют.
        """
        event_type = event_data.get("event")
        entity = event_data.get("payload", {}).get("payment", {}).get("entity", {})
        logger.info(f"Processing Razorpay webhook: {event_type}")

        if event_type not in ("payment.captured", "payment.failed"):
            logger.info(f"Event type '{event_type}' is not handled, skipping")
            return None

        order_id = entity.get("order_id")
        if not order_id:
            logger.warning("⚠️ No order_id in webhook payment entity")
            return None

        stmt = select(Payment.id).where(
            Payment.gateway == GATEWAY_RAZORPAY,
            Payment.gateway_id == order_id,
        )
        result = await self.db.execute(stmt)
        payment_id = result.scalar_one_or_none()

        if payment_id is None:
            logger.warning(f"⚠️ Payment not found for gateway order: {order_id}")
            return None

        async with self._locked(payment_id) as payment:
            if PaymentStatus(payment.status) in TERMINAL_STATUSES:
                logger.info(f"Payment {payment.id} already {payment.status}, duplicate webhook ignored")
                return payment

            completed = self._apply_gateway_payment(payment, entity)
            AuditService.log(
                self.db, None, "WEBHOOK_PAYMENT", "Payment", payment.id,
                {"event": event_type, "status": payment.status, "gateway_payment_id": entity.get("id")},
            )
            await self.db.commit()

        logger.info(f"✅ Payment webhook processed: {payment.id}, status: {payment.status}")
        await self._after_status_change(payment, completed)
        return payment

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    async def get_payment(self, payment_id: uuid.UUID) -> PaymentResponse:
        """Получить платеж по ID (через кэш)."""
        cache_key = get_cache_key_payment(str(payment_id))
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return PaymentResponse.model_validate(cached)

        payment = await self.db.get(Payment, payment_id)
        if not payment:
            raise NotFoundError("Payment not found")

        result = PaymentResponse.model_validate(payment)
        await self.cache.set(cache_key, result.model_dump(mode="json"), ttl=settings.cache_ttl)
        return result

    async def list_payments(
        self,
        status: PaymentStatus | None = None,
        method: PaymentMethod | None = None,
        gateway: str | None = None,
        booking_id: uuid.UUID | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> PaymentListResponse:
        """Список платежей с фильтрами и пагинацией (через кэш)."""
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        filters = {
            "status": status.value if status else None,
            "method": method.value if method else None,
            "gateway": gateway,
            "booking_id": str(booking_id) if booking_id else None,
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
            "page": page,
            "limit": limit,
        }
        cache_key = build_cache_key(PAYMENT_CACHE_PREFIX, "list", filters)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return PaymentListResponse.model_validate(cached)

        conditions = []
        if status:
            conditions.append(Payment.status == status.value)
        if method:
            conditions.append(Payment.method == method.value)
        if gateway:
            conditions.append(Payment.gateway == gateway)
        if booking_id:
            conditions.append(Payment.booking_id == booking_id)
        if start_date:
            conditions.append(Payment.created_at >= start_date)
        if end_date:
            conditions.append(Payment.created_at <= end_date)

        count_stmt = select(func.count()).select_from(Payment).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            select(Payment)
            .where(*conditions)
            .order_by(Payment.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        payments = (await self.db.execute(stmt)).scalars().all()

        result = PaymentListResponse(
            payments=[PaymentResponse.model_validate(p) for p in payments],
            pagination=Pagination(
                page=page, limit=limit, total=total, pages=math.ceil(total / limit)
            ),
        )
        await self.cache.set(cache_key, result.model_dump(mode="json"), ttl=settings.cache_ttl)
        return result

    async def get_payment_stats(self, period: str = "30d") -> PaymentStatsResponse:
        """Статистика платежей за период (возвраты не учитываются)."""
        if period not in STATS_PERIODS:
            period = "30d"

        cache_key = build_cache_key(PAYMENT_CACHE_PREFIX, "stats", {"period": period})
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return PaymentStatsResponse.model_validate(cached)

        start_date = datetime.utcnow() - STATS_PERIODS[period]
        base = [Payment.created_at >= start_date, Payment.amount > 0]
        completed = base + [Payment.status == PaymentStatus.COMPLETED.value]

        total_payments = (
            await self.db.execute(select(func.count()).select_from(Payment).where(*base))
        ).scalar_one()
        completed_payments = (
            await self.db.execute(select(func.count()).select_from(Payment).where(*completed))
        ).scalar_one()
        failed_payments = (
            await self.db.execute(
                select(func.count()).select_from(Payment).where(
                    *base, Payment.status == PaymentStatus.FAILED.value
                )
            )
        ).scalar_one()
        total_amount, average_amount = (
            await self.db.execute(
                select(func.sum(Payment.amount), func.avg(Payment.amount)).where(*completed)
            )
        ).one()

        result = PaymentStatsResponse(
            period=period,
            total_payments=total_payments,
            completed_payments=completed_payments,
            failed_payments=failed_payments,
            success_rate=(completed_payments / total_payments * 100) if total_payments else 0.0,
            total_amount=Decimal(str(total_amount or 0)),
            average_amount=Decimal(str(average_amount or 0)).quantize(Decimal("0.01")),
        )
        await self.cache.set(cache_key, result.model_dump(mode="json"), ttl=settings.cache_ttl)
        return result

    async def generate_payment_report(
        self, start_date: datetime, end_date: datetime, report_format: str = "json"
    ) -> Dict[str, Any] | str:
        """
        Отчет по платежам за период.

        Returns:
            dict для format=json, текст CSV для format=csv
        """
        if report_format not in ("json", "csv"):
            raise PaymentProcessingError(f"Unsupported report format: {report_format}")
        if start_date > end_date:
            raise PaymentProcessingError("Start date must be before end date")

        stmt = (
            select(Payment)
            .where(Payment.created_at >= start_date, Payment.created_at <= end_date)
            .order_by(Payment.created_at.asc())
        )
        payments = (await self.db.execute(stmt)).scalars().all()

        rows = [
            {
                "id": str(p.id),
                "created_at": p.created_at.isoformat(),
                "amount": format_money(p.amount),
                "currency": p.currency,
                "method": p.method,
                "status": p.status,
                "gateway": p.gateway,
                "gateway_id": p.gateway_id or "",
                "booking_id": str(p.booking_id) if p.booking_id else "",
                "type": "refund" if p.is_refund else "payment",
            }
            for p in payments
        ]

        if report_format == "csv":
            buffer = io.StringIO()
            writer = csv.DictWriter(buffer, fieldnames=REPORT_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
            return buffer.getvalue()

        collected = sum(
            (Decimal(p.amount) for p in payments
             if not p.is_refund and p.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)),
            Decimal("0"),
        )
        refunded = sum((-Decimal(p.amount) for p in payments if p.is_refund), Decimal("0"))
        by_method: Dict[str, int] = {}
        for p in payments:
            if not p.is_refund:
                by_method[p.method] = by_method.get(p.method, 0) + 1

        return {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "summary": {
                "total_records": len(payments),
                "collected_amount": format_money(collected),
                "refunded_amount": format_money(refunded),
                "net_amount": format_money(collected - refunded),
                "by_method": by_method,
            },
            "payments": rows,
        }

    # ------------------------------------------------------------------
    # Вспомогательные методы
    # ------------------------------------------------------------------

    @staticmethod
    def get_gateway_for_method(method: PaymentMethod | str) -> str:
        """Шлюз по способу оплаты."""
        return GATEWAY_BY_METHOD[PaymentMethod(method)]

    def _currency(self, currency: str | None) -> str:
        return (currency or settings.default_currency).upper()

    @staticmethod
    def _validate_amount(amount: Decimal | None) -> None:
        if amount is None or Decimal(amount) <= 0:
            raise InvalidAmountError("Invalid payment amount")

    async def _ensure_booking_exists(self, booking_id: uuid.UUID | None) -> None:
        if booking_id and not await self.db.get(Booking, booking_id):
            raise NotFoundError(f"Booking {booking_id} not found")

    @asynccontextmanager
    async def _locked(self, payment_id: uuid.UUID):
        """Платеж, заблокированный до конца транзакции."""
        async with self.locks.hold(str(payment_id)):
            try:
                stmt = (
                    select(Payment)
                    .where(Payment.id == payment_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                result = await self.db.execute(stmt)
                payment = result.scalar_one_or_none()
                if not payment:
                    raise NotFoundError("Payment not found")

                yield payment

                # Пустая транзакция (короткий путь без изменений) тоже снимает FOR UPDATE
                if self.db.in_transaction():
                    await self.db.commit()
            except BaseException:
                if self.db.in_transaction():
                    await self.db.rollback()
                raise

    @staticmethod
    def _set_status(payment: Payment, status: PaymentStatus) -> None:
        if not payment.can_transition_to(status):
            raise InvalidStateError(f"Cannot move payment from {payment.status} to {status.value}")
        payment.status = status.value

    def _apply_gateway_payment(self, payment: Payment, gateway_payment: Dict[str, Any]) -> bool:
        """Перенести статус платежа шлюза на локальный платеж."""
        captured = gateway_payment.get("status") == "captured"
        if captured:
            self._set_status(payment, PaymentStatus.COMPLETED)
            payment.failure_reason = None
        else:
            self._set_status(payment, PaymentStatus.FAILED)
            payment.failure_reason = gateway_payment.get("error_description") or "Payment not captured"
        # gateway_id остается id заказа, id платежа шлюза хранится в gateway_data
        payment.gateway_data = gateway_payment
        payment.processed_at = datetime.utcnow()
        return captured

    @staticmethod
    def _gateway_payment_id(payment: Payment) -> str | None:
        data = payment.gateway_data or {}
        if data.get("entity") == "payment":
            return data.get("id")
        return None

    async def _after_status_change(self, payment: Payment, completed: bool) -> None:
        await self.cache.invalidate_prefix(PAYMENT_CACHE_PREFIX)
        if not completed or not payment.booking_id:
            return

        await BookingService(self.db).mark_payment_completed(payment.booking_id)
        # Откат вторичной записи мог сбросить загруженные поля платежа
        if inspect(payment).expired_attributes:
            await self.db.refresh(payment)

    def _process_by_method(
        self, payment: Payment, method_data: Dict[str, Any], actor_id: str | None
    ) -> ProcessingResult:
        handlers = {
            PaymentMethod.UPI: self._process_online_payment,
            PaymentMethod.CARD: self._process_online_payment,
            PaymentMethod.NET_BANKING: self._process_online_payment,
            PaymentMethod.WALLET: self._process_online_payment,
            PaymentMethod.CASH: self._process_cash_payment,
            PaymentMethod.CHEQUE: self._process_cheque_payment,
            PaymentMethod.BANK_TRANSFER: self._process_bank_transfer_payment,
        }
        try:
            method = PaymentMethod(payment.method)
        except ValueError:
            raise PaymentProcessingError("Unsupported payment method")
        return handlers[method](method, method_data, actor_id)

    @staticmethod
    def _reference(prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:12]}"

    def _process_online_payment(
        self, method: PaymentMethod, method_data: Dict[str, Any], actor_id: str | None
    ) -> ProcessingResult:
        prefix = {
            PaymentMethod.UPI: "upi",
            PaymentMethod.CARD: "card",
            PaymentMethod.NET_BANKING: "netbanking",
            PaymentMethod.WALLET: "wallet",
        }[method]
        return ProcessingResult(
            status=PaymentStatus.COMPLETED,
            gateway_id=self._reference(prefix),
            gateway_data={"method": method.value, "details": method_data},
        )

    def _process_cash_payment(
        self, method: PaymentMethod, method_data: Dict[str, Any], actor_id: str | None
    ) -> ProcessingResult:
        # Наличные считаются полученными в момент записи
        return ProcessingResult(
            status=PaymentStatus.COMPLETED,
            gateway_id=self._reference("cash"),
            gateway_data={"method": method.value, "received_by": actor_id, "details": method_data},
        )

    def _process_cheque_payment(
        self, method: PaymentMethod, method_data: Dict[str, Any], actor_id: str | None
    ) -> ProcessingResult:
        cheque_number = method_data.get("cheque_number")
        if not cheque_number:
            raise PaymentProcessingError("Cheque number is required")
        # Чек остается PENDING до подтверждения зачисления
        return ProcessingResult(
            status=PaymentStatus.PENDING,
            gateway_id=self._reference("cheque"),
            gateway_data={
                "method": method.value,
                "cheque_number": cheque_number,
                "bank_name": method_data.get("bank_name"),
            },
        )

    def _process_bank_transfer_payment(
        self, method: PaymentMethod, method_data: Dict[str, Any], actor_id: str | None
    ) -> ProcessingResult:
        reference = method_data.get("reference")
        if not reference:
            raise PaymentProcessingError("Bank transfer reference (UTR) is required")
        return ProcessingResult(
            status=PaymentStatus.PENDING,
            gateway_id=self._reference("bank_transfer"),
            gateway_data={"method": method.value, "reference": reference},
        )
