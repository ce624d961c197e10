"""Payments API."""
import json
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel

from app.core.auth import ELEVATED_ROLES, get_current_user, require_roles
from app.core.dependencies import get_gateway, get_payment_service
from app.models.payment import GATEWAY_RAZORPAY, PaymentMethod, PaymentStatus
from app.schemas.common import ApiResponse
from app.schemas.payment import PaymentCreateRequest, PaymentResponse
from app.services.gateway_service import PaymentGateway
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


class VerifyPaymentRequest(BaseModel):
    """Данные, которые checkout Razorpay возвращает клиенту."""

    payment_id: uuid.UUID
    razorpay_payment_id: str
    razorpay_signature: str


class ProcessPaymentRequest(BaseModel):
    method_data: dict[str, Any] | None = None


class RefundRequest(BaseModel):
    amount: Decimal
    reason: str | None = None


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    request: PaymentCreateRequest,
    user: dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Создать платеж."""
    payment = await service.create_payment(request, user["user_id"])
    return ApiResponse(
        success=True,
        data=PaymentResponse.model_validate(payment),
        message="Payment created successfully",
    )


@router.post("/create-order", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_gateway_order(
    request: PaymentCreateRequest,
    user: dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Создать заказ в Razorpay для оплаты через checkout."""
    order = await service.create_gateway_order(request, user["user_id"])
    return ApiResponse(success=True, data=order, message="Gateway order created")


@router.post("/verify", response_model=ApiResponse)
async def verify_payment(
    request: VerifyPaymentRequest,
    user: dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Проверить подпись checkout и статус платежа в Razorpay."""
    payment = await service.verify_gateway_payment(
        request.payment_id,
        request.razorpay_payment_id,
        request.razorpay_signature,
        user["user_id"],
    )
    return ApiResponse(
        success=True,
        data=PaymentResponse.model_validate(payment),
        message="Payment verified",
    )


@router.post("/webhook/{gateway}")
async def payment_webhook(
    gateway: str,
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    payment_gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Webhook платежного шлюза.

    Проверяет подпись и обрабатывает события платежей.
    Повторная доставка события отвечает 200, ошибка обработки 500 (шлюз повторит).
    """
    if gateway != GATEWAY_RAZORPAY:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unsupported gateway: {gateway}",
        )

    body = await request.body()
    signature = request.headers.get("X-Razorpay-Signature")
    logger.info(f"=== Razorpay webhook received, {len(body)} bytes ===")

    if not payment_gateway.verify_webhook_signature(body, signature):
        logger.error("❌ Invalid webhook signature!")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        )

    try:
        event_data = json.loads(body)
    except ValueError as e:
        logger.error(f"❌ Failed to parse JSON: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON",
        )

    try:
        payment = await service.process_webhook(event_data)
    except Exception as e:
        logger.error(f"❌ Webhook processing failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    if payment:
        return ApiResponse(
            success=True,
            data={"payment_id": str(payment.id), "status": payment.status},
            message="Webhook processed",
        )
    return ApiResponse(success=True, message="Event processed")


@router.get("/stats", response_model=ApiResponse)
async def get_payment_stats(
    period: str = Query("30d", pattern="^(7d|30d|90d|1y)$"),
    user: dict = Depends(require_roles(*ELEVATED_ROLES)),
    service: PaymentService = Depends(get_payment_service),
):
    """Статистика платежей за период."""
    stats = await service.get_payment_stats(period)
    return ApiResponse(success=True, data=stats)


@router.get("/reports/generate")
async def generate_payment_report(
    start_date: datetime,
    end_date: datetime,
    format: str = Query("json", pattern="^(json|csv)$"),
    user: dict = Depends(require_roles(*ELEVATED_ROLES)),
    service: PaymentService = Depends(get_payment_service),
):
    """Отчет по платежам за период (json или csv)."""
    report = await service.generate_payment_report(start_date, end_date, format)
    if format == "csv":
        filename = f"payments_{start_date:%Y%m%d}_{end_date:%Y%m%d}.csv"
        return Response(
            content=report,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return ApiResponse(success=True, data=report)


@router.get("", response_model=ApiResponse)
async def list_payments(
    status_filter: PaymentStatus | None = Query(None, alias="status"),
    method: PaymentMethod | None = None,
    gateway: str | None = None,
    booking_id: uuid.UUID | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Список платежей с фильтрами."""
    result = await service.list_payments(
        status=status_filter,
        method=method,
        gateway=gateway,
        booking_id=booking_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return ApiResponse(success=True, data=result)


@router.get("/{payment_id}", response_model=ApiResponse)
async def get_payment(
    payment_id: uuid.UUID,
    user: dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Получить платеж по ID."""
    payment = await service.get_payment(payment_id)
    return ApiResponse(success=True, data=payment)


@router.post("/{payment_id}/process", response_model=ApiResponse)
async def process_payment(
    payment_id: uuid.UUID,
    request: ProcessPaymentRequest | None = None,
    user: dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Обработать платеж выбранным способом оплаты."""
    method_data = request.method_data if request else None
    payment = await service.process_manual_payment(payment_id, method_data, user["user_id"])
    return ApiResponse(
        success=True,
        data=PaymentResponse.model_validate(payment),
        message="Payment processed successfully",
    )


@router.post("/{payment_id}/confirm", response_model=ApiResponse)
async def confirm_payment(
    payment_id: uuid.UUID,
    user: dict = Depends(require_roles(*ELEVATED_ROLES)),
    service: PaymentService = Depends(get_payment_service),
):
    """Подтвердить поступление чека или банковского перевода."""
    payment = await service.confirm_manual_payment(payment_id, user["user_id"])
    return ApiResponse(
        success=True,
        data=PaymentResponse.model_validate(payment),
        message="Payment confirmed",
    )


@router.post("/{payment_id}/refund", response_model=ApiResponse)
async def refund_payment(
    payment_id: uuid.UUID,
    request: RefundRequest,
    user: dict = Depends(require_roles(*ELEVATED_ROLES)),
    service: PaymentService = Depends(get_payment_service),
):
    """Оформить возврат по платежу."""
    refund = await service.refund_payment(payment_id, request.amount, request.reason, user["user_id"])
    return ApiResponse(
        success=True,
        data=PaymentResponse.model_validate(refund),
        message="Refund processed successfully",
    )
