"""Адаптер платежного шлюза Razorpay."""
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from app.config import settings
from app.core.exceptions import GatewayError
from app.core.security import verify_hmac_sha256

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    """Интерфейс платежного шлюза, который использует PaymentService."""

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str, notes: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    async def fetch_payment(self, gateway_payment_id: str) -> Dict[str, Any]: ...

    async def refund(
        self, gateway_payment_id: str, amount_minor: int, notes: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    def verify_webhook_signature(self, raw_payload: bytes, signature_header: str | None) -> bool: ...


class RazorpayGateway:
    """
    Тонкая обертка над REST API Razorpay.

    Суммы передаются в минимальных единицах валюты (пайсы).
    Повторов внутри нет: ретраи на стороне вызывающего.
    """

    BASE_URL = "https://api.razorpay.com/v1"

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.razorpay_webhook_secret
        )
        self.timeout = timeout or settings.gateway_timeout
        self._transport = transport
        if not self.key_id or not self.key_secret:
            logger.warning("Razorpay credentials not configured")

    async def _request(self, method: str, path: str, payload: dict | None = None) -> Dict[str, Any]:
        if not self.key_id or not self.key_secret:
            raise GatewayError("Razorpay credentials not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.BASE_URL,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Razorpay API timeout: {method} {path}")
            raise GatewayError("Razorpay API timeout", original_exception=e) from e
        except httpx.RequestError as e:
            logger.error(f"Razorpay API request error: {method} {path}: {e}")
            raise GatewayError(f"Razorpay API request error: {e}", original_exception=e) from e

        if response.status_code >= 400:
            error_text = response.text
            logger.error(f"Razorpay API error: {response.status_code} - {error_text}")
            raise GatewayError(
                f"Razorpay API error: {response.status_code} - {error_text}",
                http_status=response.status_code,
            )

        return response.json()

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str, notes: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Создать заказ в Razorpay.

        Returns:
            {"id": "order_...", "amount": 50000, "currency": "INR", "receipt": "...", "status": "created"}
        """
        logger.info(f"Creating Razorpay order: amount={amount_minor} {currency}, receipt={receipt}")
        order = await self._request(
            "POST",
            "/orders",
            {
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": {k: str(v) for k, v in notes.items() if v is not None},
            },
        )
        logger.info(f"Razorpay order created: {order.get('id')}")
        return order

    async def fetch_payment(self, gateway_payment_id: str) -> Dict[str, Any]:
        """Получить актуальный статус платежа из Razorpay."""
        return await self._request("GET", f"/payments/{gateway_payment_id}")

    async def refund(
        self, gateway_payment_id: str, amount_minor: int, notes: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Оформить (частичный) возврат по платежу Razorpay."""
        logger.info(f"Refunding Razorpay payment {gateway_payment_id}: amount={amount_minor}")
        return await self._request(
            "POST",
            f"/payments/{gateway_payment_id}/refund",
            {"amount": amount_minor, "notes": {k: str(v) for k, v in notes.items()}},
        )

    def verify_webhook_signature(self, raw_payload: bytes, signature_header: str | None) -> bool:
        """Проверить заголовок X-Razorpay-Signature по сырому телу запроса."""
        if not self.webhook_secret:
            logger.warning("Razorpay webhook secret not configured, rejecting webhook")
            return False
        return verify_hmac_sha256(self.webhook_secret, raw_payload, signature_header)
