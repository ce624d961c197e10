"""Исключения платежной подсистемы."""
from typing import Optional


class PaymentError(Exception):
    """
    Базовое исключение платежей.

    Не отдается клиенту напрямую: обработчики в app.main превращают его в ответ
    с конвертом {success: false, message}.
    """

    status_code = 400
    expose_message = True  # можно ли показывать текст клиенту

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class InvalidAmountError(PaymentError):
    """Сумма платежа или возврата недопустима."""

    status_code = 400


class InvalidStateError(PaymentError):
    """Действие недоступно из текущего статуса платежа."""

    status_code = 409


class InvalidSignatureError(PaymentError):
    """Подпись платежного шлюза не совпала."""

    status_code = 400


class NotFoundError(PaymentError):
    """Платеж или бронирование не найдены."""

    status_code = 404


class PaymentProcessingError(PaymentError):
    """Ошибка при обработке платежа конкретным способом оплаты."""

    status_code = 422


class GatewayError(PaymentError):
    """Ошибка платежного шлюза (сеть, 4xx, 5xx)."""

    status_code = 502
    expose_message = False

    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message, original_exception)
        self.http_status = http_status
