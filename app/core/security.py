"""Безопасность: JWT токены и HMAC-подписи."""
import hashlib
import hmac
from datetime import datetime, timedelta
from typing import Any

from jose import jwt

from app.config import settings


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Создание JWT токена."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(hours=settings.access_token_hours)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm="HS256")
    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Декодирование JWT токена."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=["HS256"])
        return payload
    except jwt.JWTError:
        return None


def compute_hmac_sha256(secret: str, message: str | bytes) -> str:
    """HMAC-SHA256 в hex, как его считает Razorpay."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_hmac_sha256(secret: str, message: str | bytes, signature: str | None) -> bool:
    """Сравнение подписи за постоянное время."""
    if not secret or not signature:
        return False
    expected = compute_hmac_sha256(secret, message)
    return hmac.compare_digest(expected, signature)
