"""Модели базы данных."""
from app.models.property import Property, PropertyType, PropertyStatus
from app.models.booking import Booking
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.models.audit import AuditLog

__all__ = [
    "Property",
    "PropertyType",
    "PropertyStatus",
    "Booking",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "AuditLog",
]
