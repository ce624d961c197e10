"""API v1 роутеры."""
from fastapi import APIRouter

from app.api.v1 import payments, properties

router = APIRouter()

# Подключаем все роутеры
router.include_router(payments.router, prefix="/payments", tags=["payments"])
router.include_router(properties.router, prefix="/properties", tags=["properties"])
