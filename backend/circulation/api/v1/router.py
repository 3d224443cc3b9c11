"""
Router principal da API v1.

Inclui todos os routers de endpoints.
"""

from fastapi import APIRouter

from circulation.api.v1.copies import router as copies_router
from circulation.api.v1.loans import router as loans_router
from circulation.api.v1.notifications import router as notifications_router
from circulation.api.v1.reservations import router as reservations_router
from circulation.api.v1.system import router as system_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(loans_router)
api_router.include_router(reservations_router)
api_router.include_router(copies_router)
api_router.include_router(notifications_router)
api_router.include_router(system_router)
