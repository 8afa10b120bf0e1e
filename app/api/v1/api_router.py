from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.customers.router import router as customers_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.dashboard.router import router as dashboard_router

api_router = APIRouter()
api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(customers_router, prefix="/customers")  # Tags are defined in the router itself
api_router.include_router(payments_router, prefix="/payments")
api_router.include_router(dashboard_router, prefix="/dashboard")
