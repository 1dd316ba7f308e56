from fastapi import APIRouter

from app.cashclose.core.config import settings
from app.cashclose.routers.closures import router as closures_router
from app.cashclose.routers.health import router as health_router
from app.cashclose.routers.metrics import router as metrics_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(closures_router, prefix="/cash-closures", tags=["cash-closures"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
