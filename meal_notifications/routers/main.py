from fastapi import APIRouter

from meal_notifications.routers.cron import cron_router
from meal_notifications.routers.health import health_router

main_router = APIRouter()
main_router.include_router(health_router, prefix="/health", tags=["Health Checks"])
main_router.include_router(
    cron_router, prefix="/cron/notifications", tags=["Cron - Notifications"]
)
