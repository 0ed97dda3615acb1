import hmac
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meal_notifications.config.settings import settings
from meal_notifications.db.session import get_session_factory
from meal_notifications.tasks.cron.notification_cleanup import run_cleanup_job
from meal_notifications.tasks.cron.notification_scheduler import (
    run_windowed_scheduler_job,
)
from meal_notifications.utils.errors import AuthorizationError
from meal_notifications.utils.logging import get_logger
from meal_notifications.utils.responses import ResponseBuilder

cron_router = APIRouter()
logger = get_logger()

MAX_TICK_LIMIT = 500


def verify_cron_request(
    request: Request,
    secret: Annotated[Optional[str], Query(description="Shared cron secret")] = None,
) -> None:
    """
    Accept the platform cron header, or the shared secret when one is configured.

    With no CRON_SECRET configured the endpoints are open. That is an
    operational choice for deployments behind a private network, not a
    security guarantee.
    """
    header_value = request.headers.get(settings.CRON_PLATFORM_HEADER)
    if header_value == settings.CRON_PLATFORM_HEADER_VALUE:
        return

    if settings.CRON_SECRET is None:
        return

    if secret is not None and hmac.compare_digest(
        secret.encode("utf-8"), settings.CRON_SECRET.encode("utf-8")
    ):
        return

    raise AuthorizationError("Invalid cron secret", "INVALID_CRON_SECRET")


SessionFactory = Annotated[
    async_sessionmaker[AsyncSession], Depends(get_session_factory)
]


@cron_router.get("/tick", dependencies=[Depends(verify_cron_request)])
async def notification_scheduler_tick(
    request: Request,
    session_factory: SessionFactory,
    limit: int = Query(
        default=MAX_TICK_LIMIT,
        ge=1,
        le=MAX_TICK_LIMIT,
        description="Maximum number of due schedules to process",
    ),
):
    """
    Externally clocked windowed scheduler run.

    Runs the batch synchronously and returns its aggregate counts.
    """
    result = await run_windowed_scheduler_job(limit, session_factory=session_factory)

    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message=f"Processed {result.processed} of {result.due} due schedules",
    )


@cron_router.get("/cleanup", dependencies=[Depends(verify_cron_request)])
async def notification_cleanup(request: Request, session_factory: SessionFactory):
    """Externally clocked retention cleanup run."""
    result = await run_cleanup_job(session_factory=session_factory)

    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Notification cleanup complete",
    )
