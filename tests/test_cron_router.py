from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from meal_notifications.config.settings import settings
from meal_notifications.db.models import ScheduleStatus
from meal_notifications.db.session import get_session_factory
from meal_notifications.main import app
from meal_notifications.schemas.notification_schemas import SchedulerRunResult
from meal_notifications.utils.datetime_utils import naive_utc_now

from tests.conftest import get_notifications_for_ref, get_schedule

pytestmark = pytest.mark.integration

TICK_URL = f"{settings.API_PREFIX}/cron/notifications/tick"
CLEANUP_URL = f"{settings.API_PREFIX}/cron/notifications/cleanup"
SECRET = "s3cr3t-cron-token-for-tests"


@pytest_asyncio.fixture
async def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as async_client:
        yield async_client
    app.dependency_overrides.clear()


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", SECRET)
    return SECRET


@pytest.fixture
def open_cron(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", None)


class TestCronAuthorization:
    """Platform header or shared secret, open when no secret is configured."""

    @pytest.mark.asyncio
    async def test_open_when_no_secret_configured(self, client, open_cron):
        response = await client.get(TICK_URL)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {"due": 0, "processed": 0, "failed": 0, "skipped": 0}

    @pytest.mark.asyncio
    async def test_wrong_secret_is_forbidden_and_job_not_run(self, client, cron_secret):
        job = AsyncMock()

        with patch("meal_notifications.routers.cron.run_windowed_scheduler_job", job):
            response = await client.get(TICK_URL, params={"secret": "not-the-secret"})

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["meta"]["error_code"] == "FORBIDDEN"
        job.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_secret_is_forbidden(self, client, cron_secret):
        response = await client.get(CLEANUP_URL)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_correct_secret_is_accepted(self, client, cron_secret):
        response = await client.get(TICK_URL, params={"secret": cron_secret, "limit": 5})

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_platform_header_is_accepted_without_secret(self, client, cron_secret):
        response = await client.get(
            CLEANUP_URL,
            headers={settings.CRON_PLATFORM_HEADER: settings.CRON_PLATFORM_HEADER_VALUE},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_platform_header_value_is_forbidden(self, client, cron_secret):
        response = await client.get(
            CLEANUP_URL, headers={settings.CRON_PLATFORM_HEADER: "0"}
        )

        assert response.status_code == 403


class TestTickEndpoint:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 501, -3])
    async def test_out_of_range_limit_is_rejected(self, client, open_cron, limit):
        job = AsyncMock()

        with patch("meal_notifications.routers.cron.run_windowed_scheduler_job", job):
            response = await client.get(TICK_URL, params={"limit": limit})

        assert response.status_code == 422
        assert response.json()["meta"]["error_code"] == "VALIDATION_ERROR"
        job.assert_not_called()

    @pytest.mark.asyncio
    async def test_default_limit_is_maximum(self, client, open_cron, session_factory):
        job = AsyncMock(return_value=SchedulerRunResult(due=0, processed=0, failed=0))

        with patch("meal_notifications.routers.cron.run_windowed_scheduler_job", job):
            response = await client.get(TICK_URL)

        assert response.status_code == 200
        job.assert_awaited_once_with(500, session_factory=session_factory)

    @pytest.mark.asyncio
    async def test_tick_processes_due_schedules(
        self, client, open_cron, session_factory, sample_family, create_schedule
    ):
        now = naive_utc_now()
        due = await create_schedule(sample_family.id, now - timedelta(hours=1))
        future = await create_schedule(sample_family.id, now + timedelta(days=1))

        response = await client.get(TICK_URL, params={"limit": 10})

        assert response.status_code == 200
        assert response.json()["data"] == {
            "due": 1,
            "processed": 1,
            "failed": 0,
            "skipped": 0,
        }
        assert (await get_schedule(session_factory, due.id)).status is ScheduleStatus.DONE
        assert len(await get_notifications_for_ref(session_factory, due.ref_id)) == 2
        assert (await get_schedule(session_factory, future.id)).status is ScheduleStatus.PENDING


class TestCleanupEndpoint:
    @pytest.mark.asyncio
    async def test_cleanup_reports_camel_case_counts(
        self, client, open_cron, session_factory, sample_family, create_schedule
    ):
        now = naive_utc_now()
        old_done = await create_schedule(
            sample_family.id,
            now - timedelta(days=20),
            status=ScheduleStatus.DONE,
            created_at=now - timedelta(days=21),
        )

        response = await client.get(CLEANUP_URL)

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == {"deletedNotifications": 0, "deletedSchedules": 1}
        assert "requestId" in body
        assert await get_schedule(session_factory, old_done.id) is None


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get(f"{settings.API_PREFIX}/health/")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"
