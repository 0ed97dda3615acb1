from celery.schedules import crontab
from .settings import settings

# Basic Celery Configuration
broker_url = f"redis://:{settings.REDIS_PASSWORD}@{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"
result_backend = f"redis://:{settings.REDIS_PASSWORD}@{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"

# Task Discovery
include = ["meal_notifications.tasks"]

# Timezone Configuration
timezone = "UTC"
enable_utc = True

# Task Result Configuration
result_expires = 3600

# Task Serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"

# Task Execution Configuration
task_track_started = True
task_time_limit = 30 * 60  # 30 minutes
task_soft_time_limit = 25 * 60  # 25 minutes

# Worker Configuration
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Task Retry Configuration
task_acks_late = True
task_reject_on_worker_lost = True
task_default_retry_delay = 60  # 60 seconds
task_max_retries = 3

# Only enable beat when the in-process runner (meal_notifications.worker) is not deployed
beat_schedule = {
    # Windowed scheduler job - every hour, on the hour
    "hourly-notification-scheduler": {
        "task": "meal_notifications.tasks.cron.notification_scheduler.notification_scheduler_task",
        "schedule": crontab(minute=0),
        "args": ("notification_scheduler_cron",),
        "kwargs": {"limit": settings.NOTIFICATION_SCHEDULER_BATCH_LIMIT},
    },
    # Retention cleanup - daily at 03:00
    "daily-notification-cleanup": {
        "task": "meal_notifications.tasks.cron.notification_cleanup.notification_cleanup_task",
        "schedule": crontab(hour=3, minute=0),
        "args": ("notification_cleanup_cron",),
    },
}

# Default Queue
task_default_queue = "meal_notifications"

# Beat Scheduler Configuration
beat_schedule_filename = "tmp/celerybeat-schedule"
