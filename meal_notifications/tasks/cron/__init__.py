from .notification_cleanup import notification_cleanup_task, run_cleanup_job
from .notification_scheduler import (
    notification_scheduler_task,
    run_windowed_scheduler_job,
)

__all__ = [
    "notification_cleanup_task",
    "notification_scheduler_task",
    "run_cleanup_job",
    "run_windowed_scheduler_job",
]
