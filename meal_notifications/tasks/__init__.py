from .cron import *

__all__ = [
    # Scheduled/Cron Tasks
    "notification_scheduler_task",
    "notification_cleanup_task",
    # Job entry points shared by the runner and the cron endpoints
    "run_windowed_scheduler_job",
    "run_cleanup_job",
]
