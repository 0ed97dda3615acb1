import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from loguru import logger

from meal_notifications.config.settings import settings
from meal_notifications.utils.context import get_request_id

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level> | {extra}"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | "
    "{name}:{function}:{line} - {message} | {extra}"
)


class InterceptHandler(logging.Handler):
    loglevel_mapping = {
        50: "CRITICAL",
        40: "ERROR",
        30: "WARNING",
        20: "INFO",
        10: "DEBUG",
        0: "NOTSET",
    }

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except (AttributeError, ValueError):
            level = self.loglevel_mapping[record.levelno]

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        request_id = get_request_id() or "app"
        log = logger.bind(request_id=request_id)
        log.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class CustomizeLogger:
    @classmethod
    def make_logger(
        cls,
        level: str,
        log_dir: Optional[str] = None,
        use_json_logs: bool = False,
        filename: str = "meal-notifications.log",
    ):
        logger.remove()
        logger.configure(extra={"request_id": "app"})

        # Console logger with colors
        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            level=level.upper(),
            format=CONSOLE_FORMAT,
            colorize=True,
        )

        # File logger without colors
        if log_dir:
            log_path = Path(log_dir) / f"{date.today().strftime('%Y-%m-%d')}-{filename}"
            logger.add(
                str(log_path),
                rotation="00:00",
                retention="14 days",
                enqueue=True,
                backtrace=True,
                level=level.upper(),
                serialize=use_json_logs,
                format=FILE_FORMAT,
                colorize=False,
            )

        # Redirect standard logging to loguru
        cls._setup_intercept_handlers()

        return logger

    @staticmethod
    def _setup_intercept_handlers():
        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

        intercepted_loggers = [
            "uvicorn",
            "uvicorn.error",
            "uvicorn.access",
            "fastapi",
            "apscheduler",
            "celery",
        ]
        for log_name in intercepted_loggers:
            _logger = logging.getLogger(log_name)
            _logger.handlers = [InterceptHandler()]
            _logger.propagate = False


# Initialize logger
custom_logger = CustomizeLogger.make_logger(
    level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR,
    use_json_logs=settings.LOG_JSON,
)


def get_logger():
    """Get the custom logger instance with request ID binding."""
    request_id = get_request_id() or "app"
    return custom_logger.bind(request_id=request_id)
