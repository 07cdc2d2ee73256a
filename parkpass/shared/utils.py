import sys
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo
from loguru import logger as loguru_logger

from parkpass.config.settings_env import settings


def initialize_logger():
    """Initialize the logger based on DEV_MODE setting."""
    loguru_logger.remove()

    if settings.DEV_MODE:
        loguru_logger.add(sys.stderr, level="TRACE")
    else:
        loguru_logger.add(sys.stderr, level="INFO")

    return loguru_logger


def log_integrity_violation(message: str, **context):
    """Log a lifecycle or scope violation apart from ordinary validation failures."""
    loguru_logger.bind(integrity=True, **context).warning(message)


def local_timezone() -> tzinfo:
    return ZoneInfo(settings.TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Initialize logger
logger = initialize_logger()
