"""
Central logging configuration for calendar_recurrence.

Sets package logger levels so per-occurrence DEBUG output can be switched on
for troubleshooting without touching third-party loggers.
"""

import logging
import os
from typing import Optional

PACKAGE_LOGGERS = [
    "calendar_recurrence",
    "calendar_recurrence.rrule_codec",
    "calendar_recurrence.occurrence_expander",
    "calendar_recurrence.exception_resolver",
    "calendar_recurrence.window_pipeline",
    "calendar_recurrence.config_loader",
]

# Libraries whose debug output is not useful here
QUIET_LOGGERS = ["dateutil", "icalendar"]


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for calendar_recurrence.

    Args:
        debug_mode: Whether to enable debug logging for calendar_recurrence modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALENDAR_RECURRENCE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDAR_RECURRENCE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALENDAR_RECURRENCE_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CALENDAR_RECURRENCE_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    package_level = logging.DEBUG if final_debug else logging.INFO
    for name in PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(package_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if final_debug:
        root_logger.info("Debug logging enabled for calendar_recurrence modules")
    else:
        root_logger.debug("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["calendar_recurrence", *QUIET_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
