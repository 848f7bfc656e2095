"""calendar_recurrence - recurrence rules, occurrence expansion and exceptions.

Turns a calendar event's recurrence settings into persisted rule text,
expands that text into the concrete occurrences of a visible window, and
merges single-occurrence exceptions into the result.
"""

__version__ = "0.1.0"

from typing import Optional

from .exceptions import RecurrenceDecodeError, RecurrenceError, RecurrenceValidationError
from .exception_resolver import (
    ExceptionResolver,
    build_exception,
    cancel_occurrence,
    detach_occurrence,
    index_exceptions,
    reschedule_occurrence,
    resolve,
)
from .models import (
    AfterCount,
    EndType,
    EventOverrides,
    EventRecord,
    Frequency,
    Never,
    Occurrence,
    RecurrenceConfig,
    RecurrenceRule,
    RuleDecodeResult,
    Series,
    SeriesException,
    Until,
    Weekday,
)
from .occurrence_expander import ExpanderConfig, OccurrenceExpander, expand
from .rrule_codec import (
    create_rule_text,
    decode_rule,
    describe_rule,
    describe_rule_text,
    encode_rule,
    parse_rule,
    parse_rule_config,
)
from .window_pipeline import build_window_events, expand_series


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized console handler when the root logger has none, then
    sets the requested level. The CALENDAR_RECURRENCE_DEBUG environment
    variable (truthy values: "1", "true", "yes", "on") forces DEBUG.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("CALENDAR_RECURRENCE_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


__all__ = [
    "AfterCount",
    "EndType",
    "EventOverrides",
    "EventRecord",
    "ExceptionResolver",
    "ExpanderConfig",
    "Frequency",
    "Never",
    "Occurrence",
    "OccurrenceExpander",
    "RecurrenceConfig",
    "RecurrenceDecodeError",
    "RecurrenceError",
    "RecurrenceRule",
    "RecurrenceValidationError",
    "RuleDecodeResult",
    "Series",
    "SeriesException",
    "Until",
    "Weekday",
    "build_exception",
    "build_window_events",
    "cancel_occurrence",
    "create_rule_text",
    "decode_rule",
    "describe_rule",
    "describe_rule_text",
    "detach_occurrence",
    "encode_rule",
    "expand",
    "expand_series",
    "index_exceptions",
    "parse_rule",
    "parse_rule_config",
    "reschedule_occurrence",
    "resolve",
]
