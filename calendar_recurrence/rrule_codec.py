"""Text encoding of recurrence rules.

Rules are persisted as two RFC 5545 style lines::

    DTSTART;TZID=Europe/Berlin:20250106T090000
    RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR

Only the subset the calendar exposes is understood: FREQ, INTERVAL, COUNT,
UNTIL and plain (non-ordinal) BYDAY on weekly rules. Anything else fails to
decode, and callers treat the event as non-recurring.
"""

import logging
from datetime import UTC, date, datetime, time
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar import vRecur
from pydantic import ValidationError

from .exceptions import RecurrenceDecodeError, RecurrenceValidationError
from .models import (
    AfterCount,
    Frequency,
    Never,
    RecurrenceConfig,
    RecurrenceRule,
    RuleDecodeResult,
    Until,
    Weekday,
)

logger = logging.getLogger(__name__)

WEEKDAY_CODES: dict[Weekday, str] = {
    Weekday.SUNDAY: "SU",
    Weekday.MONDAY: "MO",
    Weekday.TUESDAY: "TU",
    Weekday.WEDNESDAY: "WE",
    Weekday.THURSDAY: "TH",
    Weekday.FRIDAY: "FR",
    Weekday.SATURDAY: "SA",
}
CODE_WEEKDAYS: dict[str, Weekday] = {code: day for day, code in WEEKDAY_CODES.items()}

# Sub-daily frequencies show up in imported data; the expander cannot walk them
LEGACY_FREQUENCIES = frozenset({"HOURLY", "MINUTELY", "SECONDLY"})

SUPPORTED_PARTS = frozenset({"FREQ", "INTERVAL", "COUNT", "UNTIL", "BYDAY", "WKST"})

_DATETIME_FORMAT = "%Y%m%dT%H%M%S"
_DATE_FORMAT = "%Y%m%d"

_UNIT_NAMES: dict[Frequency, str] = {
    Frequency.DAILY: "day",
    Frequency.WEEKLY: "week",
    Frequency.MONTHLY: "month",
    Frequency.YEARLY: "year",
}


# Encoding


def _format_dtstart(anchor: datetime) -> str:
    """Format the anchor as a DTSTART line."""
    if anchor.tzinfo is None:
        return f"DTSTART:{anchor.strftime(_DATETIME_FORMAT)}"

    key = getattr(anchor.tzinfo, "key", None)
    if key and key != "UTC":
        return f"DTSTART;TZID={key}:{anchor.strftime(_DATETIME_FORMAT)}"

    # UTC and fixed-offset zones are written as UTC instants
    return f"DTSTART:{anchor.astimezone(UTC).strftime(_DATETIME_FORMAT)}Z"


def _until_value(until: date, anchor: datetime) -> datetime:
    """Last second of the until day, with the same value type as DTSTART.

    Aware anchors get a UTC instant, computed in the zone DTSTART is written
    in; floating anchors get a floating date-time.
    """
    last_second = datetime.combine(until, time(23, 59, 59))
    if anchor.tzinfo is None:
        return last_second
    zone = anchor.tzinfo if getattr(anchor.tzinfo, "key", None) else UTC
    return last_second.replace(tzinfo=zone).astimezone(UTC)


def encode_rule(rule: RecurrenceRule) -> str:
    """Encode a rule as persisted rule text.

    Args:
        rule: Rule to encode

    Returns:
        DTSTART and RRULE lines joined by a newline. BYDAY is always written
        in Sunday-first order so equal rules encode identically.
    """
    recur = vRecur({"FREQ": rule.frequency.value.upper()})

    termination = rule.termination
    if isinstance(termination, Until):
        recur["UNTIL"] = _until_value(termination.until, rule.anchor_start)
    elif isinstance(termination, AfterCount):
        recur["COUNT"] = termination.count

    recur["INTERVAL"] = rule.interval
    if rule.weekdays:
        recur["BYDAY"] = [WEEKDAY_CODES[day] for day in rule.sorted_weekdays]

    text = f"{_format_dtstart(rule.anchor_start)}\nRRULE:{recur.to_ical().decode('utf-8')}"
    logger.debug("Encoded recurrence rule: %r", text)
    return text


# Decoding


def _parse_dtstart(line: str) -> datetime:
    """Parse a DTSTART line into the anchor datetime."""
    head, _, value = line.partition(":")
    value = value.strip()
    if not value:
        raise RecurrenceDecodeError(f"DTSTART has no value: {line!r}")

    tzid: Optional[str] = None
    for param in head.split(";")[1:]:
        name, _, param_value = param.partition("=")
        if name.strip().upper() == "TZID":
            tzid = param_value.strip().strip('"')

    is_utc = value.upper().endswith("Z")
    raw = value[:-1] if is_utc else value
    try:
        parsed = datetime.strptime(raw, _DATETIME_FORMAT if "T" in raw.upper() else _DATE_FORMAT)
    except ValueError as exc:
        raise RecurrenceDecodeError(f"Invalid DTSTART value: {value!r}") from exc

    if is_utc:
        return parsed.replace(tzinfo=UTC)
    if tzid:
        try:
            return parsed.replace(tzinfo=ZoneInfo(tzid))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise RecurrenceDecodeError(f"Unknown TZID in DTSTART: {tzid!r}") from exc
    return parsed


def _single(recur: vRecur, key: str) -> Any:
    values = recur[key]
    if len(values) != 1:
        raise RecurrenceDecodeError(f"{key} must have exactly one value, got {len(values)}")
    return values[0]


def _decode_frequency(
    recur: vRecur, fallback_frequency: Frequency, warnings: list[str]
) -> Frequency:
    if "FREQ" not in recur:
        raise RecurrenceDecodeError("RRULE missing required FREQ parameter")

    freq = str(_single(recur, "FREQ")).upper()
    if freq in LEGACY_FREQUENCIES:
        message = f"Unsupported frequency {freq}; using {fallback_frequency.value}"
        logger.warning(message)
        warnings.append(message)
        return fallback_frequency
    return Frequency(freq.lower())


def _decode_weekdays(recur: vRecur, frequency: Frequency) -> frozenset[Weekday]:
    if "BYDAY" not in recur:
        return frozenset()
    if frequency != Frequency.WEEKLY:
        raise RecurrenceDecodeError(f"BYDAY is only supported for weekly rules, not {frequency.value}")

    weekdays = set()
    for value in recur["BYDAY"]:
        code = str(value).upper()
        if code not in CODE_WEEKDAYS:
            # Ordinal forms such as 1MO or -1FR
            raise RecurrenceDecodeError(f"Unsupported BYDAY value: {code!r}")
        weekdays.add(CODE_WEEKDAYS[code])
    return frozenset(weekdays)


def _decode_until(value: Any, anchor: datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None and anchor.tzinfo is not None:
            value = value.astimezone(anchor.tzinfo)
        return value.date()
    if isinstance(value, date):
        return value
    raise RecurrenceDecodeError(f"UNTIL must be a date or date-time, got {value!r}")


def _decode_termination(recur: vRecur, anchor: datetime) -> Any:
    has_count = "COUNT" in recur
    has_until = "UNTIL" in recur
    if has_count and has_until:
        raise RecurrenceDecodeError("RRULE must not contain both COUNT and UNTIL")
    if has_count:
        count = int(_single(recur, "COUNT"))
        if count < 1:
            raise RecurrenceDecodeError(f"COUNT must be positive, got {count}")
        return AfterCount(count=count)
    if has_until:
        return Until(until=_decode_until(_single(recur, "UNTIL"), anchor))
    return Never()


def _split_lines(text: str) -> tuple[Optional[str], Optional[str]]:
    dtstart_line = None
    rrule_value = None
    for raw_line in text.replace("\r\n", "\n").split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        upper = line.upper()
        if upper.startswith("DTSTART"):
            dtstart_line = line
        elif upper.startswith("RRULE:"):
            rrule_value = line.split(":", 1)[1].strip()
        elif "=" in line and ":" not in line:
            # Bare rule value without the RRULE: prefix
            rrule_value = line
        else:
            raise RecurrenceDecodeError(f"Unsupported line in rule text: {line!r}")
    return dtstart_line, rrule_value


def parse_rule(
    text: Optional[str],
    fallback_frequency: Frequency = Frequency.DAILY,
    warnings: Optional[list[str]] = None,
) -> RecurrenceRule:
    """Decode rule text, raising on failure.

    Args:
        text: Persisted rule text
        fallback_frequency: Frequency used for sub-daily legacy rules
        warnings: Optional list collecting non-fatal decode notes

    Returns:
        Decoded RecurrenceRule

    Raises:
        RecurrenceDecodeError: If the text is malformed or unsupported
    """
    if warnings is None:
        warnings = []
    if not text or not text.strip():
        raise RecurrenceDecodeError("Empty rule text")

    dtstart_line, rrule_value = _split_lines(text)
    if dtstart_line is None:
        raise RecurrenceDecodeError("Rule text missing DTSTART")
    if not rrule_value:
        raise RecurrenceDecodeError("Rule text missing RRULE")

    anchor = _parse_dtstart(dtstart_line)

    try:
        recur = vRecur.from_ical(rrule_value)
    except ValueError as exc:
        raise RecurrenceDecodeError(f"Invalid RRULE format: {rrule_value!r}") from exc

    unsupported = sorted(set(recur.keys()) - SUPPORTED_PARTS)
    if unsupported:
        raise RecurrenceDecodeError(f"Unsupported RRULE parts: {', '.join(unsupported)}")

    if "WKST" in recur and str(_single(recur, "WKST")).upper() != "MO":
        message = f"Ignoring WKST={_single(recur, 'WKST')}; weeks start on Monday"
        logger.warning(message)
        warnings.append(message)

    frequency = _decode_frequency(recur, fallback_frequency, warnings)
    interval = int(_single(recur, "INTERVAL")) if "INTERVAL" in recur else 1
    if interval < 1:
        raise RecurrenceDecodeError(f"INTERVAL must be at least 1, got {interval}")

    try:
        return RecurrenceRule.create(
            frequency=frequency,
            interval=interval,
            weekdays=_decode_weekdays(recur, frequency),
            termination=_decode_termination(recur, anchor),
            anchor_start=anchor,
        )
    except RecurrenceValidationError as exc:
        raise RecurrenceDecodeError(str(exc)) from exc


def decode_rule(
    text: Optional[str], fallback_frequency: Frequency = Frequency.DAILY
) -> RuleDecodeResult:
    """Decode rule text without raising.

    Args:
        text: Persisted rule text
        fallback_frequency: Frequency used for sub-daily legacy rules

    Returns:
        RuleDecodeResult; on failure ``success`` is False and ``error_message``
        explains why. Callers should then treat the event as non-recurring.
    """
    warnings: list[str] = []
    try:
        rule = parse_rule(text, fallback_frequency, warnings)
    except (RecurrenceDecodeError, ValueError, ValidationError) as exc:
        logger.warning("Failed to decode recurrence rule %r: %s", text, exc)
        return RuleDecodeResult(success=False, error_message=str(exc), warnings=warnings)
    return RuleDecodeResult(success=True, rule=rule, warnings=warnings)


# Form helpers


def create_rule_text(anchor_start: datetime, config: RecurrenceConfig) -> str:
    """Build persisted rule text from recurrence form settings.

    Raises:
        RecurrenceValidationError: If the form settings are inconsistent
    """
    return encode_rule(config.to_rule(anchor_start))


def parse_rule_config(text: Optional[str]) -> Optional[RecurrenceConfig]:
    """Decode rule text into form settings, or None if it cannot be decoded."""
    result = decode_rule(text)
    if result.rule is None:
        return None
    return RecurrenceConfig.from_rule(result.rule)


def _format_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def describe_rule(rule: RecurrenceRule) -> str:
    """Return a short English description of a rule.

    Examples:
        "every day", "every 2 weeks on Monday, Wednesday",
        "every month for 3 times", "every year until January 10, 2026"
    """
    unit = _UNIT_NAMES[rule.frequency]
    parts = [f"every {unit}" if rule.interval == 1 else f"every {rule.interval} {unit}s"]

    if rule.weekdays:
        names = ", ".join(day.name.capitalize() for day in rule.sorted_weekdays)
        parts.append(f"on {names}")

    termination = rule.termination
    if isinstance(termination, AfterCount):
        noun = "time" if termination.count == 1 else "times"
        parts.append(f"for {termination.count} {noun}")
    elif isinstance(termination, Until):
        parts.append(f"until {_format_date(termination.until)}")

    return " ".join(parts)


def describe_rule_text(text: Optional[str]) -> str:
    """Describe persisted rule text, or report it as invalid."""
    result = decode_rule(text)
    if result.rule is None:
        return "Invalid recurrence rule"
    return describe_rule(result.rule)


__all__ = [
    "CODE_WEEKDAYS",
    "WEEKDAY_CODES",
    "create_rule_text",
    "decode_rule",
    "describe_rule",
    "describe_rule_text",
    "encode_rule",
    "parse_rule",
    "parse_rule_config",
]
