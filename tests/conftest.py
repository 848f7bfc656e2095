"""Shared fixtures for calendar_recurrence tests."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any, Callable

import pytest

from calendar_recurrence.models import (
    AfterCount,
    Frequency,
    RecurrenceRule,
    Series,
    Until,
    Weekday,
)
from calendar_recurrence.rrule_codec import encode_rule


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object with the attributes ExpanderConfig reads.

    Fields:
      - max_occurrences_per_window: expansion cap per call
      - legacy_frequency_fallback: frequency used for sub-daily stored rules
    """
    return SimpleNamespace(
        max_occurrences_per_window=1000,
        legacy_frequency_fallback="daily",
    )


@pytest.fixture
def monday_anchor() -> datetime:
    """Monday 2025-01-06 09:00 UTC, the anchor of the weekly standup."""
    return datetime(2025, 1, 6, 9, 0, tzinfo=UTC)


@pytest.fixture
def day() -> Callable[..., datetime]:
    """Return a helper mapping a day offset from 2025-03-01 to a UTC datetime."""

    def _day(offset: int, hour: int = 9, minute: int = 0) -> datetime:
        return datetime(2025, 3, 1, hour, minute, tzinfo=UTC) + timedelta(days=offset)

    return _day


@pytest.fixture
def standup_rule(monday_anchor: datetime) -> RecurrenceRule:
    """Weekly Mon/Wed/Fri rule with no end."""
    return RecurrenceRule(
        frequency=Frequency.WEEKLY,
        weekdays=[Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY],
        anchor_start=monday_anchor,
    )


@pytest.fixture
def every_other_day_series(day: Callable[..., datetime]) -> Series:
    """Daily series every 2 days from day 0 until day 10, 09:00-10:00."""
    rule = RecurrenceRule(
        frequency=Frequency.DAILY,
        interval=2,
        termination=Until(until=day(10).date()),
        anchor_start=day(0),
    )
    return Series(
        id="series-1",
        calendar_id="cal-1",
        title="Standup",
        location="Room 4",
        start=day(0),
        end=day(0, hour=10),
        rule_text=encode_rule(rule),
    )


@pytest.fixture
def monthly_count_rule() -> RecurrenceRule:
    """Monthly rule anchored on Jan 31 limited to three occurrences."""
    return RecurrenceRule(
        frequency=Frequency.MONTHLY,
        termination=AfterCount(count=3),
        anchor_start=datetime(2025, 1, 31, 10, 0, tzinfo=UTC),
    )
