"""Occurrence expansion for recurrence rules.

All calendar math lives here. Occurrence ``k`` of a series is computed
directly from the anchor (``anchor + k * interval`` units) with
``dateutil.relativedelta``, so month and year steps clamp to the last valid
day (Jan 31 -> Feb 28/29 -> Mar 31) without drifting. The walk starts at
the first index that can reach the query window, which keeps the cost
proportional to the number of occurrences in the window even for
open-ended rules anchored years ago.
"""

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from .models import AfterCount, Frequency, Occurrence, RecurrenceRule, Series, Until

logger = logging.getLogger(__name__)

_RELATIVEDELTA_UNITS: dict[Frequency, str] = {
    Frequency.DAILY: "days",
    Frequency.WEEKLY: "weeks",
    Frequency.MONTHLY: "months",
    Frequency.YEARLY: "years",
}


@dataclass
class ExpanderConfig:
    """Configuration for occurrence expansion.

    Consolidates expansion settings with explicit defaults.
    """

    max_occurrences_per_window: int = 1000
    fallback_frequency: Frequency = Frequency.DAILY

    def __post_init__(self) -> None:
        self.fallback_frequency = Frequency(self.fallback_frequency)

    @classmethod
    def from_settings(cls, settings: Any) -> "ExpanderConfig":
        """Extract expansion configuration from a settings object.

        Args:
            settings: Object with expansion settings (e.g. ``config_loader.Config``)

        Returns:
            ExpanderConfig with values from settings or defaults
        """
        if settings is None:
            return cls()
        return cls(
            max_occurrences_per_window=getattr(settings, "max_occurrences_per_window", 1000),
            fallback_frequency=getattr(settings, "legacy_frequency_fallback", Frequency.DAILY),
        )


def _align(value: datetime, anchor: datetime) -> datetime:
    """Express a window bound in the anchor's frame.

    Naive anchors are floating times; aware bounds are read as UTC wall time.
    Naive bounds against an aware anchor are read in the anchor's zone.
    """
    if anchor.tzinfo is None:
        if value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=anchor.tzinfo)
    return value.astimezone(anchor.tzinfo)


def overlaps_window(
    start: datetime, end: datetime, window_start: datetime, window_end: datetime
) -> bool:
    """Check whether ``[start, end)`` intersects ``[window_start, window_end)``.

    Zero-length events count when their start lies inside the window.
    """
    window_start = _align(window_start, start)
    window_end = _align(window_end, start)
    if start >= window_end:
        return False
    if end == start:
        return start >= window_start
    return end > window_start


def _shift(anchor: datetime, frequency: Frequency, units: int) -> datetime:
    return anchor + relativedelta(**{_RELATIVEDELTA_UNITS[frequency]: units})


def _first_index(rule: RecurrenceRule, anchor: datetime, lower: datetime) -> int:
    """Index of a safe starting point at or before the first relevant occurrence.

    The result is one full step early, so the occurrence it points at
    always starts before ``lower``.
    """
    frequency = rule.frequency
    if frequency == Frequency.MONTHLY:
        offset = (lower.year - anchor.year) * 12 + (lower.month - anchor.month)
    elif frequency == Frequency.YEARLY:
        offset = lower.year - anchor.year
    else:
        offset = (lower.date() - anchor.date()).days
        if frequency == Frequency.WEEKLY:
            offset //= 7
    return max(0, offset // rule.interval - 1)


def _iter_stepped(
    rule: RecurrenceRule, anchor: datetime, lower: datetime
) -> Iterator[tuple[int, datetime]]:
    """Yield (index, start) for rules that advance by whole frequency units."""
    index = _first_index(rule, anchor, lower)
    while True:
        try:
            start = _shift(anchor, rule.frequency, index * rule.interval)
        except (OverflowError, ValueError):
            return
        yield index, start
        index += 1


def _iter_weekdays(
    rule: RecurrenceRule, anchor: datetime, lower: datetime
) -> Iterator[tuple[int, datetime]]:
    """Yield (index, start) for weekly rules with an explicit weekday set.

    Weeks start on Monday and are grouped in blocks of ``interval`` weeks.
    Every selected weekday of each block is an occurrence, except days before
    the anchor in the first block. The anchor itself only occurs when its
    weekday is selected.
    """
    anchor_date = anchor.date()
    week_zero = anchor_date - timedelta(days=anchor_date.weekday())
    # Weekday ordinals are Sunday=0; offsets are counted from Monday
    offsets = sorted((int(day) - 1) % 7 for day in rule.weekdays)
    block_days = 7 * rule.interval
    first_block_count = sum(1 for off in offsets if week_zero + timedelta(days=off) >= anchor_date)

    block = max(0, (lower.date() - week_zero).days // block_days - 1)
    index = 0 if block == 0 else first_block_count + (block - 1) * len(offsets)

    while True:
        block_start = week_zero + timedelta(days=block * block_days)
        for off in offsets:
            candidate: date = block_start + timedelta(days=off)
            if candidate < anchor_date:
                continue
            try:
                start = anchor + relativedelta(days=(candidate - anchor_date).days)
            except (OverflowError, ValueError):
                return
            yield index, start
            index += 1
        block += 1


class OccurrenceExpander:
    """Expands recurrence rules into the occurrences overlapping a window.

    Expansion is a pure function of its inputs; an instance only carries
    configuration and may be shared freely.
    """

    def __init__(self, config: Optional[ExpanderConfig] = None):
        """Initialize expander.

        Args:
            config: Expansion settings; defaults apply when omitted
        """
        self.config = config or ExpanderConfig()

    def expand(
        self,
        rule: RecurrenceRule,
        anchor_start: datetime,
        anchor_end: datetime,
        window_start: datetime,
        window_end: datetime,
        series: Optional[Series] = None,
    ) -> list[Occurrence]:
        """Expand a rule into occurrences intersecting ``[window_start, window_end)``.

        Args:
            rule: Recurrence rule to expand
            anchor_start: Start of the series' first occurrence
            anchor_end: End of the series' first occurrence; sets the duration
            window_start: Inclusive window start
            window_end: Exclusive window end
            series: Optional series whose ID and display fields are copied
                onto every occurrence

        Returns:
            Occurrences ordered by start. Empty when nothing intersects the
            window or the termination is reached before it.
        """
        started = time.time()
        duration = anchor_end - anchor_start
        window_start = _align(window_start, anchor_start)
        window_end = _align(window_end, anchor_start)

        if window_end <= window_start:
            return []

        termination = rule.termination
        if isinstance(termination, AfterCount) and termination.count <= 0:
            return []
        if isinstance(termination, Until) and termination.until < anchor_start.date():
            return []

        lower = window_start - duration
        if rule.frequency == Frequency.WEEKLY and rule.weekdays:
            starts = _iter_weekdays(rule, anchor_start, lower)
        else:
            starts = _iter_stepped(rule, anchor_start, lower)

        details: dict[str, Any] = {"series_id": ""}
        if series is not None:
            details = {
                "series_id": series.id,
                "title": series.title,
                "description": series.description,
                "location": series.location,
                "all_day": series.all_day,
            }

        occurrences: list[Occurrence] = []
        limit = self.config.max_occurrences_per_window
        for index, start in starts:
            if isinstance(termination, AfterCount) and index >= termination.count:
                break
            if isinstance(termination, Until) and start.date() > termination.until:
                break
            if start >= window_end:
                break

            end = start + duration
            overlaps = end > window_start if duration else start >= window_start
            if not overlaps:
                continue

            if len(occurrences) >= limit:
                logger.warning(
                    "Occurrence expansion limited to %d occurrences for series %s",
                    limit,
                    details["series_id"] or "<no-id>",
                )
                break

            occurrences.append(Occurrence(start=start, end=end, **details))

        logger.debug(
            "Expanded %s rule for series %s: %d occurrences in window, elapsed=%.1fms",
            rule.frequency.value,
            details["series_id"] or "<no-id>",
            len(occurrences),
            (time.time() - started) * 1000,
        )
        return occurrences


def expand(
    rule: RecurrenceRule,
    anchor_start: datetime,
    anchor_end: datetime,
    window_start: datetime,
    window_end: datetime,
    config: Optional[ExpanderConfig] = None,
) -> list[Occurrence]:
    """Expand a rule with default or given configuration.

    See ``OccurrenceExpander.expand``.
    """
    return OccurrenceExpander(config).expand(
        rule, anchor_start, anchor_end, window_start, window_end
    )
