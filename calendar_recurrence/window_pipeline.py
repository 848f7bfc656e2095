"""Per-render event list for a visible calendar window.

Every view-range change re-expands from scratch: recurring rows are decoded
and expanded, their exceptions are resolved, and standalone rows are merged
in. A row detached from a series replaces the series occurrence with the
same ``(series ID, original start)`` key.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Optional

from .exception_resolver import index_exceptions, resolve
from .models import EventRecord, Occurrence, Series, SeriesException
from .occurrence_expander import ExpanderConfig, OccurrenceExpander, overlaps_window
from .rrule_codec import decode_rule

logger = logging.getLogger(__name__)


def _single_occurrence(series: Series) -> Occurrence:
    return Occurrence(
        series_id=series.id,
        start=series.start,
        end=series.end,
        title=series.title,
        description=series.description,
        location=series.location,
        all_day=series.all_day,
    )


def expand_series(
    series: Series,
    window_start: datetime,
    window_end: datetime,
    config: Optional[ExpanderConfig] = None,
) -> list[Occurrence]:
    """Expand one series into its resolved occurrences for a window.

    A series without rule text, or whose rule text cannot be decoded, is
    shown as a single event at its anchor time.

    Args:
        series: Series to expand
        window_start: Inclusive window start
        window_end: Exclusive window end
        config: Expansion settings

    Returns:
        Ordered occurrences with exceptions applied
    """
    config = config or ExpanderConfig()

    result = decode_rule(series.rule_text, config.fallback_frequency) if series.rule_text else None
    if result is None or result.rule is None:
        if result is not None:
            logger.warning(
                "Series %s has an undecodable rule; treating as non-recurring: %s",
                series.id,
                result.error_message,
            )
        if overlaps_window(series.start, series.end, window_start, window_end):
            return [_single_occurrence(series)]
        return []

    occurrences = OccurrenceExpander(config).expand(
        result.rule, series.start, series.end, window_start, window_end, series=series
    )
    return resolve(occurrences, index_exceptions(series.exceptions, series.id))


def _standalone_occurrence(record: EventRecord) -> Occurrence:
    return Occurrence(
        series_id=record.recurring_event_id or record.id,
        start=record.start_time,
        end=record.end_time,
        is_exception=record.is_exception,
        title=record.title,
        description=record.description,
        location=record.location,
        all_day=record.all_day,
        exception_id=record.id if record.is_exception else None,
        original_start=record.original_start,
    )


def _occurrence_key(occurrence: Occurrence) -> tuple[str, datetime]:
    return occurrence.series_id, occurrence.original_start or occurrence.start


def _sort_key(occurrence: Occurrence) -> tuple[float, str]:
    start = occurrence.start
    # Floating times sort as UTC so aware and naive rows can share one list
    timestamp = start.timestamp() if start.tzinfo else start.replace(tzinfo=UTC).timestamp()
    return timestamp, occurrence.series_id


def build_window_events(
    records: Iterable[EventRecord],
    window_start: datetime,
    window_end: datetime,
    exceptions: Optional[Iterable[SeriesException]] = None,
    config: Optional[ExpanderConfig] = None,
) -> list[Occurrence]:
    """Build the renderable event list for a calendar window.

    Args:
        records: Event rows from the data store (series and standalone rows)
        window_start: Inclusive window start
        window_end: Exclusive window end
        exceptions: Exception records for the series among ``records``
        config: Expansion settings

    Returns:
        Deduplicated occurrences sorted by start, then series ID. Series
        occurrences replaced by a detached row are left out, whether or not
        the row itself falls inside the window.
    """
    record_list = list(records)
    exception_list = list(exceptions or [])
    detached = {record.detached_key for record in record_list if record.detached_key}
    events: list[Occurrence] = []
    series_count = 0
    suppressed_count = 0

    for record in record_list:
        if record.is_recurring and record.rrule:
            series = Series.from_record(record, exception_list)
            for occurrence in expand_series(series, window_start, window_end, config):
                if _occurrence_key(occurrence) in detached:
                    suppressed_count += 1
                    continue
                events.append(occurrence)
            series_count += 1
        elif overlaps_window(record.start_time, record.end_time, window_start, window_end):
            events.append(_standalone_occurrence(record))

    seen = set()
    deduplicated = []
    for event in events:
        key = (*_occurrence_key(event), event.exception_id)
        if key not in seen:
            seen.add(key)
            deduplicated.append(event)

    if suppressed_count:
        logger.debug("Suppressed %d occurrences replaced by detached rows", suppressed_count)
    if len(events) != len(deduplicated):
        logger.debug("Removed %d duplicate events", len(events) - len(deduplicated))

    deduplicated.sort(key=_sort_key)
    logger.debug(
        "Built window %s..%s: %d series, %d events",
        window_start.isoformat(),
        window_end.isoformat(),
        series_count,
        len(deduplicated),
    )
    return deduplicated
