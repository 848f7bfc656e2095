"""Single-occurrence exceptions for recurring series.

An exception overrides one generated occurrence, identified by the
occurrence's originally scheduled start. Resolving merges exceptions into
the occurrences of the current expansion pass: matched occurrences are
replaced by their override (or dropped when cancelled), everything else
passes through untouched. Exceptions that do not line up with a generated
occurrence are ignored.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from pydantic import ValidationError

from .exceptions import RecurrenceValidationError
from .models import EventOverrides, EventRecord, Occurrence, Series, SeriesException
from .occurrence_expander import ExpanderConfig, OccurrenceExpander
from .rrule_codec import decode_rule

logger = logging.getLogger(__name__)

Changes = Union[EventOverrides, Mapping[str, Any]]


class ExceptionResolver:
    """Merges expanded occurrences with their persisted exceptions."""

    def resolve(
        self,
        occurrences: Sequence[Occurrence],
        exceptions: Mapping[datetime, SeriesException],
    ) -> list[Occurrence]:
        """Apply exceptions to an expansion pass.

        Args:
            occurrences: Occurrences from one expansion call, in order
            exceptions: Exceptions keyed by the original occurrence start

        Returns:
            Occurrences in input order with overrides applied and cancelled
            occurrences removed
        """
        if not exceptions:
            return list(occurrences)

        resolved: list[Occurrence] = []
        replaced_count = 0
        cancelled_count = 0

        for occurrence in occurrences:
            exception = exceptions.get(occurrence.start)
            if exception is None or (
                occurrence.series_id and exception.key != (occurrence.series_id, occurrence.start)
            ):
                resolved.append(occurrence)
                continue

            if exception.is_cancelled:
                logger.debug(
                    "Dropping cancelled occurrence of %s at %s",
                    occurrence.series_id,
                    occurrence.start.isoformat(),
                )
                cancelled_count += 1
                continue

            resolved.append(self._apply_override(occurrence, exception))
            replaced_count += 1

        if replaced_count or cancelled_count:
            logger.debug(
                "Resolved exceptions: replaced=%d, cancelled=%d, unmatched=%d",
                replaced_count,
                cancelled_count,
                len(exceptions) - replaced_count - cancelled_count,
            )
        return resolved

    def _apply_override(self, occurrence: Occurrence, exception: SeriesException) -> Occurrence:
        """Return the occurrence with the exception's fields applied."""
        update = exception.overrides.as_update()
        duration = occurrence.end - occurrence.start

        start = update.pop("start", occurrence.start)
        end = update.pop("end", None)
        if end is None or end < start:
            if end is not None:
                logger.warning(
                    "Override end %s precedes start %s for %s; keeping series duration",
                    end.isoformat(),
                    start.isoformat(),
                    exception.series_id,
                )
            end = start + duration

        update.update(
            start=start,
            end=end,
            is_exception=True,
            original_start=occurrence.start,
            exception_id=exception.id,
        )
        return occurrence.model_copy(update=update)


def index_exceptions(
    exceptions: Iterable[SeriesException], series_id: Optional[str] = None
) -> dict[datetime, SeriesException]:
    """Key exceptions by original occurrence start.

    Args:
        exceptions: Exception records
        series_id: When given, keep only exceptions of this series

    Returns:
        Mapping of original start to exception; later records win on duplicates
    """
    indexed: dict[datetime, SeriesException] = {}
    for exception in exceptions:
        if series_id is not None and exception.series_id != series_id:
            continue
        if exception.original_start in indexed:
            logger.debug(
                "Duplicate exception for %s at %s; keeping the later record",
                exception.series_id,
                exception.original_start.isoformat(),
            )
        indexed[exception.original_start] = exception
    return indexed


def resolve(
    occurrences: Sequence[Occurrence], exceptions: Mapping[datetime, SeriesException]
) -> list[Occurrence]:
    """Apply exceptions to occurrences. See ``ExceptionResolver.resolve``."""
    return ExceptionResolver().resolve(occurrences, exceptions)


# Exception creation


def _is_scheduled_occurrence(
    series: Series, original_start: datetime, config: Optional[ExpanderConfig]
) -> bool:
    result = decode_rule(series.rule_text, (config or ExpanderConfig()).fallback_frequency)
    if result.rule is None:
        return False
    probe = OccurrenceExpander(config).expand(
        result.rule,
        series.start,
        series.end,
        original_start,
        original_start + timedelta(seconds=1),
    )
    return any(occurrence.start == original_start for occurrence in probe)


def build_exception(
    series: Series,
    original_start: datetime,
    changes: Changes,
    exception_id: Optional[str] = None,
    config: Optional[ExpanderConfig] = None,
) -> SeriesException:
    """Create an exception overriding one occurrence of a series.

    The caller is responsible for persisting the returned record.

    Args:
        series: Series the occurrence belongs to
        original_start: Scheduled start of the occurrence being edited
        changes: Field overrides (partial)
        exception_id: Optional ID for the new record
        config: Expansion settings used to verify the occurrence

    Returns:
        New SeriesException

    Raises:
        RecurrenceValidationError: If the changes are invalid or
            ``original_start`` is not an occurrence of the series
    """
    try:
        overrides = (
            changes if isinstance(changes, EventOverrides) else EventOverrides.model_validate(changes)
        )
    except ValidationError as exc:
        raise RecurrenceValidationError(f"Invalid occurrence changes: {exc}") from exc

    if not _is_scheduled_occurrence(series, original_start, config):
        raise RecurrenceValidationError(
            f"{original_start.isoformat()} is not an occurrence of series {series.id}"
        )

    logger.info(
        "Created exception for series %s at %s (fields: %s)",
        series.id,
        original_start.isoformat(),
        ", ".join(sorted(overrides.as_update())) or "none",
    )
    return SeriesException(
        id=exception_id,
        series_id=series.id,
        original_start=original_start,
        overrides=overrides,
    )


def reschedule_occurrence(
    series: Series,
    original_start: datetime,
    new_start: datetime,
    new_end: Optional[datetime] = None,
    exception_id: Optional[str] = None,
    config: Optional[ExpanderConfig] = None,
) -> SeriesException:
    """Move one occurrence, e.g. after it was dragged in the calendar grid.

    The occurrence keeps the series duration unless ``new_end`` is given.
    """
    end = new_end if new_end is not None else new_start + series.duration
    return build_exception(
        series,
        original_start,
        EventOverrides(start=new_start, end=end),
        exception_id=exception_id,
        config=config,
    )


def cancel_occurrence(
    series: Series,
    original_start: datetime,
    exception_id: Optional[str] = None,
    config: Optional[ExpanderConfig] = None,
) -> SeriesException:
    """Create an exception that removes one occurrence."""
    exception = build_exception(series, original_start, EventOverrides(), exception_id, config)
    return exception.model_copy(update={"is_cancelled": True})


def detach_occurrence(
    series: Series, exception: SeriesException, record_id: Optional[str] = None
) -> EventRecord:
    """Build the standalone event row for an exception.

    Fields fall back to the parent series. The row points back at the series
    through ``recurring_event_id`` and ``original_start``; when it is merged
    into a window, the series occurrence with that original start is
    suppressed. The row is never expanded itself.

    Raises:
        RecurrenceValidationError: If the exception belongs to another series
            or the series has no calendar
    """
    if exception.series_id != series.id:
        raise RecurrenceValidationError(
            f"Exception for series {exception.series_id} cannot detach from series {series.id}"
        )
    if not series.calendar_id:
        raise RecurrenceValidationError(f"Series {series.id} has no calendar to detach into")

    overrides = exception.overrides
    start = overrides.start or exception.original_start
    end = overrides.end or start + series.duration

    return EventRecord(
        id=record_id or exception.id or f"{series.id}_{exception.original_start.strftime('%Y%m%dT%H%M%S')}",
        calendar_id=series.calendar_id,
        title=overrides.title if overrides.title is not None else series.title,
        description=overrides.description if overrides.description is not None else series.description,
        start_time=start,
        end_time=end,
        all_day=overrides.all_day if overrides.all_day is not None else series.all_day,
        location=overrides.location if overrides.location is not None else series.location,
        is_recurring=False,
        recurring_event_id=series.id,
        is_exception=True,
        original_start=exception.original_start,
    )
