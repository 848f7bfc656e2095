"""Unit tests for calendar_recurrence.window_pipeline."""

from datetime import UTC, datetime, timedelta

import pytest

from calendar_recurrence.exception_resolver import cancel_occurrence, detach_occurrence, reschedule_occurrence
from calendar_recurrence.models import EventOverrides, EventRecord, Frequency, Series, SeriesException
from calendar_recurrence.occurrence_expander import ExpanderConfig
from calendar_recurrence.window_pipeline import build_window_events, expand_series

pytestmark = pytest.mark.unit


def _series_record(series: Series) -> EventRecord:
    return EventRecord(
        id=series.id,
        calendar_id=series.calendar_id,
        title=series.title,
        location=series.location,
        start_time=series.start,
        end_time=series.end,
        is_recurring=True,
        rrule=series.rule_text,
    )


class TestExpandSeries:
    """Tests for expand_series()."""

    def test_exception_applied_in_window(self, every_other_day_series, day):
        """A title override on day 4 shows up only on that occurrence."""
        exception = SeriesException(
            series_id="series-1",
            original_start=day(4),
            overrides=EventOverrides(title="Rescheduled"),
        )
        series = every_other_day_series.model_copy(update={"exceptions": [exception]})

        occurrences = expand_series(series, day(0, hour=0), day(11, hour=0))

        assert [occ.title for occ in occurrences] == [
            "Standup",
            "Standup",
            "Rescheduled",
            "Standup",
            "Standup",
            "Standup",
        ]
        assert all(occ.series_id == "series-1" for occ in occurrences)

    def test_exceptions_of_other_series_are_ignored(self, every_other_day_series, day):
        foreign = SeriesException(
            series_id="series-2", original_start=day(4), overrides=EventOverrides(title="Other")
        )
        series = every_other_day_series.model_copy(update={"exceptions": [foreign]})

        occurrences = expand_series(series, day(0, hour=0), day(11, hour=0))

        assert all(occ.title == "Standup" for occ in occurrences)

    def test_undecodable_rule_is_a_single_event(self, day, caplog):
        series = Series(
            id="broken",
            title="Broken",
            start=day(1),
            end=day(1, hour=10),
            rule_text="DTSTART:20250302T090000Z\nRRULE:FREQ=MONTHLY;BYSETPOS=1",
        )

        with caplog.at_level("WARNING", logger="calendar_recurrence.window_pipeline"):
            occurrences = expand_series(series, day(0, hour=0), day(30, hour=0))

        assert len(occurrences) == 1
        assert occurrences[0].start == day(1)
        assert occurrences[0].series_id == "broken"
        assert "treating as non-recurring" in caplog.text

    def test_undecodable_rule_outside_window(self, day):
        series = Series(id="broken", start=day(1), end=day(1, hour=10), rule_text="garbage")
        assert expand_series(series, day(5, hour=0), day(30, hour=0)) == []

    def test_series_without_rule_text(self, day):
        series = Series(id="plain", start=day(1), end=day(1, hour=10))
        occurrences = expand_series(series, day(0, hour=0), day(2, hour=0))
        assert [occ.start for occ in occurrences] == [day(1)]

    def test_legacy_frequency_uses_configured_fallback(self, day):
        series = Series(
            id="legacy",
            start=day(0),
            end=day(0, hour=10),
            rule_text="DTSTART:20250301T090000Z\nRRULE:FREQ=HOURLY;COUNT=3",
        )
        config = ExpanderConfig(fallback_frequency=Frequency.WEEKLY)

        occurrences = expand_series(series, day(0, hour=0), day(30, hour=0), config)

        assert [occ.start for occ in occurrences] == [day(0), day(7), day(14)]


class TestBuildWindowEvents:
    """Tests for build_window_events()."""

    def test_merges_series_exceptions_and_standalone_rows(self, every_other_day_series, day):
        """A detached occurrence replaces its cancelled slot in the merged list."""
        cancelled = cancel_occurrence(every_other_day_series, day(4), exception_id="exc-1")
        moved = reschedule_occurrence(every_other_day_series, day(4), day(4, hour=15))
        detached = detach_occurrence(every_other_day_series, moved, record_id="row-detached")
        standalone = EventRecord(
            id="lunch",
            calendar_id="cal-1",
            title="Lunch",
            start_time=day(3, hour=12),
            end_time=day(3, hour=13),
        )

        events = build_window_events(
            [_series_record(every_other_day_series), standalone, detached],
            day(0, hour=0),
            day(11, hour=0),
            exceptions=[cancelled],
        )

        assert [(event.series_id, event.start) for event in events] == [
            ("series-1", day(0)),
            ("series-1", day(2)),
            ("lunch", day(3, hour=12)),
            ("series-1", day(4, hour=15)),
            ("series-1", day(6)),
            ("series-1", day(8)),
            ("series-1", day(10)),
        ]
        detached_event = events[3]
        assert detached_event.is_exception is True
        assert detached_event.exception_id == "row-detached"

    def test_detached_row_replaces_its_series_occurrence(self, every_other_day_series, day):
        """Only the edited detached row renders for a moved-then-detached occurrence."""
        moved = reschedule_occurrence(
            every_other_day_series, day(4), day(4, hour=15), exception_id="exc-1"
        )
        detached = detach_occurrence(every_other_day_series, moved, record_id="row-9")
        detached = detached.model_copy(update={"title": "Edited standalone"})

        events = build_window_events(
            [_series_record(every_other_day_series), detached],
            day(0, hour=0),
            day(11, hour=0),
            exceptions=[moved],
        )

        day_four = [
            (event.title, event.start, event.exception_id)
            for event in events
            if event.start.date() == day(4).date()
        ]
        assert day_four == [("Edited standalone", day(4, hour=15), "row-9")]
        assert events[2].original_start == day(4)
        assert len(events) == 6

    def test_detached_row_outside_window_still_suppresses_slot(self, every_other_day_series, day):
        moved = reschedule_occurrence(every_other_day_series, day(4), day(20))
        detached = detach_occurrence(every_other_day_series, moved, record_id="row-far")

        events = build_window_events(
            [_series_record(every_other_day_series), detached], day(0, hour=0), day(11, hour=0)
        )

        assert [event.start for event in events] == [day(0), day(2), day(6), day(8), day(10)]

    def test_standalone_rows_outside_window_are_skipped(self, day):
        records = [
            EventRecord(
                id="early",
                calendar_id="cal",
                title="Early",
                start_time=day(0),
                end_time=day(0, hour=10),
            ),
            EventRecord(
                id="inside",
                calendar_id="cal",
                title="Inside",
                start_time=day(5),
                end_time=day(5, hour=10),
            ),
        ]
        events = build_window_events(records, day(3, hour=0), day(7, hour=0))
        assert [event.series_id for event in events] == ["inside"]

    def test_duplicate_rows_are_removed(self, day):
        record = EventRecord(
            id="dup", calendar_id="cal", title="Dup", start_time=day(1), end_time=day(1, hour=10)
        )
        events = build_window_events([record, record], day(0, hour=0), day(2, hour=0))
        assert len(events) == 1

    def test_mixed_floating_and_aware_rows_sort_together(self):
        floating = EventRecord(
            id="floating",
            calendar_id="cal",
            title="Floating",
            start_time=datetime(2025, 3, 1, 8, 0),
            end_time=datetime(2025, 3, 1, 9, 0),
        )
        aware = EventRecord(
            id="aware",
            calendar_id="cal",
            title="Aware",
            start_time=datetime(2025, 3, 1, 7, 0, tzinfo=UTC),
            end_time=datetime(2025, 3, 1, 7, 30, tzinfo=UTC),
        )
        window_start = datetime(2025, 3, 1, tzinfo=UTC)

        events = build_window_events([floating, aware], window_start, window_start + timedelta(days=1))

        assert [event.series_id for event in events] == ["aware", "floating"]

    def test_empty_input(self, day):
        assert build_window_events([], day(0), day(1)) == []
