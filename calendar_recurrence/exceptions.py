"""Exception hierarchy for recurrence rule handling.

Decode failures are recoverable: callers that go through
``rrule_codec.decode_rule`` receive a failed result object instead of an
exception, and treat the event as non-recurring.
"""


class RecurrenceError(Exception):
    """Base exception for all recurrence errors."""


class RecurrenceValidationError(RecurrenceError, ValueError):
    """Recurrence configuration or construction input is invalid.

    Raised when:
    - interval is below 1
    - an after-count termination has a count below 1
    - weekdays are out of range or given for a non-weekly rule
    - a form configuration names an end type without its value
    - an exception targets a time that is not an occurrence of the series
    """


class RecurrenceDecodeError(RecurrenceError):
    """Persisted rule text could not be decoded.

    Raised when:
    - the text is empty or lacks DTSTART / FREQ
    - the rule uses parts outside the supported subset (BYMONTHDAY, BYSETPOS, ...)
    - values are malformed (bad dates, non-numeric COUNT, unknown TZID)
    """
