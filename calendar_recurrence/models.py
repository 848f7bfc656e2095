"""Data models for recurrence rules, series, exceptions and occurrences."""

from datetime import date, datetime, timedelta
from enum import Enum, IntEnum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from .exceptions import RecurrenceValidationError


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Weekday(IntEnum):
    """Weekday ordinals, Sunday-first as exposed by the calendar UI."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, value: date) -> "Weekday":
        """Return the weekday of a date or datetime."""
        # date.weekday() is Monday=0
        return cls((value.weekday() + 1) % 7)


class EndType(str, Enum):
    """Termination discriminant used by the recurrence form."""

    NEVER = "never"
    COUNT = "count"
    UNTIL = "until"


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'rule'}: {err['msg']}" for err in exc.errors()
    )


# Termination variants


class Never(BaseModel):
    """Recurrence never ends."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["never"] = "never"


class AfterCount(BaseModel):
    """Recurrence ends after a fixed number of occurrences."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["count"] = "count"
    count: int = Field(..., ge=1, description="Total number of occurrences")


class Until(BaseModel):
    """Recurrence ends on a calendar date (inclusive)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["until"] = "until"
    until: date = Field(..., description="Last date an occurrence may start on")

    @field_validator("until", mode="before")
    @classmethod
    def _truncate_datetime(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        return value


Termination = Annotated[Union[Never, AfterCount, Until], Field(discriminator="kind")]


class RecurrenceRule(BaseModel):
    """Immutable description of how an event repeats.

    The anchor start fixes the phase of the pattern: which weekday, which day
    of the month and which month the rule is locked to.
    """

    model_config = ConfigDict(frozen=True)

    frequency: Frequency = Field(..., description="Recurrence frequency")
    interval: int = Field(default=1, ge=1, description="Repeat every N frequency units")
    weekdays: frozenset[Weekday] = Field(
        default_factory=frozenset,
        description="Weekdays for weekly rules; empty means the anchor's weekday",
    )
    termination: Termination = Field(default_factory=Never, description="Stopping condition")
    anchor_start: datetime = Field(..., description="Start of the first occurrence")

    @field_validator("weekdays", mode="before")
    @classmethod
    def _reject_duplicate_weekdays(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, (list, tuple)) and len(set(value)) != len(value):
            raise ValueError(f"weekdays must be unique, got {list(value)}")
        return value

    @field_validator("anchor_start")
    @classmethod
    def _whole_seconds(cls, value: datetime) -> datetime:
        # Persisted rule text has second resolution
        return value.replace(microsecond=0)

    @model_validator(mode="after")
    def _weekdays_only_for_weekly(self) -> "RecurrenceRule":
        if self.weekdays and self.frequency != Frequency.WEEKLY:
            raise ValueError(
                f"weekdays are only meaningful for weekly rules, not {self.frequency.value}"
            )
        return self

    @classmethod
    def create(cls, **data: Any) -> "RecurrenceRule":
        """Construct a rule, raising RecurrenceValidationError on invalid input.

        Args:
            **data: Field values accepted by the model

        Returns:
            Validated RecurrenceRule

        Raises:
            RecurrenceValidationError: If any invariant is violated
        """
        try:
            return cls(**data)
        except ValidationError as exc:
            raise RecurrenceValidationError(
                f"Invalid recurrence rule: {_validation_message(exc)}"
            ) from exc

    @property
    def sorted_weekdays(self) -> tuple[Weekday, ...]:
        """Weekdays in Sunday-first order."""
        return tuple(sorted(self.weekdays))

    @property
    def is_open_ended(self) -> bool:
        """True when the rule has no count or until termination."""
        return isinstance(self.termination, Never)

    @field_serializer("anchor_start")
    def serialize_anchor(self, dt: datetime) -> str:
        """Serialize anchor to ISO format."""
        return dt.isoformat()

    @field_serializer("weekdays")
    def serialize_weekdays(self, weekdays: frozenset[Weekday]) -> list[int]:
        """Serialize weekdays as a sorted list of ordinals."""
        return [int(day) for day in sorted(weekdays)]


class RecurrenceConfig(BaseModel):
    """Loose recurrence settings as edited in the recurrence form.

    The end type gates which of ``count`` / ``until`` is meaningful;
    ``to_rule`` turns this into the strict tagged representation.
    """

    frequency: Frequency = Frequency.WEEKLY
    interval: int = 1
    weekdays: Optional[list[int]] = None
    end_type: EndType = EndType.NEVER
    count: Optional[int] = None
    until: Optional[date] = None

    @field_validator("until", mode="before")
    @classmethod
    def _truncate_datetime(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        return value

    def to_rule(self, anchor_start: datetime) -> RecurrenceRule:
        """Build a RecurrenceRule anchored at the event start.

        Args:
            anchor_start: Start of the series' first occurrence

        Returns:
            Validated RecurrenceRule

        Raises:
            RecurrenceValidationError: If the configuration is inconsistent
        """
        if self.interval < 1:
            raise RecurrenceValidationError(f"interval must be at least 1, got {self.interval}")

        termination: Union[Never, AfterCount, Until]
        if self.end_type == EndType.COUNT:
            if self.count is None or self.count < 1:
                raise RecurrenceValidationError(
                    f"end type 'count' requires a positive count, got {self.count!r}"
                )
            termination = AfterCount(count=self.count)
        elif self.end_type == EndType.UNTIL:
            if self.until is None:
                raise RecurrenceValidationError("end type 'until' requires an until date")
            termination = Until(until=self.until)
        else:
            termination = Never()

        # The form keeps stale weekday selections around when switching away from weekly
        weekdays = self.weekdays if self.frequency == Frequency.WEEKLY and self.weekdays else []

        return RecurrenceRule.create(
            frequency=self.frequency,
            interval=self.interval,
            weekdays=weekdays,
            termination=termination,
            anchor_start=anchor_start,
        )

    @classmethod
    def from_rule(cls, rule: RecurrenceRule) -> "RecurrenceConfig":
        """Build form settings from a rule, e.g. to pre-fill the editor."""
        config = cls(
            frequency=rule.frequency,
            interval=rule.interval,
            weekdays=[int(day) for day in rule.sorted_weekdays] or None,
        )
        termination = rule.termination
        if isinstance(termination, AfterCount):
            config.end_type = EndType.COUNT
            config.count = termination.count
        elif isinstance(termination, Until):
            config.end_type = EndType.UNTIL
            config.until = termination.until
        return config


class RuleDecodeResult(BaseModel):
    """Result of decoding persisted rule text."""

    success: bool
    rule: Optional[RecurrenceRule] = None
    error_message: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_recurring(self) -> bool:
        """True when the text decoded to a usable rule."""
        return self.success and self.rule is not None


# Series, exceptions and occurrences


class EventOverrides(BaseModel):
    """Field overrides for one occurrence; None means "keep the series value"."""

    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    all_day: Optional[bool] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "EventOverrides":
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError("override end must not be before override start")
        return self

    def as_update(self) -> dict[str, Any]:
        """Return only the fields that are overridden."""
        return self.model_dump(exclude_none=True)


class SeriesException(BaseModel):
    """Persisted override of a single occurrence, keyed by its scheduled start."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, description="Exception record ID")
    series_id: str = Field(..., description="ID of the overridden series")
    original_start: datetime = Field(..., description="Scheduled start of the overridden occurrence")
    overrides: EventOverrides = Field(default_factory=EventOverrides)
    is_cancelled: bool = Field(default=False, description="Drop the occurrence entirely")

    @property
    def key(self) -> tuple[str, datetime]:
        """Identity of the exception."""
        return self.series_id, self.original_start


class EventRecord(BaseModel):
    """Event row as stored by the external data store."""

    id: str = Field(..., description="Event ID")
    calendar_id: str = Field(..., description="Owning calendar ID")
    title: str = Field(..., description="Event title")
    description: Optional[str] = None
    start_time: datetime = Field(..., description="Event start time")
    end_time: datetime = Field(..., description="Event end time")
    all_day: bool = False
    location: Optional[str] = None

    is_recurring: bool = Field(default=False, description="Row is the base of a series")
    rrule: Optional[str] = Field(default=None, description="Persisted recurrence rule text")
    recurring_event_id: Optional[str] = Field(
        default=None, description="Series this row was detached from"
    )
    is_exception: bool = Field(default=False, description="Row overrides one occurrence")
    original_start: Optional[datetime] = Field(
        default=None, description="Scheduled start of the occurrence this row replaces"
    )

    @property
    def detached_key(self) -> Optional[tuple[str, datetime]]:
        """(series ID, original start) of the occurrence this row replaces."""
        if not self.is_exception or not self.recurring_event_id or self.original_start is None:
            return None
        return self.recurring_event_id, self.original_start

    @field_serializer("start_time", "end_time")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()

    @field_serializer("original_start", when_used="unless-none")
    def serialize_original_start(self, dt: datetime) -> str:
        """Serialize original start to ISO format."""
        return dt.isoformat()


class Series(BaseModel):
    """Recurring event definition: anchor times, rule text and owned exceptions."""

    id: str
    calendar_id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    location: Optional[str] = None
    all_day: bool = False

    start: datetime = Field(..., description="Anchor start")
    end: datetime = Field(..., description="Anchor end")
    rule_text: Optional[str] = Field(default=None, description="Persisted rule text")
    exceptions: list[SeriesException] = Field(default_factory=list)

    @model_validator(mode="after")
    def _end_after_start(self) -> "Series":
        if self.end < self.start:
            raise ValueError(f"series {self.id} ends before it starts")
        return self

    @property
    def duration(self) -> timedelta:
        """Length of every occurrence."""
        return self.end - self.start

    @classmethod
    def from_record(
        cls, record: EventRecord, exceptions: Optional[list[SeriesException]] = None
    ) -> "Series":
        """Build a series from a stored event row and its exception rows."""
        owned = [exc for exc in exceptions or [] if exc.series_id == record.id]
        return cls(
            id=record.id,
            calendar_id=record.calendar_id,
            title=record.title,
            description=record.description,
            location=record.location,
            all_day=record.all_day,
            start=record.start_time,
            end=record.end_time,
            rule_text=record.rrule if record.is_recurring else None,
            exceptions=owned,
        )


class Occurrence(BaseModel):
    """One concrete instance of a series inside a query window. Never persisted."""

    model_config = ConfigDict(frozen=True)

    series_id: str
    start: datetime
    end: datetime
    is_exception: bool = False
    original_start: Optional[datetime] = None

    title: str = ""
    description: Optional[str] = None
    location: Optional[str] = None
    all_day: bool = False
    exception_id: Optional[str] = None

    @field_serializer("start", "end")
    def serialize_times(self, dt: datetime) -> str:
        """Serialize occurrence bounds to ISO format."""
        return dt.isoformat()

    @field_serializer("original_start", when_used="unless-none")
    def serialize_original_start(self, dt: datetime) -> str:
        """Serialize original start to ISO format."""
        return dt.isoformat()
