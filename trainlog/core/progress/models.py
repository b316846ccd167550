"""
Domain models for activity logging and progress analytics.

These models represent the core business concepts. They have no dependencies
on FastAPI, Snowflake, or any transport format. Validation lives here so an
invalid entry can never be constructed, no matter which layer builds it.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, Optional, TypeVar
from uuid import UUID, uuid4

from .errors import ValidationError


MAX_NOTES_LENGTH = 500
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 10


class ActivityType(Enum):
    """What kind of session was logged."""
    RUN = "run"
    WALK = "walk"
    CROSS_TRAINING = "cross_training"
    REST = "rest"


class Weather(Enum):
    """Conditions during the session."""
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    SNOWY = "snowy"
    HOT = "hot"
    COLD = "cold"


class Mood(Enum):
    """How the athlete felt about the session."""
    EXCELLENT = "excellent"
    GOOD = "good"
    OKAY = "okay"
    TOUGH = "tough"
    DIFFICULT = "difficult"


E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: type[E], value, field_name: str) -> E:
    """
    Turn a raw value into a member of a closed vocabulary.

    Accepts members as-is and their string values. Anything else is a
    ValidationError naming the field and the allowed values.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"{field_name} must be one of: {allowed}",
            field=field_name,
        )


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_finite(value, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"{field_name} must be a finite number", field=field_name)
    return float(value)


def _check_non_negative(value, field_name: str) -> float:
    value = _check_finite(value, field_name)
    if value < 0:
        raise ValidationError(f"{field_name} cannot be negative", field=field_name)
    return float(value)


@dataclass
class ActivityEntry:
    """
    One logged training session.

    This is the only entity in the system. `user_id`, `id` and `created_at`
    are fixed at creation; everything else may change through an owner
    update. Construction validates every field, so a stored entry always
    satisfies the range and vocabulary rules.
    """
    user_id: str
    type: ActivityType
    distance: float = 0.0
    duration: float = 0.0
    date: datetime = field(default_factory=utcnow)
    pace: Optional[float] = None
    notes: Optional[str] = None
    weather: Optional[Weather] = None
    difficulty: Optional[int] = None
    mood: Optional[Mood] = None
    is_rest_day: bool = False
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValidationError("Entry must belong to an owner", field="userId")

        if self.type is None:
            raise ValidationError("type is required", field="type")
        self.type = coerce_enum(ActivityType, self.type, "type")

        if self.distance is None:
            raise ValidationError("distance is required", field="distance")
        self.distance = _check_non_negative(self.distance, "distance")

        if self.duration is None:
            raise ValidationError("duration is required", field="duration")
        self.duration = _check_non_negative(self.duration, "duration")

        if not isinstance(self.date, datetime):
            raise ValidationError("date must be a timestamp", field="date")
        self.date = ensure_utc(self.date)

        if self.pace is not None:
            # Zero or a value that disagrees with distance/duration is allowed.
            self.pace = _check_finite(self.pace, "pace")

        if self.notes is not None and not isinstance(self.notes, str):
            raise ValidationError("notes must be text", field="notes")
        if self.notes is not None and len(self.notes) > MAX_NOTES_LENGTH:
            raise ValidationError(
                f"notes cannot exceed {MAX_NOTES_LENGTH} characters",
                field="notes",
            )

        if self.weather is not None:
            self.weather = coerce_enum(Weather, self.weather, "weather")

        if self.mood is not None:
            self.mood = coerce_enum(Mood, self.mood, "mood")

        if self.difficulty is not None:
            if isinstance(self.difficulty, bool) or not isinstance(self.difficulty, int):
                raise ValidationError("difficulty must be an integer", field="difficulty")
            if not MIN_DIFFICULTY <= self.difficulty <= MAX_DIFFICULTY:
                raise ValidationError(
                    f"difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}",
                    field="difficulty",
                )

        if not isinstance(self.is_rest_day, bool):
            raise ValidationError("isRestDay must be a boolean", field="isRestDay")

    @property
    def is_run(self) -> bool:
        return self.type == ActivityType.RUN


# ---------------------------------------------------------------------------
# Query Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntryFilter:
    """
    Restrictions applied on top of the owner scope.

    Date bounds are inclusive. A start after the end matches nothing.
    `include_rest_days=False` drops entries flagged as rest days (the
    streak query uses this).
    """
    type: Optional[ActivityType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    include_rest_days: bool = True

    @property
    def is_empty_range(self) -> bool:
        return (
            self.start_date is not None
            and self.end_date is not None
            and ensure_utc(self.start_date) > ensure_utc(self.end_date)
        )


@dataclass(frozen=True)
class PageRequest:
    """1-based page number and page size."""
    page: int = 1
    limit: int = 30

    def __post_init__(self) -> None:
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise ValidationError("page must be a positive integer", field="page")
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise ValidationError("limit must be a positive integer", field="limit")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of results plus the numbers a client needs to paginate."""
    items: list[T]
    current: int
    total: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


# ---------------------------------------------------------------------------
# Aggregate Results
# ---------------------------------------------------------------------------

@dataclass
class WeeklySummary:
    """Totals and averages over an explicit date range."""
    total_distance: float = 0.0
    total_duration: float = 0.0
    total_runs: int = 0
    total_rest_days: int = 0
    average_pace: float = 0.0
    average_difficulty: float = 0.0


@dataclass
class TotalStats:
    """Totals and averages over a trailing period."""
    total_distance: float = 0.0
    total_duration: float = 0.0
    total_activities: int = 0
    average_pace: float = 0.0
    average_difficulty: float = 0.0


@dataclass
class TypeBreakdown:
    """Per-activity-type slice of a period."""
    type: ActivityType
    count: int = 0
    total_distance: float = 0.0
    total_duration: float = 0.0


@dataclass
class WeeklyTrendPoint:
    """One ISO week bucket of a period."""
    year: int
    week: int
    total_distance: float = 0.0
    total_duration: float = 0.0
    activity_count: int = 0


@dataclass
class PeriodStatistics:
    """Everything the stats view needs, computed from one matched set."""
    total_stats: TotalStats = field(default_factory=TotalStats)
    type_breakdown: list[TypeBreakdown] = field(default_factory=list)
    weekly_progress: list[WeeklyTrendPoint] = field(default_factory=list)
