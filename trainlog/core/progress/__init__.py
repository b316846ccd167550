"""
Activity logging and progress analytics.

Contains the entry model, pace derivation, aggregations, the streak
calculator and the service that ties them to an owner.
"""

from .errors import (
    AuthError,
    EntryNotFoundError,
    ProgressError,
    StoreUnavailableError,
    ValidationError,
)
from .models import (
    ActivityEntry,
    ActivityType,
    EntryFilter,
    Mood,
    Page,
    PageRequest,
    PeriodStatistics,
    TotalStats,
    TypeBreakdown,
    Weather,
    WeeklySummary,
    WeeklyTrendPoint,
)
from .pace import calculate_pace, derive_pace
from .service import EntryStore, ProgressService, parse_date_bound
from .streak import current_streak

__all__ = [
    "AuthError",
    "EntryNotFoundError",
    "ProgressError",
    "StoreUnavailableError",
    "ValidationError",
    "ActivityEntry",
    "ActivityType",
    "EntryFilter",
    "Mood",
    "Page",
    "PageRequest",
    "PeriodStatistics",
    "TotalStats",
    "TypeBreakdown",
    "Weather",
    "WeeklySummary",
    "WeeklyTrendPoint",
    "calculate_pace",
    "derive_pace",
    "EntryStore",
    "ProgressService",
    "parse_date_bound",
    "current_streak",
]
