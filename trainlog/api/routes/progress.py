"""
Progress API endpoints.

Lets an athlete log activities and read back their training picture:
- CRUD over their own activity entries
- Weekly summaries over an explicit date range
- Trailing-period statistics with type breakdown and weekly trend
- The current consecutive-day streak

Every route is scoped to the owner resolved from the bearer token. Domain
errors propagate to the exception handlers registered in main.py, which
turn them into 4xx/5xx responses.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.progress.models import (
    MAX_DIFFICULTY,
    MAX_NOTES_LENGTH,
    MIN_DIFFICULTY,
    ActivityEntry,
    ActivityType,
    EntryFilter,
    Mood,
    PageRequest,
    PeriodStatistics,
    Weather,
    WeeklySummary,
    coerce_enum,
)
from ...core.progress.service import parse_date_bound
from ..dependencies import CurrentOwner, ProgressServiceDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

# Wire names that differ from the domain attribute names.
_WIRE_TO_DOMAIN = {"isRestDay": "is_rest_day"}


def _to_domain_fields(request: BaseModel) -> dict:
    """Only the fields the client actually sent, renamed for the domain."""
    return {
        _WIRE_TO_DOMAIN.get(name, name): getattr(request, name)
        for name in request.model_fields_set
    }


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateEntryRequest(BaseModel):
    """Request to log a new activity."""
    model_config = ConfigDict(extra="forbid")

    type: ActivityType = Field(description="run, walk, cross_training or rest")
    distance: float = Field(0, ge=0, description="Distance in kilometres")
    duration: float = Field(0, ge=0, description="Duration in minutes")
    date: Optional[datetime] = Field(None, description="When it happened. Defaults to now.")
    pace: Optional[float] = Field(
        None,
        description="Minutes per km. Derived from distance and duration when omitted.",
    )
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    weather: Optional[Weather] = None
    difficulty: Optional[int] = Field(None, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    mood: Optional[Mood] = None
    isRestDay: bool = Field(False, description="Rest days don't count toward the streak")


class UpdateEntryRequest(BaseModel):
    """
    Partial update. Only fields present in the body are changed.

    Sending `"pace": null` clears pace explicitly; leaving pace out
    re-derives it from the effective distance and duration.
    """
    model_config = ConfigDict(extra="forbid")

    type: Optional[ActivityType] = None
    distance: Optional[float] = Field(None, ge=0)
    duration: Optional[float] = Field(None, ge=0)
    date: Optional[datetime] = None
    pace: Optional[float] = None
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    weather: Optional[Weather] = None
    difficulty: Optional[int] = Field(None, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    mood: Optional[Mood] = None
    isRestDay: Optional[bool] = None


class EntryResponse(BaseModel):
    """A single activity entry as clients see it."""
    id: str
    userId: str
    date: datetime
    type: str
    distance: float
    duration: float
    pace: Optional[float] = None
    notes: Optional[str] = None
    weather: Optional[str] = None
    difficulty: Optional[int] = None
    mood: Optional[str] = None
    isRestDay: bool
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_entry(cls, entry: ActivityEntry) -> "EntryResponse":
        return cls(
            id=str(entry.id),
            userId=entry.user_id,
            date=entry.date,
            type=entry.type.value,
            distance=entry.distance,
            duration=entry.duration,
            pace=entry.pace,
            notes=entry.notes,
            weather=entry.weather.value if entry.weather else None,
            difficulty=entry.difficulty,
            mood=entry.mood.value if entry.mood else None,
            isRestDay=entry.is_rest_day,
            createdAt=entry.created_at,
            updatedAt=entry.updated_at,
        )


class EntryEnvelope(BaseModel):
    message: Optional[str] = None
    progress: EntryResponse


class PaginationResponse(BaseModel):
    current: int = Field(description="Current page (1-based)")
    pages: int = Field(description="Total number of pages")
    total: int = Field(description="Total number of matching entries")


class ListEntriesResponse(BaseModel):
    progress: list[EntryResponse]
    pagination: PaginationResponse


class MessageResponse(BaseModel):
    message: str


class WeeklySummaryResponse(BaseModel):
    totalDistance: float
    totalDuration: float
    totalRuns: int
    totalRestDays: int
    averagePace: float
    averageDifficulty: float

    @classmethod
    def from_summary(cls, summary: WeeklySummary) -> "WeeklySummaryResponse":
        return cls(
            totalDistance=summary.total_distance,
            totalDuration=summary.total_duration,
            totalRuns=summary.total_runs,
            totalRestDays=summary.total_rest_days,
            averagePace=summary.average_pace,
            averageDifficulty=summary.average_difficulty,
        )


class StreakResponse(BaseModel):
    streak: int = Field(description="Consecutive days with a non-rest activity, ending today")


class TotalStatsResponse(BaseModel):
    totalDistance: float
    totalDuration: float
    totalActivities: int
    averagePace: float
    averageDifficulty: float


class TypeBreakdownItem(BaseModel):
    type: str
    count: int
    totalDistance: float
    totalDuration: float


class WeeklyProgressItem(BaseModel):
    year: int = Field(description="ISO year")
    week: int = Field(description="ISO week number")
    totalDistance: float
    totalDuration: float
    activityCount: int


class StatsResponse(BaseModel):
    totalStats: TotalStatsResponse
    typeBreakdown: list[TypeBreakdownItem]
    weeklyProgress: list[WeeklyProgressItem]

    @classmethod
    def from_statistics(cls, stats: PeriodStatistics) -> "StatsResponse":
        totals = stats.total_stats
        return cls(
            totalStats=TotalStatsResponse(
                totalDistance=totals.total_distance,
                totalDuration=totals.total_duration,
                totalActivities=totals.total_activities,
                averagePace=totals.average_pace,
                averageDifficulty=totals.average_difficulty,
            ),
            typeBreakdown=[
                TypeBreakdownItem(
                    type=item.type.value,
                    count=item.count,
                    totalDistance=item.total_distance,
                    totalDuration=item.total_duration,
                )
                for item in stats.type_breakdown
            ],
            weeklyProgress=[
                WeeklyProgressItem(
                    year=point.year,
                    week=point.week,
                    totalDistance=point.total_distance,
                    totalDuration=point.total_duration,
                    activityCount=point.activity_count,
                )
                for point in stats.weekly_progress
            ],
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=EntryEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Log an activity",
)
def create_entry(
    request: CreateEntryRequest,
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
) -> EntryEnvelope:
    """
    Log a run, walk, cross-training session or rest day.

    Pace is computed as duration / distance when both are positive and
    the body doesn't include a pace.
    """
    entry = service.create_entry(owner_id, _to_domain_fields(request))
    return EntryEnvelope(
        message="Progress entry added successfully",
        progress=EntryResponse.from_entry(entry),
    )


@router.get(
    "",
    response_model=ListEntriesResponse,
    summary="List my activities",
)
def list_entries(
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
    settings: SettingsDep,
    page: int = Query(1, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Page size"),
    type: Optional[str] = Query(None, description="Only this activity type"),
    startDate: Optional[str] = Query(None, description="Inclusive lower bound (ISO date or timestamp)"),
    endDate: Optional[str] = Query(None, description="Inclusive upper bound (ISO date or timestamp)"),
) -> ListEntriesResponse:
    """Newest first, with pagination metadata."""
    tz = service.tz
    entry_filter = EntryFilter(
        type=coerce_enum(ActivityType, type, "type") if type else None,
        start_date=parse_date_bound(startDate, "startDate", tz),
        end_date=parse_date_bound(endDate, "endDate", tz, end_of_day=True),
    )
    page_request = PageRequest(
        page=page,
        limit=settings.default_page_limit if limit is None else limit,
    )

    result = service.list_entries(owner_id, entry_filter, page_request)

    return ListEntriesResponse(
        progress=[EntryResponse.from_entry(e) for e in result.items],
        pagination=PaginationResponse(
            current=result.current,
            pages=result.pages,
            total=result.total,
        ),
    )


@router.get(
    "/weekly-summary",
    response_model=WeeklySummaryResponse,
    summary="Summary over a date range",
)
def weekly_summary(
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
    startDate: Optional[str] = Query(None, description="Inclusive start (required)"),
    endDate: Optional[str] = Query(None, description="Inclusive end (required)"),
) -> WeeklySummaryResponse:
    """
    Distance, duration, run and rest-day counts and averages for the range.

    Returns zeros rather than 404 when nothing was logged.
    """
    tz = service.tz
    summary = service.weekly_summary(
        owner_id,
        parse_date_bound(startDate, "startDate", tz),
        parse_date_bound(endDate, "endDate", tz, end_of_day=True),
    )
    return WeeklySummaryResponse.from_summary(summary)


@router.get(
    "/streak",
    response_model=StreakResponse,
    summary="Current training streak",
)
def training_streak(
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
) -> StreakResponse:
    return StreakResponse(streak=service.current_streak(owner_id))


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Trailing-period statistics",
)
def progress_stats(
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
    period: Optional[int] = Query(None, description="Trailing window in days (default 30)"),
) -> StatsResponse:
    """Totals, per-type breakdown and ISO-week trend for the last `period` days."""
    stats = service.period_statistics(owner_id, period)
    return StatsResponse.from_statistics(stats)


@router.get(
    "/{entry_id}",
    response_model=EntryEnvelope,
    summary="Get one activity",
)
def get_entry(
    entry_id: str,
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
) -> EntryEnvelope:
    entry = service.get_entry(owner_id, entry_id)
    return EntryEnvelope(progress=EntryResponse.from_entry(entry))


@router.put(
    "/{entry_id}",
    response_model=EntryEnvelope,
    summary="Update an activity",
)
def update_entry(
    entry_id: str,
    request: UpdateEntryRequest,
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
) -> EntryEnvelope:
    entry = service.update_entry(owner_id, entry_id, _to_domain_fields(request))
    return EntryEnvelope(
        message="Progress entry updated successfully",
        progress=EntryResponse.from_entry(entry),
    )


@router.delete(
    "/{entry_id}",
    response_model=MessageResponse,
    summary="Delete an activity",
)
def delete_entry(
    entry_id: str,
    owner_id: CurrentOwner,
    service: ProgressServiceDep,
) -> MessageResponse:
    service.delete_entry(owner_id, entry_id)
    return MessageResponse(message="Progress entry deleted successfully")
