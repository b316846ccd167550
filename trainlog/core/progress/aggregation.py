"""
Aggregations over a set of activity entries.

Everything here is a pure function of the entries passed in. Callers fetch
the matching entries (owner + date range) from the store and hand over the
full set; pagination never applies to aggregates.

Averages over an empty set are 0.0, for every averaged field.
"""

from datetime import timezone, tzinfo
from typing import Iterable, Optional

from .models import (
    ActivityEntry,
    ActivityType,
    PeriodStatistics,
    TotalStats,
    TypeBreakdown,
    WeeklySummary,
    WeeklyTrendPoint,
)


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _paces(entries: list[ActivityEntry]) -> list[float]:
    return [e.pace for e in entries if e.pace is not None]


def _difficulties(entries: list[ActivityEntry]) -> list[float]:
    return [float(e.difficulty) for e in entries if e.difficulty is not None]


def weekly_summary(entries: Iterable[ActivityEntry]) -> WeeklySummary:
    """
    Summarize a caller-chosen date range.

    Returns an all-zero summary when there are no entries.
    """
    entries = list(entries)
    return WeeklySummary(
        total_distance=sum(e.distance for e in entries),
        total_duration=sum(e.duration for e in entries),
        total_runs=sum(1 for e in entries if e.is_run),
        total_rest_days=sum(1 for e in entries if e.is_rest_day),
        average_pace=_mean(_paces(entries)),
        average_difficulty=_mean(_difficulties(entries)),
    )


def total_stats(entries: Iterable[ActivityEntry]) -> TotalStats:
    entries = list(entries)
    return TotalStats(
        total_distance=sum(e.distance for e in entries),
        total_duration=sum(e.duration for e in entries),
        total_activities=len(entries),
        average_pace=_mean(_paces(entries)),
        average_difficulty=_mean(_difficulties(entries)),
    )


def type_breakdown(entries: Iterable[ActivityEntry]) -> list[TypeBreakdown]:
    """One bucket per activity type present, in ActivityType order."""
    buckets: dict[ActivityType, TypeBreakdown] = {}
    for entry in entries:
        bucket = buckets.get(entry.type)
        if bucket is None:
            bucket = buckets[entry.type] = TypeBreakdown(type=entry.type)
        bucket.count += 1
        bucket.total_distance += entry.distance
        bucket.total_duration += entry.duration

    return [buckets[t] for t in ActivityType if t in buckets]


def weekly_trend(
    entries: Iterable[ActivityEntry],
    tz: Optional[tzinfo] = None,
) -> list[WeeklyTrendPoint]:
    """
    Group entries by ISO (year, week) of their date in `tz`.

    Buckets come back sorted ascending by (year, week). ISO years matter
    around New Year: 2024-12-30 belongs to week 1 of 2025.
    """
    tz = tz or timezone.utc
    buckets: dict[tuple[int, int], WeeklyTrendPoint] = {}

    for entry in entries:
        iso = entry.date.astimezone(tz).isocalendar()
        key = (iso[0], iso[1])
        point = buckets.get(key)
        if point is None:
            point = buckets[key] = WeeklyTrendPoint(year=key[0], week=key[1])
        point.total_distance += entry.distance
        point.total_duration += entry.duration
        point.activity_count += 1

    return [buckets[key] for key in sorted(buckets)]


def period_statistics(
    entries: Iterable[ActivityEntry],
    tz: Optional[tzinfo] = None,
) -> PeriodStatistics:
    """Build all three period artifacts from the same matched set."""
    entries = list(entries)
    return PeriodStatistics(
        total_stats=total_stats(entries),
        type_breakdown=type_breakdown(entries),
        weekly_progress=weekly_trend(entries, tz),
    )
