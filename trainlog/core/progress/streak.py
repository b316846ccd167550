"""
Consecutive-day training streak.

A streak counts calendar days, walking backward from the reference day,
that each have at least one non-rest entry. The first day without one ends
the walk, including the reference day itself. The lookback is bounded, so
the result never exceeds `window_days`.

Calendar days are taken in one explicit zone (UTC unless configured),
never the server's local time.
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from .models import ActivityEntry, ensure_utc


STREAK_WINDOW_DAYS = 30


def window_start(reference_date: datetime, window_days: int = STREAK_WINDOW_DAYS) -> datetime:
    """Earliest entry timestamp the streak query needs to fetch."""
    return ensure_utc(reference_date) - timedelta(days=window_days)


def to_calendar_day(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    """Strip time-of-day after converting to the reference zone."""
    return ensure_utc(moment).astimezone(tz or timezone.utc).date()


def current_streak(
    entries: Iterable[ActivityEntry],
    reference_date: datetime,
    tz: Optional[tzinfo] = None,
    window_days: int = STREAK_WINDOW_DAYS,
) -> int:
    """
    Count consecutive active days ending at the reference day.

    Rest-day entries are ignored even if the caller passes them in, so the
    function gives the same answer whether or not the store pre-filtered.
    """
    active_days = {
        to_calendar_day(entry.date, tz)
        for entry in entries
        if not entry.is_rest_day
    }

    day = to_calendar_day(reference_date, tz)
    streak = 0
    for _ in range(window_days):
        if day not in active_days:
            break
        streak += 1
        day -= timedelta(days=1)

    return streak
