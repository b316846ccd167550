"""
Progress service: the operations an authenticated athlete can invoke.

This is a service, not a data container. It binds every operation to an
owner id, applies pace derivation before writes, and hands matched entry
sets to the aggregation and streak functions. It knows nothing about HTTP
or SQL; storage comes in through the EntryStore protocol.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Callable, Mapping, Optional, Protocol, Union
from uuid import UUID

from . import aggregation
from .errors import EntryNotFoundError, ValidationError
from .models import (
    ActivityEntry,
    EntryFilter,
    Page,
    PageRequest,
    PeriodStatistics,
    WeeklySummary,
    ensure_utc,
    utcnow,
)
from .pace import derive_pace
from .streak import STREAK_WINDOW_DAYS, current_streak, window_start


logger = logging.getLogger(__name__)


WRITABLE_FIELDS = frozenset({
    "date",
    "type",
    "distance",
    "duration",
    "pace",
    "notes",
    "weather",
    "difficulty",
    "mood",
    "is_rest_day",
})

IMMUTABLE_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})

DEFAULT_PERIOD_DAYS = 30
DEFAULT_MAX_PAGE_LIMIT = 100
DEFAULT_MAX_PERIOD_DAYS = 3660


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class EntryStore(Protocol):
    """
    Interface for activity entry persistence.

    Every method is scoped by owner. `find` returns entries ordered by date
    descending, newest insertion first on ties. Implementations raise
    StoreUnavailableError when the backing store fails.
    """

    def insert(self, entry: ActivityEntry) -> None: ...

    def get(self, owner_id: str, entry_id: UUID) -> Optional[ActivityEntry]: ...

    def update(self, entry: ActivityEntry) -> bool: ...

    def delete(self, owner_id: str, entry_id: UUID) -> bool: ...

    def find(
        self,
        owner_id: str,
        entry_filter: EntryFilter,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[ActivityEntry]: ...

    def count(self, owner_id: str, entry_filter: EntryFilter) -> int: ...


# ---------------------------------------------------------------------------
# Input Helpers
# ---------------------------------------------------------------------------

DateBound = Union[str, date, datetime, None]


def parse_date_bound(
    value: DateBound,
    field_name: str,
    tz: Optional[tzinfo] = None,
    end_of_day: bool = False,
) -> Optional[datetime]:
    """
    Turn a query bound into an aware UTC timestamp.

    Accepts ISO-8601 timestamps and plain dates. A plain date means the
    start of that day in `tz`, or its last microsecond when `end_of_day`
    is set, so an end bound of "2024-05-01" includes the whole day.
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        try:
            parsed: Union[date, datetime] = datetime.fromisoformat(value)
            if "T" not in value and " " not in value and len(value) <= 10:
                parsed = parsed.date()
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO-8601 date", field=field_name)
    else:
        parsed = value

    if isinstance(parsed, datetime):
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz or timezone.utc)
        return ensure_utc(parsed)

    moment = time.max if end_of_day else time.min
    return datetime.combine(parsed, moment, tzinfo=tz or timezone.utc).astimezone(timezone.utc)


def _parse_entry_id(entry_id: Union[str, UUID]) -> UUID:
    if isinstance(entry_id, UUID):
        return entry_id
    try:
        return UUID(str(entry_id))
    except ValueError:
        # A malformed id can't match anything; report it like any other miss.
        raise EntryNotFoundError("Progress entry not found")


def _check_fields(fields: Mapping[str, Any]) -> None:
    for name in fields:
        if name in IMMUTABLE_FIELDS:
            raise ValidationError(f"{name} cannot be changed", field=name)
        if name not in WRITABLE_FIELDS:
            raise ValidationError(f"Unknown field: {name}", field=name)


# ---------------------------------------------------------------------------
# Progress Service
# ---------------------------------------------------------------------------

class ProgressService:
    """
    Activity logging and progress analytics for one store.

    Stateless between calls; safe to create per request.
    """

    def __init__(
        self,
        store: EntryStore,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = utcnow,
        max_page_limit: int = DEFAULT_MAX_PAGE_LIMIT,
        default_period_days: int = DEFAULT_PERIOD_DAYS,
        max_period_days: int = DEFAULT_MAX_PERIOD_DAYS,
        streak_window_days: int = STREAK_WINDOW_DAYS,
    ) -> None:
        self._store = store
        self._tz = tz or timezone.utc
        self._clock = clock
        self._max_page_limit = max_page_limit
        self._default_period_days = default_period_days
        self._max_period_days = max_period_days
        self._streak_window_days = streak_window_days

    @property
    def tz(self) -> tzinfo:
        return self._tz

    # -- entries -----------------------------------------------------------

    def create_entry(self, owner_id: str, fields: Mapping[str, Any]) -> ActivityEntry:
        """
        Log a new activity for `owner_id`.

        `type` is required. Missing distance/duration default to 0, a
        missing date to now. Pace is derived unless `pace` is a key of
        `fields` (a None value there means "explicitly no pace").
        """
        _check_fields(fields)
        if fields.get("type") is None:
            raise ValidationError("type is required", field="type")

        now = self._clock()
        values = dict(fields)
        for name in ("distance", "duration"):
            if values.get(name) is None:
                values[name] = 0.0
        if values.get("date") is None:
            values["date"] = now
        if values.get("is_rest_day") is None:
            values["is_rest_day"] = False

        entry = ActivityEntry(user_id=owner_id, created_at=now, updated_at=now, **values)
        entry.pace = derive_pace(
            entry.distance,
            entry.duration,
            current_pace=entry.pace,
            pace_supplied="pace" in fields,
        )

        self._store.insert(entry)

        logger.info(
            "Progress entry created",
            extra={"entry_id": str(entry.id), "user_id": owner_id, "type": entry.type.value},
        )
        return entry

    def get_entry(self, owner_id: str, entry_id: Union[str, UUID]) -> ActivityEntry:
        entry = self._store.get(owner_id, _parse_entry_id(entry_id))
        if entry is None:
            raise EntryNotFoundError("Progress entry not found")
        return entry

    def list_entries(
        self,
        owner_id: str,
        entry_filter: Optional[EntryFilter] = None,
        page_request: Optional[PageRequest] = None,
    ) -> Page[ActivityEntry]:
        """Return one page of the owner's entries, newest first."""
        entry_filter = entry_filter or EntryFilter()
        page_request = page_request or PageRequest()

        if page_request.limit > self._max_page_limit:
            raise ValidationError(
                f"limit cannot exceed {self._max_page_limit}",
                field="limit",
            )

        if entry_filter.is_empty_range:
            return Page(items=[], current=page_request.page, total=0, limit=page_request.limit)

        total = self._store.count(owner_id, entry_filter)
        items = self._store.find(
            owner_id,
            entry_filter,
            offset=page_request.offset,
            limit=page_request.limit,
        )

        logger.debug(
            "Listed progress entries",
            extra={"user_id": owner_id, "page": page_request.page, "returned": len(items), "total": total},
        )
        return Page(items=items, current=page_request.page, total=total, limit=page_request.limit)

    def update_entry(
        self,
        owner_id: str,
        entry_id: Union[str, UUID],
        changes: Mapping[str, Any],
    ) -> ActivityEntry:
        """
        Merge `changes` into an owned entry and re-derive pace.

        Distance and duration that the request doesn't touch keep their
        stored values for the derivation.
        """
        _check_fields(changes)
        existing = self.get_entry(owner_id, entry_id)

        updated = replace(existing, **changes, updated_at=self._clock())
        updated.pace = derive_pace(
            updated.distance,
            updated.duration,
            current_pace=updated.pace,
            pace_supplied="pace" in changes,
        )

        if not self._store.update(updated):
            # Deleted between our read and write.
            raise EntryNotFoundError("Progress entry not found")

        logger.info(
            "Progress entry updated",
            extra={"entry_id": str(updated.id), "user_id": owner_id, "fields": sorted(changes)},
        )
        return updated

    def delete_entry(self, owner_id: str, entry_id: Union[str, UUID]) -> None:
        parsed_id = _parse_entry_id(entry_id)
        if not self._store.delete(owner_id, parsed_id):
            raise EntryNotFoundError("Progress entry not found")

        logger.info(
            "Progress entry deleted",
            extra={"entry_id": str(parsed_id), "user_id": owner_id},
        )

    # -- analytics ---------------------------------------------------------

    def weekly_summary(
        self,
        owner_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> WeeklySummary:
        """
        Totals over [start, end], both bounds required and inclusive.

        An inverted range is not an error; it just matches nothing.
        """
        if start is None:
            raise ValidationError("startDate is required", field="startDate")
        if end is None:
            raise ValidationError("endDate is required", field="endDate")

        entry_filter = EntryFilter(start_date=start, end_date=end)
        if entry_filter.is_empty_range:
            return WeeklySummary()

        entries = self._store.find(owner_id, entry_filter)
        return aggregation.weekly_summary(entries)

    def period_statistics(
        self,
        owner_id: str,
        period_days: Optional[int] = None,
    ) -> PeriodStatistics:
        """Total stats, type breakdown and weekly trend for the trailing period."""
        if period_days is None:
            period_days = self._default_period_days
        if isinstance(period_days, bool) or not isinstance(period_days, int) or period_days < 1:
            raise ValidationError("period must be a positive number of days", field="period")
        if period_days > self._max_period_days:
            raise ValidationError(
                f"period cannot exceed {self._max_period_days} days",
                field="period",
            )

        end = self._clock()
        start = end - timedelta(days=period_days)
        entries = self._store.find(owner_id, EntryFilter(start_date=start, end_date=end))
        return aggregation.period_statistics(entries, self._tz)

    def current_streak(
        self,
        owner_id: str,
        reference_date: Optional[datetime] = None,
    ) -> int:
        reference_date = reference_date or self._clock()
        entries = self._store.find(
            owner_id,
            EntryFilter(
                start_date=window_start(reference_date, self._streak_window_days),
                include_rest_days=False,
            ),
        )
        return current_streak(entries, reference_date, self._tz, self._streak_window_days)
