"""
Unit tests for ProgressService.

The service runs on the real EntryRepository over the in-memory mock
connection, so these exercise the full path below the HTTP layer.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from trainlog.core.progress import ProgressService
from trainlog.core.progress.errors import (
    EntryNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from trainlog.core.progress.models import ActivityType, EntryFilter, PageRequest
from trainlog.core.progress.service import parse_date_bound

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


OWNER = "athlete-1"
OTHER = "athlete-2"


def log(service, owner=OWNER, **fields):
    fields.setdefault("type", "run")
    return service.create_entry(owner, fields)


# ---------------------------------------------------------------------------
# Create / Read
# ---------------------------------------------------------------------------

class TestCreateEntry:

    def test_derives_pace_and_shows_up_in_summary(self, service):
        """Log a 5 km run in 25 minutes, then summarize its week."""
        entry = log(service, distance=5, duration=25, date=datetime(2024, 5, 13, 7, tzinfo=timezone.utc))

        assert entry.pace == 5.0
        assert entry.user_id == OWNER

        summary = service.weekly_summary(
            OWNER,
            datetime(2024, 5, 13, tzinfo=timezone.utc),
            datetime(2024, 5, 19, 23, 59, 59, tzinfo=timezone.utc),
        )
        assert summary.total_distance == 5.0
        assert summary.total_duration == 25.0
        assert summary.total_runs == 1
        assert summary.average_pace == 5.0

    def test_defaults(self, service):
        entry = service.create_entry(OWNER, {"type": "rest", "is_rest_day": True})

        assert entry.distance == 0.0
        assert entry.duration == 0.0
        assert entry.pace is None
        assert entry.date == NOW
        assert entry.created_at == entry.updated_at == NOW

    def test_explicit_pace_is_stored_verbatim(self, service):
        entry = log(service, distance=5, duration=25, pace=0)
        assert entry.pace == 0.0

        entry = log(service, distance=5, duration=25, pace=None)
        assert entry.pace is None

    def test_no_pace_without_distance(self, service):
        entry = log(service, type="cross_training", duration=45)
        assert entry.pace is None

    def test_type_is_required(self, service):
        with pytest.raises(ValidationError) as exc:
            service.create_entry(OWNER, {"distance": 5})
        assert exc.value.field == "type"

    def test_rejects_server_managed_fields(self, service):
        with pytest.raises(ValidationError) as exc:
            service.create_entry(OWNER, {"type": "run", "user_id": OTHER})
        assert exc.value.field == "user_id"

    def test_rejects_unknown_fields(self, service):
        with pytest.raises(ValidationError) as exc:
            service.create_entry(OWNER, {"type": "run", "heart_rate": 150})
        assert exc.value.field == "heart_rate"

    def test_invalid_input_is_not_stored(self, service, mock_connection):
        with pytest.raises(ValidationError):
            log(service, difficulty=11)
        assert mock_connection._rows("activity_entries") == []

    def test_round_trips_through_store(self, service):
        created = log(
            service,
            distance=8.2,
            duration=44,
            notes="hill repeats",
            weather="cloudy",
            difficulty=7,
            mood="tough",
        )

        fetched = service.get_entry(OWNER, str(created.id))

        assert fetched == created


class TestGetEntry:

    def test_other_owner_sees_not_found(self, service):
        entry = log(service, distance=5, duration=25)

        with pytest.raises(EntryNotFoundError):
            service.get_entry(OTHER, entry.id)

    def test_malformed_id_is_not_found(self, service):
        with pytest.raises(EntryNotFoundError):
            service.get_entry(OWNER, "not-a-uuid")


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestListEntries:

    def test_pages_cover_every_entry_once(self, service):
        created = {
            log(service, distance=1, duration=6, date=NOW - timedelta(days=n)).id
            for n in range(5)
        }

        seen = []
        first = service.list_entries(OWNER, page_request=PageRequest(page=1, limit=2))
        for page in range(1, first.pages + 1):
            result = service.list_entries(OWNER, page_request=PageRequest(page=page, limit=2))
            seen.extend(e.id for e in result.items)

        assert first.total == 5
        assert first.pages == 3
        assert len(seen) == 5
        assert set(seen) == created

    def test_newest_first_with_insertion_tie_break(self, service):
        older = log(service, date=NOW - timedelta(days=1))
        first_same_day = log(service, date=NOW)
        second_same_day = log(service, date=NOW)

        result = service.list_entries(OWNER)

        assert [e.id for e in result.items] == [second_same_day.id, first_same_day.id, older.id]

    def test_only_own_entries(self, service):
        log(service, owner=OTHER)
        mine = log(service)

        result = service.list_entries(OWNER)

        assert [e.id for e in result.items] == [mine.id]
        assert result.total == 1

    def test_filters_by_type_and_range(self, service):
        log(service, type="walk", date=NOW)
        run = log(service, date=NOW - timedelta(days=2))
        log(service, date=NOW - timedelta(days=10))

        result = service.list_entries(
            OWNER,
            EntryFilter(
                type=ActivityType.RUN,
                start_date=NOW - timedelta(days=5),
                end_date=NOW,
            ),
        )

        assert [e.id for e in result.items] == [run.id]

    def test_page_past_the_end_is_empty(self, service):
        log(service)

        result = service.list_entries(OWNER, page_request=PageRequest(page=4, limit=30))

        assert result.items == []
        assert result.total == 1
        assert result.current == 4

    def test_limit_cap(self, service):
        with pytest.raises(ValidationError) as exc:
            service.list_entries(OWNER, page_request=PageRequest(limit=101))
        assert exc.value.field == "limit"


# ---------------------------------------------------------------------------
# Update / Delete
# ---------------------------------------------------------------------------

class TestUpdateEntry:

    def test_rederives_pace_from_effective_values(self, service):
        """Only distance changes; the stored duration feeds the new pace."""
        entry = log(service, distance=5, duration=25)

        updated = service.update_entry(OWNER, entry.id, {"distance": 10})

        assert updated.pace == 2.5
        assert service.get_entry(OWNER, entry.id).pace == 2.5

    def test_explicit_pace_overrides(self, service):
        entry = log(service, distance=5, duration=25)

        updated = service.update_entry(OWNER, entry.id, {"duration": 30, "pace": 4.0})

        assert updated.pace == 4.0

    def test_untouched_fields_survive(self, service, clock):
        entry = log(service, distance=5, duration=25, notes="easy", mood="good")
        clock.now = NOW + timedelta(hours=2)

        updated = service.update_entry(OWNER, entry.id, {"difficulty": 3})

        assert updated.notes == "easy"
        assert updated.mood.value == "good"
        assert updated.difficulty == 3
        assert updated.created_at == NOW
        assert updated.updated_at == NOW + timedelta(hours=2)

    def test_cannot_change_owner(self, service):
        entry = log(service)

        with pytest.raises(ValidationError) as exc:
            service.update_entry(OWNER, entry.id, {"user_id": OTHER})
        assert exc.value.field == "user_id"

    def test_invalid_value_leaves_entry_unchanged(self, service):
        entry = log(service, distance=5, duration=25)

        with pytest.raises(ValidationError):
            service.update_entry(OWNER, entry.id, {"distance": -1})

        assert service.get_entry(OWNER, entry.id).distance == 5.0

    def test_other_owner_cannot_update(self, service):
        entry = log(service, distance=5, duration=25)

        with pytest.raises(EntryNotFoundError):
            service.update_entry(OTHER, entry.id, {"distance": 1})

        assert service.get_entry(OWNER, entry.id).distance == 5.0


class TestDeleteEntry:

    def test_delete_then_gone(self, service):
        entry = log(service)

        service.delete_entry(OWNER, entry.id)

        with pytest.raises(EntryNotFoundError):
            service.get_entry(OWNER, entry.id)
        with pytest.raises(EntryNotFoundError):
            service.delete_entry(OWNER, entry.id)

    def test_other_owner_cannot_delete(self, service):
        entry = log(service)

        with pytest.raises(EntryNotFoundError):
            service.delete_entry(OTHER, entry.id)

        assert service.get_entry(OWNER, entry.id).id == entry.id


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

class TestAnalytics:

    def test_weekly_summary_requires_both_bounds(self, service):
        with pytest.raises(ValidationError) as exc:
            service.weekly_summary(OWNER, None, NOW)
        assert exc.value.field == "startDate"

        with pytest.raises(ValidationError) as exc:
            service.weekly_summary(OWNER, NOW, None)
        assert exc.value.field == "endDate"

    def test_weekly_summary_ignores_other_owners(self, service):
        log(service, owner=OTHER, distance=42, duration=200)

        summary = service.weekly_summary(OWNER, NOW - timedelta(days=7), NOW)

        assert summary.total_distance == 0

    def test_period_statistics_uses_trailing_window(self, service):
        log(service, distance=5, duration=25, date=NOW - timedelta(days=2))
        log(service, type="walk", distance=2, duration=24, date=NOW - timedelta(days=6))
        log(service, distance=20, duration=100, date=NOW - timedelta(days=8))

        stats = service.period_statistics(OWNER, 7)

        assert stats.total_stats.total_activities == 2
        assert stats.total_stats.total_distance == 7.0
        assert {b.type for b in stats.type_breakdown} == {ActivityType.RUN, ActivityType.WALK}
        assert sum(p.activity_count for p in stats.weekly_progress) == 2

    def test_period_statistics_defaults_to_thirty_days(self, service):
        log(service, date=NOW - timedelta(days=29))
        log(service, date=NOW - timedelta(days=31))

        assert service.period_statistics(OWNER).total_stats.total_activities == 1

    @pytest.mark.parametrize("period", [0, -3, "7"])
    def test_period_must_be_positive_int(self, service, period):
        with pytest.raises(ValidationError) as exc:
            service.period_statistics(OWNER, period)
        assert exc.value.field == "period"

    def test_period_has_an_upper_bound(self, repository, clock):
        """Huge periods are rejected instead of overflowing date arithmetic."""
        bounded = ProgressService(repository, clock=clock, max_period_days=365)

        assert bounded.period_statistics(OWNER, 365).total_stats.total_activities == 0
        for period in (366, 1_000_000):
            with pytest.raises(ValidationError) as exc:
                bounded.period_statistics(OWNER, period)
            assert exc.value.field == "period"

    def test_default_period_bound_rejects_huge_values(self, service):
        with pytest.raises(ValidationError) as exc:
            service.period_statistics(OWNER, 1_000_000)
        assert exc.value.field == "period"

    def test_inverted_range_summary_is_zeros(self, service):
        log(service, distance=5, duration=25, date=NOW)

        summary = service.weekly_summary(OWNER, NOW + timedelta(days=1), NOW - timedelta(days=1))

        assert summary.total_distance == 0
        assert summary.total_runs == 0
        assert summary.average_pace == 0.0

    def test_inverted_range_lists_nothing(self, service):
        log(service, date=NOW)

        result = service.list_entries(
            OWNER,
            EntryFilter(start_date=NOW + timedelta(days=1), end_date=NOW - timedelta(days=1)),
        )

        assert result.items == []
        assert result.total == 0
        assert result.pages == 0

    def test_adjacent_date_ranges_add_up(self, service):
        """
        Split May 13-19 into May 13-15 and May 16-19. Entries sitting on
        the shared boundary land in exactly one half.
        """
        log(service, type="walk", distance=2, duration=24, date=datetime(2024, 5, 13, 0, 0, tzinfo=timezone.utc))
        log(service, distance=5, duration=25, date=datetime(2024, 5, 15, 23, 59, 59, 999999, tzinfo=timezone.utc))
        log(service, distance=8, duration=44, date=datetime(2024, 5, 16, 0, 0, tzinfo=timezone.utc))
        log(service, type="rest", is_rest_day=True, date=datetime(2024, 5, 19, 23, 0, tzinfo=timezone.utc))
        log(service, distance=30, duration=150, date=datetime(2024, 5, 20, 0, 0, tzinfo=timezone.utc))

        def bounds(start, end):
            return (
                parse_date_bound(start, "startDate"),
                parse_date_bound(end, "endDate", end_of_day=True),
            )

        ranges = {
            "whole": bounds("2024-05-13", "2024-05-19"),
            "first": bounds("2024-05-13", "2024-05-15"),
            "second": bounds("2024-05-16", "2024-05-19"),
        }
        summaries = {name: service.weekly_summary(OWNER, *r) for name, r in ranges.items()}
        counts = {
            name: service.list_entries(OWNER, EntryFilter(start_date=r[0], end_date=r[1])).total
            for name, r in ranges.items()
        }

        whole, first, second = summaries["whole"], summaries["first"], summaries["second"]
        assert whole.total_runs == 2
        assert (first.total_runs, second.total_runs) == (1, 1)
        assert first.total_rest_days + second.total_rest_days == whole.total_rest_days == 1
        assert first.total_distance + second.total_distance == whole.total_distance == 15.0
        assert first.total_duration + second.total_duration == whole.total_duration == 93.0
        assert counts == {"whole": 4, "first": 2, "second": 2}

    def test_streak(self, service):
        log(service, date=NOW)
        log(service, date=NOW - timedelta(days=1))
        log(service, type="rest", is_rest_day=True, date=NOW - timedelta(days=2))
        log(service, date=NOW - timedelta(days=3))

        assert service.current_streak(OWNER) == 2
        assert service.current_streak(OTHER) == 0

    def test_streak_in_configured_zone(self, repository, clock):
        tokyo = ProgressService(repository, tz=ZoneInfo("Asia/Tokyo"), clock=clock)
        # 12:00 UTC is 21:00 in Tokyo; 16:00 UTC the day before is 01:00 on the same Tokyo day.
        tokyo.create_entry(OWNER, {"type": "run", "date": NOW - timedelta(hours=20)})

        assert tokyo.current_streak(OWNER) == 1


class TestStoreOutage:

    def test_failures_surface_as_store_unavailable(self, service, mock_connection):
        entry = log(service)
        mock_connection._set_unavailable()

        with pytest.raises(StoreUnavailableError):
            log(service)
        with pytest.raises(StoreUnavailableError):
            service.get_entry(OWNER, entry.id)
        with pytest.raises(StoreUnavailableError):
            service.current_streak(OWNER)


# ---------------------------------------------------------------------------
# Date Bounds
# ---------------------------------------------------------------------------

class TestParseDateBound:

    def test_date_only_start_is_start_of_day(self):
        assert parse_date_bound("2024-05-01", "startDate") == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_date_only_end_covers_whole_day(self):
        bound = parse_date_bound("2024-05-01", "endDate", end_of_day=True)
        assert bound == datetime(2024, 5, 1, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_date_only_uses_reference_zone(self):
        bound = parse_date_bound("2024-05-01", "startDate", tz=ZoneInfo("Asia/Tokyo"))
        assert bound == datetime(2024, 4, 30, 15, tzinfo=timezone.utc)

    def test_timestamp_with_offset(self):
        bound = parse_date_bound("2024-05-01T10:00:00+02:00", "startDate")
        assert bound == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)

    def test_empty_is_none(self):
        assert parse_date_bound(None, "startDate") is None
        assert parse_date_bound("", "startDate") is None

    def test_garbage_names_the_field(self):
        with pytest.raises(ValidationError) as exc:
            parse_date_bound("last tuesday", "endDate")
        assert exc.value.field == "endDate"
