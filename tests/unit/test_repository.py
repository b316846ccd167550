"""
Tests for EntryRepository against the in-memory mock connection.

These pin down the row mapping and the SQL the mock has to understand;
a real Snowflake run is covered by scripts/init_schema.py plus the API.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from snowflake.connector import errors as snowflake_errors

from trainlog.core.progress.errors import StoreUnavailableError
from trainlog.core.progress.models import ActivityEntry, ActivityType, EntryFilter, Mood, Weather
from trainlog.infrastructure.snowflake.repositories.entries import (
    COLUMNS,
    EntryRepository,
    create_table_statements,
)


NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def make_entry(owner="athlete-1", **overrides) -> ActivityEntry:
    values = {
        "user_id": owner,
        "type": ActivityType.RUN,
        "distance": 5.0,
        "duration": 25.0,
        "pace": 5.0,
        "date": NOW,
    }
    values.update(overrides)
    return ActivityEntry(**values)


class TestRowMapping:

    def test_insert_writes_one_row_per_entry(self, repository, mock_connection):
        entry = make_entry(weather=Weather.HOT, mood=Mood.OKAY, difficulty=4, notes="track")

        repository.insert(entry)

        rows = mock_connection._rows("activity_entries")
        assert len(rows) == 1
        row = rows[0]
        assert row["entry_id"] == str(entry.id)
        assert row["activity_type"] == "run"
        assert row["weather"] == "hot"
        assert row["mood"] == "okay"
        assert row["is_rest_day"] is False

    def test_get_rebuilds_the_entry(self, repository):
        entry = make_entry(type=ActivityType.WALK, weather=Weather.SNOWY, notes="slippery")
        repository.insert(entry)

        assert repository.get("athlete-1", entry.id) == entry

    def test_get_is_owner_scoped(self, repository):
        entry = make_entry()
        repository.insert(entry)

        assert repository.get("athlete-2", entry.id) is None


class TestWrites:

    def test_update_reports_whether_a_row_matched(self, repository):
        entry = make_entry()
        repository.insert(entry)

        entry.distance = 7.5
        assert repository.update(entry) is True
        assert repository.get("athlete-1", entry.id).distance == 7.5

        stranger = make_entry(owner="athlete-2")
        assert repository.update(stranger) is False

    def test_delete_is_owner_scoped(self, repository):
        entry = make_entry()
        repository.insert(entry)

        assert repository.delete("athlete-2", entry.id) is False
        assert repository.delete("athlete-1", entry.id) is True
        assert repository.delete("athlete-1", entry.id) is False


class TestFind:

    def test_orders_by_date_then_insertion(self, repository):
        first = make_entry(date=NOW)
        older = make_entry(date=NOW - timedelta(days=1))
        second = make_entry(date=NOW)
        for entry in (first, older, second):
            repository.insert(entry)

        found = repository.find("athlete-1", EntryFilter())

        assert [e.id for e in found] == [second.id, first.id, older.id]

    def test_limit_and_offset(self, repository):
        entries = [make_entry(date=NOW - timedelta(days=n)) for n in range(4)]
        for entry in entries:
            repository.insert(entry)

        page = repository.find("athlete-1", EntryFilter(), offset=2, limit=2)

        assert [e.id for e in page] == [entries[2].id, entries[3].id]

    def test_bounds_are_inclusive(self, repository):
        start = make_entry(date=NOW - timedelta(days=2))
        end = make_entry(date=NOW)
        repository.insert(start)
        repository.insert(end)

        found = repository.find("athlete-1", EntryFilter(start_date=start.date, end_date=end.date))

        assert {e.id for e in found} == {start.id, end.id}

    def test_can_exclude_rest_days(self, repository):
        repository.insert(make_entry(type=ActivityType.REST, is_rest_day=True, distance=0, duration=0, pace=None))
        run = make_entry()
        repository.insert(run)

        found = repository.find("athlete-1", EntryFilter(include_rest_days=False))

        assert [e.id for e in found] == [run.id]
        assert repository.count("athlete-1", EntryFilter()) == 2


class TestFailures:

    def test_unavailable_store(self, repository, mock_connection):
        mock_connection._set_unavailable()

        with pytest.raises(StoreUnavailableError):
            repository.count("athlete-1", EntryFilter())
        with pytest.raises(StoreUnavailableError):
            repository.ping()

    def test_driver_errors_during_execute_are_translated(self):
        cursor = MagicMock()
        cursor.execute.side_effect = snowflake_errors.ProgrammingError(msg="boom")
        connection = MagicMock()
        connection.cursor.return_value = cursor

        with pytest.raises(StoreUnavailableError):
            EntryRepository(connection).get("athlete-1", make_entry().id)

        cursor.close.assert_called_once()

    def test_recovers_when_store_comes_back(self, repository, mock_connection):
        mock_connection._set_unavailable()
        mock_connection._set_unavailable(False)

        repository.ping()


def test_schema_covers_every_mapped_column():
    ddl = create_table_statements("activity_entries")[0]

    for column in COLUMNS + ("entry_seq",):
        assert column in ddl
