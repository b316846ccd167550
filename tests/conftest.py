"""
Shared fixtures.

Everything runs against the in-memory mock connection, so no test needs
a Snowflake account or network access.
"""

from datetime import datetime, timezone

import pytest

from trainlog.core.progress import ProgressService
from trainlog.infrastructure.snowflake.client import MockSnowflakeConnection
from trainlog.infrastructure.snowflake.repositories import EntryRepository


# Wednesday, so the surrounding ISO week is unambiguous.
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def mock_connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def repository(mock_connection) -> EntryRepository:
    return EntryRepository(mock_connection)


@pytest.fixture
def service(repository, clock) -> ProgressService:
    return ProgressService(repository, tz=timezone.utc, clock=clock)
