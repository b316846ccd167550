"""
Snowflake repository for activity entries.

This module implements the repository pattern for entry data access.
The repository:
1. Translates between domain models and database rows
2. Encapsulates all SQL queries
3. Scopes every statement by owner

The application code never writes SQL directly - it asks the repository
for what it needs in domain terms.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional
from uuid import UUID

from snowflake.connector import errors as snowflake_errors

from ....core.progress.errors import StoreUnavailableError
from ....core.progress.models import (
    ActivityEntry,
    ActivityType,
    EntryFilter,
    Mood,
    Weather,
    ensure_utc,
)
from ..client import SnowflakeConnection


logger = logging.getLogger(__name__)


DEFAULT_TABLE = "activity_entries"

# Order matters: _row_to_entry reads rows positionally.
COLUMNS = (
    "entry_id",
    "user_id",
    "entry_date",
    "activity_type",
    "distance_km",
    "duration_min",
    "pace_min_per_km",
    "notes",
    "weather",
    "difficulty",
    "mood",
    "is_rest_day",
    "created_at",
    "updated_at",
)

MUTABLE_COLUMNS = (
    "entry_date",
    "activity_type",
    "distance_km",
    "duration_min",
    "pace_min_per_km",
    "notes",
    "weather",
    "difficulty",
    "mood",
    "is_rest_day",
    "updated_at",
)


def create_table_statements(table: str = DEFAULT_TABLE) -> list[str]:
    """DDL for the entries table. Safe to run repeatedly."""
    return [
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
            entry_id VARCHAR(36) NOT NULL PRIMARY KEY,
            entry_seq NUMBER AUTOINCREMENT START 1 INCREMENT 1 ORDER,
            user_id VARCHAR(128) NOT NULL,
            entry_date TIMESTAMP_TZ NOT NULL,
            activity_type VARCHAR(20) NOT NULL,
            distance_km FLOAT NOT NULL DEFAULT 0,
            duration_min FLOAT NOT NULL DEFAULT 0,
            pace_min_per_km FLOAT,
            notes VARCHAR(500),
            weather VARCHAR(10),
            difficulty NUMBER(2, 0),
            mood VARCHAR(10),
            is_rest_day BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP_TZ NOT NULL,
            updated_at TIMESTAMP_TZ NOT NULL
        )
        """,
        # Snowflake has no secondary indexes; clustering serves the
        # (user_id, entry_date) access path instead.
        f"ALTER TABLE {table} CLUSTER BY (user_id, entry_date)",
    ]


class EntryRepository:
    """
    Repository for activity entry persistence.

    Each method corresponds to a use case the service needs:
    - insert / get / update / delete: single-row operations
    - find: filtered, ordered, optionally paginated reads
    - count: size of a filtered set, for pagination metadata

    Single-row writes are committed immediately. Any driver error
    surfaces as StoreUnavailableError; retrying is the caller's call.
    """

    def __init__(self, connection: SnowflakeConnection, table: str = DEFAULT_TABLE) -> None:
        self._conn = connection
        self._table = table

    def insert(self, entry: ActivityEntry) -> None:
        row = self._entry_to_row(entry)
        placeholders = ", ".join(["%s"] * len(COLUMNS))

        with self._cursor("insert") as cursor:
            cursor.execute(
                f"INSERT INTO {self._table} ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                tuple(row[c] for c in COLUMNS),
            )
            self._conn.commit()

    def get(self, owner_id: str, entry_id: UUID) -> Optional[ActivityEntry]:
        with self._cursor("get") as cursor:
            cursor.execute(
                f"""
                SELECT {', '.join(COLUMNS)}
                FROM {self._table}
                WHERE entry_id = %s AND user_id = %s
                """,
                (str(entry_id), owner_id),
            )
            row = cursor.fetchone()

        return self._row_to_entry(row) if row else None

    def update(self, entry: ActivityEntry) -> bool:
        """
        Overwrite the mutable columns of an owned entry.

        Returns False when no row matched (absent or owned by someone else).
        """
        row = self._entry_to_row(entry)
        assignments = ", ".join(f"{c} = %s" for c in MUTABLE_COLUMNS)

        with self._cursor("update") as cursor:
            cursor.execute(
                f"""
                UPDATE {self._table}
                SET {assignments}
                WHERE entry_id = %s AND user_id = %s
                """,
                tuple(row[c] for c in MUTABLE_COLUMNS) + (str(entry.id), entry.user_id),
            )
            updated = cursor.rowcount
            self._conn.commit()

        return updated > 0

    def delete(self, owner_id: str, entry_id: UUID) -> bool:
        with self._cursor("delete") as cursor:
            cursor.execute(
                f"DELETE FROM {self._table} WHERE entry_id = %s AND user_id = %s",
                (str(entry_id), owner_id),
            )
            deleted = cursor.rowcount
            self._conn.commit()

        return deleted > 0

    def find(
        self,
        owner_id: str,
        entry_filter: EntryFilter,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[ActivityEntry]:
        """
        Entries matching the filter, newest date first.

        Ties on date fall back to insertion order, newest first.
        """
        where, params = self._where(owner_id, entry_filter)
        query = f"""
            SELECT {', '.join(COLUMNS)}
            FROM {self._table}
            WHERE {where}
            ORDER BY entry_date DESC, entry_seq DESC
        """
        if limit is not None:
            query += " LIMIT %s OFFSET %s"
            params += (limit, offset or 0)

        with self._cursor("find") as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()

        return [self._row_to_entry(row) for row in rows]

    def count(self, owner_id: str, entry_filter: EntryFilter) -> int:
        where, params = self._where(owner_id, entry_filter)

        with self._cursor("count") as cursor:
            cursor.execute(f"SELECT COUNT(*) FROM {self._table} WHERE {where}", params)
            row = cursor.fetchone()

        return int(row[0]) if row else 0

    def ping(self) -> None:
        """Round-trip a trivial query (readiness checks)."""
        with self._cursor("ping") as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    @contextmanager
    def _cursor(self, operation: str) -> Generator:
        """Open a cursor and translate driver failures."""
        try:
            cursor = self._conn.cursor()
        except snowflake_errors.Error as e:
            self._log_failure(operation, e)
            raise StoreUnavailableError("Progress store unavailable") from e

        try:
            yield cursor
        except snowflake_errors.Error as e:
            self._log_failure(operation, e)
            raise StoreUnavailableError("Progress store unavailable") from e
        finally:
            cursor.close()

    def _log_failure(self, operation: str, error: Exception) -> None:
        logger.error(
            "Entry store operation failed",
            extra={"operation": operation, "table": self._table, "error": str(error)},
            exc_info=error,
        )

    @staticmethod
    def _where(owner_id: str, entry_filter: EntryFilter) -> tuple[str, tuple]:
        clauses = ["user_id = %s"]
        params: list = [owner_id]

        if entry_filter.type is not None:
            clauses.append("activity_type = %s")
            params.append(entry_filter.type.value)
        if entry_filter.start_date is not None:
            clauses.append("entry_date >= %s")
            params.append(ensure_utc(entry_filter.start_date))
        if entry_filter.end_date is not None:
            clauses.append("entry_date <= %s")
            params.append(ensure_utc(entry_filter.end_date))
        if not entry_filter.include_rest_days:
            clauses.append("is_rest_day = FALSE")

        return " AND ".join(clauses), tuple(params)

    @staticmethod
    def _entry_to_row(entry: ActivityEntry) -> dict:
        return {
            "entry_id": str(entry.id),
            "user_id": entry.user_id,
            "entry_date": entry.date,
            "activity_type": entry.type.value,
            "distance_km": entry.distance,
            "duration_min": entry.duration,
            "pace_min_per_km": entry.pace,
            "notes": entry.notes,
            "weather": entry.weather.value if entry.weather else None,
            "difficulty": entry.difficulty,
            "mood": entry.mood.value if entry.mood else None,
            "is_rest_day": entry.is_rest_day,
            "created_at": entry.created_at,
            "updated_at": entry.updated_at,
        }

    @staticmethod
    def _row_to_entry(row) -> ActivityEntry:
        """Construct an ActivityEntry from a row in COLUMNS order."""
        return ActivityEntry(
            id=UUID(str(row[0])),
            user_id=row[1],
            date=ensure_utc(row[2]),
            type=ActivityType(row[3]),
            distance=float(row[4] or 0),
            duration=float(row[5] or 0),
            pace=float(row[6]) if row[6] is not None else None,
            notes=row[7],
            weather=Weather(row[8]) if row[8] else None,
            difficulty=int(row[9]) if row[9] is not None else None,
            mood=Mood(row[10]) if row[10] else None,
            is_rest_day=bool(row[11]),
            created_at=ensure_utc(row[12]),
            updated_at=ensure_utc(row[13]),
        )
