"""
Snowflake database connection management.

Provides a context manager for Snowflake connections.
Includes mock mode with in-memory storage for local development and tests.

Using the repository pattern means most code never touches this module
directly - it goes through EntryRepository which handles the translation
between domain models and database rows.
"""

import base64
import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Optional, Protocol

from snowflake.connector import errors as snowflake_errors

from ...core.progress.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    opening a real connection.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "TRAINLOG"
    schema: str = "PROGRESS"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None
    login_timeout: int = 10
    network_timeout: int = 30


class SnowflakeConnectionError(StoreUnavailableError):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_bytes: bytes):
    """
    Convert a PEM private key into the DER bytes Snowflake expects.

    Snowflake requires the private key as a bytes object, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(
        key_bytes,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def _read_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    """Key from file path first, then from the base64 setting."""
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _load_private_key(key_file.read())
    if config.private_key_base64:
        return _load_private_key(base64.b64decode(config.private_key_base64))
    return None


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key is configured, uses key-pair auth
    - Otherwise, uses password auth

    Using a context manager ensures connections are always closed,
    even if an exception occurs.

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    import snowflake.connector

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
        'login_timeout': config.login_timeout,
        'network_timeout': config.network_timeout,
    }

    private_key = _read_private_key(config)
    if private_key is not None:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = private_key
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or a private key must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake_errors.Error as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except snowflake_errors.Error as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

_WS = re.compile(r"\s+")
_INSERT = re.compile(r"^INSERT INTO (\w+) \(([^)]*)\) VALUES \(([^)]*)\)$", re.I)
_SELECT = re.compile(
    r"^SELECT (.+?)(?: FROM (\w+))?(?: WHERE (.+?))?(?: ORDER BY (.+?))?"
    r"(?: LIMIT (%s)(?: OFFSET (%s))?)?$",
    re.I,
)
_UPDATE = re.compile(r"^UPDATE (\w+) SET (.+?) WHERE (.+)$", re.I)
_DELETE = re.compile(r"^DELETE FROM (\w+) WHERE (.+)$", re.I)
_CONDITION = re.compile(r"^(\w+) (=|>=|<=|>|<) (%s|TRUE|FALSE)$", re.I)
_ASSIGNMENT = re.compile(r"^(\w+) = %s$", re.I)

_COMPARATORS = {
    '=': lambda a, b: a == b,
    '>=': lambda a, b: a is not None and a >= b,
    '<=': lambda a, b: a is not None and a <= b,
    '>': lambda a, b: a is not None and a > b,
    '<': lambda a, b: a is not None and a < b,
}


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    EntryRepository operations without a real database.

    Understands the narrow SQL dialect the repository emits: single-table
    INSERT, SELECT (column list or COUNT(*), AND-ed comparisons, ORDER BY,
    LIMIT/OFFSET), UPDATE ... SET ... WHERE and DELETE ... WHERE. DDL is
    accepted and ignored.
    """

    def __init__(self, connection: 'MockSnowflakeConnection') -> None:
        self._connection = connection
        self._results: list[tuple] = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """Execute a query against mock storage."""
        statement = _WS.sub(" ", query).strip().rstrip(";")
        params = list(params or ())

        logger.debug(
            "Mock cursor execute",
            extra={"query": statement[:100], "param_count": len(params)}
        )

        self._connection._check_available()
        self._results = []
        self._rowcount = 0

        with self._connection._lock:
            upper = statement.upper()
            if upper.startswith("INSERT"):
                self._handle_insert(statement, params)
            elif upper.startswith("SELECT"):
                self._handle_select(statement, params)
            elif upper.startswith("UPDATE"):
                self._handle_update(statement, params)
            elif upper.startswith("DELETE"):
                self._handle_delete(statement, params)
            elif upper.startswith(("CREATE", "ALTER", "USE")):
                pass
            else:
                raise snowflake_errors.ProgrammingError(msg=f"Unsupported statement: {statement[:40]}")

        return self

    # -- statement handlers ------------------------------------------------

    def _table(self, name: str) -> list[dict[str, Any]]:
        return self._connection._tables.setdefault(name.lower(), [])

    def _handle_insert(self, statement: str, params: list) -> None:
        match = _INSERT.match(statement)
        if not match:
            raise snowflake_errors.ProgrammingError(msg="Malformed INSERT")

        columns = [c.strip().lower() for c in match.group(2).split(",")]
        if len(columns) != len(params):
            raise snowflake_errors.ProgrammingError(msg="Column/parameter count mismatch")

        row = dict(zip(columns, params))
        row["entry_seq"] = self._connection._next_seq()
        self._table(match.group(1)).append(row)
        self._rowcount = 1

    def _handle_select(self, statement: str, params: list) -> None:
        match = _SELECT.match(statement)
        if not match:
            raise snowflake_errors.ProgrammingError(msg="Malformed SELECT")

        projection, table, where, order_by, limit, offset = match.groups()

        if table is None:
            # SELECT 1 style health checks
            self._results = [tuple(int(v) if v.strip().isdigit() else v.strip()
                                   for v in projection.split(","))]
            self._rowcount = 1
            return

        rows, params = self._filter(self._table(table), where, params)

        if order_by:
            for term in reversed([t.strip() for t in order_by.split(",")]):
                parts = term.split()
                column = parts[0].lower()
                descending = len(parts) > 1 and parts[1].upper() == "DESC"
                rows = sorted(rows, key=lambda r: r.get(column), reverse=descending)

        if limit:
            count = int(params.pop(0))
            start = int(params.pop(0)) if offset else 0
            rows = rows[start:start + count]

        if projection.strip().upper() == "COUNT(*)":
            self._results = [(len(rows),)]
        else:
            columns = [c.strip().lower() for c in projection.split(",")]
            self._results = [tuple(row.get(c) for c in columns) for row in rows]
        self._rowcount = len(self._results)

    def _handle_update(self, statement: str, params: list) -> None:
        match = _UPDATE.match(statement)
        if not match:
            raise snowflake_errors.ProgrammingError(msg="Malformed UPDATE")

        assignments = []
        for part in match.group(2).split(","):
            assignment = _ASSIGNMENT.match(part.strip())
            if not assignment:
                raise snowflake_errors.ProgrammingError(msg=f"Unsupported assignment: {part}")
            assignments.append((assignment.group(1).lower(), params.pop(0)))

        rows, _ = self._filter(self._table(match.group(1)), match.group(3), params)
        for row in rows:
            row.update(assignments)
        self._rowcount = len(rows)

    def _handle_delete(self, statement: str, params: list) -> None:
        match = _DELETE.match(statement)
        if not match:
            raise snowflake_errors.ProgrammingError(msg="Malformed DELETE")

        table = self._table(match.group(1))
        doomed, _ = self._filter(table, match.group(2), params)
        doomed_ids = {id(row) for row in doomed}
        table[:] = [row for row in table if id(row) not in doomed_ids]
        self._rowcount = len(doomed)

    def _filter(
        self,
        rows: list[dict[str, Any]],
        where: Optional[str],
        params: list,
    ) -> tuple[list[dict[str, Any]], list]:
        """Apply AND-ed comparisons, consuming params left to right."""
        if not where:
            return list(rows), params

        predicates = []
        for clause in re.split(r"\s+AND\s+", where, flags=re.I):
            condition = _CONDITION.match(clause.strip())
            if not condition:
                raise snowflake_errors.ProgrammingError(msg=f"Unsupported condition: {clause}")
            column, op, operand = condition.groups()
            if operand == "%s":
                value = params.pop(0)
            else:
                value = operand.upper() == "TRUE"
            predicates.append((column.lower(), _COMPARATORS[op], value))

        matched = [
            row for row in rows
            if all(compare(row.get(column), value) for column, compare, value in predicates)
        ]
        return matched, params

    # -- cursor interface --------------------------------------------------

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return list(self._results)

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores rows in memory, one list of dicts per table, and assigns an
    increasing `entry_seq` to every insert the way the real table's
    AUTOINCREMENT column does.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._seq = 0
        self._lock = threading.RLock()
        self._unavailable = False

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        self._check_available()
        return MockSnowflakeCursor(self)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _check_available(self) -> None:
        if self._unavailable:
            raise snowflake_errors.OperationalError(msg="Mock store is unavailable")

    # Helper methods for testing
    def _set_unavailable(self, unavailable: bool = True) -> None:
        """Make every subsequent operation fail (for outage tests)."""
        self._unavailable = unavailable

    def _rows(self, table: str) -> list[dict[str, Any]]:
        """Get raw rows (for test assertions)."""
        return self._tables.get(table.lower(), [])
