"""PostgreSQL engine and read-only query execution."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
import logging
import threading
from typing import Any, Generator, Optional
from uuid import UUID

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .config import get_settings
from .exceptions import DatabaseError

logger = logging.getLogger(__name__)

# Hints for SQLSTATE codes the generated SQL most often trips over
SQLSTATE_HINTS = {
    "42703": (
        "Column does not exist. Remember: use snake_case (order_date, not orderDate). "
        "Check schema for exact column names."
    ),
    "42P01": "Table does not exist. Check the schema for the available tables.",
    "42601": "Syntax error in SQL. Check for missing commas, parentheses, or keywords.",
}
DEFAULT_HINT = "Check if column names and table references are correct"

# Shared engine (owns the connection pool)
_engine: Optional[Engine] = None
_engine_lock = threading.Lock()


def hint_for_sqlstate(sqlstate: str | None) -> str:
    """Return a user-facing hint for a SQLSTATE code."""
    return SQLSTATE_HINTS.get(sqlstate or "", DEFAULT_HINT)


def _sqlstate(error: SQLAlchemyError) -> str | None:
    """Extract the SQLSTATE from the driver error wrapped by SQLAlchemy."""
    orig = getattr(error, "orig", None)
    if orig is None:
        return None
    # psycopg 3 exposes ``sqlstate``, psycopg2 ``pgcode``
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _message(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    text = str(orig) if orig is not None else str(error)
    return text.strip().splitlines()[0] if text.strip() else type(error).__name__


def get_engine() -> Engine:
    """Get the shared engine, creating it on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            conn_config = get_settings().database
            _engine = create_engine(
                conn_config.url,
                pool_pre_ping=True,
                pool_size=conn_config.pool_size,
                connect_args={"connect_timeout": conn_config.timeout},
            )
        return _engine


def dispose_engine() -> None:
    """Close pooled connections and drop the shared engine."""
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
            _engine = None


@contextmanager
def get_db_connection() -> Generator[Connection, None, None]:
    """Context manager for pooled database connections.

    Example:
        with get_db_connection() as conn:
            conn.exec_driver_sql("SELECT 1")

    Raises:
        DatabaseError: If connection fails
    """
    try:
        conn = get_engine().connect()
    except SQLAlchemyError as e:
        logger.error(f"Failed to connect to database: {e}")
        raise DatabaseError(f"Failed to connect to database: {_message(e)}", _sqlstate(e)) from e
    try:
        yield conn
    finally:
        conn.close()


def _normalize_value(value: Any) -> Any:
    """Normalize database values for JSON serialization."""
    if value is None:
        return None
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, bytes):
        # Try to decode as UTF-8, otherwise return hex representation
        try:
            return value.decode('utf-8')
        except UnicodeDecodeError:
            return value.hex()
    if isinstance(value, memoryview):
        return bytes(value).hex()
    return value


def fetch_rows(
    sql: str,
    max_rows: int | None = None,
) -> tuple[list[str], list[list[Any]]]:
    """Execute a query inside a read-only transaction and fetch results.

    The SQL is passed to the driver verbatim (no bind-parameter parsing).
    The transaction is always rolled back, so even a statement that slipped
    past the safety gate cannot persist changes.

    Args:
        sql: The SQL query to execute
        max_rows: Maximum number of rows to fetch

    Returns:
        Tuple of (column_names, rows)

    Raises:
        DatabaseError: If the query fails
    """
    settings = get_settings()
    limit = max_rows if max_rows is not None else settings.max_rows
    statement_timeout = int(settings.database.statement_timeout_ms)

    logger.debug(f"Executing SQL (limit={limit}): {sql[:200]}...")

    try:
        with get_db_connection() as conn:
            try:
                conn.exec_driver_sql("SET TRANSACTION READ ONLY")
                conn.exec_driver_sql(f"SET LOCAL statement_timeout = {statement_timeout}")
                result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
                if result.returns_rows:
                    columns = list(result.keys())
                    rows = result.fetchmany(limit) if limit else result.fetchall()
                else:
                    columns, rows = [], []
            finally:
                conn.rollback()
            normalized = [[_normalize_value(value) for value in row] for row in rows]

            logger.debug(f"Query returned {len(normalized)} rows")
            return columns, normalized

    except DBAPIError as e:
        sqlstate = _sqlstate(e)
        logger.error(f"Database error (sqlstate={sqlstate}): {e}")
        raise DatabaseError(_message(e), sqlstate) from e
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        raise DatabaseError(f"Database error: {_message(e)}") from e


def test_connection() -> dict[str, Any]:
    """Test database connection and return info."""
    conn_config = get_settings().database

    result = {
        "host": conn_config.host,
        "database": conn_config.database,
        "connected": False,
        "error": None,
        "server_version": None,
    }

    try:
        with get_db_connection() as conn:
            row = conn.exec_driver_sql("SELECT version()").fetchone()
            result["connected"] = True
            result["server_version"] = row[0] if row else "Unknown"
    except DatabaseError as e:
        result["error"] = str(e)
    except SQLAlchemyError as e:
        result["error"] = _message(e)

    return result
