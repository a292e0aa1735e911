"""PostgreSQL schema introspection via information_schema."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from sqlalchemy import text as sqltext
from sqlalchemy.exc import SQLAlchemyError

from ..core.db import get_db_connection
from ..core.exceptions import DatabaseError

logger = logging.getLogger(__name__)

NO_TABLES_MESSAGE = "No tables found in database. Please run migrations first."

QUERY_TIPS = """
IMPORTANT NOTES:
- Column names use snake_case (order_date, user_id, unit_price, etc.)
- Always use exact column names from above

QUERY TIPS:
- Use table aliases (e.g., SELECT u.name FROM users u)
- Join tables using foreign key relationships shown above
- Use aggregate functions: COUNT(), SUM(), AVG(), MAX(), MIN()
- For rankings: use ORDER BY with LIMIT
- For grouping: use GROUP BY with aggregate functions
- For dates: use DATE_TRUNC() and EXTRACT()
"""

COLUMNS_SQL = """
SELECT c.table_name, c.column_name, c.data_type, c.is_nullable
FROM information_schema.columns c
JOIN information_schema.tables t
  ON t.table_schema = c.table_schema AND t.table_name = c.table_name
WHERE t.table_schema = 'public'
  AND t.table_type = 'BASE TABLE'
  AND t.table_name NOT LIKE '\\_prisma%'
ORDER BY c.table_name, c.ordinal_position
"""

FOREIGN_KEYS_SQL = """
SELECT
  tc.table_name,
  kcu.column_name,
  ccu.table_name AS foreign_table_name,
  ccu.column_name AS foreign_column_name
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
  ON tc.constraint_name = kcu.constraint_name
  AND tc.table_schema = kcu.table_schema
JOIN information_schema.constraint_column_usage AS ccu
  ON ccu.constraint_name = tc.constraint_name
  AND ccu.table_schema = tc.table_schema
WHERE tc.constraint_type = 'FOREIGN KEY'
  AND tc.table_schema = 'public'
ORDER BY tc.table_name, kcu.column_name
"""


@dataclass
class ColumnInfo:
    name: str
    data_type: str
    nullable: bool


@dataclass
class TableInfo:
    name: str
    columns: list[ColumnInfo] = field(default_factory=list)


@dataclass
class ForeignKeyInfo:
    table: str
    column: str
    foreign_table: str
    foreign_column: str


@dataclass
class SchemaSnapshot:
    tables: dict[str, TableInfo] = field(default_factory=dict)
    foreign_keys: list[ForeignKeyInfo] = field(default_factory=list)


def load_schema() -> SchemaSnapshot:
    """Read tables, columns and foreign keys of the ``public`` schema.

    Raises:
        DatabaseError: If the catalog cannot be read
    """
    snapshot = SchemaSnapshot()
    try:
        with get_db_connection() as conn:
            rows = conn.execute(sqltext(COLUMNS_SQL)).fetchall()
            for table_name, column_name, data_type, is_nullable in rows:
                table = snapshot.tables.setdefault(table_name, TableInfo(name=table_name))
                table.columns.append(
                    ColumnInfo(
                        name=column_name,
                        data_type=data_type,
                        nullable=str(is_nullable).upper() == "YES",
                    )
                )

            rows = conn.execute(sqltext(FOREIGN_KEYS_SQL)).fetchall()
            for table_name, column_name, foreign_table, foreign_column in rows:
                snapshot.foreign_keys.append(
                    ForeignKeyInfo(
                        table=table_name,
                        column=column_name,
                        foreign_table=foreign_table,
                        foreign_column=foreign_column,
                    )
                )
    except SQLAlchemyError as e:
        logger.error(f"Schema introspection failed: {e}")
        raise DatabaseError(f"Unable to fetch database schema: {e}") from e

    logger.info(f"Introspected {len(snapshot.tables)} tables, {len(snapshot.foreign_keys)} foreign keys")
    return snapshot


def render_schema(snapshot: SchemaSnapshot) -> str:
    """Format a snapshot as the schema block embedded in the SQL prompt."""
    if not snapshot.tables:
        return NO_TABLES_MESSAGE

    lines = ["DATABASE TABLES (use exact column names below):", ""]
    for name in sorted(snapshot.tables):
        lines.append(f"TABLE {name}:")
        for col in snapshot.tables[name].columns:
            nullable = " (nullable)" if col.nullable else ""
            lines.append(f"  {col.name} ({col.data_type}){nullable}")
        lines.append("")

    if snapshot.foreign_keys:
        lines.append("RELATIONSHIPS (Foreign Keys):")
        for fk in snapshot.foreign_keys:
            lines.append(f"  {fk.table}.{fk.column} → {fk.foreign_table}.{fk.foreign_column}")
        lines.append("")

    table_list = ", ".join(sorted(snapshot.tables))
    return "\n".join(lines) + QUERY_TIPS + f"- Table names: {table_list}\n"
