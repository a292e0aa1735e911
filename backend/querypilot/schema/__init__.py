"""Schema management module.

Contains information_schema introspection and the TTL schema cache.
"""

from .cache import DEFAULT_TTL_SECONDS, SchemaCache
from .introspection import (
    NO_TABLES_MESSAGE,
    ColumnInfo,
    ForeignKeyInfo,
    SchemaSnapshot,
    TableInfo,
    load_schema,
    render_schema,
)

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "SchemaCache",
    "NO_TABLES_MESSAGE",
    "ColumnInfo",
    "ForeignKeyInfo",
    "SchemaSnapshot",
    "TableInfo",
    "load_schema",
    "render_schema",
]
