"""Core infrastructure module.

Contains configuration, database connection, models, and exceptions.
"""

from .config import (
    Settings,
    get_settings,
    DatabaseConnection,
)
from .db import (
    dispose_engine,
    fetch_rows,
    get_engine,
    get_db_connection,
    hint_for_sqlstate,
    test_connection,
)
from .exceptions import ConfigurationError, DatabaseError, LLMError
from .models import ErrorDetail, QueryRequest, QueryResponse, SchemaSummary

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "DatabaseConnection",
    # Database
    "dispose_engine",
    "fetch_rows",
    "get_engine",
    "get_db_connection",
    "hint_for_sqlstate",
    "test_connection",
    # Exceptions
    "ConfigurationError",
    "DatabaseError",
    "LLMError",
    # Models
    "ErrorDetail",
    "QueryRequest",
    "QueryResponse",
    "SchemaSummary",
]
