"""Custom exceptions for the application."""

from __future__ import annotations


class DatabaseError(Exception):
    """Raised when a database operation fails.

    ``sqlstate`` holds the five-character SQLSTATE reported by the driver, when known.
    """

    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


class LLMError(Exception):
    """Raised when LLM returns unexpected response format or fails."""

    pass


class ConfigurationError(Exception):
    """Raised when a required setting is missing."""

    pass
