"""Time-to-live cache for the rendered database schema."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
import time
from typing import Callable

from .introspection import SchemaSnapshot, load_schema, render_schema

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


class SchemaCache:
    """Owned schema cache with expiry and explicit refresh.

    One instance is created by the application and handed to request handlers.
    A failed load leaves the previous state untouched and propagates the error.
    """

    def __init__(
        self,
        loader: Callable[[], SchemaSnapshot] = load_schema,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._loader = loader
        self._clock = clock
        self.ttl_seconds = ttl_seconds
        self._lock = threading.RLock()
        self._schema_text: str | None = None
        self._table_count = 0
        self._loaded_at: float | None = None

    def is_fresh(self) -> bool:
        with self._lock:
            if self._schema_text is None or self._loaded_at is None:
                return False
            return self._clock() - self._loaded_at < self.ttl_seconds

    def get(self) -> str:
        """Return the cached schema text, reloading it once expired."""
        with self._lock:
            if self.is_fresh():
                return self._schema_text
            return self.refresh()

    def refresh(self) -> str:
        """Reload the schema unconditionally."""
        with self._lock:
            logger.info("Refreshing schema cache...")
            snapshot = self._loader()
            self._schema_text = render_schema(snapshot)
            self._table_count = len(snapshot.tables)
            self._loaded_at = self._clock()
            logger.info(f"Schema cache refreshed: {self._table_count} tables")
            return self._schema_text

    def invalidate(self) -> None:
        with self._lock:
            self._schema_text = None
            self._table_count = 0
            self._loaded_at = None

    @property
    def loaded_at(self) -> datetime | None:
        if self._loaded_at is None:
            return None
        return datetime.fromtimestamp(self._loaded_at, tz=timezone.utc)

    @property
    def expires_at(self) -> datetime | None:
        if self._loaded_at is None:
            return None
        return datetime.fromtimestamp(self._loaded_at + self.ttl_seconds, tz=timezone.utc)

    def summary(self) -> dict[str, int | str | None]:
        with self._lock:
            return {
                "schema_text": self._schema_text or "",
                "table_count": self._table_count,
                "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
                "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            }
