from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    question: Any = None


class QueryResponse(BaseModel):
    sql: str
    formatted_sql: str = ""
    columns: list[str] = Field(default_factory=list)
    data: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    execution_time_ms: int = 0
    warnings: list[str] = Field(default_factory=list)
    message: str | None = None


class SchemaSummary(BaseModel):
    schema_text: str
    table_count: int
    loaded_at: str | None = None
    expires_at: str | None = None


class ErrorDetail(BaseModel):
    error_code: str
    message: str
    details: dict[str, Any] | None = None
