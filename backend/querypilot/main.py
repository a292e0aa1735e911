from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .core import (
    ConfigurationError,
    DatabaseError,
    ErrorDetail,
    LLMError,
    QueryRequest,
    QueryResponse,
    SchemaSummary,
    dispose_engine,
    fetch_rows,
    get_settings,
    hint_for_sqlstate,
    test_connection,
)
from .llm import generate_sql
from .schema import SchemaCache
from .security import assess_complexity, describe_reason, extract_sql, format_sql, validate_sql

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="QueryPilot", version="0.1.0")
settings = get_settings()

# The cache is owned by the app and reaches handlers through a dependency
app.state.schema_cache = SchemaCache(ttl_seconds=settings.schema_cache_ttl)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)


def get_schema_cache(request: Request) -> SchemaCache:
    return request.app.state.schema_cache


# --- Shutdown Events ---

@app.on_event("shutdown")
def _close_pool() -> None:
    logger.info("Closing database connection pool...")
    dispose_engine()


# --- Structured Error Response ---

def raise_error(status_code: int, error_code: str, message: str, details: dict | None = None):
    """Raise HTTPException with structured error detail."""
    raise HTTPException(
        status_code=status_code,
        detail=ErrorDetail(error_code=error_code, message=message, details=details).model_dump()
    )


# --- API Endpoints ---

@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/schema", response_model=SchemaSummary)
def schema_summary(schema_cache: SchemaCache = Depends(get_schema_cache)) -> SchemaSummary:
    try:
        schema_cache.get()
    except DatabaseError as exc:
        logger.error(f"Schema load failed: {exc}")
        raise_error(503, "schema_unavailable", "Unable to fetch database schema. Please check database connection.")
    return SchemaSummary(**schema_cache.summary())


@app.post("/api/schema/refresh", response_model=SchemaSummary)
def schema_refresh(schema_cache: SchemaCache = Depends(get_schema_cache)) -> SchemaSummary:
    try:
        schema_cache.refresh()
    except DatabaseError as exc:
        logger.error(f"Schema refresh failed: {exc}")
        raise_error(503, "schema_unavailable", "Unable to fetch database schema. Please check database connection.")
    return SchemaSummary(**schema_cache.summary())


@app.get("/api/databases/test")
def test_database() -> dict[str, Any]:
    """Test the database connection."""
    result = test_connection()
    if not result["connected"]:
        raise_error(503, "connection_failed", "Failed to connect to the database", result)
    return result


# --- Query Endpoint ---

@app.post("/api/query", response_model=QueryResponse, response_model_exclude_none=True)
def query(
    request: QueryRequest,
    schema_cache: SchemaCache = Depends(get_schema_cache),
) -> QueryResponse:
    """
    Answer a natural-language question with a read-only PostgreSQL query.

    The generated SQL is cleaned up and must pass the safety gate before it
    reaches the database. Rejected SQL is returned to the client, never repaired.
    """
    started = time.perf_counter()
    current = get_settings()

    question = request.question
    if not isinstance(question, str) or not question.strip():
        raise_error(400, "empty_question", "Question is required and must be a string")

    if len(question) > current.max_question_length:
        raise_error(
            400,
            "question_too_long",
            f"Question is too long (max {current.max_question_length} characters)",
        )

    if not current.gemini_api_key:
        raise_error(500, "api_key_missing", "API key not configured. Please set GEMINI_API_KEY in your environment.")

    logger.info(f"Query request: {question[:100]}...")

    # Stage 1: Schema (cached)
    try:
        schema = schema_cache.get()
    except DatabaseError as exc:
        logger.error(f"Schema load failed: {exc}")
        raise_error(503, "schema_unavailable", "Unable to fetch database schema. Please check database connection.")

    # Stage 2: SQL Generation
    try:
        sql_raw = generate_sql(question, schema, current.max_rows)
    except ConfigurationError as exc:
        logger.error(f"Configuration error: {exc}")
        raise_error(500, "api_key_missing", str(exc))
    except LLMError as exc:
        logger.error(f"LLM error during SQL generation: {exc}")
        raise_error(503, "llm_error", "AI service error. Please try again or check your API key.")
    except Exception as exc:
        logger.error(f"Unexpected error during SQL generation: {exc}")
        raise_error(500, "internal_error", f"SQL generation failed: {exc}")

    sql = extract_sql(sql_raw)
    if not sql:
        logger.warning("LLM returned no SQL")
        raise_error(500, "empty_sql", "AI failed to generate SQL. Please try rephrasing your question.")

    # Stage 3: Safety gate
    verdict = validate_sql(sql)
    if not verdict.admitted:
        logger.warning(f"SQL validation failed: {', '.join(verdict.reasons)}")
        raise_error(
            400,
            "unsafe_sql",
            "Generated SQL contains unsafe operations. Only SELECT queries are allowed.",
            {
                "sql": sql,
                "reasons": list(verdict.reasons),
                "hint": describe_reason(verdict.first_reason),
            },
        )

    complexity = assess_complexity(sql)
    if not complexity.is_valid:
        logger.info(f"Complexity warnings: {', '.join(complexity.warnings)}")

    # Stage 4: Execution
    try:
        # One extra row tells a full result apart from a truncated one
        columns, rows = fetch_rows(sql + ";", max_rows=current.max_rows + 1)
        logger.info(f"Query returned {len(rows)} rows, {len(columns)} columns")
    except DatabaseError as exc:
        logger.error(f"Database error: {exc}")
        raise_error(
            400,
            "database_error",
            f"Database error: {exc}",
            {"sql": sql, "hint": hint_for_sqlstate(exc.sqlstate), "error_code": exc.sqlstate},
        )
    except Exception as exc:
        logger.error(f"Unexpected error during query execution: {exc}")
        raise_error(500, "internal_error", f"Query execution failed: {exc}")

    execution_time_ms = int((time.perf_counter() - started) * 1000)
    warnings = list(complexity.warnings)
    if len(rows) > current.max_rows:
        rows = rows[: current.max_rows]
        warnings.append(f"RESULTS_TRUNCATED:{current.max_rows}")

    logger.info(f"Query complete in {execution_time_ms}ms")

    return QueryResponse(
        sql=sql,
        formatted_sql=format_sql(sql),
        columns=columns,
        data=[dict(zip(columns, row)) for row in rows],
        row_count=len(rows),
        execution_time_ms=execution_time_ms,
        warnings=warnings,
        message=None if rows else "Query executed successfully but returned no results.",
    )
