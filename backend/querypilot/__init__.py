"""QueryPilot natural-language-to-SQL backend.

This package turns a question into a PostgreSQL SELECT using Gemini, screens
the generated statement with a lexical safety gate, and executes it read-only.

Package Structure:
    core/       - Core infrastructure (config, db, models, exceptions)
    schema/     - information_schema introspection and the TTL schema cache
    llm/        - LLM interaction (client, prompts, SQL generation)
    security/   - SQL safety gate and LLM output cleanup
"""

from .security.sql_guard import (
    ComplexityReport,
    Verdict,
    assess_complexity,
    extract_sql,
    is_safe_sql,
    normalize_sql,
    validate_sql,
)

__all__ = [
    "ComplexityReport",
    "Verdict",
    "assess_complexity",
    "extract_sql",
    "is_safe_sql",
    "normalize_sql",
    "validate_sql",
]
