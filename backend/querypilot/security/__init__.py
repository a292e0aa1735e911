"""Security and validation module.

Contains the SQL safety gate and LLM output cleanup.
"""

from .sql_guard import (
    ComplexityReport,
    Verdict,
    assess_complexity,
    describe_reason,
    extract_sql,
    format_sql,
    is_safe_sql,
    normalize_sql,
    validate_sql,
)

__all__ = [
    "ComplexityReport",
    "Verdict",
    "assess_complexity",
    "describe_reason",
    "extract_sql",
    "format_sql",
    "is_safe_sql",
    "normalize_sql",
    "validate_sql",
]
