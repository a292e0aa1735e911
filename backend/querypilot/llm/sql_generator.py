"""SQL query generation using Gemini with the live schema in the prompt."""

from __future__ import annotations

import logging

from ..core.config import get_settings
from .client import call_gemini
from .prompts import SQL_GENERATION_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


def build_prompt(question: str, schema: str, max_rows: int) -> str:
    """Render the SQL generation prompt."""
    return SQL_GENERATION_PROMPT.format(
        schema=schema,
        question=question.strip(),
        default_limit=min(DEFAULT_LIMIT, max_rows),
        max_limit=max_rows,
    )


def generate_sql(
    question: str,
    schema: str,
    max_rows: int | None = None,
    model: str | None = None,
) -> str:
    """Ask the model for a SELECT answering ``question``.

    Returns the raw model text; callers run ``extract_sql`` and the safety
    gate on it before execution.
    """
    settings = get_settings()
    limit = max_rows or settings.max_rows

    logger.info(f"Generating SQL for question: {question[:100]}...")

    prompt = build_prompt(question, schema, limit)
    content = call_gemini(prompt, model=model)

    raw = content.strip()
    logger.info(f"Generated SQL length: {len(raw)} chars")
    logger.debug(f"Raw LLM output: {raw[:200]}...")
    return raw
