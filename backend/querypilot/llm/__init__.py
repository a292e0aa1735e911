"""LLM interaction module.

Contains the Gemini client, prompts, and SQL generation.
"""

from .client import LLMError, call_gemini
from .prompts import SQL_GENERATION_PROMPT
from .sql_generator import build_prompt, generate_sql

__all__ = [
    "LLMError",
    "call_gemini",
    "SQL_GENERATION_PROMPT",
    "build_prompt",
    "generate_sql",
]
