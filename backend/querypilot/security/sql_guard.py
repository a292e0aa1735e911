"""Lexical safety gate for AI-generated SQL.

The gate decides whether a candidate string may be executed as a single,
read-only ``SELECT``. It works on text only: comments are stripped, whitespace
is collapsed and the result is lowercased before any keyword or pattern check.
This is a screen, not a parser. It cannot prove the absence of every injection
technique, so queries should still run under a read-only database role.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import sqlparse

logger = logging.getLogger(__name__)

# Rejection reason codes
EMPTY_OR_NOT_STRING = "EMPTY_OR_NOT_STRING"
NOT_A_SELECT = "NOT_A_SELECT"
FORBIDDEN_KEYWORD = "FORBIDDEN_KEYWORD"
SUSPICIOUS_PATTERN = "SUSPICIOUS_PATTERN"
MULTIPLE_STATEMENTS = "MULTIPLE_STATEMENTS"

# Advisory warning codes
NO_LIMIT = "NO_LIMIT"
POSSIBLE_CARTESIAN_PRODUCT = "POSSIBLE_CARTESIAN_PRODUCT"

# Keywords that modify data or schema, matched as whole words only
FORBIDDEN_KEYWORDS = (
    "insert", "update", "delete", "drop", "alter", "truncate",
    "create", "replace", "grant", "revoke", "exec", "execute",
    "pragma", "attach", "detach", "vacuum", "merge",
)

_KEYWORD_PATTERNS = [(kw, re.compile(rf"\b{kw}\b")) for kw in FORBIDDEN_KEYWORDS]

# Checked against the normalized text
SUSPICIOUS_PATTERNS = (
    ("stacked_select", re.compile(r";\s*select")),
    ("stacked_drop", re.compile(r";\s*drop")),
    ("stacked_delete", re.compile(r";\s*delete")),
    ("stacked_update", re.compile(r";\s*update")),
    ("stacked_insert", re.compile(r";\s*insert")),
    ("union_select", re.compile(r"union.*select.*from", re.DOTALL)),
)

# Comment openers and the quotes that can hide them
_LEXEME_START = re.compile(r"""[eE]?'|"|\$|--|/\*""")
_LITERAL = re.compile(
    r"[eE]'(?:[^'\\]|\\.|'')*'"
    r"|'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|\$(?P<tag>[A-Za-z_]\w*|)\$.*?\$(?P=tag)\$",
    re.DOTALL,
)
_WHITESPACE = re.compile(r"\s+")

_LIMIT_CLAUSE = re.compile(r"limit\s+\d+", re.IGNORECASE)
_JOIN_WORD = re.compile(r"\bjoin\b", re.IGNORECASE)
_ON_WORD = re.compile(r"\bon\b", re.IGNORECASE)

_REASON_HINTS = {
    EMPTY_OR_NOT_STRING: "The model returned no SQL. Try rephrasing the question.",
    NOT_A_SELECT: "Only SELECT queries are allowed.",
    FORBIDDEN_KEYWORD: "The query contains a keyword that can modify data or schema.",
    SUSPICIOUS_PATTERN: "The query looks like a stacked or UNION-based injection.",
    MULTIPLE_STATEMENTS: "Only a single SQL statement may be executed.",
}


@dataclass(frozen=True)
class Verdict:
    """Outcome of :func:`validate_sql`. ``reasons`` is empty iff admitted."""

    admitted: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def first_reason(self) -> str:
        return self.reasons[0] if self.reasons else ""


@dataclass(frozen=True)
class ComplexityReport:
    """Advisory result of :func:`assess_complexity`. Never a security boundary."""

    is_valid: bool
    warnings: tuple[str, ...] = field(default_factory=tuple)


def _block_comment_end(text: str, start: int) -> int:
    """Index just past the block comment opened at ``start``, or -1 if unterminated.

    Block comments nest, as they do in PostgreSQL.
    """
    depth = 0
    i = start
    while i < len(text):
        if text.startswith("/*", i):
            depth += 1
            i += 2
        elif text.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return -1


def _strip_comments(text: str) -> str:
    # One left-to-right pass: whichever of literal, line comment or block comment opens first wins
    out: list[str] = []
    pos = 0
    while True:
        match = _LEXEME_START.search(text, pos)
        if match is None:
            out.append(text[pos:])
            break
        start = match.start()
        out.append(text[pos:start])

        literal = _LITERAL.match(text, start)
        if literal:
            out.append(literal.group(0))
            pos = literal.end()
        elif match.group(0) == "--":
            newline = text.find("\n", start)
            out.append(" ")
            pos = len(text) if newline == -1 else newline
        elif match.group(0) == "/*":
            end = _block_comment_end(text, start)
            if end == -1:
                # The server rejects an unterminated comment; keep it visible to the checks
                out.append(text[start:])
                break
            out.append(" ")
            pos = end
        else:
            # Unterminated quote or a lone ``$``; after a bare ``e`` the quote is retried as a plain literal
            out.append(text[start])
            pos = start + 1
    return "".join(out)


def normalize_sql(text: str) -> str:
    """Strip comments, collapse whitespace and lowercase.

    Comments become a single space, the way the server lexes them, so a
    comment can never join two fragments into a keyword or a new comment.
    ``--`` and ``/*`` inside quoted literals are not comments and are kept.

    Idempotent: normalizing an already-normalized string returns it unchanged.
    """
    # Lowercase first so dollar-quote tags pair the same way on every pass
    cleaned = _strip_comments(text.lower())
    cleaned = _WHITESPACE.sub(" ", cleaned)
    return cleaned.strip()


def validate_sql(candidate: Any) -> Verdict:
    """Decide whether ``candidate`` is safe to execute as a read-only query.

    Checks, in order:
        1. input is a non-empty string that survives normalization
        2. normalized text starts with ``select``
        3. no forbidden keyword as a standalone word
        4. no stacked-query or UNION-injection pattern
        5. at most one ``;`` in the original text

    Empty input and non-SELECT statements are reported with a single reason.
    Otherwise every failing check contributes a reason, in the order above.
    Never raises.

    Returns:
        Verdict with ``admitted`` and the ordered rejection ``reasons``
    """
    if not isinstance(candidate, str) or not candidate:
        return Verdict(admitted=False, reasons=(EMPTY_OR_NOT_STRING,))

    normalized = normalize_sql(candidate)
    if not normalized:
        return Verdict(admitted=False, reasons=(EMPTY_OR_NOT_STRING,))

    if not normalized.startswith("select"):
        return Verdict(admitted=False, reasons=(NOT_A_SELECT,))

    reasons: list[str] = []

    for keyword, pattern in _KEYWORD_PATTERNS:
        if pattern.search(normalized):
            reasons.append(f"{FORBIDDEN_KEYWORD}:{keyword}")

    for pattern_id, pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(normalized):
            reasons.append(f"{SUSPICIOUS_PATTERN}:{pattern_id}")

    if candidate.count(";") > 1:
        reasons.append(MULTIPLE_STATEMENTS)

    if reasons:
        logger.debug(f"SQL rejected: {', '.join(reasons)}")
        return Verdict(admitted=False, reasons=tuple(reasons))

    return Verdict(admitted=True)


def is_safe_sql(candidate: Any) -> tuple[bool, str]:
    """Return ``(admitted, first_reason)``; the reason is empty when admitted."""
    verdict = validate_sql(candidate)
    return verdict.admitted, verdict.first_reason


def assess_complexity(candidate: Any) -> ComplexityReport:
    """Collect non-blocking warnings about the raw query text.

    - ``NO_LIMIT``: no ``LIMIT <n>`` anywhere in the text
    - ``POSSIBLE_CARTESIAN_PRODUCT``: more ``JOIN`` words than ``ON`` words.
      ``USING (...)`` joins and ``on`` inside string literals miscount.
    """
    text = candidate if isinstance(candidate, str) else ""
    warnings: list[str] = []

    if not _LIMIT_CLAUSE.search(text):
        warnings.append(NO_LIMIT)

    if len(_JOIN_WORD.findall(text)) > len(_ON_WORD.findall(text)):
        warnings.append(POSSIBLE_CARTESIAN_PRODUCT)

    return ComplexityReport(is_valid=not warnings, warnings=tuple(warnings))


def describe_reason(reason: str) -> str:
    """Human-readable hint for a rejection reason code."""
    code, _, detail = reason.partition(":")
    hint = _REASON_HINTS.get(code, "The query failed the safety check.")
    if detail:
        return f"{hint} ({detail})"
    return hint


def extract_sql(text: str) -> str:
    """Extract SQL from an LLM response.

    Handles markdown code fences, a leading ``SQL:`` label and trailing
    semicolons. This is caller-side cleanup, not part of the safety decision.
    """
    if not text:
        return ""
    # Try ```sql block first
    fenced = re.search(r"```sql\s*(.*?)```", text, re.IGNORECASE | re.DOTALL)
    if not fenced:
        # Try generic ``` block
        fenced = re.search(r"```\s*(.*?)```", text, re.DOTALL)
    sql = fenced.group(1) if fenced else text

    # Unclosed fences
    sql = re.sub(r"```(?:sql)?", "", sql, flags=re.IGNORECASE)
    sql = re.sub(r"^\s*SQL:\s*", "", sql, flags=re.IGNORECASE)
    sql = sql.strip()
    return re.sub(r"(?:\s*;)+$", "", sql).strip()


def format_sql(sql: str) -> str:
    """Pretty-print SQL for display."""
    if not sql:
        return ""
    return sqlparse.format(sql, reindent=True, keyword_case="upper").strip()
