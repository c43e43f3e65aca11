# market_insights_db/db/infra/sql_splitter.py
"""
Split a multi-statement SQL script into individually executable statements.

Two modes:
 - split_statements(script)              -> lexer-aware split (default)
 - split_statements(script, naive=True)  -> plain split on ';'

The lexer only terminates a statement on a top-level ';'. It tracks:
 - single-quoted literals ('it''s')
 - double-quoted identifiers ("we;ird")
 - line comments (-- ...) and block comments (/* ... */)
 - Postgres dollar-quoted bodies ($$ ... $$, $fn$ ... $fn$)

It is not a SQL parser: unterminated quotes simply run to the end of the
script, and nested block comments are not tracked.

The naive mode is kept for scripts curated for the old tooling; it breaks
on any ';' inside a literal, comment or function body.
"""
from __future__ import annotations

import re
from typing import List

DELIMITER = ";"

_DOLLAR_TAG = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)?\$")


def split_statements(script: str, *, naive: bool = False) -> List[str]:
    """
    Return the ordered, trimmed, non-empty statements of `script`.
    """
    if not isinstance(script, str):
        raise TypeError("SQL script must be a string")
    if naive:
        return _split_naive(script)
    return _split_lexical(script)


def _split_naive(script: str) -> List[str]:
    return [s.strip() for s in script.split(DELIMITER) if s.strip()]


def _split_lexical(script: str) -> List[str]:
    statements: List[str] = []
    start = 0
    i = 0
    n = len(script)
    # False while the current piece holds only comments and whitespace
    has_code = False

    while i < n:
        ch = script[i]

        if ch == "'" or ch == '"':
            i = _skip_quoted(script, i, ch)
            has_code = True
        elif ch == "-" and script.startswith("--", i):
            nl = script.find("\n", i)
            i = n if nl == -1 else nl + 1
        elif ch == "/" and script.startswith("/*", i):
            end = script.find("*/", i + 2)
            i = n if end == -1 else end + 2
        elif ch == "$":
            m = _DOLLAR_TAG.match(script, i)
            if m and not _is_identifier_char(script, i - 1):
                tag = m.group(0)
                end = script.find(tag, m.end())
                i = n if end == -1 else end + len(tag)
            else:
                i += 1
            has_code = True
        elif ch == DELIMITER:
            if has_code:
                _append(statements, script[start:i])
            i += 1
            start = i
            has_code = False
        else:
            if not ch.isspace():
                has_code = True
            i += 1

    if has_code:
        _append(statements, script[start:])
    return statements


def _skip_quoted(script: str, i: int, quote: str) -> int:
    """Return the index just past the quoted run starting at `i`; doubled quotes escape."""
    j = i + 1
    n = len(script)
    while j < n:
        if script[j] == quote:
            if j + 1 < n and script[j + 1] == quote:
                j += 2
                continue
            return j + 1
        j += 1
    return n


def _is_identifier_char(script: str, idx: int) -> bool:
    # "$1" style params and identifiers like "a$b" are not dollar quotes
    if idx < 0:
        return False
    c = script[idx]
    return c.isalnum() or c == "_"


def _append(statements: List[str], piece: str) -> None:
    stmt = piece.strip()
    if stmt:
        statements.append(stmt)
