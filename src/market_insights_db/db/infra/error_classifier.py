# market_insights_db/db/infra/error_classifier.py
"""
Decide whether a failed statement can be skipped on re-run.

A failure is IGNORABLE only when the target object already exists
(duplicate table/constraint/index/...). Everything else is FATAL for
that statement.

The structured SQLSTATE code is checked first; the free-text
"already exists" match is kept for stores that only return a message.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

ALREADY_EXISTS_MARKER = "already exists"

# Postgres class 42 "duplicate_*" conditions
DUPLICATE_OBJECT_CODES = frozenset({
    "42P04",  # duplicate_database
    "42P06",  # duplicate_schema
    "42P07",  # duplicate_table (also indexes, sequences, views)
    "42701",  # duplicate_column
    "42710",  # duplicate_object (constraints, triggers, roles, ...)
    "42723",  # duplicate_function
})


class ErrorClass(str, Enum):
    IGNORABLE = "ignorable"
    FATAL = "fatal"


def _error_code(error: Any) -> Optional[str]:
    code = getattr(error, "code", None)
    if code is None and isinstance(error, dict):
        code = error.get("code")
    return str(code) if code else None


def _error_message(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        return str(error.get("message") or "")
    message = getattr(error, "message", None)
    return str(message) if message else str(error)


def is_idempotent_conflict(error: Any) -> bool:
    """
    True when `error` says the object being created is already there.
    Accepts exceptions, DatabaseError-like objects, dict payloads or plain strings.
    """
    if error is None:
        return False
    if _error_code(error) in DUPLICATE_OBJECT_CODES:
        return True
    return ALREADY_EXISTS_MARKER in _error_message(error).lower()


def classify_error(error: Any) -> ErrorClass:
    if is_idempotent_conflict(error):
        return ErrorClass.IGNORABLE
    return ErrorClass.FATAL
