# market_insights_db/db/infra/script_executor.py
"""
Best-effort execution of multi-statement SQL scripts against the store.

Statements run one at a time, in source order. A failing statement never
aborts the run:
 - "already exists" conflicts are recorded as SkippedIdempotent
 - any other failure is recorded as Failed and the next statement runs

Only conditions detected before the first statement (unreadable script)
raise.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Union

from market_insights_db.db.client import DatabaseClient, DatabaseError
from market_insights_db.db.infra.error_classifier import ErrorClass, classify_error
from market_insights_db.db.infra.sql_splitter import split_statements

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 100


class ScriptReadError(RuntimeError):
    """Raised when a SQL script cannot be read; nothing has been executed."""


# -------------------------
# Outcomes
# -------------------------

@dataclass(frozen=True)
class Succeeded:
    index: int
    statement: str
    payload: Any = None


@dataclass(frozen=True)
class SkippedIdempotent:
    index: int
    statement: str
    reason: str


@dataclass(frozen=True)
class Failed:
    index: int
    statement: str
    error: str
    code: str | None = None


ExecutionOutcome = Union[Succeeded, SkippedIdempotent, Failed]


@dataclass
class ScriptReport:
    """
    Ordered per-statement outcomes of one script run.
    Whether the run counts as a success is left to the caller.
    """
    outcomes: List[ExecutionOutcome] = field(default_factory=list)
    source: str | None = None

    @property
    def succeeded(self) -> List[Succeeded]:
        return [o for o in self.outcomes if isinstance(o, Succeeded)]

    @property
    def skipped(self) -> List[SkippedIdempotent]:
        return [o for o in self.outcomes if isinstance(o, SkippedIdempotent)]

    @property
    def failed(self) -> List[Failed]:
        return [o for o in self.outcomes if isinstance(o, Failed)]

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return (
            f"{len(self.outcomes)} statements: {len(self.succeeded)} succeeded, "
            f"{len(self.skipped)} skipped (already exist), {len(self.failed)} failed"
        )


def preview(statement: str, limit: int = PREVIEW_CHARS) -> str:
    flat = " ".join(statement.split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


def read_script(path: Union[str, Path]) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ScriptReadError(f"Cannot read SQL script {path}: {e}") from e


# -------------------------
# Executor
# -------------------------

class ScriptExecutor:
    def __init__(self, client: DatabaseClient, *, naive_split: bool = False):
        self.client = client
        self.naive_split = naive_split

    def execute_file(self, path: Union[str, Path]) -> ScriptReport:
        logger.info("Executing SQL file: %s", path)
        script = read_script(path)
        report = self.execute(script)
        report.source = str(path)
        return report

    def execute(self, script: str) -> ScriptReport:
        statements = split_statements(script, naive=self.naive_split)
        total = len(statements)
        logger.info("Found %d SQL statements to execute", total)

        report = ScriptReport()
        for index, statement in enumerate(statements, start=1):
            logger.info("Executing statement %d/%d: %s", index, total, preview(statement))
            outcome = self._run_statement(index, statement)
            report.outcomes.append(outcome)

        logger.info("SQL execution completed: %s", report.summary())
        return report

    def _run_statement(self, index: int, statement: str) -> ExecutionOutcome:
        try:
            result = self.client.execute_sql(statement)
            error = result.error
        except DatabaseError as e:
            result = None
            error = e

        if error is None:
            logger.info("Statement %d succeeded", index)
            return Succeeded(index=index, statement=statement, payload=result.data)

        if classify_error(error) is ErrorClass.IGNORABLE:
            logger.info("Statement %d skipped, object already exists: %s", index, error.message)
            return SkippedIdempotent(index=index, statement=statement, reason=error.message)

        logger.error(
            "Statement %d failed (code=%s): %s | %s",
            index,
            error.code,
            error.message,
            preview(statement),
        )
        return Failed(index=index, statement=statement, error=error.message, code=error.code)
