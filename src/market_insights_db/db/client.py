# db/client.py
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError

from market_insights_db.config import DatabaseConfig

logger = logging.getLogger(__name__)

__all__ = [
    "DatabaseClient",
    "DatabaseError",
    "QueryResult",
    "create_database_client",
]

# Matches every row when used as "id <> NIL_UUID"; PostgREST refuses an unfiltered DELETE.
NIL_UUID = "00000000-0000-0000-0000-000000000000"

# Failures where the request never reached the server; safe to resend.
_RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


# =========================
# Public data structures
# =========================

class DatabaseError(RuntimeError):
    """
    Typed error for failed store calls.
    Mirrors the PostgREST error payload (message, code, details, hint).
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint

    @classmethod
    def from_api_error(cls, err: APIError) -> "DatabaseError":
        return cls(
            err.message or str(err),
            code=err.code,
            details=err.details,
            hint=err.hint,
        )


@dataclass
class QueryResult:
    """
    Normalized {data, error} pair returned by every DatabaseClient call.
    """
    data: Any = None
    error: Optional[DatabaseError] = None
    count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# =========================
# Database Client
# =========================

class DatabaseClient:
    """
    Thin wrapper around a Supabase SDK client.

    Responsibilities:
    - Raw SQL execution through a server-side function
    - Named remote procedure calls
    - Row-level select / insert / delete per table
    - Retry of connection failures
    - Error normalization into QueryResult

    Non-responsibilities:
    - No statement splitting
    - No error classification
    - No refresh ordering
    """

    def __init__(
        self,
        client: Any,
        *,
        sql_rpc: str = "pg_query",
        sql_rpc_param: str = "query",
        max_retries: int = 3,
        backoff_base: float = 1.5,
    ):
        self._client = client
        self._sql_rpc = sql_rpc
        self._sql_rpc_param = sql_rpc_param
        self._max_retries = max(1, max_retries)
        self._backoff_base = backoff_base

    # -------------------------
    # Public API
    # -------------------------

    def execute_sql(self, statement: str) -> QueryResult:
        """
        Run one SQL statement via the configured SQL function.

        Some deployments define the function to trap errors and return
        {"success": false, "error": SQLERRM, "detail": SQLSTATE}; that
        payload is turned into an error result.
        """
        result = self.rpc(self._sql_rpc, {self._sql_rpc_param: statement})
        if result.ok and isinstance(result.data, dict) and result.data.get("success") is False:
            return QueryResult(
                data=result.data,
                error=DatabaseError(
                    str(result.data.get("error") or "SQL execution failed"),
                    code=result.data.get("detail"),
                ),
            )
        return result

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        return self._call(
            f"rpc {name}",
            lambda: self._client.rpc(name, params or {}).execute(),
        )

    def select_rows(self, table: str, columns: str = "*", limit: Optional[int] = None) -> QueryResult:
        def run():
            query = self._client.table(table).select(columns)
            if limit is not None:
                query = query.limit(limit)
            return query.execute()

        return self._call(f"select {table}", run)

    def count_rows(self, table: str) -> QueryResult:
        return self._call(
            f"count {table}",
            lambda: self._client.table(table).select("id", count="exact").limit(1).execute(),
        )

    def insert_rows(self, table: str, rows: List[Dict[str, Any]]) -> QueryResult:
        return self._call(
            f"insert {table}",
            lambda: self._client.table(table).insert(rows).execute(),
        )

    def delete_all(self, table: str) -> QueryResult:
        return self._call(
            f"delete {table}",
            lambda: self._client.table(table).delete().neq("id", NIL_UUID).execute(),
        )

    # -------------------------
    # Internal helpers
    # -------------------------

    def _call(self, description: str, fn: Callable[[], Any]) -> QueryResult:
        last_err: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            try:
                logger.debug("Store call: %s (attempt %d)", description, attempt)
                response = fn()
                return QueryResult(
                    data=getattr(response, "data", None),
                    count=getattr(response, "count", None),
                )

            except APIError as e:
                return QueryResult(error=DatabaseError.from_api_error(e))

            except _RETRYABLE_ERRORS as e:
                last_err = e
                logger.warning(
                    "Store call '%s' could not connect (attempt %d/%d): %s",
                    description,
                    attempt,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries:
                    time.sleep(self._backoff_base ** attempt)

            except TypeError:
                # Programming / integration error -> fail fast
                raise

            except Exception as e:
                logger.warning("Store call '%s' failed: %s", description, e)
                return QueryResult(error=DatabaseError(str(e) or e.__class__.__name__))

        return QueryResult(
            error=DatabaseError(f"Store call '{description}' failed after retries: {last_err}")
        )


def create_database_client(config: DatabaseConfig, **kwargs) -> DatabaseClient:
    """
    Build a DatabaseClient backed by a real Supabase client.
    """
    from supabase import ClientOptions, create_client

    sdk_client = create_client(
        config.url,
        config.key,
        options=ClientOptions(schema=config.schema),
    )
    return DatabaseClient(
        sdk_client,
        sql_rpc=config.sql_rpc,
        sql_rpc_param=config.sql_rpc_param,
        **kwargs,
    )
