# db/refresh.py
"""
Full clear-and-reload of the Market Insights domain tables.

Order:
  clear   procedure_companies -> procedures -> companies   (most dependent first)
  reload  companies -> procedures -> procedure_companies   (least dependent first)

The first failing step stops the job and is reported as one failure result.
There is no rollback: rows already cleared or inserted stay that way.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from market_insights_db.db.client import DatabaseClient, DatabaseError
from market_insights_db.db.seed import SeedDataError, SeedSource

logger = logging.getLogger(__name__)

COMPANIES = "companies"
PROCEDURES = "procedures"
PROCEDURE_COMPANIES = "procedure_companies"

DOMAIN_TABLES: Tuple[str, ...] = (COMPANIES, PROCEDURES, PROCEDURE_COMPANIES)

DEFAULT_CHUNK_SIZE = 10


class RefreshStepError(RuntimeError):
    """A clear or reload step failed; `step` names it (e.g. 'reload:companies')."""

    def __init__(self, step: str, message: str):
        super().__init__(message)
        self.step = step
        self.message = message


@dataclass(frozen=True)
class RefreshJob:
    """
    Domain tables in dependency order: every table may only reference
    tables listed before it.
    """
    tables: Tuple[str, ...] = DOMAIN_TABLES

    @property
    def clear_order(self) -> Tuple[str, ...]:
        return tuple(reversed(self.tables))

    @property
    def reload_order(self) -> Tuple[str, ...]:
        return self.tables


@dataclass
class RefreshResult:
    success: bool
    error: Optional[str] = None
    step: Optional[str] = None
    row_counts: Dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True}
        return {"success": False, "error": self.error}


class DataRefreshCoordinator:
    def __init__(
        self,
        client: DatabaseClient,
        source: SeedSource,
        *,
        job: RefreshJob = RefreshJob(),
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be a positive integer")
        if job.tables.index(PROCEDURE_COMPANIES) < max(
            job.tables.index(COMPANIES), job.tables.index(PROCEDURES)
        ):
            raise ValueError("procedure_companies must come after companies and procedures")
        self.client = client
        self.source = source
        self.job = job
        self.chunk_size = chunk_size

    # -------------------------
    # Public API
    # -------------------------

    def refresh(self) -> RefreshResult:
        logger.info("Starting full data refresh for tables %s", ", ".join(self.job.tables))
        row_counts: Dict[str, int] = {}
        loaded: Dict[str, List[Dict[str, Any]]] = {}

        try:
            for table in self.job.clear_order:
                self._clear(table)

            for table in self.job.reload_order:
                if table == PROCEDURE_COMPANIES:
                    rows = self._association_rows(loaded)
                else:
                    rows = self._seed_rows(table)
                loaded[table] = self._insert(table, rows)
                row_counts[table] = len(loaded[table])
        except RefreshStepError as e:
            logger.error("Data refresh failed at step %s: %s", e.step, e.message)
            return RefreshResult(success=False, error=e.message, step=e.step, row_counts=row_counts)

        logger.info("Data refresh complete: %s", row_counts)
        return RefreshResult(success=True, row_counts=row_counts)

    def check_connection(self) -> Optional[str]:
        """
        Probe the store with a one-row select.
        Returns None when reachable, else the error message.
        """
        result = self.client.select_rows(COMPANIES, "id", limit=1)
        if result.error is not None:
            logger.error("Connection check failed: %s", result.error.message)
            return result.error.message
        logger.info("Connection check succeeded")
        return None

    def verify(self) -> Dict[str, Optional[int]]:
        """Row count per domain table; None where the count failed."""
        counts: Dict[str, Optional[int]] = {}
        for table in self.job.tables:
            result = self.client.count_rows(table)
            if result.error is not None:
                logger.error("Could not count rows in %s: %s", table, result.error.message)
                counts[table] = None
            else:
                counts[table] = result.count
        return counts

    # -------------------------
    # Steps
    # -------------------------

    def _clear(self, table: str) -> None:
        step = f"clear:{table}"
        logger.info("Clearing table %s", table)
        result = self._guarded(step, lambda: self.client.delete_all(table))
        if result.error is not None:
            raise RefreshStepError(step, result.error.message)

    def _seed_rows(self, table: str) -> List[Dict[str, Any]]:
        step = f"reload:{table}"
        try:
            return self.source.rows_for(table)
        except SeedDataError as e:
            raise RefreshStepError(step, str(e)) from e
        except Exception as e:
            logger.exception("Unexpected error reading seed rows for %s", table)
            raise RefreshStepError(step, str(e) or e.__class__.__name__) from e

    def _insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        step = f"reload:{table}"
        logger.info("Reloading %d rows into %s", len(rows), table)
        inserted: List[Dict[str, Any]] = []
        for start in range(0, len(rows), self.chunk_size):
            chunk = rows[start:start + self.chunk_size]
            result = self._guarded(step, lambda: self.client.insert_rows(table, chunk))
            if result.error is not None:
                raise RefreshStepError(step, result.error.message)
            inserted.extend(result.data or [])
        return inserted

    def _association_rows(self, loaded: Dict[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        step = f"reload:{PROCEDURE_COMPANIES}"
        if COMPANIES not in loaded or PROCEDURES not in loaded:
            raise RefreshStepError(step, "companies and procedures must be reloaded first")

        company_ids = {}
        for row in loaded[COMPANIES]:
            if "id" in row and "name" in row:
                company_ids[row["name"]] = row["id"]

        procedure_ids: Dict[str, List[Tuple[Optional[str], Any]]] = {}
        for row in loaded[PROCEDURES]:
            if "id" in row and "name" in row:
                procedure_ids.setdefault(row["name"], []).append((row.get("category"), row["id"]))

        links = []
        for raw in self._seed_rows(PROCEDURE_COMPANIES):
            link = {
                k: v for k, v in raw.items()
                if k not in ("company_name", "procedure_name", "procedure_category")
            }
            if "company_id" not in link:
                name = raw.get("company_name")
                if name not in company_ids:
                    raise RefreshStepError(step, f"Unknown company '{name}' in procedure_companies seed")
                link["company_id"] = company_ids[name]
            if "procedure_id" not in link:
                link["procedure_id"] = self._resolve_procedure(step, raw, procedure_ids)
            links.append(link)
        return links

    @staticmethod
    def _resolve_procedure(step, raw, procedure_ids) -> Any:
        name = raw.get("procedure_name")
        candidates = procedure_ids.get(name, [])
        category = raw.get("procedure_category")
        if category is not None:
            candidates = [c for c in candidates if c[0] == category]
        if len(candidates) != 1:
            problem = "Unknown" if not candidates else "Ambiguous"
            label = f"{name} ({category})" if category else name
            raise RefreshStepError(step, f"{problem} procedure '{label}' in procedure_companies seed")
        return candidates[0][1]

    @staticmethod
    def _guarded(step: str, call):
        try:
            return call()
        except DatabaseError as e:
            raise RefreshStepError(step, e.message) from e
        except Exception as e:
            logger.exception("Unexpected error during refresh step %s", step)
            raise RefreshStepError(step, str(e) or e.__class__.__name__) from e
