# db/seed.py
"""
Canonical rows used to repopulate the domain tables.

A seed source only has to answer rows_for(table). The JSON implementation
reads <directory>/<table>.json, each holding a JSON array of objects.

Association rows (procedure_companies) name their parents by natural key:
    {"procedure_name": "...", "procedure_category": "...", "company_name": "..."}
The refresh coordinator resolves them to ids after the parents are loaded.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol, Union

from market_insights_db.config import SEED_PATH

logger = logging.getLogger(__name__)


class SeedDataError(RuntimeError):
    """Raised when seed rows for a table are missing or malformed."""


class SeedSource(Protocol):
    def rows_for(self, table: str) -> List[Dict[str, Any]]: ...


class JsonSeedSource:
    def __init__(self, directory: Union[str, Path] = SEED_PATH):
        self.directory = Path(directory)

    def path_for(self, table: str) -> Path:
        return self.directory / f"{table}.json"

    def rows_for(self, table: str) -> List[Dict[str, Any]]:
        path = self.path_for(table)
        try:
            with open(path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except FileNotFoundError as e:
            raise SeedDataError(f"No seed data for table '{table}' at {path}") from e
        except json.JSONDecodeError as e:
            raise SeedDataError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno})") from e
        except UnicodeDecodeError as e:
            raise SeedDataError(f"{path} is not valid UTF-8: {e.reason}") from e
        except OSError as e:
            raise SeedDataError(f"Cannot read seed file {path}: {e}") from e

        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise SeedDataError(f"{path} must contain a JSON array of objects")

        logger.debug("Loaded %d seed rows for %s from %s", len(rows), table, path)
        return rows


class InMemorySeedSource:
    """Seed source over a plain {table: rows} mapping."""

    def __init__(self, rows: Dict[str, List[Dict[str, Any]]]):
        self._rows = rows

    def rows_for(self, table: str) -> List[Dict[str, Any]]:
        if table not in self._rows:
            raise SeedDataError(f"No seed data for table '{table}'")
        return [dict(r) for r in self._rows[table]]
