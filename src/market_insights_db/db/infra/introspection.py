# market_insights_db/db/infra/introspection.py
"""
Read-only schema/table listing through the store's remote procedures.

Expects two server-side functions:
 - list_schemas()                 -> schema names
 - list_tables(schema_name text)  -> one row per table
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from market_insights_db.db.client import DatabaseClient

logger = logging.getLogger(__name__)

LIST_SCHEMAS_RPC = "list_schemas"
LIST_TABLES_RPC = "list_tables"


class IntrospectionError(RuntimeError):
    """Raised when a listing procedure fails."""


@dataclass
class SchemaSurvey:
    """Tables per schema, plus the schemas whose listing failed."""
    tables: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)


def _schema_name(entry: Any) -> str:
    # list_schemas may return plain strings or rows like {"schema_name": ...}
    if isinstance(entry, dict):
        for key in ("schema_name", "name", "nspname", "list_schemas"):
            if entry.get(key):
                return str(entry[key])
        return str(next(iter(entry.values()), ""))
    return str(entry)


def _table_row(entry: Any) -> Dict[str, Any]:
    if isinstance(entry, dict):
        return entry
    return {"table_name": entry}


class SchemaIntrospector:
    def __init__(self, client: DatabaseClient):
        self.client = client

    def list_schemas(self) -> List[str]:
        result = self.client.rpc(LIST_SCHEMAS_RPC)
        if result.error is not None:
            logger.error("Error listing schemas: %s", result.error.message)
            raise IntrospectionError(f"Error listing schemas: {result.error.message}") from result.error
        return [_schema_name(s) for s in (result.data or [])]

    def list_tables(self, schema: str) -> List[Dict[str, Any]]:
        result = self.client.rpc(LIST_TABLES_RPC, {"schema_name": schema})
        if result.error is not None:
            raise IntrospectionError(
                f"Error listing tables in schema {schema}: {result.error.message}"
            ) from result.error
        return [_table_row(t) for t in (result.data or [])]

    def survey(self) -> SchemaSurvey:
        """
        List every schema, then the tables of each one.
        A schema whose listing fails is recorded in `errors` and skipped.
        """
        schemas = self.list_schemas()
        logger.info("Schemas: %s", schemas)

        survey = SchemaSurvey()
        for schema in schemas:
            try:
                survey.tables[schema] = self.list_tables(schema)
            except IntrospectionError as e:
                logger.error("%s", e)
                survey.errors[schema] = str(e)
                continue
            logger.info("Tables in schema %s: %d", schema, len(survey.tables[schema]))
        return survey
