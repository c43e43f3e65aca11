# tests/db/test_refresh.py
import itertools

import pytest

from market_insights_db.db.client import DatabaseError, QueryResult
from market_insights_db.db.refresh import (
    DataRefreshCoordinator,
    RefreshJob,
)
from market_insights_db.db.seed import InMemorySeedSource, JsonSeedSource

SEED = {
    "companies": [
        {"name": "Align Technology", "industry": "Dental"},
        {"name": "Straumann Group", "industry": "Dental"},
    ],
    "procedures": [
        {"name": "Clear Aligners", "category": "Orthodontic"},
        {"name": "Dental Implants", "category": "Restorative"},
    ],
    "procedure_companies": [
        {"procedure_name": "Clear Aligners", "procedure_category": "Orthodontic", "company_name": "Align Technology"},
        {"procedure_name": "Dental Implants", "company_name": "Straumann Group"},
    ],
}


class DummyTableClient:
    """
    Records every call as (operation, table). Inserts echo rows back with ids.
    `fail` maps (operation, table) -> error message; `raise_on` does the same but raises.
    """

    def __init__(self, fail=None, raise_on=None):
        self.calls = []
        self.rows = {}
        self.fail = fail or {}
        self.raise_on = raise_on or {}
        self._ids = itertools.count(1)

    def _check(self, op, table):
        self.calls.append((op, table))
        if (op, table) in self.raise_on:
            raise RuntimeError(self.raise_on[(op, table)])
        if (op, table) in self.fail:
            return QueryResult(error=DatabaseError(self.fail[(op, table)]))
        return None

    def delete_all(self, table):
        failed = self._check("delete", table)
        if failed:
            return failed
        self.rows[table] = []
        return QueryResult(data=[])

    def insert_rows(self, table, rows):
        failed = self._check("insert", table)
        if failed:
            return failed
        stored = [{"id": f"id-{next(self._ids)}", **r} for r in rows]
        self.rows.setdefault(table, []).extend(stored)
        return QueryResult(data=stored)

    def select_rows(self, table, columns="*", limit=None):
        failed = self._check("select", table)
        return failed or QueryResult(data=self.rows.get(table, [])[:limit])

    def count_rows(self, table):
        failed = self._check("count", table)
        return failed or QueryResult(data=[], count=len(self.rows.get(table, [])))


def _coordinator(client, seed=SEED, **kwargs):
    return DataRefreshCoordinator(client, InMemorySeedSource(seed), **kwargs)


def test_refresh_clears_reverse_and_reloads_forward():
    client = DummyTableClient()
    result = _coordinator(client).refresh()

    assert result.success is True
    assert result.as_dict() == {"success": True}
    assert client.calls == [
        ("delete", "procedure_companies"),
        ("delete", "procedures"),
        ("delete", "companies"),
        ("insert", "companies"),
        ("insert", "procedures"),
        ("insert", "procedure_companies"),
    ]
    assert result.row_counts == {"companies": 2, "procedures": 2, "procedure_companies": 2}


def test_association_rows_resolve_to_generated_ids():
    client = DummyTableClient()
    _coordinator(client).refresh()

    company_ids = {r["name"]: r["id"] for r in client.rows["companies"]}
    procedure_ids = {r["name"]: r["id"] for r in client.rows["procedures"]}
    links = client.rows["procedure_companies"]

    assert {(l["procedure_id"], l["company_id"]) for l in links} == {
        (procedure_ids["Clear Aligners"], company_ids["Align Technology"]),
        (procedure_ids["Dental Implants"], company_ids["Straumann Group"]),
    }
    assert all("company_name" not in l and "procedure_name" not in l for l in links)


def test_clear_companies_failure_stops_before_any_reload():
    client = DummyTableClient(fail={("delete", "companies"): "permission denied for table companies"})
    result = _coordinator(client).refresh()

    assert result.as_dict() == {"success": False, "error": "permission denied for table companies"}
    assert result.step == "clear:companies"
    assert not any(op == "insert" for op, _ in client.calls)


def test_companies_reload_exception_aborts_remaining_reloads():
    client = DummyTableClient(raise_on={("insert", "companies"): "companies reload failed"})
    result = _coordinator(client).refresh()

    assert result.as_dict() == {"success": False, "error": "companies reload failed"}
    assert result.step == "reload:companies"
    assert ("insert", "procedures") not in client.calls
    assert ("insert", "procedure_companies") not in client.calls


def test_association_never_inserted_when_procedures_fail():
    client = DummyTableClient(fail={("insert", "procedures"): "value too long"})
    result = _coordinator(client).refresh()

    assert result.success is False
    assert result.row_counts == {"companies": 2}
    assert ("insert", "procedure_companies") not in client.calls


def test_association_inserted_only_after_both_parents():
    client = DummyTableClient()
    _coordinator(client).refresh()
    inserts = [t for op, t in client.calls if op == "insert"]
    assert inserts.index("procedure_companies") > inserts.index("companies")
    assert inserts.index("procedure_companies") > inserts.index("procedures")


def test_unknown_company_in_association_seed_fails_step():
    seed = dict(SEED)
    seed["procedure_companies"] = [{"procedure_name": "Clear Aligners", "company_name": "Nobody Inc"}]
    client = DummyTableClient()
    result = _coordinator(client, seed=seed).refresh()

    assert result.success is False
    assert result.step == "reload:procedure_companies"
    assert "Nobody Inc" in result.error
    assert ("insert", "procedure_companies") not in client.calls


def test_ambiguous_procedure_name_requires_category():
    seed = dict(SEED)
    seed["procedures"] = [
        {"name": "Whitening", "category": "Cosmetic"},
        {"name": "Whitening", "category": "At-home"},
    ]
    seed["procedure_companies"] = [{"procedure_name": "Whitening", "company_name": "Align Technology"}]
    result = _coordinator(DummyTableClient(), seed=seed).refresh()

    assert result.success is False
    assert "Ambiguous procedure 'Whitening'" in result.error


def test_missing_seed_table_fails_that_reload():
    seed = {"companies": SEED["companies"]}
    client = DummyTableClient()
    result = _coordinator(client, seed=seed).refresh()

    assert result.success is False
    assert result.step == "reload:procedures"
    assert "procedures" in result.error


def test_unreadable_seed_file_fails_that_reload(tmp_path):
    (tmp_path / "companies.json").mkdir()
    client = DummyTableClient()
    result = DataRefreshCoordinator(client, JsonSeedSource(tmp_path)).refresh()

    assert result.success is False
    assert result.step == "reload:companies"
    assert "companies.json" in result.error
    assert not any(op == "insert" for op, _ in client.calls)


def test_non_utf8_seed_file_fails_that_reload(tmp_path):
    (tmp_path / "companies.json").write_bytes(b"\xff\xfe[not utf8")
    result = DataRefreshCoordinator(DummyTableClient(), JsonSeedSource(tmp_path)).refresh()

    assert result.success is False
    assert result.step == "reload:companies"
    assert "UTF-8" in result.error


def test_unexpected_seed_source_error_becomes_failed_result():
    class BrokenSource:
        def rows_for(self, table):
            raise KeyError(table)

    result = DataRefreshCoordinator(DummyTableClient(), BrokenSource()).refresh()

    assert result.success is False
    assert result.step == "reload:companies"
    assert "companies" in result.error


def test_rows_are_inserted_in_chunks():
    seed = dict(SEED)
    seed["companies"] = [{"name": f"Company {i}"} for i in range(25)]
    seed["procedure_companies"] = []
    client = DummyTableClient()
    result = _coordinator(client, seed=seed, chunk_size=10).refresh()

    assert result.success is True
    assert [t for op, t in client.calls if op == "insert"].count("companies") == 3
    assert result.row_counts["companies"] == 25


def test_job_orders():
    job = RefreshJob()
    assert job.clear_order == ("procedure_companies", "procedures", "companies")
    assert job.reload_order == ("companies", "procedures", "procedure_companies")


def test_job_with_association_first_is_rejected():
    with pytest.raises(ValueError):
        _coordinator(DummyTableClient(), job=RefreshJob(("procedure_companies", "companies", "procedures")))


def test_check_connection_and_verify():
    client = DummyTableClient(fail={("count", "procedures"): "relation does not exist"})
    coordinator = _coordinator(client)
    assert coordinator.check_connection() is None

    coordinator.refresh()
    assert coordinator.verify() == {"companies": 2, "procedures": None, "procedure_companies": 2}

    down = DummyTableClient(fail={("select", "companies"): "connection refused"})
    assert _coordinator(down).check_connection() == "connection refused"
