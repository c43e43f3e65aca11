# tests/db/test_error_classifier.py
import pytest

from market_insights_db.db.client import DatabaseError
from market_insights_db.db.infra.error_classifier import (
    ErrorClass,
    classify_error,
    is_idempotent_conflict,
)


@pytest.mark.parametrize(
    "message",
    [
        'relation "companies" already exists',
        'constraint "fk_company" for relation "procedure_companies" already exists',
        'trigger "update_companies_updated_at" for relation "companies" already exists',
        "Index idx_procedures_category Already Exists",
    ],
)
def test_already_exists_messages_are_ignorable(message):
    assert classify_error(DatabaseError(message)) is ErrorClass.IGNORABLE


@pytest.mark.parametrize("code", ["42P07", "42710", "42701", "42P06", "42723"])
def test_duplicate_object_codes_are_ignorable_regardless_of_wording(code):
    err = DatabaseError("la relación ya existe", code=code)
    assert is_idempotent_conflict(err)


@pytest.mark.parametrize(
    "err",
    [
        DatabaseError('syntax error at or near "CREAT"', code="42601"),
        DatabaseError("permission denied for schema public", code="42501"),
        DatabaseError('duplicate key value violates unique constraint "companies_name_key"', code="23505"),
        DatabaseError("connection reset"),
    ],
)
def test_other_failures_are_fatal(err):
    assert classify_error(err) is ErrorClass.FATAL


def test_accepts_plain_strings_dicts_and_exceptions():
    assert is_idempotent_conflict("schema market_insights already exists")
    assert is_idempotent_conflict({"message": "x", "code": "42P07"})
    assert is_idempotent_conflict(RuntimeError('type "status" already exists'))
    assert not is_idempotent_conflict({"message": "boom"})
    assert not is_idempotent_conflict(None)
