# tests/db/test_cli_utils.py
import pandas as pd

from market_insights_db.db.infra.cli_utils import (
    format_action_command,
    print_frame,
    print_user_message,
)


def test_format_action_command_dedents_and_prefixes_program():
    block = format_action_command(
        """
            execute-sql sql/create_schema.sql

            market-insights-db verify
        """,
        "list-tables",
    )
    assert block.splitlines() == [
        "market-insights-db execute-sql sql/create_schema.sql",
        "market-insights-db verify",
        "market-insights-db list-tables",
    ]


def test_print_user_message_details_only_when_verbose(capsys):
    print_user_message("Refresh failed\nsecond line", action="refresh", details="step: clear:companies")
    out = capsys.readouterr().out
    assert out.splitlines()[0] == "Refresh failed"
    assert "second line" not in out
    assert "Actionable:\n  refresh" in out
    assert "Details:" not in out

    print_user_message("Refresh failed", details="step: clear:companies", verbose=True)
    assert "Details:\n  step: clear:companies" in capsys.readouterr().out


def test_quiet_suppresses_everything(capsys):
    print_user_message("hello", action="verify", quiet=True)
    print_frame("Rows:", pd.DataFrame([{"table": "companies", "rows": 4}]), quiet=True)
    assert capsys.readouterr().out == ""


def test_print_frame_marks_empty_frames(capsys):
    print_frame("Tables in schema public:", pd.DataFrame())
    assert capsys.readouterr().out == "\nTables in schema public:\n  (none)\n"
