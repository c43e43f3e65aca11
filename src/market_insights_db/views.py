# views.py
"""Tabular views of reports for CLI output."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from market_insights_db.db.infra.script_executor import (
    Failed,
    ScriptReport,
    SkippedIdempotent,
    Succeeded,
    preview,
)

OUTCOME_LABELS = {
    Succeeded: "succeeded",
    SkippedIdempotent: "skipped",
    Failed: "failed",
}


def df_replace_none(df: pd.DataFrame, none_value: str = "–") -> pd.DataFrame:
    """
    Replace None/NaN values in a DataFrame with a readable placeholder.
    """
    if not isinstance(df, pd.DataFrame):
        return df
    return df.astype(object).where(pd.notnull(df), none_value)


def outcomes_frame(report: ScriptReport, preview_chars: int = 60) -> pd.DataFrame:
    rows = []
    for o in report.outcomes:
        if isinstance(o, SkippedIdempotent):
            note = o.reason
        elif isinstance(o, Failed):
            note = o.error
        else:
            note = None
        rows.append(
            {
                "#": o.index,
                "Outcome": OUTCOME_LABELS[type(o)],
                "Statement": preview(o.statement, preview_chars),
                "Note": note,
            }
        )
    return pd.DataFrame(rows, columns=["#", "Outcome", "Statement", "Note"])


def tables_frame(tables: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(tables)


def counts_frame(counts: Dict[str, Optional[int]]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"Table": table, "Rows": count} for table, count in counts.items()],
        columns=["Table", "Rows"],
    )
