# market_insights_db/db/infra/cli_utils.py
"""
CLI message helpers for consistent, compact messages.

Provides:
 - print_user_message(summary, action=None, details=None, verbose=False, quiet=False)
 - print_frame(title, df, quiet=False)
 - format_action_command(*commands, prog="market-insights-db")

Pattern:
 - One-line summary always printed (unless --quiet).
 - Optional "Actionable:" block of commands to try next.
 - Optional details block printed only when verbose=True.

Uses print() so output is captured by pytest capsys.
"""
from __future__ import annotations

import textwrap
from typing import Optional

import pandas as pd


def _indent(text: str, prefix: str = "  ") -> str:
    return "\n".join(prefix + line.rstrip() for line in text.splitlines())


def _print_block(title: str, body: str) -> None:
    print()
    print(title)
    print(_indent(body))


def print_user_message(
    summary: str,
    action: Optional[str] = None,
    details: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """
    Print one summary line, then the optional 'Actionable:' and 'Details:' blocks.

    Details are shown only with verbose=True; quiet=True prints nothing.
    """
    if quiet:
        return

    print(summary.strip().splitlines()[0] if summary and summary.strip() else "")
    if action and action.strip():
        _print_block("Actionable:", action.strip())
    if verbose and details and details.strip():
        _print_block("Details:", details.strip())


def print_frame(title: str, df: pd.DataFrame, quiet: bool = False) -> None:
    if quiet:
        return
    _print_block(title, "(none)" if df.empty else df.to_string(index=False))


def format_action_command(*commands: str, prog: str = "market-insights-db") -> str:
    """
    Build an 'Actionable:' block of one or more CLI invocations.

    Each command may be an indented triple-quoted block; it is dedented
    and prefixed with `prog` unless it already starts with it.
    """
    lines = []
    for cmd in commands:
        for ln in textwrap.dedent(cmd).strip().splitlines():
            ln = ln.strip()
            if not ln:
                continue
            lines.append(ln if ln.startswith(prog) else f"{prog} {ln}")
    return "\n".join(lines)
