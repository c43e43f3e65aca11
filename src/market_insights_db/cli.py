"""cli.py

Command line entry point for the Market Insights store.

✅ Resulting CLI Behavior
market-insights-db execute-sql                         --> runs sql/create_schema.sql
market-insights-db execute-sql sql/news_tables.sql     --> runs a specific script
market-insights-db execute-sql my.sql --naive-split    --> legacy ';' splitting
market-insights-db list-tables                         --> schemas and their tables
market-insights-db refresh                             --> clear + reload domain tables
market-insights-db verify                              --> row counts per domain table
market-insights-db config                              --> resolved paths and credentials

Exit codes: 0 on completion (execute-sql still exits 0 when single statements
failed), 1 when credentials are missing, the script cannot be read, or a
refresh fails.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional

from market_insights_db.config import (
    DEFAULT_SCRIPT_PATH,
    DOTENV_FILE_PATH,
    SEED_PATH,
    DatabaseConfig,
    StartupConfigError,
    configure_logging,
)
from market_insights_db.config import main as print_config
from market_insights_db.db.client import DatabaseClient, create_database_client
from market_insights_db.db.infra.cli_utils import (
    format_action_command,
    print_frame,
    print_user_message,
)
from market_insights_db.db.infra.introspection import IntrospectionError, SchemaIntrospector
from market_insights_db.db.infra.script_executor import ScriptExecutor, ScriptReadError
from market_insights_db.db.refresh import DataRefreshCoordinator
from market_insights_db.db.seed import JsonSeedSource
from market_insights_db.views import counts_frame, df_replace_none, outcomes_frame, tables_frame

logger = logging.getLogger(__name__)

ClientFactory = Callable[[DatabaseConfig], DatabaseClient]

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="market-insights-db",
        description="Run SQL scripts and refresh data in the Market Insights store",
    )
    parser.add_argument("--verbose", action="store_true", help="Show detailed output")
    parser.add_argument("--quiet", action="store_true", help="Suppress non-error output")

    sub = parser.add_subparsers(dest="command", required=True)

    p_exec = sub.add_parser("execute-sql", help="Execute a multi-statement SQL script")
    p_exec.add_argument(
        "path",
        nargs="?",
        default=str(DEFAULT_SCRIPT_PATH),
        help=f"Path to the SQL script (default: {DEFAULT_SCRIPT_PATH})",
    )
    p_exec.add_argument(
        "--naive-split",
        action="store_true",
        help="Split on every ';' (ignores quotes, comments and $$ bodies)",
    )

    sub.add_parser("list-tables", help="List schemas and their tables")

    p_refresh = sub.add_parser("refresh", help="Clear and reload companies, procedures and procedure_companies")
    p_refresh.add_argument(
        "--seed-dir",
        default=str(SEED_PATH),
        help=f"Directory holding <table>.json seed files (default: {SEED_PATH})",
    )
    p_refresh.add_argument(
        "--skip-connection-check",
        action="store_true",
        help="Do not probe the store before clearing tables",
    )

    sub.add_parser("verify", help="Print row counts for the domain tables")
    sub.add_parser("config", help="Print resolved paths and credentials")
    return parser


# -------------------------
# Commands
# -------------------------

def cmd_execute_sql(client: DatabaseClient, args) -> int:
    executor = ScriptExecutor(client, naive_split=args.naive_split)
    try:
        report = executor.execute_file(args.path)
    except ScriptReadError as e:
        logger.error("%s", e)
        print_user_message(
            f"Error executing SQL file: {e}",
            action=format_action_command(
                """
                execute-sql <path-to-script.sql>
                execute-sql            # runs the default script
                """
            ),
        )
        return EXIT_FAILURE

    print_frame(f"Statements in {args.path}:", df_replace_none(outcomes_frame(report)), quiet=args.quiet)
    print_user_message(
        f"SQL execution completed: {report.summary()}",
        details="\n".join(f"#{f.index}: {f.error}" for f in report.failed),
        verbose=args.verbose,
        quiet=args.quiet,
    )
    return EXIT_OK


def cmd_list_tables(client: DatabaseClient, args) -> int:
    introspector = SchemaIntrospector(client)
    try:
        survey = introspector.survey()
    except IntrospectionError as e:
        print_user_message(str(e))
        return EXIT_FAILURE

    for schema, tables in survey.tables.items():
        print_frame(f"Tables in schema {schema}:", tables_frame(tables), quiet=args.quiet)
    for schema, error in survey.errors.items():
        print_user_message(f"Error listing tables in schema {schema}", details=error, verbose=True)
    return EXIT_OK


def cmd_refresh(client: DatabaseClient, args) -> int:
    coordinator = DataRefreshCoordinator(client, JsonSeedSource(args.seed_dir))

    if not args.skip_connection_check:
        problem = coordinator.check_connection()
        if problem:
            print_user_message(
                f"Cannot proceed without database connection: {problem}",
                action="Check SUPABASE_URL / SUPABASE_KEY in your .env file.",
            )
            return EXIT_FAILURE

    result = coordinator.refresh()
    if not result.success:
        print_user_message(
            f"Data refresh failed: {result.error}",
            details=f"Failed step: {result.step}\nRows loaded before failure: {result.row_counts}",
            verbose=True,
        )
        return EXIT_FAILURE

    print_frame("Rows loaded:", counts_frame(result.row_counts), quiet=args.quiet)
    print_user_message("Data refresh completed successfully.", quiet=args.quiet)
    return EXIT_OK


def cmd_verify(client: DatabaseClient, args) -> int:
    coordinator = DataRefreshCoordinator(client, JsonSeedSource(SEED_PATH))
    counts = coordinator.verify()
    print_frame("Row counts:", df_replace_none(counts_frame(counts)), quiet=args.quiet)
    if any(c is None for c in counts.values()):
        print_user_message("Some tables could not be counted; see log for details.")
        return EXIT_FAILURE
    return EXIT_OK


COMMANDS = {
    "execute-sql": cmd_execute_sql,
    "list-tables": cmd_list_tables,
    "refresh": cmd_refresh,
    "verify": cmd_verify,
}


def main(
    argv: Optional[List[str]] = None,
    *,
    client_factory: ClientFactory = create_database_client,
    environ=None,
    dotenv_path: Optional[Path] = DOTENV_FILE_PATH,
) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "config":
        print_config()
        return EXIT_OK

    # Credentials are checked before any other work, logging setup included
    try:
        config = DatabaseConfig.from_env(environ, dotenv_path=dotenv_path)
    except StartupConfigError as e:
        print_user_message(f"Error: {e}")
        return EXIT_FAILURE

    configure_logging()
    client = client_factory(config)
    return COMMANDS[args.command](client, args)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
