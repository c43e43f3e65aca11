"""Provide global constants and connection configuration for the project."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

PROJECT_ROOT = Path(__file__).resolve().parents[2]

DATA_DIR = Path("data")
SEED_DIR = Path("seed")
LOGS_DIR = Path("logs")
SQL_DIR = Path("sql")

DATA_PATH = (PROJECT_ROOT / DATA_DIR).resolve()
SEED_PATH = (DATA_PATH / SEED_DIR).resolve()
LOGS_PATH = (DATA_PATH / LOGS_DIR).resolve()
SQL_PATH = (PROJECT_ROOT / SQL_DIR).resolve()

DEFAULT_SCRIPT = Path("create_schema.sql")
DEFAULT_SCRIPT_PATH = (SQL_PATH / DEFAULT_SCRIPT).resolve()

DOTENV_FILE = Path(".env")
DOTENV_FILE_PATH = (PROJECT_ROOT / DOTENV_FILE).resolve()

LOG_LEVEL = dotenv_values(DOTENV_FILE_PATH).get("LOG_LEVEL", "INFO").upper()

LOG_FILE = Path("application.log")
LOG_FILE_PATH = (LOGS_PATH / LOG_FILE).resolve()

# First match wins; the VITE_* names are what the web frontend's .env uses.
URL_ENV_KEYS = ("SUPABASE_URL", "VITE_SUPABASE_URL")
KEY_ENV_KEYS = ("SUPABASE_KEY", "SUPABASE_SERVICE_KEY", "VITE_SUPABASE_ANON_KEY")

# Server-side function used to run raw SQL (see sql/create_rpc_functions.sql)
DEFAULT_SQL_RPC = "pg_query"
DEFAULT_SQL_RPC_PARAM = "query"

DEFAULT_DB_SCHEMA = "public"


class StartupConfigError(RuntimeError):
    """Raised when the store URL or access key is missing at startup."""


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Immutable connection settings.
    Read once at startup and handed to every component that needs the store.
    """
    url: str
    key: str
    schema: str = DEFAULT_DB_SCHEMA
    sql_rpc: str = DEFAULT_SQL_RPC
    sql_rpc_param: str = DEFAULT_SQL_RPC_PARAM

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = DOTENV_FILE_PATH,
    ) -> "DatabaseConfig":
        """
        Build the config from the .env file overlaid with the process environment.

        Process environment wins over .env. Raises StartupConfigError when
        either the URL or the key cannot be found.
        """
        values: dict[str, str] = {}
        if dotenv_path is not None and Path(dotenv_path).exists():
            values.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
        values.update(os.environ if environ is None else environ)

        url = _first_value(values, URL_ENV_KEYS)
        key = _first_value(values, KEY_ENV_KEYS)

        missing = []
        if not url:
            missing.append(URL_ENV_KEYS[0])
        if not key:
            missing.append(KEY_ENV_KEYS[0])
        if missing:
            raise StartupConfigError(
                f"Missing Supabase credentials: {', '.join(missing)}. "
                f"Set them in the environment or in {DOTENV_FILE_PATH}."
            )

        return cls(
            url=url,
            key=key,
            schema=values.get("SUPABASE_DB_SCHEMA") or DEFAULT_DB_SCHEMA,
            sql_rpc=values.get("SUPABASE_SQL_RPC") or DEFAULT_SQL_RPC,
            sql_rpc_param=values.get("SUPABASE_SQL_RPC_PARAM") or DEFAULT_SQL_RPC_PARAM,
        )

    def masked_key(self) -> str:
        if len(self.key) <= 8:
            return "*" * len(self.key)
        return f"{self.key[:4]}...{self.key[-4:]}"


def _first_value(values: Mapping[str, str], keys) -> Optional[str]:
    for k in keys:
        v = values.get(k)
        if v and v.strip():
            return v.strip()
    return None


def configure_logging():
    root = logging.getLogger()
    if root.handlers:
        return

    from logging.handlers import RotatingFileHandler

    LOGS_PATH.mkdir(parents=True, exist_ok=True)

    # console/basic config
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # file handler
    file_handler = RotatingFileHandler(
        LOG_FILE_PATH,
        maxBytes=5 * 1024 * 1024,  # 5 MB per file
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(LOG_LEVEL)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


def describe_paths() -> dict[str, Path]:
    return {
        "PROJECT_ROOT": PROJECT_ROOT,
        "DATA_PATH": DATA_PATH,
        "SEED_PATH": SEED_PATH,
        "SQL_PATH": SQL_PATH,
        "DEFAULT_SCRIPT_PATH": DEFAULT_SCRIPT_PATH,
        "LOGS_PATH": LOGS_PATH,
        "LOG_FILE_PATH": LOG_FILE_PATH,
        "DOTENV_FILE_PATH": DOTENV_FILE_PATH,
    }


def main():
    """Print global constants."""
    print("Current file and path resolutions:")
    print("----------------------------------")
    for label, file_path in describe_paths().items():
        print(f"{label}: {file_path}")

    print("\nSecret environment variables:")
    print("-----------------------------")
    try:
        cfg = DatabaseConfig.from_env()
    except StartupConfigError as e:
        print(f"(not configured) {e}")
        return
    print(f"SUPABASE_URL: {cfg.url}")
    print(f"SUPABASE_KEY: {cfg.masked_key()}")


if __name__ == "__main__":
    main()
