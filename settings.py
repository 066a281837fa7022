"""
Runtime configuration, read once from the process environment.

A local .env file is honoured (python-dotenv) so the same variables can be
kept out of the shell during development.
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


def _env_int(environ, name, default):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(environ, name, default=False):
    raw = environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"

    # Postgres if either of these is set, SQLite otherwise
    database_url: Optional[str] = None
    db_credentials: dict = field(default_factory=dict)
    db_path: str = "stocks.db"

    db_connect_timeout: int = 5
    db_statement_timeout_ms: int = 15000

    cors_origins: str = "*"

    @property
    def use_postgres(self):
        return bool(self.database_url or self.db_credentials)


def load_settings(environ=None):
    """Build Settings from ``environ`` (defaults to os.environ after loading .env)."""
    if environ is None:
        load_dotenv()
        environ = os.environ

    credentials = {}
    if environ.get("DB_HOST"):
        # Keyword names as psycopg2.connect() expects them
        for env_name, key in (
            ("DB_HOST", "host"),
            ("DB_PORT", "port"),
            ("DB_USER", "user"),
            ("DB_PASSWORD", "password"),
            ("DB_NAME", "dbname"),
        ):
            if environ.get(env_name):
                credentials[key] = environ[env_name]

    return Settings(
        port=_env_int(environ, "PORT", 3000),
        debug=_env_bool(environ, "FLASK_DEBUG"),
        log_level=environ.get("LOG_LEVEL", "INFO").upper(),
        database_url=environ.get("DATABASE_URL") or None,
        db_credentials=credentials,
        db_path=environ.get("DB_PATH", "stocks.db"),
        db_connect_timeout=_env_int(environ, "DB_CONNECT_TIMEOUT", 5),
        db_statement_timeout_ms=_env_int(environ, "DB_STATEMENT_TIMEOUT_MS", 15000),
        cors_origins=environ.get("CORS_ORIGINS", "*"),
    )
