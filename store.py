"""
Read-only access to the price store. Supports Postgres and SQLite (local dev).

A Store is built once from settings and describes how to reach the database;
StoreConnection is the open, request-scoped handle the report queries run on.
"""
import logging
import math
import sqlite3
import time
from pathlib import Path

import psycopg2

# VM instructions between SQLite deadline checks
SQLITE_PROGRESS_STEPS = 1000


class StoreQueryFailure(Exception):
    """The store could not be reached or a query against it failed."""

    def __str__(self):
        return f"Query failed: {self.args[0] if self.args else 'unknown error'}"


class _SampleStdDev:
    """STDDEV_SAMP for SQLite, which has no built-in standard deviation."""

    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0

    def step(self, value):
        if value is None:
            return
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (value - self.mean)

    def finalize(self):
        if self.count < 2:
            return None
        return math.sqrt(self.m2 / (self.count - 1))


def _to_python(val):
    # psycopg2 hands back Decimal for NUMERIC columns
    if hasattr(val, 'as_tuple'):
        return float(val)
    return val


class StoreConnection:
    def __init__(self, conn, backend, statement_timeout_ms=None):
        self._conn = conn
        self.backend = backend
        self.statement_timeout_ms = statement_timeout_ms

    @property
    def placeholder(self):
        return '%s' if self.backend == "postgres" else '?'

    def _arm_sqlite_deadline(self):
        # Postgres enforces statement_timeout server-side; SQLite needs a progress handler
        deadline = time.monotonic() + self.statement_timeout_ms / 1000.0
        state = {"expired": False}

        def check():
            if time.monotonic() > deadline:
                state["expired"] = True
                return 1
            return 0

        self._conn.set_progress_handler(check, SQLITE_PROGRESS_STEPS)
        return state

    def query(self, sql, params=None):
        """Run one read and return rows as ordered dicts."""
        deadline = None
        if self.backend == "sqlite" and self.statement_timeout_ms:
            deadline = self._arm_sqlite_deadline()
        try:
            cur = self._conn.cursor()
            try:
                cur.execute(sql, params or ())
                columns = [desc[0] for desc in cur.description] if cur.description else []
                rows = cur.fetchall()
            finally:
                cur.close()
        except (psycopg2.Error, sqlite3.Error) as e:
            if deadline and deadline["expired"]:
                raise StoreQueryFailure(
                    f"statement timeout of {self.statement_timeout_ms} ms exceeded") from e
            raise StoreQueryFailure(str(e).strip()) from e
        finally:
            if deadline is not None:
                self._conn.set_progress_handler(None, 0)
        return [{col: _to_python(row[i]) for i, col in enumerate(columns)} for row in rows]

    def close(self):
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class Store:
    def __init__(self, database_url=None, db_path="stocks.db", connect_kwargs=None,
                 connect_timeout=5, statement_timeout_ms=15000):
        self.database_url = database_url
        self.db_path = db_path
        self.connect_kwargs = dict(connect_kwargs or {})
        self.connect_timeout = connect_timeout
        self.statement_timeout_ms = statement_timeout_ms

    @classmethod
    def from_settings(cls, settings):
        return cls(
            database_url=settings.database_url,
            db_path=settings.db_path,
            connect_kwargs=settings.db_credentials,
            connect_timeout=settings.db_connect_timeout,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    @property
    def backend(self):
        if self.database_url or self.connect_kwargs:
            return "postgres"
        return "sqlite"

    def describe(self):
        if self.backend == "postgres":
            if self.connect_kwargs:
                return f"Postgres {self.connect_kwargs.get('dbname', '')}@{self.connect_kwargs.get('host', '')}"
            return "Postgres"
        return f"SQLite: {self.db_path}"

    def connect(self):
        try:
            if self.backend == "postgres":
                conn = self._connect_postgres()
            else:
                conn = self._connect_sqlite()
        except (psycopg2.Error, sqlite3.Error) as e:
            logging.error(f"[DB] Could not connect ({self.describe()}): {e}")
            raise StoreQueryFailure(str(e).strip()) from e
        return StoreConnection(conn, self.backend, self.statement_timeout_ms)

    def _connect_postgres(self):
        options = f"-c statement_timeout={int(self.statement_timeout_ms)}"
        if self.database_url:
            conn = psycopg2.connect(self.database_url, connect_timeout=self.connect_timeout,
                                    options=options)
        else:
            conn = psycopg2.connect(connect_timeout=self.connect_timeout, options=options,
                                    **self.connect_kwargs)
        conn.set_session(readonly=True, autocommit=True)
        return conn

    def _connect_sqlite(self):
        # mode=ro: a missing file is an error rather than a fresh empty database
        uri = Path(self.db_path).resolve().as_uri() + "?mode=ro"
        conn = sqlite3.connect(uri, uri=True, timeout=self.connect_timeout)
        conn.create_aggregate("STDDEV_SAMP", 1, _SampleStdDev)
        return conn
