"""
Shared fixtures: throwaway SQLite stores seeded with Company / DailyPrice rows.
"""
import sqlite3
from datetime import date, timedelta

import pytest

from app import create_app
from settings import Settings
from store import Store

SCHEMA = """
CREATE TABLE Company (
    company_id INTEGER PRIMARY KEY,
    ticker TEXT NOT NULL UNIQUE,
    company_name TEXT
);
CREATE TABLE DailyPrice (
    company_id INTEGER NOT NULL REFERENCES Company(company_id),
    trade_date DATE NOT NULL,
    open_price {price_type},
    high_price {price_type},
    low_price {price_type},
    close_price {price_type},
    volume INTEGER,
    UNIQUE(company_id, trade_date)
);
"""

START = date(2024, 1, 1)

# ticker -> (company_name, closes, volumes); one row per consecutive day from START
SAMPLE_DATA = {
    "AAA": ("Alpha Corp",
            [100, 102, 101, 105, 107, 106, 110, 115, 112, 118, 120, 125, 130, 140, 150],
            [1000 + i * 100 for i in range(15)]),
    "BBB": ("Beta Inc", [10, 12, 11], [500, 700, 600]),
    "CCC": ("Gamma Ltd", [50], [5000]),
    "DDD": ("Delta Co", [0, 5, 6], [10, 20, 30]),
}


def build_db(path, data, price_type="REAL"):
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA.format(price_type=price_type))
        for company_id, (ticker, (name, closes, volumes)) in enumerate(sorted(data.items()), start=1):
            conn.execute(
                "INSERT INTO Company (company_id, ticker, company_name) VALUES (?, ?, ?)",
                (company_id, ticker, name),
            )
            for i, (close, volume) in enumerate(zip(closes, volumes)):
                conn.execute(
                    "INSERT INTO DailyPrice (company_id, trade_date, open_price, high_price,"
                    " low_price, close_price, volume) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (company_id, (START + timedelta(days=i)).isoformat(),
                     close, close, close, close, volume),
                )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def make_db(tmp_path):
    counter = {"n": 0}

    def _make(data, price_type="REAL"):
        counter["n"] += 1
        return build_db(str(tmp_path / f"stocks_{counter['n']}.db"), data, price_type)

    return _make


@pytest.fixture
def sample_db(make_db):
    return make_db(SAMPLE_DATA)


@pytest.fixture
def connection(sample_db):
    with Store(db_path=sample_db).connect() as conn:
        yield conn


@pytest.fixture
def make_client():
    def _make(db_path):
        app = create_app(Settings(db_path=db_path))
        app.testing = True
        return app.test_client()

    return _make


@pytest.fixture
def client(make_client, sample_db):
    return make_client(sample_db)
