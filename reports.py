"""
Report catalog: the analytical queries behind each dashboard page.

All arithmetic happens in SQL. Queries are written to run unchanged on
Postgres and SQLite; rounding goes through CAST(... AS NUMERIC) because
Postgres only rounds to N places on numeric values. Price ratios multiply
by 1.0 first: SQLite stores whole-number DECIMAL prices as integers and
would otherwise divide them as integers.
"""
import logging

from validators import DayCount, MODE_STATS

# ── Column metadata ───────────────────────────────────────

COLUMN_META = {
    "ticker": {"label": "Ticker", "fmt": "text"},
    "company_name": {"label": "Company", "fmt": "text"},
    "row_count": {"label": "Rows", "fmt": "int"},
    "min_date": {"label": "From", "fmt": "date"},
    "max_date": {"label": "To", "fmt": "date"},
    "first_close": {"label": "First Close", "fmt": "num4"},
    "last_close": {"label": "Last Close", "fmt": "num4"},
    "pct_return": {"label": "Return (%)", "fmt": "num2"},
    "daily_volatility_pct": {"label": "Daily Volatility (%)", "fmt": "num4"},
    "avg_volume": {"label": "Avg Volume", "fmt": "int"},
    "max_volume": {"label": "Max Volume", "fmt": "int"},
    "avg_close_price": {"label": "Avg Close (USD)", "fmt": "num2"},
    "trade_date": {"label": "Date", "fmt": "date"},
    "open_price": {"label": "Open", "fmt": "num2"},
    "high_price": {"label": "High", "fmt": "num2"},
    "low_price": {"label": "Low", "fmt": "num2"},
    "close_price": {"label": "Close", "fmt": "num2"},
    "volume": {"label": "Volume", "fmt": "int"},
    "trading_days": {"label": "Trading Days", "fmt": "int"},
    "from_date": {"label": "From", "fmt": "date"},
    "to_date": {"label": "To", "fmt": "date"},
    "min_close": {"label": "Min Close", "fmt": "num2"},
    "max_close": {"label": "Max Close", "fmt": "num2"},
    "avg_close": {"label": "Avg Close", "fmt": "num2"},
}

# Page copy and column order for each report
REPORTS = {
    "summary": {
        "title": "Summary",
        "heading": "Dataset Summary",
        "description": "Counts and date range per ticker.",
        "columns": ["ticker", "row_count", "min_date", "max_date"],
    },
    "returns": {
        "title": "Returns",
        "heading": "Overall Returns",
        "description": "Return from first close to last close in the dataset window. "
                       "Tickers with fewer than two closes are left out.",
        "columns": ["ticker", "first_close", "last_close", "pct_return"],
    },
    "volatility": {
        "title": "Volatility",
        "heading": "Volatility",
        "description": "Standard deviation of daily returns (higher = more volatile).",
        "columns": ["ticker", "daily_volatility_pct"],
    },
    "volume": {
        "title": "Volume",
        "heading": "Trading Volume",
        "description": "Average and maximum daily volume per ticker.",
        "columns": ["ticker", "avg_volume", "max_volume"],
    },
    "average": {
        "title": "Average Close",
        "heading": "Average Closing Price",
        "description": "Compares average close price across tickers over the dataset window.",
        "columns": ["ticker", "company_name", "avg_close_price"],
    },
}

EXPLORE_COLUMNS = {
    "prices": ["ticker", "trade_date", "open_price", "high_price", "low_price",
               "close_price", "volume"],
    "stats": ["ticker", "trading_days", "from_date", "to_date", "min_close",
              "max_close", "avg_close", "avg_volume"],
}


# ── SQL ────────────────────────────────────────────────────

SUMMARY_SQL = """
    SELECT c.ticker,
           COUNT(*) AS row_count,
           MIN(d.trade_date) AS min_date,
           MAX(d.trade_date) AS max_date
    FROM DailyPrice d
    JOIN Company c ON c.company_id = d.company_id
    GROUP BY c.ticker
    ORDER BY c.ticker
"""

RETURNS_SQL = """
    WITH bounds AS (
      SELECT company_id, MIN(trade_date) AS min_date, MAX(trade_date) AS max_date
      FROM DailyPrice
      GROUP BY company_id
      HAVING COUNT(*) >= 2
    ),
    first_last AS (
      SELECT b.company_id,
             (SELECT close_price FROM DailyPrice
              WHERE company_id = b.company_id AND trade_date = b.min_date) AS first_close,
             (SELECT close_price FROM DailyPrice
              WHERE company_id = b.company_id AND trade_date = b.max_date) AS last_close
      FROM bounds b
    )
    SELECT c.ticker,
           ROUND(CAST(fl.first_close AS NUMERIC), 4) AS first_close,
           ROUND(CAST(fl.last_close AS NUMERIC), 4) AS last_close,
           ROUND(CAST((fl.last_close * 1.0 / fl.first_close - 1) * 100 AS NUMERIC), 2) AS pct_return
    FROM first_last fl
    JOIN Company c ON c.company_id = fl.company_id
    WHERE fl.first_close <> 0
    ORDER BY pct_return DESC, c.ticker
"""

# A zero previous close gives a NULL return, which the WHERE drops
VOLATILITY_SQL = """
    WITH daily AS (
      SELECT company_id,
             trade_date,
             close_price * 1.0 / NULLIF(LAG(close_price) OVER (PARTITION BY company_id ORDER BY trade_date), 0)
               - 1 AS daily_return
      FROM DailyPrice
    )
    SELECT c.ticker,
           ROUND(CAST(STDDEV_SAMP(r.daily_return) * 100 AS NUMERIC), 4) AS daily_volatility_pct
    FROM daily r
    JOIN Company c ON c.company_id = r.company_id
    WHERE r.daily_return IS NOT NULL
    GROUP BY c.ticker
    HAVING COUNT(r.daily_return) >= 2
    ORDER BY daily_volatility_pct DESC, c.ticker
"""

VOLUME_SQL = """
    SELECT c.ticker,
           ROUND(CAST(AVG(d.volume) AS NUMERIC), 0) AS avg_volume,
           MAX(d.volume) AS max_volume
    FROM DailyPrice d
    JOIN Company c ON c.company_id = d.company_id
    GROUP BY c.ticker
    ORDER BY avg_volume DESC, c.ticker
"""

AVERAGE_SQL = """
    SELECT c.ticker,
           c.company_name,
           ROUND(CAST(AVG(d.close_price) AS NUMERIC), 2) AS avg_close_price
    FROM DailyPrice d
    JOIN Company c ON c.company_id = d.company_id
    GROUP BY c.company_id, c.ticker, c.company_name
    ORDER BY avg_close_price DESC, c.ticker
"""

TICKERS_SQL = "SELECT ticker FROM Company ORDER BY ticker"


def explore_prices_sql(placeholder, days):
    """Newest ``days`` rows for one ticker. ``days`` is inlined as the LIMIT."""
    if not isinstance(days, DayCount):
        raise TypeError(f"days must be a DayCount, got {type(days).__name__}")
    return f"""
        SELECT c.ticker,
               d.trade_date,
               d.open_price,
               d.high_price,
               d.low_price,
               d.close_price,
               d.volume
        FROM DailyPrice d
        JOIN Company c ON c.company_id = d.company_id
        WHERE c.ticker = {placeholder}
        ORDER BY d.trade_date DESC
        LIMIT {int(days):d}
    """


def explore_stats_sql(placeholder, days):
    window = explore_prices_sql(placeholder, days)
    return f"""
        SELECT w.ticker,
               COUNT(*) AS trading_days,
               MIN(w.trade_date) AS from_date,
               MAX(w.trade_date) AS to_date,
               ROUND(CAST(MIN(w.close_price) AS NUMERIC), 2) AS min_close,
               ROUND(CAST(MAX(w.close_price) AS NUMERIC), 2) AS max_close,
               ROUND(CAST(AVG(w.close_price) AS NUMERIC), 2) AS avg_close,
               ROUND(CAST(AVG(w.volume) AS NUMERIC), 0) AS avg_volume
        FROM ({window}) w
        GROUP BY w.ticker
    """


# ── Query layer ────────────────────────────────────────────

class ReportQueries:
    """Runs the report catalog on an open StoreConnection."""

    def __init__(self, connection):
        self.connection = connection
        self.placeholder = connection.placeholder

    def _run(self, name, sql, params=None):
        rows = self.connection.query(sql, params)
        logging.debug(f"[report] {name}: {len(rows)} rows")
        return rows

    def summary(self):
        return self._run("summary", SUMMARY_SQL)

    def returns(self):
        return self._run("returns", RETURNS_SQL)

    def volatility(self):
        return self._run("volatility", VOLATILITY_SQL)

    def volume(self):
        return self._run("volume", VOLUME_SQL)

    def average(self):
        return self._run("average", AVERAGE_SQL)

    def tickers(self):
        return [row["ticker"] for row in self._run("tickers", TICKERS_SQL)]

    def explore(self, ticker, days, mode):
        if mode == MODE_STATS:
            sql = explore_stats_sql(self.placeholder, days)
        else:
            sql = explore_prices_sql(self.placeholder, days)
        if ticker is None:
            return []
        return self._run(f"explore/{mode}", sql, (ticker,))

    def run(self, name):
        """Run one of the parameterless reports by name."""
        if name not in REPORTS:
            raise KeyError(name)
        return getattr(self, name)()
