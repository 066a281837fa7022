"""
Stock Report Dashboard -- Flask Backend
Supports Postgres and SQLite (local dev).
"""
import logging
from datetime import date, datetime

from flask import Blueprint, Flask, current_app, g, jsonify, render_template, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from reports import COLUMN_META, EXPLORE_COLUMNS, REPORTS, ReportQueries
from settings import load_settings
from store import Store
from validators import MAX_DAYS, MIN_DAYS, MODES, ExploreQuery

bp = Blueprint("dashboard", __name__)

NAV_LINKS = [
    ("/", "Home"),
    ("/summary", "Summary"),
    ("/returns", "Returns"),
    ("/volatility", "Volatility"),
    ("/volume", "Volume"),
    ("/average", "Average"),
    ("/explore", "Explore"),
]

NUMERIC_FORMATS = {"int", "num2", "num4"}


# ── Database helpers ───────────────────────────────────────

def get_db():
    if 'db' not in g:
        g.db = current_app.extensions["store"].connect()
    return g.db


def close_db(exc):
    db = g.pop('db', None)
    if db:
        db.close()


def get_queries():
    return ReportQueries(get_db())


# ── Formatting ─────────────────────────────────────────────

def format_value(value, column=None):
    """Render one table cell according to the column's display format."""
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    fmt = COLUMN_META.get(column, {}).get("fmt")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    if fmt == "int":
        return f"{int(round(value)):,}"
    if fmt == "num2":
        return f"{value:,.2f}"
    if fmt == "num4":
        return f"{value:,.4f}"
    if isinstance(value, int):
        return f"{value:,}"
    return f"{value:,.6f}".rstrip("0").rstrip(".")


def is_numeric_column(column):
    return COLUMN_META.get(column, {}).get("fmt") in NUMERIC_FORMATS


def column_label(column):
    return COLUMN_META.get(column, {}).get("label", column)


def _jsonable(row):
    return {k: v.isoformat() if isinstance(v, (date, datetime)) else v for k, v in row.items()}


# ── Routes ─────────────────────────────────────────────────

@bp.route("/")
def index():
    return render_template("index.html", reports=REPORTS)


def _render_report(name):
    report = REPORTS[name]
    rows = get_queries().run(name)
    return render_template("report.html", report=report, columns=report["columns"], rows=rows)


@bp.route("/summary")
def summary():
    return _render_report("summary")


@bp.route("/returns")
def returns():
    return _render_report("returns")


@bp.route("/volatility")
def volatility():
    return _render_report("volatility")


@bp.route("/volume")
def volume():
    return _render_report("volume")


@bp.route("/average")
def average():
    return _render_report("average")


def _explore(args):
    queries = get_queries()
    tickers = queries.tickers()
    params = ExploreQuery.from_args(args, tickers)
    rows = queries.explore(params.ticker, params.days, params.mode)
    return tickers, params, rows


@bp.route("/explore")
def explore():
    tickers, params, rows = _explore(request.args)
    return render_template(
        "explore.html",
        params=params,
        tickers=tickers,
        rows=rows,
        columns=EXPLORE_COLUMNS[params.mode],
        modes=MODES,
        min_days=MIN_DAYS,
        max_days=MAX_DAYS,
    )


@bp.route("/api/reports/<name>")
def api_report(name):
    if name not in REPORTS:
        return jsonify({"error": "Not found"}), 404
    rows = get_queries().run(name)
    return jsonify([_jsonable(r) for r in rows])


@bp.route("/api/explore")
def api_explore():
    tickers, params, rows = _explore(request.args)
    return jsonify({
        "ticker": params.ticker,
        "days": int(params.days),
        "mode": params.mode,
        "rows": [_jsonable(r) for r in rows],
    })


# ── Error handler ──────────────────────────────────────────

def handle_error(err):
    if isinstance(err, HTTPException):
        return err
    logging.error(f"{request.method} {request.path} failed: {err}", exc_info=err)
    if request.path.startswith("/api/"):
        return jsonify({"error": str(err)}), 500
    return render_template("error.html", error=str(err)), 500


# ── App factory ────────────────────────────────────────────

def create_app(settings=None):
    settings = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    CORS(app, resources={r"/api/*": {"origins": settings.cors_origins}})

    store = Store.from_settings(settings)
    app.extensions["store"] = store
    logging.info(f"[DB] Using {store.describe()}")

    app.teardown_appcontext(close_db)
    app.register_error_handler(Exception, handle_error)
    app.add_template_filter(format_value, "fmt_cell")
    app.jinja_env.globals.update(
        nav_links=NAV_LINKS,
        is_numeric_column=is_numeric_column,
        column_label=column_label,
        database_label="Postgres" if store.backend == "postgres" else "SQLite",
    )
    app.register_blueprint(bp)
    return app


app = create_app()


# ── Entry point ────────────────────────────────────────────

if __name__ == "__main__":
    settings = app.config["SETTINGS"]
    logging.info(f"Running at http://localhost:{settings.port}")
    app.run(host="0.0.0.0", port=settings.port, debug=settings.debug)
