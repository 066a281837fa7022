"""
Normalises untrusted explore-page parameters into values safe to query with.

Nothing here rejects input: malformed or out-of-range values fall back to
defaults so the page always renders.
"""
from dataclasses import dataclass

MIN_DAYS = 5
MAX_DAYS = 365
DEFAULT_DAYS = 30

MODE_PRICES = "prices"
MODE_STATS = "stats"
MODES = (MODE_PRICES, MODE_STATS)


class DayCount(int):
    """A row-window size already bounded to [MIN_DAYS, MAX_DAYS].

    The query layer embeds this as a literal LIMIT, so it only accepts this
    type; build one with clamp_days().
    """

    def __new__(cls, value):
        value = int(value)
        if not MIN_DAYS <= value <= MAX_DAYS:
            raise ValueError(f"day count {value} outside [{MIN_DAYS}, {MAX_DAYS}]")
        return super().__new__(cls, value)


def clamp_days(raw) -> DayCount:
    if isinstance(raw, bool):
        raw = None
    try:
        parsed = int(raw.strip()) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError, OverflowError):
        parsed = DEFAULT_DAYS
    return DayCount(max(MIN_DAYS, min(MAX_DAYS, parsed)))


def resolve_ticker(raw, known_tickers):
    """Pass ``raw`` through untouched, or default to the first known ticker.

    Membership in ``known_tickers`` is not checked. The value is only ever a
    bound parameter, and an unknown ticker gives an empty result.
    """
    if raw:
        return raw
    for ticker in known_tickers:
        return ticker
    return None


def resolve_mode(raw) -> str:
    return raw if raw in MODES else MODE_PRICES


@dataclass(frozen=True)
class ExploreQuery:
    ticker: str
    days: DayCount
    mode: str

    @classmethod
    def from_args(cls, args, known_tickers):
        return cls(
            ticker=resolve_ticker(args.get("ticker"), known_tickers),
            days=clamp_days(args.get("days")),
            mode=resolve_mode(args.get("mode")),
        )
