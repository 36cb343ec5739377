"""Input normalization for tickers and calendar months."""

import re
from datetime import datetime

import pytz

_TICKER_RE = re.compile(r"^[A-Z0-9][A-Z0-9.\-^=]{0,14}$")


def normalize_ticker(symbol: str) -> str:
    """
    Uppercase and strip a ticker symbol.

    Raises:
        ValueError: If the symbol is empty or contains unexpected characters
    """
    if not isinstance(symbol, str):
        raise ValueError(f"Invalid symbol: {symbol!r}")
    normalized = symbol.upper().strip()
    if not _TICKER_RE.match(normalized):
        raise ValueError(f"Invalid symbol: {symbol!r}")
    return normalized


def normalize_tickers(symbols: list[str] | tuple[str, ...]) -> list[str]:
    """Normalize a ticker list, dropping invalid and duplicate symbols (order kept)."""
    seen: set[str] = set()
    result: list[str] = []
    for symbol in symbols:
        try:
            normalized = normalize_ticker(symbol)
        except ValueError:
            continue
        if normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


def validate_month(month: int) -> int:
    """
    Validate a zero-based calendar month index.

    Raises:
        ValueError: If month is not an int in 0..11
    """
    if isinstance(month, bool) or not isinstance(month, int) or not 0 <= month <= 11:
        raise ValueError(f"Invalid month index {month!r}. Must be 0-11")
    return month


def current_month(tz: str = "America/New_York") -> int:
    """Zero-based calendar month in the exchange timezone."""
    return datetime.now(pytz.timezone(tz)).month - 1
