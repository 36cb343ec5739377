"""Market-data collaborators: technical signal, quote summary, news feed.

Every coroutine here returns data or an error envelope; none of them raise
for upstream failures.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import pandas as pd

from stock_advisor.data.yfinance_client import fetch_history, fetch_info, fetch_news
from stock_advisor.utils.indicators import (
    calculate_bollinger_bands,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    last_value,
    trend_strength,
)
from stock_advisor.utils.provenance import build_error_response

logger = logging.getLogger(__name__)

MIN_HISTORY_BARS = 200
MARKET_NEWS_SYMBOL = "SPY"


async def technical_analysis(ticker: str) -> dict[str, Any]:
    """
    Derive a trade signal from two years of daily bars.

    Returns:
        Dict with signal (Buy/Sell/Hold), confidence (High/Moderate/Low),
        trend_strength, rsi and indicator detail; an error envelope tagged
        insufficient_data when fewer than 200 bars exist.
    """
    try:
        df = await fetch_history(ticker, period="2y")
    except Exception as e:
        logger.warning(f"technical_analysis({ticker}): {e}")
        return build_error_response("data_unavailable", f"Failed to fetch history: {e}", ticker)

    if len(df) < MIN_HISTORY_BARS:
        envelope = build_error_response(
            "insufficient_data",
            f"Need at least {MIN_HISTORY_BARS} data points, got {len(df)}",
            ticker,
        )
        envelope["signal"] = "Data Insufficient"
        return envelope

    close = pd.to_numeric(df["close"], errors="coerce").dropna()
    return summarize_technicals(ticker, close)


def summarize_technicals(ticker: str, close: pd.Series) -> dict[str, Any]:
    """Turn a close-price series into the signal bundle used for scoring."""
    current_price = last_value(close)
    sma50 = last_value(calculate_sma(close, 50))
    sma200 = last_value(calculate_sma(close, 200))
    rsi = last_value(calculate_rsi(close, 14))
    macd = last_value(calculate_macd(close)["macd_line"])
    bands = calculate_bollinger_bands(close, 20)

    signals: list[str] = []
    bullish = 0
    bearish = 0

    if sma50 is not None and sma200 is not None:
        if sma50 > sma200:
            signals.append("Golden cross: SMA50 above SMA200")
            bullish += 1
        else:
            signals.append("Death cross: SMA50 below SMA200")
            bearish += 1
        if current_price is not None and current_price > sma50:
            signals.append("Price above SMA50")
            bullish += 1
        else:
            signals.append("Price below SMA50")
            bearish += 1

    if rsi is not None:
        if rsi > 70:
            signals.append("RSI overbought")
            bearish += 1
        elif rsi < 30:
            signals.append("RSI oversold")
            bullish += 1
        else:
            signals.append("RSI neutral")

    if current_price is not None and bands["upper"] is not None:
        if current_price > bands["upper"]:
            signals.append("Above upper Bollinger band")
            bearish += 1
        elif current_price < bands["lower"]:
            signals.append("Below lower Bollinger band")
            bullish += 1
        else:
            signals.append("Inside Bollinger bands")

    if macd is not None:
        if macd > 0:
            signals.append("MACD positive")
            bullish += 1
        else:
            signals.append("MACD negative")
            bearish += 1

    if bullish > bearish + 1:
        signal = "Buy"
        confidence = "High" if bullish - bearish > 2 else "Moderate"
    elif bearish > bullish + 1:
        signal = "Sell"
        confidence = "High" if bearish - bullish > 2 else "Moderate"
    else:
        signal = "Hold"
        confidence = "Moderate"

    strength = trend_strength(sma50, sma200, current_price)

    return {
        "ticker": ticker,
        "signal": signal,
        "confidence": confidence,
        "trend_strength": strength,
        "current_price": _round(current_price, 2),
        "sma50": _round(sma50, 2),
        "sma200": _round(sma200, 2),
        "rsi": _round(rsi, 1),
        "macd": _round(macd, 3),
        "bollinger_bands": {k: _round(v, 2) for k, v in bands.items()},
        "signals": signals,
        "analysis": (
            f"{len(signals)} indicators: {bullish} bullish, {bearish} bearish. "
            f"Trend strength: {strength}"
        ),
    }


async def quote_summary(ticker: str) -> dict[str, Any]:
    """
    Quote and valuation fields used by the fundamental score.

    dividend_yield is expressed in percent (2.5 == 2.5%).
    """
    try:
        info = await fetch_info(ticker)
    except ValueError as e:
        return build_error_response("invalid_input", str(e), ticker)
    except Exception as e:
        logger.warning(f"quote_summary({ticker}): {e}")
        return build_error_response("data_unavailable", f"Failed to fetch data: {e}", ticker)

    div_yield = dividend_yield_percent(info)

    change_pct = _safe_float(info.get("regularMarketChangePercent"))

    return {
        "ticker": ticker,
        "current_price": _safe_float(info.get("regularMarketPrice") or info.get("currentPrice")),
        "previous_close": _safe_float(
            info.get("regularMarketPreviousClose") or info.get("previousClose")
        ),
        "change_percent": _round(change_pct, 2),
        "market_cap": _safe_float(info.get("marketCap")),
        "pe_ratio": _safe_float(info.get("trailingPE")),
        "dividend_yield": _round(div_yield, 2),
        "fifty_two_week_high": _safe_float(info.get("fiftyTwoWeekHigh")),
        "fifty_two_week_low": _safe_float(info.get("fiftyTwoWeekLow")),
        "volume": _safe_float(info.get("regularMarketVolume")),
        "avg_volume": _safe_float(info.get("averageVolume")),
        "beta": _safe_float(info.get("beta")),
    }


def dividend_yield_percent(info: dict[str, Any]) -> float | None:
    """
    Trailing dividend yield in percent.

    dividendYield changed units across yfinance releases, so only fields with
    a fixed unit are read: trailingAnnualDividendYield (a fraction), then
    dividendRate over price.
    """
    trailing = _safe_float(info.get("trailingAnnualDividendYield"))
    if trailing is not None:
        return trailing * 100
    rate = _safe_float(info.get("dividendRate"))
    price = _safe_float(info.get("regularMarketPrice") or info.get("currentPrice"))
    if rate is not None and price:
        return rate / price * 100
    return None


@dataclass(frozen=True)
class NewsItem:
    """One headline. sentiment/relevance are optional precomputed values."""

    title: str
    summary: str = ""
    published_at: str | None = None
    source: str = "Unknown"
    url: str | None = None
    sentiment: str | None = None
    relevance: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "published_at": self.published_at,
            "source": self.source,
            "url": self.url,
            "sentiment": self.sentiment,
            "relevance": self.relevance,
        }


class NewsProvider(Protocol):
    """News collaborator consumed by the seasonal analyzer."""

    async def get_stock_news(self, ticker: str, limit: int = 5) -> list[NewsItem]: ...

    async def get_market_news(self, limit: int = 3) -> list[NewsItem]: ...


class YFinanceNewsProvider:
    """News from yfinance; market-wide headlines come from the SPY feed."""

    def __init__(self, market_symbol: str = MARKET_NEWS_SYMBOL):
        self.market_symbol = market_symbol

    async def get_stock_news(self, ticker: str, limit: int = 5) -> list[NewsItem]:
        raw = await fetch_news(ticker, limit=limit)
        return [item for item in (parse_news_item(r) for r in raw) if item is not None][:limit]

    async def get_market_news(self, limit: int = 3) -> list[NewsItem]:
        return await self.get_stock_news(self.market_symbol, limit=limit)


def parse_news_item(raw: dict[str, Any]) -> NewsItem | None:
    """
    Normalize a yfinance news entry.

    Handles both the nested {"content": {...}} payload and the older flat
    payload (title/publisher/link/providerPublishTime).
    """
    if not isinstance(raw, dict):
        return None

    content = raw.get("content")
    if isinstance(content, dict):
        title = _clean_text(content.get("title"), 200)
        summary = _clean_text(content.get("summary"), 500)
        published = content.get("pubDate")
        provider = content.get("provider") or {}
        source = _clean_text(provider.get("displayName"), 50) or "Unknown"
        canonical = content.get("canonicalUrl") or {}
        url = canonical.get("url")
    else:
        title = _clean_text(raw.get("title"), 200)
        summary = _clean_text(raw.get("summary"), 500)
        ts = raw.get("providerPublishTime")
        published = (
            datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
            if isinstance(ts, (int, float))
            else None
        )
        source = _clean_text(raw.get("publisher"), 50) or "Unknown"
        url = raw.get("link")

    if not title:
        return None

    return NewsItem(
        title=title,
        summary=summary or title,
        published_at=published,
        source=source,
        url=url,
    )


_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def _clean_text(text: Any, max_length: int) -> str:
    """Strip control characters and cap length of untrusted provider text."""
    if not isinstance(text, str):
        return ""
    text = _CONTROL_CHARS.sub(" ", text).strip()
    if len(text) > max_length:
        text = text[:max_length].rstrip() + "..."
    return text


def _safe_float(value: Any) -> float | None:
    """Convert to float or return None (NaN counts as missing)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (ValueError, TypeError):
        return None
    if pd.isna(result):
        return None
    return result


def _round(value: float | None, decimals: int) -> float | None:
    if value is None:
        return None
    return round(value, decimals)
