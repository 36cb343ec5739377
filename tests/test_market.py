"""Tests for market-data collaborators."""

import asyncio

import pandas as pd
import pytest

from stock_advisor.data import market
from stock_advisor.data.market import (
    YFinanceNewsProvider,
    parse_news_item,
    quote_summary,
    summarize_technicals,
    technical_analysis,
)


def _history(closes: list[float]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "date": pd.date_range("2023-01-02", periods=len(closes), freq="B"),
            "open": closes,
            "high": closes,
            "low": closes,
            "close": closes,
            "volume": [1_000_000] * len(closes),
        }
    )


def _async_return(value):
    async def fake(*args, **kwargs):
        return value

    return fake


def _async_raise(error: Exception):
    async def fake(*args, **kwargs):
        raise error

    return fake


class TestSummarizeTechnicals:
    """Tests for the signal vote over indicators."""

    def test_uptrend_is_buy(self) -> None:
        close = pd.Series([100.0 + i for i in range(250)])
        result = summarize_technicals("NVDA", close)

        assert result["signal"] == "Buy"
        assert result["confidence"] == "Moderate"
        assert "Golden cross: SMA50 above SMA200" in result["signals"]
        assert "RSI overbought" in result["signals"]
        assert result["current_price"] == 349.0
        assert result["sma200"] < result["sma50"] < result["current_price"]

    def test_downtrend_is_sell(self) -> None:
        close = pd.Series([300.0 - i for i in range(250)])
        result = summarize_technicals("INTC", close)

        assert result["signal"] == "Sell"
        assert "Death cross: SMA50 below SMA200" in result["signals"]
        assert "MACD negative" in result["signals"]

    def test_short_series_skips_moving_averages(self) -> None:
        result = summarize_technicals("KO", pd.Series([50.0] * 30))

        assert result["signal"] == "Hold"
        assert result["sma200"] is None
        assert result["trend_strength"] == "Unknown"
        assert not any("cross" in s for s in result["signals"])


class TestTechnicalAnalysis:
    """Tests for technical_analysis with a patched history fetch."""

    def test_insufficient_history(self, monkeypatch) -> None:
        monkeypatch.setattr(market, "fetch_history", _async_return(_history([10.0] * 50)))

        result = asyncio.run(technical_analysis("NEWCO"))

        assert result["error"] is True
        assert result["error_type"] == "insufficient_data"
        assert result["signal"] == "Data Insufficient"

    def test_fetch_failure(self, monkeypatch) -> None:
        monkeypatch.setattr(market, "fetch_history", _async_raise(ValueError("No data returned")))

        result = asyncio.run(technical_analysis("NVDA"))

        assert result["error_type"] == "data_unavailable"
        assert result["symbol"] == "NVDA"

    def test_full_history(self, monkeypatch) -> None:
        closes = [100.0 + i for i in range(250)]
        monkeypatch.setattr(market, "fetch_history", _async_return(_history(closes)))

        result = asyncio.run(technical_analysis("NVDA"))

        assert result["signal"] == "Buy"
        assert result["ticker"] == "NVDA"


class TestQuoteSummary:
    """Tests for quote_summary field mapping."""

    def test_trailing_fraction_converted_to_percent(self, monkeypatch) -> None:
        info = {
            "regularMarketPrice": 150.0,
            "trailingPE": 12.5,
            "trailingAnnualDividendYield": 0.025,
            "fiftyTwoWeekHigh": 200.0,
            "fiftyTwoWeekLow": 100.0,
        }
        monkeypatch.setattr(market, "fetch_info", _async_return(info))

        result = asyncio.run(quote_summary("KO"))

        assert result["dividend_yield"] == 2.5
        assert result["pe_ratio"] == 12.5
        assert result["current_price"] == 150.0

    def test_sub_one_percent_yield_not_inflated(self, monkeypatch) -> None:
        """A 0.44% payer reports dividendYield=0.44 in percent; it must stay 0.44."""
        info = {
            "regularMarketPrice": 227.0,
            "dividendYield": 0.44,
            "trailingAnnualDividendYield": 0.0044,
            "dividendRate": 1.0,
        }
        monkeypatch.setattr(market, "fetch_info", _async_return(info))

        assert asyncio.run(quote_summary("AAPL"))["dividend_yield"] == 0.44

    def test_rate_over_price_fallback(self, monkeypatch) -> None:
        info = {"currentPrice": 200.0, "dividendRate": 0.88, "dividendYield": 0.44}
        monkeypatch.setattr(market, "fetch_info", _async_return(info))

        assert asyncio.run(quote_summary("AAPL"))["dividend_yield"] == 0.44

    def test_ambiguous_dividend_yield_ignored(self, monkeypatch) -> None:
        monkeypatch.setattr(market, "fetch_info", _async_return({"dividendYield": 3.1}))
        assert asyncio.run(quote_summary("T"))["dividend_yield"] is None

    def test_missing_fields_are_none(self, monkeypatch) -> None:
        monkeypatch.setattr(market, "fetch_info", _async_return({"trailingPE": float("nan")}))

        result = asyncio.run(quote_summary("X"))

        assert result["pe_ratio"] is None
        assert result["dividend_yield"] is None

    @pytest.mark.parametrize(
        "error,error_type",
        [(ValueError("Invalid symbol: ZZZZ"), "invalid_input"), (RuntimeError("503"), "data_unavailable")],
    )
    def test_fetch_errors(self, monkeypatch, error, error_type) -> None:
        monkeypatch.setattr(market, "fetch_info", _async_raise(error))
        assert asyncio.run(quote_summary("ZZZZ"))["error_type"] == error_type


class TestParseNewsItem:
    """Tests for yfinance news normalization."""

    def test_nested_content_payload(self) -> None:
        raw = {
            "id": "abc",
            "content": {
                "title": "Nvidia beats estimates",
                "summary": "Revenue rose.",
                "pubDate": "2025-01-15T14:30:00Z",
                "provider": {"displayName": "Reuters"},
                "canonicalUrl": {"url": "https://example.com/a"},
            },
        }

        item = parse_news_item(raw)

        assert item.title == "Nvidia beats estimates"
        assert item.source == "Reuters"
        assert item.published_at == "2025-01-15T14:30:00Z"
        assert item.url == "https://example.com/a"

    def test_flat_payload(self) -> None:
        raw = {
            "title": "Chip demand climbs",
            "publisher": "Bloomberg",
            "link": "https://example.com/b",
            "providerPublishTime": 1_700_000_000,
        }

        item = parse_news_item(raw)

        assert item.source == "Bloomberg"
        assert item.summary == "Chip demand climbs"
        assert item.published_at.startswith("2023-11-14")

    def test_missing_title_dropped(self) -> None:
        assert parse_news_item({"content": {"summary": "no title"}}) is None
        assert parse_news_item("not a dict") is None

    def test_control_characters_stripped(self) -> None:
        item = parse_news_item({"title": "Line\x00one\x1b"})
        assert "\x00" not in item.title
        assert item.source == "Unknown"


class TestYFinanceNewsProvider:
    """Tests for the yfinance-backed news provider."""

    def test_stock_and_market_news(self, monkeypatch) -> None:
        requested: list[str] = []

        async def fake_fetch_news(symbol: str, limit: int = 5):
            requested.append(symbol)
            return [{"title": f"{symbol} headline"}, {"content": {}}]

        monkeypatch.setattr(market, "fetch_news", fake_fetch_news)
        provider = YFinanceNewsProvider()

        stock = asyncio.run(provider.get_stock_news("AMD"))
        overall = asyncio.run(provider.get_market_news())

        assert [n.title for n in stock] == ["AMD headline"]
        assert [n.title for n in overall] == ["SPY headline"]
        assert requested == ["AMD", "SPY"]
