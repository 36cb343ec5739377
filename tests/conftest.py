"""Pytest configuration and fixtures."""

from typing import Any

import pandas as pd
import pytest

from stock_advisor.ai.manager import AIServiceManager
from stock_advisor.ai.parsing import SentimentReading
from stock_advisor.ai.providers import ProviderError, SentimentProvider
from stock_advisor.config import Settings
from stock_advisor.data.cache import SeasonalScoreCache
from stock_advisor.data.market import NewsItem
from stock_advisor.services.batching import RequestBatcher
from stock_advisor.services.recommendation import InvestmentRecommendationService

T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep that records delays and advances a FakeClock instead of waiting."""

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


class FakeNewsProvider:
    """In-memory news feed. Set fail=True to make every call raise."""

    def __init__(
        self,
        stock_news: dict[str, list[NewsItem]] | None = None,
        market_news: list[NewsItem] | None = None,
        fail: bool = False,
    ):
        self.stock_news = stock_news or {}
        self.market_news = market_news or []
        self.fail = fail
        self.calls: list[str] = []

    async def get_stock_news(self, ticker: str, limit: int = 5) -> list[NewsItem]:
        self.calls.append(ticker)
        if self.fail:
            raise ConnectionError("news feed down")
        return self.stock_news.get(ticker, [])[:limit]

    async def get_market_news(self, limit: int = 3) -> list[NewsItem]:
        if self.fail:
            raise ConnectionError("news feed down")
        return self.market_news[:limit]


class FakeProvider(SentimentProvider):
    """Configurable provider: availability, failures before success, fixed reading."""

    def __init__(
        self,
        name: str = "fake",
        available: bool = True,
        failures: int = 0,
        sentiment: str = "positive",
        confidence: float = 0.8,
        by_ticker: dict[str, tuple[str, float]] | None = None,
    ):
        super().__init__()
        self._name = name
        self.available = available
        self.failures_left = failures
        self.sentiment = sentiment
        self.confidence = confidence
        self.by_ticker = by_ticker or {}
        self.status_calls = 0
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return f"{self._name}-model"

    async def check_status(self) -> dict[str, Any]:
        self.status_calls += 1
        return {"available": self.available, "message": "ok" if self.available else "down"}

    async def _sentiment(self, ticker: str) -> SentimentReading:
        self.calls.append(ticker)
        if self.failures_left > 0:
            self.failures_left -= 1
            raise ProviderError(f"{self._name} transient failure")
        sentiment, confidence = self.by_ticker.get(ticker, (self.sentiment, self.confidence))
        return SentimentReading(sentiment, confidence)


def news(title: str, source: str = "Wire", relevance: float | None = None) -> NewsItem:
    return NewsItem(title=title, summary=title, source=source, relevance=relevance)


def make_collaborator(results: dict[str, Any], default: Any = None):
    """Async collaborator returning results[ticker]; Exception values are raised."""
    calls: list[str] = []

    async def collaborator(ticker: str) -> dict[str, Any]:
        calls.append(ticker)
        value = results.get(ticker, default)
        if isinstance(value, Exception):
            raise value
        return value

    collaborator.calls = calls
    return collaborator


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(fake_clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(fake_clock)


@pytest.fixture
def seasonal_cache(fake_clock: FakeClock) -> SeasonalScoreCache:
    return SeasonalScoreCache(ttl=300, clock=fake_clock)


@pytest.fixture
def provider_factory():
    return FakeProvider


@pytest.fixture
def news_factory():
    return news


@pytest.fixture
def news_provider_factory():
    return FakeNewsProvider


@pytest.fixture
def collaborator_factory():
    return make_collaborator


@pytest.fixture
def strong_technical() -> dict[str, Any]:
    return {
        "ticker": "NVDA",
        "signal": "Buy",
        "confidence": "High",
        "trend_strength": "Strong",
        "rsi": 25.0,
    }


@pytest.fixture
def value_quote() -> dict[str, Any]:
    return {
        "ticker": "NVDA",
        "current_price": 150.0,
        "pe_ratio": 12.0,
        "dividend_yield": 3.0,
        "fifty_two_week_high": 200.0,
        "fifty_two_week_low": 100.0,
    }


@pytest.fixture
def build_service(fake_clock: FakeClock, recording_sleep: RecordingSleep):
    """Factory for a fully faked InvestmentRecommendationService."""

    def _build(
        technical=None,
        quote=None,
        news_provider=None,
        providers: list[SentimentProvider] | None = None,
        settings: Settings | None = None,
        ai_manager: AIServiceManager | None = None,
    ) -> InvestmentRecommendationService:
        manager = ai_manager or AIServiceManager(sleep=recording_sleep)
        if ai_manager is None:
            for provider in providers if providers is not None else [FakeProvider()]:
                manager.register(provider)
        return InvestmentRecommendationService(
            settings or Settings(),
            technical=technical or make_collaborator({}, default={"signal": "Hold"}),
            quote=quote or make_collaborator({}, default={}),
            news_provider=news_provider or FakeNewsProvider(),
            ai_manager=manager,
            batcher=RequestBatcher(sleep=recording_sleep, clock=fake_clock),
            clock=fake_clock,
        )

    return _build


@pytest.fixture
def sample_price_series() -> pd.Series:
    """Sample price series for indicator testing."""
    return pd.Series(
        [100.0, 101.0, 102.0, 101.5, 103.0, 104.0, 103.5, 105.0, 106.0, 105.5,
         107.0, 108.0, 107.5, 109.0, 110.0, 109.5, 111.0, 112.0, 111.5, 113.0,
         114.0, 113.5, 115.0, 116.0, 115.5, 117.0, 118.0, 117.5, 119.0, 120.0]
    )
