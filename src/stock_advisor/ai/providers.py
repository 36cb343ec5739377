"""Sentiment provider capability and its implementations."""

import asyncio
import functools
import hashlib
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import requests

from stock_advisor.ai.parsing import ResponseParseError, SentimentReading, parse_sentiment_response
from stock_advisor.config import MAX_PROVIDER_TIMEOUT

logger = logging.getLogger(__name__)

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models"

RECOMMENDATION_TEXT = {
    "positive": "Positive signal - consider buying",
    "neutral": "Neutral signal - wait and see",
    "negative": "Negative signal - be cautious",
}


class ProviderError(Exception):
    """A provider call failed."""


class ProviderUnavailableError(ProviderError):
    """The provider cannot serve requests right now (unconfigured, loading, auth)."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SentimentProvider(ABC):
    """
    Interchangeable sentiment backend.

    Implementations answer check_status(), analyze_sentiment(ticker) and
    recommend(tickers); failures raise ProviderError.
    """

    def __init__(self) -> None:
        self.request_count = 0
        self.success_count = 0
        self.last_error: str | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in results and status."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier reported with each result."""

    @property
    def is_mock(self) -> bool:
        return False

    @abstractmethod
    async def check_status(self) -> dict[str, Any]:
        """Return {"available": bool, "message": str}."""

    @abstractmethod
    async def _sentiment(self, ticker: str) -> SentimentReading:
        """Produce a SentimentReading for one ticker."""

    async def analyze_sentiment(self, ticker: str) -> dict[str, Any]:
        """Sentiment envelope for one ticker (or "MARKET" for the overall mood)."""
        self.request_count += 1
        try:
            reading = await self._sentiment(ticker)
        except ProviderError as e:
            self.last_error = str(e)
            raise
        self.success_count += 1
        result: dict[str, Any] = {
            "success": True,
            "sentiment": reading.sentiment,
            "confidence": round(reading.confidence, 3),
            "recommendation": RECOMMENDATION_TEXT[reading.sentiment],
            "reasoning": f"{self.model} sentiment analysis for {ticker}",
            "model": self.model,
            "timestamp": _now_iso(),
        }
        if self.is_mock:
            result["mock"] = True
        return result

    async def recommend(self, tickers: list[str]) -> dict[str, Any]:
        """Rank tickers by per-ticker sentiment."""
        picks = []
        for ticker in tickers[:10]:
            reading = await self.analyze_sentiment(ticker)
            picks.append(
                {
                    "ticker": ticker,
                    "sentiment": reading["sentiment"],
                    "confidence": reading["confidence"],
                    "signal": _signal_for(reading["sentiment"], reading["confidence"]),
                }
            )
        picks.sort(key=_pick_rank, reverse=True)
        result: dict[str, Any] = {
            "success": True,
            "recommendations": picks[:5],
            "model": self.model,
            "timestamp": _now_iso(),
        }
        if self.is_mock:
            result["mock"] = True
        return result

    def stats(self) -> dict[str, Any]:
        rate = self.success_count / self.request_count * 100 if self.request_count else 0.0
        return {
            "requests": self.request_count,
            "successes": self.success_count,
            "success_rate": f"{rate:.1f}%",
            "last_error": self.last_error,
        }


def _signal_for(sentiment: str, confidence: float) -> str:
    if sentiment == "positive":
        return "BUY" if confidence >= 0.7 else "HOLD"
    if sentiment == "negative":
        return "SELL" if confidence >= 0.7 else "HOLD"
    return "HOLD"


def _pick_rank(pick: dict[str, Any]) -> float:
    direction = {"positive": 1.0, "neutral": 0.0, "negative": -1.0}[pick["sentiment"]]
    return direction * pick["confidence"]


class HuggingFaceSentimentProvider(SentimentProvider):
    """FinBERT (or compatible) classifier via the Hugging Face Inference API."""

    def __init__(
        self,
        api_key: str,
        model: str = "ProsusAI/finbert",
        timeout: float = 10.0,
        base_url: str = HF_INFERENCE_URL,
    ):
        super().__init__()
        self._api_key = api_key.strip()
        self._model = model
        self.timeout = min(timeout, MAX_PROVIDER_TIMEOUT)
        self.base_url = base_url.rstrip("/")
        self._disabled_reason: str | None = None

    @property
    def name(self) -> str:
        return "huggingface"

    @property
    def model(self) -> str:
        return self._model

    async def check_status(self) -> dict[str, Any]:
        if not self._api_key:
            return {"available": False, "message": "Hugging Face API key not configured"}
        if self._disabled_reason:
            return {"available": False, "message": self._disabled_reason}
        return {"available": True, "message": f"Configured for {self._model}"}

    def _post(self, text: str) -> Any:
        """Blocking inference call; runs in a worker thread."""
        response = requests.post(
            f"{self.base_url}/{self._model}",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"inputs": text},
            timeout=self.timeout,
        )
        if response.status_code in (401, 403):
            self._disabled_reason = f"Authentication rejected ({response.status_code})"
            raise ProviderUnavailableError(self._disabled_reason)
        if response.status_code == 503:
            raise ProviderUnavailableError(f"Model {self._model} is loading")
        if response.status_code == 429:
            raise ProviderError("Rate limited by inference API")
        if not response.ok:
            raise ProviderError(f"Inference API error: {response.status_code}")
        return response.json()

    async def _sentiment(self, ticker: str) -> SentimentReading:
        loop = asyncio.get_running_loop()
        text = f"Stock analysis for {ticker}."
        try:
            payload = await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(self._post, text)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Inference call timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise ProviderError(f"Inference request failed: {e}") from e

        try:
            return parse_sentiment_response(payload)
        except ResponseParseError as e:
            raise ProviderError(str(e)) from e


# Confidence templates per sentiment; mock output is a pure function of the ticker
_MOCK_CONFIDENCES = {
    "positive": (0.75, 0.8, 0.85),
    "neutral": (0.6, 0.65, 0.7),
    "negative": (0.7, 0.75, 0.8),
}
_MOCK_SENTIMENTS = ("positive", "neutral", "negative")


class MockSentimentProvider(SentimentProvider):
    """Deterministic last-resort provider. Always available, flagged mock."""

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return "mock-sentiment-v1"

    @property
    def is_mock(self) -> bool:
        return True

    async def check_status(self) -> dict[str, Any]:
        return {"available": True, "message": "Mock provider is always available"}

    async def _sentiment(self, ticker: str) -> SentimentReading:
        digest = hashlib.sha256(ticker.upper().encode("utf-8")).digest()
        sentiment = _MOCK_SENTIMENTS[digest[0] % len(_MOCK_SENTIMENTS)]
        options = _MOCK_CONFIDENCES[sentiment]
        confidence = options[digest[1] % len(options)]
        return SentimentReading(sentiment, confidence, {sentiment: confidence})
