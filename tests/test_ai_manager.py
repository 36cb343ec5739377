"""Tests for AI sentiment providers and the fallback manager."""

import asyncio

import pytest

from stock_advisor.ai.manager import AIServiceManager, build_default_manager
from stock_advisor.ai.providers import (
    HuggingFaceSentimentProvider,
    MockSentimentProvider,
)
from stock_advisor.config import Settings


class TestFallbackOrder:
    """Tests for primary/fallback traversal."""

    def test_third_provider_serves_when_first_two_unavailable(
        self, provider_factory, recording_sleep
    ) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        first = provider_factory("first", available=False)
        second = provider_factory("second", available=False)
        third = provider_factory("third", sentiment="negative", confidence=0.6)
        for provider in (first, second, third):
            manager.register(provider)

        result = asyncio.run(manager.analyze_sentiment("NVDA"))

        assert result["success"] is True
        assert result["provider"] == "third"
        assert result["sentiment"] == "negative"
        assert result["confidence"] == pytest.approx(0.6)
        assert first.calls == [] and second.calls == []
        assert first.status_calls == 1 and second.status_calls == 1

    def test_flagged_primary_runs_first(self, provider_factory, recording_sleep) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        fallback = provider_factory("fallback")
        primary = provider_factory("primary")
        manager.register(fallback)
        manager.register(primary, primary=True)

        assert [r.name for r in manager.providers] == ["primary", "fallback"]
        result = asyncio.run(manager.analyze_sentiment("AAPL"))
        assert result["provider"] == "primary"
        assert fallback.calls == []

    def test_first_registered_is_primary_by_default(self, provider_factory) -> None:
        manager = AIServiceManager()
        manager.register(provider_factory("a"))
        manager.register(provider_factory("b"))
        assert manager.primary.name == "a"

    def test_second_primary_rejected(self, provider_factory) -> None:
        manager = AIServiceManager()
        manager.register(provider_factory("a"), primary=True)
        with pytest.raises(ValueError):
            manager.register(provider_factory("b"), primary=True)

    def test_duplicate_name_rejected(self, provider_factory) -> None:
        manager = AIServiceManager()
        manager.register(provider_factory("a"))
        with pytest.raises(ValueError):
            manager.register(provider_factory("a"))


class TestRetries:
    """Tests for per-provider retry with backoff."""

    def test_recovers_within_retries(self, provider_factory, recording_sleep) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        flaky = provider_factory("flaky", failures=2)
        backup = provider_factory("backup")
        manager.register(flaky)
        manager.register(backup)

        result = asyncio.run(manager.analyze_sentiment("NVDA"))

        assert result["provider"] == "flaky"
        assert recording_sleep.delays == [1.0, 2.0]
        assert backup.calls == []

    def test_falls_back_after_retries_exhausted(self, provider_factory, recording_sleep) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        broken = provider_factory("broken", failures=99)
        backup = provider_factory("backup")
        manager.register(broken)
        manager.register(backup)

        result = asyncio.run(manager.analyze_sentiment("NVDA"))

        assert result["provider"] == "backup"
        assert len(broken.calls) == 3
        assert recording_sleep.delays == [1.0, 2.0]

    def test_error_envelope_counts_as_failure(self, provider_factory, recording_sleep) -> None:
        class EnvelopeProvider(provider_factory):
            async def analyze_sentiment(self, ticker: str) -> dict:
                return {"success": False, "error": True, "message": "quota"}

        manager = AIServiceManager(max_retries=0, sleep=recording_sleep)
        manager.register(EnvelopeProvider("envelope"))
        manager.register(provider_factory("backup"))

        result = asyncio.run(manager.analyze_sentiment("NVDA"))
        assert result["provider"] == "backup"


class TestExhaustion:
    """Tests for the all-providers-failed envelope."""

    def test_structured_error(self, provider_factory, recording_sleep) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        manager.register(provider_factory("a", available=False))
        manager.register(provider_factory("b", failures=99))

        result = asyncio.run(manager.analyze_sentiment("NVDA"))

        assert result["success"] is False
        assert result["error"] is True
        assert result["service"] == "manager"
        assert result["operation"] == "analyze_sentiment"
        assert "a: down" in result["message"]
        assert "timestamp" in result

    def test_empty_registry(self) -> None:
        result = asyncio.run(AIServiceManager().analyze_sentiment("NVDA"))
        assert result["success"] is False

    def test_status_check_exception_treated_as_unavailable(
        self, provider_factory, recording_sleep
    ) -> None:
        class ExplodingStatus(provider_factory):
            async def check_status(self) -> dict:
                raise RuntimeError("boom")

        manager = AIServiceManager(sleep=recording_sleep)
        manager.register(ExplodingStatus("exploding"))
        manager.register(provider_factory("ok"))
        assert asyncio.run(manager.analyze_sentiment("X"))["provider"] == "ok"


class TestRecommendAndStatus:
    """Tests for the recommend operation and status reporting."""

    def test_recommend_through_chain(self, provider_factory, recording_sleep) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        manager.register(provider_factory("down", available=False))
        manager.register(
            provider_factory(
                "ranker",
                by_ticker={"A": ("negative", 0.9), "B": ("positive", 0.9), "C": ("neutral", 0.5)},
            )
        )

        result = asyncio.run(manager.get_stock_recommendations(["A", "B", "C"]))

        assert result["provider"] == "ranker"
        assert [r["ticker"] for r in result["recommendations"]] == ["B", "C", "A"]
        assert result["recommendations"][0]["signal"] == "BUY"

    def test_check_status(self, provider_factory, recording_sleep) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        manager.register(provider_factory("main"), primary=True)
        manager.register(provider_factory("spare", available=False))
        asyncio.run(manager.analyze_sentiment("NVDA"))

        status = asyncio.run(manager.check_status())

        assert status["primary"] == "main"
        assert status["fallbacks"] == ["spare"]
        assert status["providers"]["main"]["available"] is True
        assert status["providers"]["main"]["requests"] == 1
        assert status["providers"]["main"]["success_rate"] == "100.0%"
        assert status["providers"]["spare"]["available"] is False
        assert status["any_available"] is True


class TestMockProvider:
    """Tests for the deterministic mock provider."""

    def test_deterministic_and_flagged(self) -> None:
        provider = MockSentimentProvider()
        first = asyncio.run(provider.analyze_sentiment("NVDA"))
        second = asyncio.run(provider.analyze_sentiment("nvda"))
        assert (first["sentiment"], first["confidence"]) == (
            second["sentiment"],
            second["confidence"],
        )
        assert first["mock"] is True
        assert first["sentiment"] in {"positive", "neutral", "negative"}
        assert 0.6 <= first["confidence"] <= 0.85

    def test_always_available(self) -> None:
        status = asyncio.run(MockSentimentProvider().check_status())
        assert status["available"] is True

    def test_mock_tagged_by_manager(self, recording_sleep) -> None:
        manager = AIServiceManager(sleep=recording_sleep)
        manager.register(MockSentimentProvider())
        result = asyncio.run(manager.analyze_sentiment("AMD"))
        assert result["mock"] is True
        assert result["ai_provider"] == "mock"


class TestDefaultManager:
    """Tests for building the manager from settings."""

    def test_without_key_only_mock(self) -> None:
        manager = build_default_manager(Settings(huggingface_api_key=""))
        assert [r.name for r in manager.providers] == ["mock"]

    def test_with_key_hf_primary_mock_last(self) -> None:
        manager = build_default_manager(Settings(huggingface_api_key="hf_test"))
        names = [r.name for r in manager.providers]
        assert names == ["huggingface", "mock"]
        assert manager.primary.name == "huggingface"

    def test_retry_settings_applied(self) -> None:
        settings = Settings(ai_max_retries=1, ai_retry_delay=0.5, ai_timeout=30)
        manager = build_default_manager(settings)
        assert manager.max_retries == 1
        assert manager.retry_delay == 0.5
        assert manager.timeout == 15.0


class TestHuggingFaceProvider:
    """Tests for the Hugging Face provider without network access."""

    def test_unconfigured_is_unavailable(self) -> None:
        status = asyncio.run(HuggingFaceSentimentProvider(api_key="").check_status())
        assert status["available"] is False

    def test_parses_response(self, monkeypatch) -> None:
        provider = HuggingFaceSentimentProvider(api_key="hf_test")
        monkeypatch.setattr(
            provider,
            "_post",
            lambda text: [[{"label": "negative", "score": 0.88}, {"label": "neutral", "score": 0.1}]],
        )
        result = asyncio.run(provider.analyze_sentiment("TSLA"))
        assert result["sentiment"] == "negative"
        assert result["model"] == "ProsusAI/finbert"
        assert "mock" not in result

    def test_timeout_clamped(self) -> None:
        assert HuggingFaceSentimentProvider(api_key="k", timeout=60).timeout == 15.0


class TestTimeBudget:
    """Tests for the worst-case chain duration."""

    def test_default_chain_budget(self) -> None:
        manager = build_default_manager(Settings(huggingface_api_key="hf_test"))
        # per provider: status 10 + three attempts of 10 + backoff 1 + 2
        assert manager.time_budget() == pytest.approx(86.0)

    def test_budget_covers_primary_timeouts_and_backoff(self, provider_factory) -> None:
        manager = AIServiceManager(max_retries=2, retry_delay=1.0, timeout=10.0)
        manager.register(provider_factory("primary"))
        assert manager.time_budget() > 3 * 10.0 + 1.0 + 2.0

    def test_empty_registry(self) -> None:
        assert AIServiceManager().time_budget() == 0.0
