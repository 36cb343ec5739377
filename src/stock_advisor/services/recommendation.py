"""
Investment recommendation service.

Fans out to the technical, seasonal, fundamental and sentiment sources for
each ticker, combines them into a CompositeScore and ranks tickers. Public
coroutines never raise; failures come back as error envelopes.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from stock_advisor.ai.manager import AIServiceManager, build_default_manager
from stock_advisor.config import SECTOR_TICKERS, Settings
from stock_advisor.data.cache import AnalysisCache, CacheOptimizer, SeasonalScoreCache
from stock_advisor.data.market import (
    NewsProvider,
    YFinanceNewsProvider,
    quote_summary,
    technical_analysis,
)
from stock_advisor.scoring.composite import build_composite_score
from stock_advisor.scoring.signals import (
    calculate_base_seasonal_score,
    calculate_fundamental_score,
    calculate_sentiment_score,
    calculate_technical_score,
)
from stock_advisor.seasonal.calendar import month_name, monthly_strategy
from stock_advisor.seasonal.news_analyzer import NewsSeasonalAnalyzer
from stock_advisor.services.batching import RequestBatcher
from stock_advisor.utils.provenance import (
    build_error_response,
    build_meta,
    build_provenance,
    is_error,
)
from stock_advisor.utils.validators import (
    current_month,
    normalize_ticker,
    normalize_tickers,
    validate_month,
)

logger = logging.getLogger(__name__)

Collaborator = Callable[[str], Awaitable[dict[str, Any]]]

SOURCE_TIMEOUT_SECONDS = 30.0
SENTIMENT_TIMEOUT_MARGIN_SECONDS = 5.0
MONTHLY_TOP_N = 10
SECTOR_TOP_N = 5
MARKET_TICKER = "MARKET"
ANALYSIS_FAILED_MESSAGE = "analysis failed, please retry"

QUOTE_CACHE = "quotes"
MARKET_SENTIMENT_CACHE = "market_sentiment"

NEUTRAL_MARKET_SENTIMENT = {
    "sentiment": "neutral",
    "confidence": 0.5,
    "recommendation": "Market sentiment unavailable",
    "available": False,
}


def calculate_overall_risk(
    recommendations: list[dict[str, Any]], market_sentiment: dict[str, Any]
) -> str:
    """
    Risk label for a recommendation set.

    risk = (1 - average score) + sentiment risk, where sentiment risk is 0
    above 0.7 confidence, 0.3 below 0.5, else 0.1.
    """
    if not recommendations:
        return "high"
    avg_score = sum(r["total_score"] for r in recommendations) / len(recommendations)
    confidence = market_sentiment.get("confidence") or 0.0
    if confidence > 0.7:
        sentiment_risk = 0.0
    elif confidence < 0.5:
        sentiment_risk = 0.3
    else:
        sentiment_risk = 0.1
    risk = (1 - avg_score) + sentiment_risk
    if risk < 0.3:
        return "low"
    if risk < 0.6:
        return "medium"
    return "high"


def build_monthly_summary(
    month: int, recommendations: list[dict[str, Any]], market_sentiment: dict[str, Any]
) -> dict[str, Any]:
    """Narrative block for a monthly recommendation set."""
    mood = market_sentiment.get("sentiment")
    outlook = {"positive": "positive", "negative": "negative"}.get(mood, "neutral")
    top = recommendations[0] if recommendations else None
    average = (
        sum(r["total_score"] for r in recommendations) / len(recommendations)
        if recommendations
        else 0.0
    )
    return {
        "overview": f"{month_name(month)} outlook: {outlook}",
        "top_pick": (
            f"Top pick: {top['ticker']} (score: {top['total_score']})" if top else "No recommendations"
        ),
        "average_score": round(average, 2),
        "market_condition": market_sentiment.get("recommendation"),
        "strategy": monthly_strategy(month, mood),
    }


class InvestmentRecommendationService:
    """
    Orchestrates per-ticker scoring and ranked recommendation sets.

    Caches, the AI manager and the batcher are injected so each instance
    (and each test) owns its own shared state.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        technical: Collaborator = technical_analysis,
        quote: Collaborator = quote_summary,
        news_provider: NewsProvider | None = None,
        ai_manager: AIServiceManager | None = None,
        seasonal_cache: SeasonalScoreCache | None = None,
        analysis_cache: AnalysisCache | None = None,
        cache_optimizer: CacheOptimizer | None = None,
        batcher: RequestBatcher | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or Settings.from_env()
        self._technical = technical
        self._quote = quote
        self._clock = clock
        self.seasonal_cache = seasonal_cache or SeasonalScoreCache(
            ttl=self.settings.cache_ttl, clock=clock
        )
        self.analysis_cache = analysis_cache or AnalysisCache(
            ttl=self.settings.cache_ttl, clock=clock
        )
        self.cache_optimizer = cache_optimizer or CacheOptimizer(
            default_ttl=self.settings.cache_ttl,
            max_size=self.settings.cache_max_size,
            clock=clock,
        )
        self.cache_optimizer.create_cache(QUOTE_CACHE)
        self.cache_optimizer.create_cache(MARKET_SENTIMENT_CACHE)
        self.ai_manager = ai_manager or build_default_manager(self.settings)
        self.analyzer = NewsSeasonalAnalyzer(
            news_provider or YFinanceNewsProvider(), self.seasonal_cache, clock=clock
        )
        self.batcher = batcher or RequestBatcher(
            batch_size=self.settings.batch_size, batch_delay=self.settings.batch_delay
        )

    def _resolve_month(self, month: int | None) -> int:
        if month is None:
            return current_month(self.settings.market_tz)
        return validate_month(month)

    async def _cached_quote(self, ticker: str) -> dict[str, Any]:
        cached = self.cache_optimizer.get(QUOTE_CACHE, ticker)
        if cached is not None:
            return cached
        quote = await self._quote(ticker)
        if not is_error(quote):
            self.cache_optimizer.set(QUOTE_CACHE, ticker, quote)
        return quote

    def source_timeout(self, name: str) -> float:
        """Outer timeout for one source. Sentiment gets room for the full fallback chain."""
        if name == "sentiment":
            return max(
                SOURCE_TIMEOUT_SECONDS,
                self.ai_manager.time_budget() + SENTIMENT_TIMEOUT_MARGIN_SECONDS,
            )
        return SOURCE_TIMEOUT_SECONDS

    async def _gather_sources(
        self, ticker: str, month: int
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Fetch all four sources concurrently; a failed source becomes None."""
        specs: list[tuple[str, Awaitable[dict[str, Any]]]] = [
            ("technical", self._technical(ticker)),
            ("seasonal", self.analyzer.analyze(ticker, month)),
            ("quote", self._cached_quote(ticker)),
            ("sentiment", self.ai_manager.analyze_sentiment(ticker)),
        ]

        async def run_with_timing(name: str, coro: Any) -> tuple[str, Any, float]:
            timeout = self.source_timeout(name)
            source_start = perf_counter()
            try:
                result = await asyncio.wait_for(coro, timeout=timeout)
            except asyncio.TimeoutError:
                result = TimeoutError(f"exceeded {timeout}s")
            except Exception as e:
                result = e
            return name, result, (perf_counter() - source_start) * 1000

        outcomes = await asyncio.gather(*(run_with_timing(n, c) for n, c in specs))

        sources: dict[str, Any] = {}
        failures: list[dict[str, Any]] = []
        for name, result, duration_ms in outcomes:
            if isinstance(result, Exception):
                logger.warning(f"{ticker}: {name} source failed: {result}")
                failures.append(
                    {
                        "source": name,
                        "error": type(result).__name__,
                        "message": str(result),
                        "duration_ms": round(duration_ms, 1),
                    }
                )
                sources[name] = None
            else:
                if is_error(result):
                    failures.append(
                        {
                            "source": name,
                            "error": result.get("error_type", "unavailable"),
                            "message": result.get("message", ""),
                            "duration_ms": round(duration_ms, 1),
                        }
                    )
                sources[name] = result
        return sources, failures

    async def analyze_stock_for_month(self, ticker: str, month: int) -> dict[str, Any]:
        """
        Score one ticker for one month.

        Source failures degrade to each signal's default; the composite score
        is computed only once every source has answered or failed.
        """
        start_time = perf_counter()
        ticker = normalize_ticker(ticker)

        cached = self.analysis_cache.get(ticker)
        if cached is not None and cached.get("month") == month:
            logger.debug(f"Analysis cache hit for {ticker}")
            return {**cached, "from_cache": True}

        sources, failures = await self._gather_sources(ticker, month)

        seasonal = sources["seasonal"]
        if seasonal is None:
            seasonal_score = calculate_base_seasonal_score(month)
            analyzer_confidence = None
            news_impact = None
        else:
            seasonal_score = seasonal["seasonal_score"]
            analyzer_confidence = seasonal.get("confidence")
            news_impact = seasonal.get("news_impact")

        sentiment = sources["sentiment"]
        sentiment_available = not is_error(sentiment)

        scores = {
            "technical": calculate_technical_score(sources["technical"]),
            "seasonal": seasonal_score,
            "fundamental": calculate_fundamental_score(sources["quote"]),
            "sentiment": calculate_sentiment_score(sentiment),
        }
        composite = build_composite_score(
            ticker,
            month,
            scores,
            analyzer_confidence=analyzer_confidence,
            news_impact=news_impact,
            sentiment_available=sentiment_available,
        )

        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        sentiment_provider = sentiment.get("provider") if sentiment_available else None
        result = {
            **composite.to_dict(),
            "month_name": month_name(month),
            "details": {
                "technical": sources["technical"],
                "seasonal": seasonal,
                "quote": sources["quote"],
                "sentiment": sentiment,
            },
            "data_provenance": {
                "technical": build_provenance("yfinance", now),
                "fundamental": build_provenance("yfinance", now),
                "seasonal": build_provenance(
                    (seasonal or {}).get("ai_provider", "historical"),
                    (seasonal or {}).get("last_updated"),
                    model=(seasonal or {}).get("model", "seasonal-baseline"),
                    from_cache=bool((seasonal or {}).get("from_cache")),
                ),
                "sentiment": build_provenance(
                    sentiment_provider or "unavailable",
                    sentiment.get("timestamp") if isinstance(sentiment, dict) else None,
                    model=sentiment.get("model") if sentiment_available else None,
                    mock=bool(sentiment_available and sentiment.get("mock")),
                ),
            },
            "source_failures": failures,
            "from_cache": False,
            "meta": build_meta("composite_score", (perf_counter() - start_time) * 1000),
        }

        self.analysis_cache.set(ticker, result)
        logger.info(
            f"{ticker} month={month}: total={composite.total_score} "
            f"({composite.recommendation.value})"
        )
        return result

    async def get_composite_score(self, ticker: str, month: int | None = None) -> dict[str, Any]:
        """CompositeScore with detail and reasons for one ticker. Never raises."""
        try:
            symbol = normalize_ticker(ticker)
            resolved_month = self._resolve_month(month)
        except ValueError as e:
            return build_error_response("invalid_input", str(e), str(ticker), "composite_score")
        try:
            return await self.analyze_stock_for_month(symbol, resolved_month)
        except Exception:
            logger.exception(f"Composite score failed for {symbol}")
            return build_error_response(
                "analysis_failed", ANALYSIS_FAILED_MESSAGE, symbol, "composite_score"
            )

    async def _analyze_many(
        self, tickers: list[str], month: int
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Score tickers through the batcher; returns (valid results, failures)."""

        async def worker(ticker: str) -> dict[str, Any]:
            return await self.analyze_stock_for_month(ticker, month)

        valid: list[dict[str, Any]] = []
        failed: list[dict[str, Any]] = []
        for ticker, outcome in await self.batcher.run(tickers, worker):
            if isinstance(outcome, BaseException):
                failed.append({"ticker": ticker, "message": str(outcome)})
            elif not outcome or not outcome.get("total_score", 0) > 0:
                failed.append({"ticker": ticker, "message": "no usable score"})
            else:
                valid.append(outcome)
        valid.sort(key=lambda r: (-r["total_score"], r["ticker"]))
        return valid, failed

    async def _market_sentiment(self, month: int) -> dict[str, Any]:
        cached = self.cache_optimizer.get(MARKET_SENTIMENT_CACHE, month)
        if cached is not None:
            return cached
        result = await self.ai_manager.analyze_sentiment(MARKET_TICKER)
        if is_error(result):
            return dict(NEUTRAL_MARKET_SENTIMENT)
        sentiment = {**result, "available": True}
        self.cache_optimizer.set(MARKET_SENTIMENT_CACHE, month, sentiment)
        return sentiment

    def _universe(self, tickers: list[str] | None, category: str | None) -> list[str]:
        if tickers:
            return normalize_tickers(tickers)
        if category and category.lower() in SECTOR_TICKERS:
            return normalize_tickers(SECTOR_TICKERS[category.lower()])
        return normalize_tickers(self.settings.default_tickers)

    async def get_monthly_recommendations(
        self,
        tickers: list[str] | None = None,
        month: int | None = None,
        category: str | None = None,
    ) -> dict[str, Any]:
        """
        Top 10 tickers for the month with market sentiment and a narrative.

        An empty recommendation list is a valid answer. Never raises.
        """
        start_time = perf_counter()
        try:
            resolved_month = self._resolve_month(month)
        except ValueError as e:
            return build_error_response("invalid_input", str(e), operation="monthly_recommendations")

        try:
            universe = self._universe(tickers, category)
            (valid, failed), market_sentiment = await asyncio.gather(
                self._analyze_many(universe, resolved_month),
                self._market_sentiment(resolved_month),
            )
            top = valid[:MONTHLY_TOP_N]
            return {
                "month": resolved_month,
                "month_name": month_name(resolved_month),
                "recommendations": top,
                "market_sentiment": market_sentiment,
                "summary": build_monthly_summary(resolved_month, top, market_sentiment),
                "risk_level": calculate_overall_risk(top, market_sentiment),
                "analyzed": len(universe),
                "failed": failed,
                "meta": build_meta(
                    "monthly_recommendations", (perf_counter() - start_time) * 1000
                ),
            }
        except Exception:
            logger.exception("Monthly recommendations failed")
            return build_error_response(
                "analysis_failed", ANALYSIS_FAILED_MESSAGE, operation="monthly_recommendations"
            )

    async def get_sector_recommendations(
        self, sector: str = "all", month: int | None = None
    ) -> dict[str, Any]:
        """Top 5 of a sector universe plus its mean score. Unknown sectors use "all"."""
        start_time = perf_counter()
        requested = (sector or "all").strip().lower()
        resolved = requested if requested in SECTOR_TICKERS else "all"
        if resolved != requested:
            logger.info(f"Unknown sector {sector!r}, using the default universe")
        try:
            resolved_month = self._resolve_month(month)
        except ValueError as e:
            return build_error_response("invalid_input", str(e), operation="sector_recommendations")

        try:
            universe = self._universe(None, resolved)
            valid, failed = await self._analyze_many(universe, resolved_month)
            sector_score = (
                sum(r["total_score"] for r in valid) / len(valid) if valid else 0.0
            )
            return {
                "sector": resolved,
                "requested_sector": sector,
                "month": resolved_month,
                "recommendations": valid[:SECTOR_TOP_N],
                "sector_score": round(sector_score, 2),
                "failed": failed,
                "meta": build_meta("sector_recommendations", (perf_counter() - start_time) * 1000),
            }
        except Exception:
            logger.exception(f"Sector recommendations failed for {sector}")
            return build_error_response(
                "analysis_failed", ANALYSIS_FAILED_MESSAGE, operation="sector_recommendations"
            )

    def clear_caches(self, scope: str = "all") -> dict[str, Any]:
        """Clear every cache, or only one ticker's entries."""
        if (scope or "all").strip().lower() == "all":
            cleared = {
                "seasonal_scores": self.seasonal_cache.clear(),
                "analysis": self.analysis_cache.clear(),
                "optimizer": self.cache_optimizer.clear(),
            }
            logger.info(f"All caches cleared: {cleared}")
            return {"scope": "all", "cleared": cleared, "meta": build_meta("clear_caches")}

        try:
            ticker = normalize_ticker(scope)
        except ValueError as e:
            return build_error_response("invalid_input", str(e), scope, "clear_caches")
        cleared = {
            "seasonal_scores": self.seasonal_cache.clear_ticker(ticker),
            "analysis": self.analysis_cache.clear_ticker(ticker),
            "quotes": int(self.cache_optimizer.delete(QUOTE_CACHE, ticker)),
        }
        logger.info(f"Caches cleared for {ticker}: {cleared}")
        return {"scope": ticker, "cleared": cleared, "meta": build_meta("clear_caches")}

    def get_cache_status(self) -> dict[str, Any]:
        """Size, TTL and key listing per cache."""
        return {
            "seasonal_scores": self.seasonal_cache.status(),
            "analysis": self.analysis_cache.status(),
            "optimizer": self.cache_optimizer.status(),
            "batcher": self.batcher.status(),
            "meta": build_meta("cache_status"),
        }

    async def get_ai_status(self) -> dict[str, Any]:
        """Provider availability and counters from the AI manager."""
        try:
            status = await self.ai_manager.check_status()
        except Exception:
            logger.exception("AI status check failed")
            return build_error_response("analysis_failed", ANALYSIS_FAILED_MESSAGE, operation="ai_status")
        return {**status, "meta": build_meta("ai_status")}
