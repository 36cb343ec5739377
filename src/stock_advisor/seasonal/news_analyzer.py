"""
News-seasonal analyzer.

Blends the month-of-year baseline with ticker news and market-wide news into
the seasonal score used by the recommendation service. Results are shared
through SeasonalScoreCache; any failure degrades to the baseline alone.
"""

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from stock_advisor.data.cache import SeasonalScoreCache
from stock_advisor.data.market import NewsItem, NewsProvider
from stock_advisor.scoring.composite import Recommendation
from stock_advisor.scoring.signals import calculate_base_seasonal_score, clamp
from stock_advisor.seasonal.calendar import get_month_characteristic, month_name, monthly_strategy

logger = logging.getLogger(__name__)

POSITIVE_WORDS: tuple[str, ...] = (
    "up", "rise", "gain", "bull", "strong", "beat", "exceed", "growth", "positive",
    "상승", "강세", "성장", "긍정", "surge", "soar", "jump",
)
NEGATIVE_WORDS: tuple[str, ...] = (
    "down", "fall", "drop", "bear", "weak", "miss", "decline", "loss", "negative",
    "하락", "약세", "감소", "부정", "crash", "plunge", "tumble",
)

STOCK_NEWS_LIMIT = 5
MARKET_NEWS_LIMIT = 3

STOCK_DEFAULT_RELEVANCE = 0.7
MARKET_DEFAULT_RELEVANCE = 0.8
STOCK_DOMINANCE = 1.2
MARKET_DOMINANCE = 1.1

BASE_WEIGHT = 0.4
NEWS_WEIGHT = 0.35
MARKET_WEIGHT = 0.25
MARKET_SHIFT = 0.4
NEWS_IMPACT_FACTOR = 0.3

FALLBACK_CONFIDENCE = 0.8
NO_NEWS_CONFIDENCE = 0.5
ABUNDANT_NEWS = 5

MODEL_NAME = "keyword-title-sentiment"
AI_PROVIDER = "news+historical"


def analyze_title_sentiment(title: str | None) -> str:
    """Keyword vote over a headline: positive, negative or neutral."""
    if not title:
        return "neutral"
    lowered = title.lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lowered)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lowered)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def _truncate(text: str, length: int) -> str:
    return text[:length] + ("..." if len(text) > length else "")


def _weigh(
    items: Sequence[NewsItem], default_relevance: float
) -> tuple[float, float, float]:
    """Relevance-weighted (positive, negative, total) over a news list."""
    positive = negative = total = 0.0
    for item in items:
        sentiment = item.sentiment or analyze_title_sentiment(item.title)
        relevance = item.relevance if item.relevance is not None else default_relevance
        if sentiment == "positive":
            positive += relevance
        elif sentiment == "negative":
            negative += relevance
        total += relevance
    return positive, negative, total


def summarize_stock_news(ticker: str, items: Sequence[NewsItem]) -> dict[str, Any]:
    """
    Aggregate ticker news into a sentiment reading.

    score is a polarity in [-1, 1]; confidence is the mean relevance capped
    at 1.0; impact is |score| * 0.3.
    """
    if not items:
        return {
            "sentiment": "neutral",
            "score": 0.0,
            "confidence": NO_NEWS_CONFIDENCE,
            "impact": 0.0,
            "key_factors": [],
            "source": "No News Available",
            "news_count": 0,
            "source_breakdown": {},
        }

    positive, negative, total = _weigh(items, STOCK_DEFAULT_RELEVANCE)

    sentiment = "neutral"
    polarity = 0.0
    if total > 0 and positive > negative * STOCK_DOMINANCE:
        sentiment = "positive"
        polarity = (positive - negative) / total
    elif total > 0 and negative > positive * STOCK_DOMINANCE:
        sentiment = "negative"
        polarity = -(negative - positive) / total
    polarity = clamp(polarity, -1.0, 1.0)

    key_factors = [_truncate(item.title, 50) for item in items if len(item.title) > 10]

    return {
        "sentiment": sentiment,
        "score": round(polarity, 3),
        "confidence": round(min(total / len(items), 1.0), 3),
        "impact": round(abs(polarity) * NEWS_IMPACT_FACTOR, 3),
        "key_factors": key_factors[:5],
        "source": f"News analysis ({len(items)} items)",
        "news_count": len(items),
        "source_breakdown": dict(Counter(item.source for item in items)),
    }


def summarize_market_news(items: Sequence[NewsItem]) -> dict[str, Any]:
    """Aggregate market-wide news with the looser 1.1x dominance rule."""
    if not items:
        return {
            "sentiment": "neutral",
            "confidence": NO_NEWS_CONFIDENCE,
            "key_themes": [],
            "source": "No Market News",
            "news_count": 0,
        }

    positive, negative, total = _weigh(items, MARKET_DEFAULT_RELEVANCE)

    sentiment = "neutral"
    if total > 0 and positive > negative * MARKET_DOMINANCE:
        sentiment = "positive"
    elif total > 0 and negative > positive * MARKET_DOMINANCE:
        sentiment = "negative"

    return {
        "sentiment": sentiment,
        "confidence": round(min(total / len(items), 1.0), 3),
        "key_themes": [_truncate(item.title, 40) for item in items][:4],
        "source": f"Market news analysis ({len(items)} items)",
        "news_count": len(items),
        "sentiment_breakdown": {
            "positive": round(positive, 3),
            "negative": round(negative, 3),
            "neutral": round(total - positive - negative, 3),
        },
    }


def market_news_score(market: dict[str, Any]) -> float:
    """0.5 baseline shifted by +/-0.4*confidence in the sentiment direction."""
    confidence = clamp(market.get("confidence") or 0.0)
    if market.get("sentiment") == "positive":
        return 0.5 + MARKET_SHIFT * confidence
    if market.get("sentiment") == "negative":
        return 0.5 - MARKET_SHIFT * confidence
    return 0.5


def blend_seasonal_score(
    base: float, news: dict[str, Any], market: dict[str, Any]
) -> float:
    """Blend baseline, ticker news and market news, damped by confidence."""
    news_score = clamp(0.5 + 0.5 * (news.get("score") or 0.0))
    blended = (
        BASE_WEIGHT * base + NEWS_WEIGHT * news_score + MARKET_WEIGHT * market_news_score(market)
    )
    avg_confidence = (clamp(news.get("confidence") or 0.0) + clamp(market.get("confidence") or 0.0)) / 2
    return clamp(blended * (0.7 + 0.3 * avg_confidence))


class NewsSeasonalAnalyzer:
    """Produces the authoritative seasonal score for (ticker, month)."""

    def __init__(
        self,
        news_provider: NewsProvider,
        cache: SeasonalScoreCache,
        clock: Callable[[], float] = time.time,
    ):
        self.news_provider = news_provider
        self.cache = cache
        self._clock = clock

    async def analyze(self, ticker: str, month: int) -> dict[str, Any]:
        """
        Seasonal analysis bundle for ticker in month (0-11).

        Never raises. Cache hits come back tagged from_cache=True.
        """
        entry = self.cache.get_entry(ticker, month)
        if entry is not None:
            logger.debug(f"Seasonal analysis cache hit for {ticker} month={month}")
            if entry.detail is not None:
                return {**entry.detail, "from_cache": True}
            return {**self._fallback(ticker, month, entry.score), "from_cache": True}

        try:
            result = await self._analyze_uncached(ticker, month)
        except Exception as e:
            logger.warning(f"Seasonal news analysis failed for {ticker}, using baseline: {e}")
            result = self._fallback(ticker, month, calculate_base_seasonal_score(month))
            result["error"] = str(e)
            return result

        self.cache.set_score(ticker, month, result["seasonal_score"], detail=result)
        return result

    async def _analyze_uncached(self, ticker: str, month: int) -> dict[str, Any]:
        base = calculate_base_seasonal_score(month)

        stock_news, market_news = await asyncio.gather(
            self.news_provider.get_stock_news(ticker, STOCK_NEWS_LIMIT),
            self.news_provider.get_market_news(MARKET_NEWS_LIMIT),
        )
        stock_news = list(stock_news)[:STOCK_NEWS_LIMIT]
        market_news = list(market_news)[:MARKET_NEWS_LIMIT]

        news_impact = summarize_stock_news(ticker, stock_news)
        market = summarize_market_news(market_news)
        score = round(blend_seasonal_score(base, news_impact, market), 2)
        confidence = round((news_impact["confidence"] + market["confidence"]) / 2, 3)

        all_news = stock_news + market_news
        average_relevance = 0.0
        if all_news:
            average_relevance = sum(
                n.relevance if n.relevance is not None else STOCK_DEFAULT_RELEVANCE
                for n in all_news
            ) / len(all_news)

        logger.info(
            f"Seasonal score for {ticker} month={month}: {score} "
            f"(base {base}, news {news_impact['sentiment']}, market {market['sentiment']})"
        )

        return {
            "ticker": ticker,
            "month": month,
            "month_name": month_name(month),
            "seasonal_score": score,
            "base_seasonal_score": base,
            "news_impact": {
                **news_impact,
                "related_news": [n.to_dict() for n in stock_news[:3]],
            },
            "market_sentiment": {
                **market,
                "related_news": [n.to_dict() for n in market_news[:2]],
            },
            "insights": self._insights(ticker, month, news_impact, market),
            "recommendation": Recommendation.from_score(score).value,
            "confidence": confidence,
            "news_analysis": {
                "total_news_analyzed": len(all_news),
                "stock_news_count": len(stock_news),
                "market_news_count": len(market_news),
                "average_relevance": round(average_relevance, 3),
            },
            "month_characteristic": get_month_characteristic(month).to_dict(),
            "model": MODEL_NAME,
            "ai_provider": AI_PROVIDER,
            "last_updated": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            "from_cache": False,
        }

    def _insights(
        self,
        ticker: str,
        month: int,
        news_impact: dict[str, Any],
        market: dict[str, Any],
    ) -> list[str]:
        name = month_name(month)
        insights: list[str] = []

        if news_impact["news_count"] and news_impact["key_factors"]:
            insights.append(f"Latest news: {news_impact['key_factors'][0]}")

        if news_impact["sentiment"] == "positive":
            insights.append(f"Recent news on {ticker} is positive heading into {name}.")
        elif news_impact["sentiment"] == "negative":
            insights.append(f"Recent news on {ticker} is negative; approach {name} with caution.")

        if market["news_count"] and market["key_themes"]:
            insights.append(f"Market theme: {market['key_themes'][0]}")

        total = news_impact["news_count"] + market["news_count"]
        if total >= ABUNDANT_NEWS:
            level = "high" if news_impact["confidence"] > 0.7 else "moderate"
            insights.append(f"Analyzed {total} news items with {level} confidence.")

        if len(insights) < 2:
            profile = get_month_characteristic(month)
            insights.append(
                f"{name} ({profile.label}): historically {profile.historical_trend}, "
                f"{profile.risk_level} risk."
            )
        if len(insights) < 2:
            insights.append(monthly_strategy(month))
        return insights[:4]

    def _fallback(self, ticker: str, month: int, score: float) -> dict[str, Any]:
        """Baseline-only bundle used when news analysis is not possible."""
        return {
            "ticker": ticker,
            "month": month,
            "month_name": month_name(month),
            "seasonal_score": score,
            "base_seasonal_score": calculate_base_seasonal_score(month),
            "news_impact": {
                "sentiment": "neutral",
                "score": 0.0,
                "confidence": NO_NEWS_CONFIDENCE,
                "impact": 0.0,
                "key_factors": [],
                "related_news": [],
            },
            "market_sentiment": {
                "sentiment": "neutral",
                "confidence": NO_NEWS_CONFIDENCE,
                "key_themes": [],
                "related_news": [],
            },
            "insights": [f"Baseline {month_name(month)} seasonal analysis for {ticker}."],
            "recommendation": Recommendation.from_score(score).value,
            "confidence": FALLBACK_CONFIDENCE,
            "news_analysis": {
                "total_news_analyzed": 0,
                "stock_news_count": 0,
                "market_news_count": 0,
                "average_relevance": 0.0,
            },
            "month_characteristic": get_month_characteristic(month).to_dict(),
            "model": "seasonal-baseline",
            "ai_provider": "historical",
            "last_updated": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            "from_cache": False,
        }
