"""Weighted composite score, recommendation tiers and reason text."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stock_advisor.scoring.signals import clamp
from stock_advisor.seasonal.calendar import month_name

WEIGHTS: dict[str, float] = {
    "technical": 0.35,
    "seasonal": 0.25,
    "fundamental": 0.20,
    "sentiment": 0.20,
}

GOOD_THRESHOLD = 0.65
BAD_THRESHOLD = 0.40
KEY_FACTOR_CONFIDENCE = 0.7
KEY_FACTOR_LENGTH = 20

SENTIMENT_UNAVAILABLE_REASON = "AI sentiment unavailable"
DEFAULT_REASON = "Balanced news-driven analysis"


class Recommendation(str, Enum):
    """Five-tier call derived from totalScore."""

    STRONG_BUY = "Strong Buy"
    BUY = "Buy"
    HOLD = "Hold"
    SELL = "Sell"
    STRONG_SELL = "Strong Sell"

    @property
    def korean(self) -> str:
        return _KOREAN_LABELS[self]

    @classmethod
    def from_score(cls, score: float) -> "Recommendation":
        if score >= 0.70:
            return cls.STRONG_BUY
        if score >= 0.60:
            return cls.BUY
        if score >= 0.40:
            return cls.HOLD
        if score > 0.25:
            return cls.SELL
        return cls.STRONG_SELL


_KOREAN_LABELS = {
    Recommendation.STRONG_BUY: "강력추천",
    Recommendation.BUY: "추천",
    Recommendation.HOLD: "보통",
    Recommendation.SELL: "비추천",
    Recommendation.STRONG_SELL: "강력비추천",
}


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def from_value(cls, value: float | None) -> "Confidence":
        if value is None or math.isnan(value):
            return cls.LOW
        if value >= 0.75:
            return cls.HIGH
        if value >= 0.5:
            return cls.MEDIUM
        return cls.LOW


def compute_total_score(scores: dict[str, float]) -> float:
    """Weighted sum of the four signal scores, rounded to 2 places."""
    total = sum(WEIGHTS[name] * scores[name] for name in WEIGHTS)
    return round(clamp(total), 2)


@dataclass(frozen=True)
class CompositeScore:
    """One ticker's scored result for one analysis run."""

    ticker: str
    month: int
    technical: float
    seasonal: float
    fundamental: float
    sentiment: float
    total_score: float
    recommendation: Recommendation
    confidence: Confidence
    reasons: tuple[str, ...] = ()
    weights: dict[str, float] = field(default_factory=lambda: dict(WEIGHTS))

    @property
    def scores(self) -> dict[str, float]:
        return {
            "technical": self.technical,
            "seasonal": self.seasonal,
            "fundamental": self.fundamental,
            "sentiment": self.sentiment,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "month": self.month,
            "total_score": self.total_score,
            "recommendation": self.recommendation.value,
            "recommendation_ko": self.recommendation.korean,
            "confidence": self.confidence.value,
            "scores": {name: round(value, 2) for name, value in self.scores.items()},
            "weights": dict(self.weights),
            "reasons": list(self.reasons),
        }


def generate_reasons(
    scores: dict[str, float],
    month: int,
    news_impact: dict[str, Any] | None = None,
    sentiment_available: bool = True,
) -> list[str]:
    """
    Short human-readable reasons for a composite score.

    At most one reason per signal. A seasonal reason is merged with matching
    news sentiment instead of listing both.
    """
    reasons: list[str] = []
    news_sentiment = (news_impact or {}).get("sentiment")
    name = month_name(month)

    technical = scores["technical"]
    if technical > GOOD_THRESHOLD:
        reasons.append("Strong technical signal")
    elif technical < BAD_THRESHOLD:
        reasons.append("Weak technical signal")

    seasonal = scores["seasonal"]
    if seasonal > GOOD_THRESHOLD:
        if news_sentiment == "positive":
            reasons.append(f"{name} seasonal strength + positive news")
        else:
            reasons.append(f"{name} seasonal strength")
    elif seasonal < BAD_THRESHOLD:
        if news_sentiment == "negative":
            reasons.append(f"{name} seasonal weakness + negative news")
        else:
            reasons.append(f"Seasonal weakness for {name}")

    fundamental = scores["fundamental"]
    if fundamental > GOOD_THRESHOLD:
        reasons.append("Solid fundamentals")
    elif fundamental < BAD_THRESHOLD:
        reasons.append("Valuation concerns")

    if not sentiment_available:
        reasons.append(SENTIMENT_UNAVAILABLE_REASON)
    elif scores["sentiment"] > GOOD_THRESHOLD:
        reasons.append("Positive AI sentiment")
    elif scores["sentiment"] < BAD_THRESHOLD:
        reasons.append("Negative AI sentiment")

    if news_impact:
        key_factors = news_impact.get("key_factors") or []
        confidence = news_impact.get("confidence") or 0.0
        if confidence > KEY_FACTOR_CONFIDENCE and key_factors:
            reasons.append(f"Key factor: {key_factors[0][:KEY_FACTOR_LENGTH]}")

    return reasons or [DEFAULT_REASON]


def build_composite_score(
    ticker: str,
    month: int,
    scores: dict[str, float],
    analyzer_confidence: float | None = None,
    news_impact: dict[str, Any] | None = None,
    sentiment_available: bool = True,
) -> CompositeScore:
    """Combine the four signal scores into an immutable CompositeScore."""
    total = compute_total_score(scores)
    return CompositeScore(
        ticker=ticker,
        month=month,
        technical=scores["technical"],
        seasonal=scores["seasonal"],
        fundamental=scores["fundamental"],
        sentiment=scores["sentiment"],
        total_score=total,
        recommendation=Recommendation.from_score(total),
        confidence=Confidence.from_value(analyzer_confidence),
        reasons=tuple(generate_reasons(scores, month, news_impact, sentiment_available)),
    )
