"""
Signal calculators.

Each maps one data source onto a [0, 1] favorability score. They never raise:
malformed, missing or error-envelope input yields the documented default.
Technical data is required (missing -> 0.0); fundamentals and sentiment are
optional context (missing -> 0.5).
"""

import math
from typing import Any

from stock_advisor.utils.provenance import is_error

NEUTRAL = 0.5
NO_TECHNICAL_DATA = 0.0

# Historical month-of-year bias, shared by every ticker (index 0 = January)
BASE_SEASONAL_SCORES: tuple[float, ...] = (
    0.75,  # January effect
    0.65,  # earnings season
    0.60,  # quarter-end rebalancing
    0.80,  # spring rally
    0.50,  # sell in May
    0.55,  # early summer
    0.60,  # Q2 earnings
    0.45,  # summer doldrums
    0.70,  # autumn
    0.75,  # Q3 earnings
    0.85,  # year-end rally
    0.90,  # Santa rally
)

DIVIDEND_BONUS_THRESHOLD = 2.0  # percent
NEAR_LOW_POSITION = 0.30
NEAR_HIGH_POSITION = 0.90


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp into [low, high]; NaN collapses to low."""
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def _finite(value: Any) -> float | None:
    """Float view of value, or None for missing/non-numeric/NaN/inf."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _label(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def calculate_technical_score(technical: dict[str, Any] | None) -> float:
    """
    Score a technical-analysis bundle.

    Starts at 0.5: Buy +0.3 / Sell -0.3, High confidence +0.2 / Low -0.1,
    Strong trend +0.15 / Weak -0.1, RSI < 30 +0.1 / RSI > 70 -0.1.
    """
    if is_error(technical):
        return NO_TECHNICAL_DATA

    score = 0.5

    signal = _label(technical.get("signal"))
    if signal == "buy":
        score += 0.3
    elif signal == "sell":
        score -= 0.3

    confidence = _label(technical.get("confidence"))
    if confidence == "high":
        score += 0.2
    elif confidence == "low":
        score -= 0.1

    strength = _label(technical.get("trend_strength"))
    if strength == "strong":
        score += 0.15
    elif strength == "weak":
        score -= 0.1

    rsi = _finite(technical.get("rsi"))
    if rsi is not None:
        if rsi < 30:
            score += 0.1
        elif rsi > 70:
            score -= 0.1

    return clamp(score)


def fifty_two_week_position(quote: dict[str, Any]) -> float | None:
    """Where the current price sits in its 52-week range (0 = low, 1 = high)."""
    price = _finite(quote.get("current_price"))
    high = _finite(quote.get("fifty_two_week_high"))
    low = _finite(quote.get("fifty_two_week_low"))
    if price is None or high is None or low is None or high <= low:
        return None
    return (price - low) / (high - low)


def calculate_fundamental_score(quote: dict[str, Any] | None) -> float:
    """
    Score valuation fields from a quote summary.

    Starts at 0.5: P/E in (0, 15) +0.2, [15, 25] +0.1, > 35 -0.1; dividend
    yield >= 2% +0.1; 52-week position <= 30% +0.15, >= 90% -0.05.
    """
    if is_error(quote):
        return NEUTRAL

    score = 0.5

    pe = _finite(quote.get("pe_ratio"))
    if pe is not None:
        if 0 < pe < 15:
            score += 0.2
        elif 15 <= pe <= 25:
            score += 0.1
        elif pe > 35:
            score -= 0.1

    dividend = _finite(quote.get("dividend_yield"))
    if dividend is not None and dividend >= DIVIDEND_BONUS_THRESHOLD:
        score += 0.1

    position = fifty_two_week_position(quote)
    if position is not None:
        if position <= NEAR_LOW_POSITION:
            score += 0.15
        elif position >= NEAR_HIGH_POSITION:
            score -= 0.05

    return clamp(score)


def calculate_base_seasonal_score(month: int) -> float:
    """Month-of-year baseline. Out-of-range months wrap modulo 12."""
    return BASE_SEASONAL_SCORES[int(month) % 12]


def calculate_sentiment_score(result: dict[str, Any] | None) -> float:
    """
    Score an AI sentiment reading.

    positive -> 0.7 + 0.3*confidence, negative -> 0.3 - 0.3*confidence,
    anything else (neutral, missing, error envelope) -> 0.5.
    """
    if is_error(result) or result.get("success") is False:
        return NEUTRAL

    confidence = _finite(result.get("confidence"))
    confidence = clamp(confidence) if confidence is not None else 0.0

    sentiment = _label(result.get("sentiment"))
    if sentiment == "positive":
        return clamp(0.7 + confidence * 0.3)
    if sentiment == "negative":
        return clamp(0.3 - confidence * 0.3)
    return NEUTRAL
