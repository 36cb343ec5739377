"""Signal calculators and composite scoring."""

from stock_advisor.scoring.composite import (
    WEIGHTS,
    CompositeScore,
    Confidence,
    Recommendation,
    build_composite_score,
    compute_total_score,
    generate_reasons,
)
from stock_advisor.scoring.signals import (
    BASE_SEASONAL_SCORES,
    calculate_base_seasonal_score,
    calculate_fundamental_score,
    calculate_sentiment_score,
    calculate_technical_score,
    clamp,
)

__all__ = [
    "BASE_SEASONAL_SCORES",
    "WEIGHTS",
    "CompositeScore",
    "Confidence",
    "Recommendation",
    "build_composite_score",
    "calculate_base_seasonal_score",
    "calculate_fundamental_score",
    "calculate_sentiment_score",
    "calculate_technical_score",
    "clamp",
    "compute_total_score",
    "generate_reasons",
]
