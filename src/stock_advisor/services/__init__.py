"""Recommendation orchestration and request batching."""

from stock_advisor.services.batching import BatchRun, RequestBatcher
from stock_advisor.services.recommendation import (
    InvestmentRecommendationService,
    build_monthly_summary,
    calculate_overall_risk,
)

__all__ = [
    "BatchRun",
    "InvestmentRecommendationService",
    "RequestBatcher",
    "build_monthly_summary",
    "calculate_overall_risk",
]
