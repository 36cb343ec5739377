"""Utility modules."""

from stock_advisor.utils.indicators import (
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    last_value,
    trend_strength,
)
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

__all__ = [
    "calculate_bollinger_bands",
    "calculate_ema",
    "calculate_macd",
    "calculate_rsi",
    "calculate_sma",
    "last_value",
    "trend_strength",
    "build_error_response",
    "build_meta",
    "build_provenance",
    "is_error",
    "current_month",
    "normalize_ticker",
    "normalize_tickers",
    "validate_month",
]
