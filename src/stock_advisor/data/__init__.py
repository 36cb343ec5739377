"""Data layer: yfinance access, market collaborators and in-memory caches."""

from stock_advisor.data.cache import (
    AnalysisCache,
    CacheOptimizer,
    SeasonalCacheEntry,
    SeasonalScoreCache,
)
from stock_advisor.data.market import (
    NewsItem,
    NewsProvider,
    YFinanceNewsProvider,
    parse_news_item,
    quote_summary,
    summarize_technicals,
    technical_analysis,
)
from stock_advisor.data.yfinance_client import (
    ServerShuttingDownError,
    YFinanceRetryError,
    fetch_history,
    fetch_info,
    fetch_news,
    shutdown_executor,
)

__all__ = [
    # Caches
    "AnalysisCache",
    "CacheOptimizer",
    "SeasonalCacheEntry",
    "SeasonalScoreCache",
    # Collaborators
    "NewsItem",
    "NewsProvider",
    "YFinanceNewsProvider",
    "parse_news_item",
    "quote_summary",
    "summarize_technicals",
    "technical_analysis",
    # yfinance
    "ServerShuttingDownError",
    "YFinanceRetryError",
    "fetch_history",
    "fetch_info",
    "fetch_news",
    "shutdown_executor",
]
