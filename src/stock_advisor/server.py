"""Seasonal stock advisor MCP server using FastMCP."""

import asyncio
import json
import logging
import os

from fastmcp import FastMCP

from stock_advisor import SCHEMA_VERSION, SERVER_VERSION
from stock_advisor.config import Settings
from stock_advisor.data.yfinance_client import shutdown_executor
from stock_advisor.seasonal.calendar import get_month_characteristic, monthly_strategy
from stock_advisor.services.recommendation import InvestmentRecommendationService
from stock_advisor.utils.validators import validate_month

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP(
    name="stock-advisor",
)

_service: InvestmentRecommendationService | None = None


def get_service() -> InvestmentRecommendationService:
    """Process-wide service, built from the environment on first use."""
    global _service
    if _service is None:
        _service = InvestmentRecommendationService(Settings.from_env())
    return _service


def _dump(result: dict) -> str:
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# TOOLS
# ============================================================================


@mcp.tool
async def get_composite_score(ticker: str, month: int | None = None) -> str:
    """
    Score one stock for a calendar month.

    Blends technical (35%), seasonal (25%), fundamental (20%) and AI
    sentiment (20%) signals into a 0-1 total with a five-tier call.

    Args:
        ticker: Stock ticker symbol (e.g., NVDA, MSFT)
        month: Zero-based month index 0-11 (default: current month, US/Eastern)

    Returns:
        JSON with total_score, recommendation, per-signal scores, reasons,
        per-source detail and provenance
    """
    result = await get_service().get_composite_score(ticker, month)
    return _dump(result)


@mcp.tool
async def get_monthly_recommendations(
    tickers: list[str] | None = None,
    month: int | None = None,
    category: str | None = None,
) -> str:
    """
    Top 10 stocks for a month with market sentiment and strategy narrative.

    Args:
        tickers: Optional ticker list (default: curated AI/semiconductor universe)
        month: Zero-based month index 0-11 (default: current month)
        category: Optional universe name when tickers is omitted (ai, semiconductor)

    Returns:
        JSON with ranked recommendations, market_sentiment, summary, risk_level
    """
    result = await get_service().get_monthly_recommendations(tickers, month, category)
    return _dump(result)


@mcp.tool
async def get_sector_recommendations(sector: str = "all", month: int | None = None) -> str:
    """
    Top 5 stocks in a sector plus the sector's average score.

    Args:
        sector: ai, semiconductor or all (unknown names fall back to all)
        month: Zero-based month index 0-11 (default: current month)

    Returns:
        JSON with recommendations and sector_score
    """
    result = await get_service().get_sector_recommendations(sector, month)
    return _dump(result)


@mcp.tool
async def clear_caches(scope: str = "all") -> str:
    """
    Clear cached scores and analyses.

    Args:
        scope: "all" or a ticker symbol to clear only that ticker

    Returns:
        JSON with the number of entries removed per cache
    """
    return _dump(get_service().clear_caches(scope))


@mcp.tool
async def get_cache_status() -> str:
    """
    Report cache sizes, TTLs and keys, plus the last batch run.

    Returns:
        JSON with status per cache
    """
    return _dump(get_service().get_cache_status())


@mcp.tool
async def get_ai_status() -> str:
    """
    Report AI sentiment provider availability and counters.

    Returns:
        JSON with primary/fallback providers and per-provider stats
    """
    result = await get_service().get_ai_status()
    return _dump(result)


# ============================================================================
# RESOURCES
# ============================================================================


@mcp.resource("seasonal://month/{month}")
def get_month_profile(month: str) -> str:
    """
    Static profile of a calendar month.

    Args:
        month: Zero-based month index 0-11

    Returns:
        JSON with trend, risk level, key factors, sectors and strategy
    """
    try:
        index = validate_month(int(month))
    except ValueError as e:
        return f"Error: {e}"
    profile = get_month_characteristic(index).to_dict()
    profile["strategy"] = monthly_strategy(index)
    return _dump(profile)


# ============================================================================
# PROMPTS
# ============================================================================


@mcp.prompt
def monthly_briefing(month: str = "") -> str:
    """Generate a monthly investment briefing from the recommendation tools."""
    when = f"month index {month}" if month else "the current month"
    return (
        f"Call get_monthly_recommendations for {when}. Summarize the top picks with "
        "their total_score and reasons, state the market sentiment and risk_level, "
        "and quote the strategy. Flag any recommendation whose sentiment came from "
        "the mock provider."
    )


# ============================================================================
# ENTRY POINT
# ============================================================================


def main() -> None:
    """Run the MCP server."""
    logger.info(f"Starting Stock Advisor MCP Server v{SERVER_VERSION} (schema v{SCHEMA_VERSION})")
    try:
        mcp.run()
    finally:
        asyncio.run(shutdown_executor())


if __name__ == "__main__":
    main()
