"""Async yfinance client with bounded concurrency and retry logic."""

import asyncio
import logging
import os
import random
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import pandas as pd
import yfinance as yf
from requests.exceptions import HTTPError

logger = logging.getLogger(__name__)

# Bounded concurrency for yfinance calls
_max_workers = int(os.environ.get("YF_MAX_WORKERS", "4"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)
_fetch_semaphore = asyncio.Semaphore(_max_workers)

# Retry configuration
_max_retries = int(os.environ.get("YF_MAX_RETRIES", "3"))
_base_delay = float(os.environ.get("YF_BASE_DELAY", "1.0"))  # seconds
_max_delay = float(os.environ.get("YF_MAX_DELAY", "30.0"))  # seconds

# Shutdown coordination
shutdown_event = asyncio.Event()

T = TypeVar("T")


class ServerShuttingDownError(Exception):
    """Raised when server is shutting down."""

    pass


class YFinanceRetryError(Exception):
    """Raised when yfinance fails after all retries."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


def _is_retryable_error(error: Exception) -> bool:
    """Check if an error is transient (rate limit, 5xx, network)."""
    if (
        isinstance(error, HTTPError)
        and hasattr(error, "response")
        and error.response is not None
    ):
        status_code = error.response.status_code
        if status_code == 429 or 500 <= status_code < 600:
            return True

    error_str = str(error).lower()
    retryable_patterns = [
        "rate limit",
        "too many requests",
        "connection",
        "timeout",
        "temporary",
        "invalid crumb",
        "401",
    ]
    return any(pattern in error_str for pattern in retryable_patterns)


def _calculate_backoff(attempt: int) -> float:
    """Calculate delay with exponential backoff and jitter."""
    delay = _base_delay * (2**attempt)
    # Jitter (±25%)
    delay = delay + delay * 0.25 * (2 * random.random() - 1)
    return min(delay, _max_delay)


async def _retry_with_backoff(
    operation_name: str,
    sync_func: Callable[[], T],
    max_retries: int = _max_retries,
) -> T:
    """
    Run a blocking yfinance call in the worker pool, retrying transient errors.

    Raises:
        YFinanceRetryError: If all retries exhausted
        ServerShuttingDownError: If server is shutting down
    """
    for attempt in range(max_retries + 1):
        if shutdown_event.is_set():
            raise ServerShuttingDownError("Server is shutting down")

        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(_executor, sync_func)
        except Exception as e:
            if not _is_retryable_error(e):
                raise

            if attempt >= max_retries:
                logger.warning(
                    f"{operation_name}: Failed after {attempt + 1} attempts. Last error: {e}"
                )
                raise YFinanceRetryError(
                    f"Failed after {attempt + 1} attempts: {e}",
                    last_error=e,
                ) from e

            delay = _calculate_backoff(attempt)
            logger.info(
                f"{operation_name}: Attempt {attempt + 1} failed ({e}). "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise YFinanceRetryError(f"Failed after {max_retries + 1} attempts")


def _standardize_history(df: pd.DataFrame) -> pd.DataFrame:
    """Lowercase OHLCV columns with a 'date' column, flattening yf.download multi-index."""
    df = df.copy()
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)
    df.columns = [str(c).lower() for c in df.columns]
    df = df.reset_index()
    date_cols = [c for c in df.columns if str(c).lower() in ("date", "datetime", "index")]
    if date_cols:
        df = df.rename(columns={date_cols[0]: "date"})
    for col in ("open", "high", "low", "close", "volume"):
        if col not in df.columns:
            df[col] = pd.NA
    return df[["date", "open", "high", "low", "close", "volume"]]


async def fetch_history(symbol: str, period: str = "2y", interval: str = "1d") -> pd.DataFrame:
    """
    Fetch adjusted daily price history.

    Raises:
        ServerShuttingDownError: If server is shutting down
        YFinanceRetryError: If all retries exhausted for retryable errors
        ValueError: If no data returned
    """
    normalized_symbol = symbol.upper().strip()

    def _fetch() -> pd.DataFrame:
        df = yf.download(
            tickers=normalized_symbol,
            period=period,
            interval=interval,
            auto_adjust=True,
            progress=False,
        )
        if df is None or df.empty:
            raise ValueError(f"No data returned for {normalized_symbol}")
        return _standardize_history(df)

    async with _fetch_semaphore:
        return await _retry_with_backoff(f"fetch_history({normalized_symbol})", _fetch)


async def fetch_info(symbol: str) -> dict[str, Any]:
    """
    Fetch quote/fundamental info dict.

    Raises:
        ValueError: If symbol is invalid
        YFinanceRetryError: If all retries exhausted
    """
    normalized_symbol = symbol.upper().strip()

    def _fetch() -> dict[str, Any]:
        info = yf.Ticker(normalized_symbol).info
        if not info:
            raise ValueError(f"Invalid symbol: {symbol}")
        return info

    async with _fetch_semaphore:
        return await _retry_with_backoff(f"fetch_info({normalized_symbol})", _fetch)


async def fetch_news(symbol: str, limit: int = 5) -> list[dict[str, Any]]:
    """
    Fetch raw yfinance news items for a symbol (newest first as yfinance returns them).

    Empty news is valid and returns an empty list.
    """
    normalized_symbol = symbol.upper().strip()

    def _fetch() -> list[dict[str, Any]]:
        news = yf.Ticker(normalized_symbol).news or []
        return list(news)[:limit]

    async with _fetch_semaphore:
        return await _retry_with_backoff(f"fetch_news({normalized_symbol})", _fetch)


async def shutdown_executor() -> None:
    """Cleanup on server shutdown."""
    shutdown_event.set()
    _executor.shutdown(wait=False, cancel_futures=True)
