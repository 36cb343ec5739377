"""Technical indicator calculations."""

import numpy as np
import pandas as pd


def calculate_sma(prices: pd.Series, period: int) -> pd.Series:
    """Simple Moving Average over `period` bars."""
    return prices.rolling(window=period, min_periods=period).mean()


def calculate_ema(prices: pd.Series, period: int) -> pd.Series:
    """Exponential Moving Average with span=`period`."""
    return prices.ewm(span=period, adjust=False, min_periods=period).mean()


def calculate_rsi(prices: pd.Series, period: int = 14) -> pd.Series:
    """
    Calculate Relative Strength Index.

    Uses Wilder's smoothing method (exponential moving average).

    Args:
        prices: Price series (typically close prices)
        period: RSI period (default: 14)

    Returns:
        RSI series (0-100 scale)
    """
    delta = prices.diff()

    gain = delta.where(delta > 0, 0.0)
    loss = (-delta).where(delta < 0, 0.0)

    avg_gain = gain.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()

    rs = avg_gain / avg_loss
    rsi = 100 - (100 / (1 + rs))

    # avg_loss == 0 means no down bars in the window
    return rsi.replace([np.inf, -np.inf], 100)


def calculate_macd(
    prices: pd.Series,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> dict[str, pd.Series]:
    """
    Calculate MACD (Moving Average Convergence Divergence).

    Returns:
        Dict with 'macd_line', 'signal_line', 'histogram' series
    """
    macd_line = calculate_ema(prices, fast) - calculate_ema(prices, slow)
    signal_line = calculate_ema(macd_line, signal)

    return {
        "macd_line": macd_line,
        "signal_line": signal_line,
        "histogram": macd_line - signal_line,
    }


def calculate_bollinger_bands(
    prices: pd.Series,
    period: int = 20,
    multiplier: float = 2.0,
) -> dict[str, float | None]:
    """
    Latest Bollinger Bands (population standard deviation).

    Returns:
        Dict with 'upper', 'middle', 'lower' (None when fewer than `period` bars)
    """
    if len(prices) < period:
        return {"upper": None, "middle": None, "lower": None}

    window = prices.iloc[-period:]
    middle = float(window.mean())
    std = float(window.std(ddof=0))

    return {
        "upper": middle + std * multiplier,
        "middle": middle,
        "lower": middle - std * multiplier,
    }


def last_value(series: pd.Series) -> float | None:
    """Last element as float, None when empty or NaN."""
    if series.empty:
        return None
    value = series.iloc[-1]
    if pd.isna(value):
        return None
    return float(value)


def trend_strength(
    sma50: float | None,
    sma200: float | None,
    current_price: float | None,
) -> str:
    """
    Classify trend strength from moving-average spread.

    Strong: SMA50/SMA200 spread > 5% and price within 3% of SMA50.
    Moderate: spread > 2% and price within 5% of SMA50.

    Returns:
        "Strong", "Moderate", "Weak", or "Unknown"
    """
    if not sma50 or not sma200 or not current_price:
        return "Unknown"

    sma_spread = abs(sma50 - sma200) / sma200 * 100
    price_to_sma50 = abs(current_price - sma50) / sma50 * 100

    if sma_spread > 5 and price_to_sma50 < 3:
        return "Strong"
    if sma_spread > 2 and price_to_sma50 < 5:
        return "Moderate"
    return "Weak"
