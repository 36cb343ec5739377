"""Runtime configuration with environment variable support."""

import os
from dataclasses import dataclass, field

DEFAULT_TICKERS: tuple[str, ...] = (
    # AI leaders
    "NVDA", "MSFT", "GOOG", "GOOGL", "META", "AMD", "AVGO", "AAPL", "TSLA", "PLTR",
    "CRWD", "PANW", "SNOW", "SMCI", "MRVL", "AMZN", "ADBE", "NOW", "ISRG", "SNPS",
    # Semiconductors
    "TSM", "ASML", "QCOM", "AMAT", "ARM", "TXN", "INTC", "MU", "ADI", "NXPI",
)

SECTOR_TICKERS: dict[str, tuple[str, ...]] = {
    "ai": ("NVDA", "MSFT", "GOOG", "META", "AMD", "PLTR", "CRWD", "PANW", "SNOW", "ADBE"),
    "semiconductor": ("TSM", "AVGO", "ASML", "QCOM", "AMAT", "ARM", "TXN", "INTC", "MU", "ADI"),
}

# Provider clients must never block longer than this window
MIN_PROVIDER_TIMEOUT = 5.0
MAX_PROVIDER_TIMEOUT = 15.0

# Upstream providers answer 429/503 under bursts shorter than this
MIN_BATCH_DELAY = 1.0


def _get_env_float(key: str, default: float) -> float:
    """Get float value from environment variable with fallback."""
    try:
        return float(os.getenv(key, default))
    except (ValueError, TypeError):
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable with fallback."""
    try:
        return int(os.getenv(key, default))
    except (ValueError, TypeError):
        return default


def _get_env_list(key: str, default: tuple[str, ...], separator: str = ",") -> tuple[str, ...]:
    """Get list value from environment variable with fallback."""
    value = os.getenv(key)
    if not value:
        return default
    return tuple(item.strip().upper() for item in value.split(separator) if item.strip())


@dataclass(frozen=True)
class Settings:
    """Immutable service settings. Build with Settings.from_env()."""

    huggingface_api_key: str = ""
    sentiment_model: str = "ProsusAI/finbert"
    ai_timeout: float = 10.0
    ai_max_retries: int = 2
    ai_retry_delay: float = 1.0
    ai_backoff_multiplier: float = 2.0
    batch_size: int = 3
    batch_delay: float = 1.0
    cache_ttl: float = 300.0
    cache_max_size: int = 100
    market_tz: str = "America/New_York"
    default_tickers: tuple[str, ...] = field(default=DEFAULT_TICKERS)

    def __post_init__(self) -> None:
        timeout = min(max(self.ai_timeout, MIN_PROVIDER_TIMEOUT), MAX_PROVIDER_TIMEOUT)
        object.__setattr__(self, "ai_timeout", timeout)
        object.__setattr__(self, "batch_size", max(1, self.batch_size))
        object.__setattr__(self, "batch_delay", max(MIN_BATCH_DELAY, self.batch_delay))
        object.__setattr__(self, "ai_max_retries", max(0, self.ai_max_retries))

    @property
    def has_remote_provider(self) -> bool:
        """True when a real sentiment provider can be configured."""
        return bool(self.huggingface_api_key.strip())

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the process environment."""
        return cls(
            huggingface_api_key=os.getenv("HUGGINGFACE_API_KEY", ""),
            sentiment_model=os.getenv("HF_SENTIMENT_MODEL", "ProsusAI/finbert"),
            ai_timeout=_get_env_float("AI_TIMEOUT", 10.0),
            ai_max_retries=_get_env_int("AI_MAX_RETRIES", 2),
            ai_retry_delay=_get_env_float("AI_RETRY_DELAY", 1.0),
            batch_size=_get_env_int("BATCH_SIZE", 3),
            batch_delay=_get_env_float("BATCH_DELAY", 1.0),
            cache_ttl=_get_env_float("CACHE_TTL", 300.0),
            cache_max_size=_get_env_int("CACHE_MAX_SIZE", 100),
            market_tz=os.getenv("MARKET_TZ", "America/New_York"),
            default_tickers=_get_env_list("DEFAULT_TICKERS", DEFAULT_TICKERS),
        )
