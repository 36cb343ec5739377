"""AI sentiment providers and the fallback manager."""

from stock_advisor.ai.manager import (
    AIServiceManager,
    AllProvidersExhaustedError,
    ProviderRegistration,
    build_default_manager,
)
from stock_advisor.ai.parsing import (
    ResponseParseError,
    ResponseShape,
    SentimentReading,
    classify_response,
    parse_sentiment_response,
)
from stock_advisor.ai.providers import (
    HuggingFaceSentimentProvider,
    MockSentimentProvider,
    ProviderError,
    ProviderUnavailableError,
    SentimentProvider,
)

__all__ = [
    "AIServiceManager",
    "AllProvidersExhaustedError",
    "ProviderRegistration",
    "build_default_manager",
    "ResponseParseError",
    "ResponseShape",
    "SentimentReading",
    "classify_response",
    "parse_sentiment_response",
    "HuggingFaceSentimentProvider",
    "MockSentimentProvider",
    "ProviderError",
    "ProviderUnavailableError",
    "SentimentProvider",
]
