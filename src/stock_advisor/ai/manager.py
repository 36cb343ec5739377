"""
Fallback chain over sentiment providers.

Providers are tried primary first, then fallbacks in registration order. Each
provider gets up to max_retries retries with exponential backoff before the
chain moves on; retries are per provider, fallback is across providers.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from stock_advisor.ai.providers import (
    HuggingFaceSentimentProvider,
    MockSentimentProvider,
    ProviderError,
    SentimentProvider,
)
from stock_advisor.config import MAX_PROVIDER_TIMEOUT, Settings

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
Operation = Callable[[SentimentProvider], Awaitable[dict[str, Any]]]


class AllProvidersExhaustedError(Exception):
    """Every registered provider was unavailable or failed."""

    def __init__(self, operation: str, errors: dict[str, str]):
        self.operation = operation
        self.errors = errors
        detail = "; ".join(f"{name}: {msg}" for name, msg in errors.items()) or "no providers"
        super().__init__(f"All AI providers failed for {operation} ({detail})")


@dataclass
class ProviderRegistration:
    """A provider and its position in the chain."""

    name: str
    provider: SentimentProvider
    is_primary: bool = False
    attempts: int = 0
    failures: int = 0


class AIServiceManager:
    """Runs sentiment operations across an ordered provider chain."""

    def __init__(
        self,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        backoff_multiplier: float = 2.0,
        timeout: float = MAX_PROVIDER_TIMEOUT,
        sleep: Sleep = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.backoff_multiplier = backoff_multiplier
        self.timeout = timeout
        self._sleep = sleep
        self._registrations: list[ProviderRegistration] = []

    def register(
        self,
        provider: SentimentProvider,
        primary: bool = False,
        name: str | None = None,
    ) -> ProviderRegistration:
        """
        Add a provider to the chain.

        Raises:
            ValueError: If the name is taken or a second primary is registered
        """
        name = name or provider.name
        if any(r.name == name for r in self._registrations):
            raise ValueError(f"Provider '{name}' is already registered")
        if primary and any(r.is_primary for r in self._registrations):
            raise ValueError("A primary provider is already registered")
        registration = ProviderRegistration(name=name, provider=provider, is_primary=primary)
        self._registrations.append(registration)
        logger.info(f"Registered AI provider {name} ({'primary' if primary else 'fallback'})")
        return registration

    @property
    def providers(self) -> list[ProviderRegistration]:
        """Chain order: the primary (or first registered) then the rest by insertion."""
        primary = self.primary
        if primary is None:
            return []
        return [primary] + [r for r in self._registrations if r is not primary]

    @property
    def primary(self) -> ProviderRegistration | None:
        for registration in self._registrations:
            if registration.is_primary:
                return registration
        return self._registrations[0] if self._registrations else None

    def _backoff(self, retry: int) -> float:
        return self.retry_delay * (self.backoff_multiplier**retry)

    def time_budget(self) -> float:
        """
        Worst-case seconds for one walk of the chain.

        Per provider: the status check, every attempt timing out, and the
        backoff sleeps between attempts. Callers wrapping a chain call in
        their own timeout must allow at least this much.
        """
        attempts = self.max_retries + 1
        per_provider = (
            self.timeout
            + attempts * self.timeout
            + sum(self._backoff(retry) for retry in range(self.max_retries))
        )
        return per_provider * len(self._registrations)

    async def _is_available(self, registration: ProviderRegistration) -> tuple[bool, str]:
        try:
            status = await asyncio.wait_for(
                registration.provider.check_status(), timeout=self.timeout
            )
        except Exception as e:
            return False, f"status check failed: {e}"
        return bool(status.get("available")), str(status.get("message", ""))

    async def _attempt(
        self, registration: ProviderRegistration, operation: str, call: Operation
    ) -> dict[str, Any]:
        """Run call against one provider with retry/backoff. Raises the last error."""
        attempt = 0
        while True:
            registration.attempts += 1
            try:
                result = await asyncio.wait_for(call(registration.provider), timeout=self.timeout)
                if not isinstance(result, dict) or result.get("error") or result.get("success") is False:
                    message = result.get("message") if isinstance(result, dict) else None
                    raise ProviderError(message or "provider returned an error envelope")
                return result
            except Exception as e:
                registration.failures += 1
                if attempt >= self.max_retries:
                    raise
                delay = self._backoff(attempt)
                logger.info(
                    f"{registration.name}.{operation} failed (attempt {attempt + 1}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
            await self._sleep(delay)
            attempt += 1

    async def _run_chain(self, operation: str, call: Operation) -> dict[str, Any]:
        """
        Walk the chain until one provider succeeds.

        Raises:
            AllProvidersExhaustedError: If every provider is unavailable or fails
        """
        errors: dict[str, str] = {}
        for registration in self.providers:
            available, message = await self._is_available(registration)
            if not available:
                logger.debug(f"Skipping {registration.name}: {message}")
                errors[registration.name] = message or "unavailable"
                continue
            try:
                result = await self._attempt(registration, operation, call)
            except Exception as e:
                logger.warning(f"{registration.name}.{operation} exhausted retries: {e}")
                errors[registration.name] = str(e)
                continue
            if registration is not self.primary:
                logger.info(f"{operation} served by fallback provider {registration.name}")
            return {
                **result,
                "provider": registration.name,
                "ai_provider": registration.name,
            }
        raise AllProvidersExhaustedError(operation, errors)

    def _exhausted(self, error: AllProvidersExhaustedError) -> dict[str, Any]:
        logger.warning(str(error))
        return {
            "success": False,
            "error": True,
            "service": "manager",
            "operation": error.operation,
            "message": str(error),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def analyze_sentiment(self, ticker: str) -> dict[str, Any]:
        """Sentiment for ticker from the first provider that succeeds. Never raises."""
        try:
            return await self._run_chain(
                "analyze_sentiment", lambda provider: provider.analyze_sentiment(ticker)
            )
        except AllProvidersExhaustedError as e:
            return self._exhausted(e)

    async def get_stock_recommendations(self, tickers: list[str]) -> dict[str, Any]:
        """Provider-side ranking of tickers through the same chain. Never raises."""
        try:
            return await self._run_chain(
                "recommend", lambda provider: provider.recommend(list(tickers))
            )
        except AllProvidersExhaustedError as e:
            return self._exhausted(e)

    async def check_status(self) -> dict[str, Any]:
        """Availability and counters for every registered provider."""
        providers: dict[str, Any] = {}
        for registration in self.providers:
            available, message = await self._is_available(registration)
            providers[registration.name] = {
                "available": available,
                "message": message,
                "is_primary": registration is self.primary,
                "is_mock": registration.provider.is_mock,
                "model": registration.provider.model,
                "attempts": registration.attempts,
                "failures": registration.failures,
                **registration.provider.stats(),
            }
        primary = self.primary
        return {
            "primary": primary.name if primary else None,
            "fallbacks": [r.name for r in self.providers[1:]],
            "providers": providers,
            "any_available": any(p["available"] for p in providers.values()),
        }


def build_default_manager(settings: Settings, sleep: Sleep = asyncio.sleep) -> AIServiceManager:
    """Hugging Face as primary when a key is configured; mock always last."""
    manager = AIServiceManager(
        max_retries=settings.ai_max_retries,
        retry_delay=settings.ai_retry_delay,
        backoff_multiplier=settings.ai_backoff_multiplier,
        timeout=settings.ai_timeout,
        sleep=sleep,
    )
    if settings.has_remote_provider:
        manager.register(
            HuggingFaceSentimentProvider(
                api_key=settings.huggingface_api_key,
                model=settings.sentiment_model,
                timeout=settings.ai_timeout,
            ),
            primary=True,
        )
    else:
        logger.info("HUGGINGFACE_API_KEY not set, sentiment will come from the mock provider")
    manager.register(MockSentimentProvider())
    return manager
